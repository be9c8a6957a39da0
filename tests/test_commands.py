"""
Unit tests for ffmpeg argument synthesis.
"""

import re

import pytest

from playout.commands import (
    OverlayOptions,
    build_command,
    countdown_text,
    escape_drawtext,
    escape_filtergraph,
    fit_label,
    idle_filter,
    quote_option,
    video_codec_args,
)
from playout.elements import AspectClass, IdleElement, VideoElement
from playout.quality import EncoderChoice, choose_encoder, resolve

RTMP = "rtmp://ingest.test/live/stream"
NOW = 1_700_000_000.0
OVERLAY = OverlayOptions(enabled=True, font_file=None, banner_width=48, scroll_threshold=80)

# Every character the filter syntax treats specially, plus drawtext's own.
TRICKY = "Tonight: \"Twin Peaks\", ep. [1]; it's 100% \\o/"


def _encoder(profile):
    return choose_encoder(
        profile,
        hw_codec="h264_v4l2m2m",
        sw_codec="libx264",
        max_pixel_rate=1920 * 1080 * 30,
        preset="veryfast",
    )


def _vf(args):
    return args[args.index("-vf") + 1]


# --- the three unescaping passes ffmpeg applies to a -vf string ---


def _get_token(buf, pos, term):
    """Same rules as libavutil av_get_token: backslash escapes, '...' quoting."""
    ws = " \n\t\r"
    while pos < len(buf) and buf[pos] in ws:
        pos += 1
    out = []
    end = 0
    while pos < len(buf) and buf[pos] not in term:
        c = buf[pos]
        pos += 1
        if c == "\\" and pos < len(buf):
            out.append(buf[pos])
            pos += 1
            end = len(out)
        elif c == "'":
            while pos < len(buf) and buf[pos] != "'":
                out.append(buf[pos])
                pos += 1
            if pos < len(buf):
                pos += 1
                end = len(out)
        else:
            out.append(c)
    keep = len(out)
    while keep > end and out[keep - 1] in ws:
        keep -= 1
    return "".join(out[:keep]), pos


def _split_filters(vf):
    """Filtergraph level: [(name, args)] for a linear chain."""
    filters = []
    pos = 0
    while pos < len(vf):
        start = pos
        while pos < len(vf) and vf[pos] not in "=,;[":
            pos += 1
        name = vf[start:pos]
        args = ""
        if pos < len(vf) and vf[pos] == "=":
            args, pos = _get_token(vf, pos + 1, "[],;")
        filters.append((name, args))
        if pos < len(vf):
            assert vf[pos] == ",", f"unexpected {vf[pos]!r} after filter {name!r}"
            pos += 1
    return filters


def _split_options(args):
    """Option level: key=value pairs separated by ':'."""
    options = {}
    pos = 0
    while pos < len(args):
        eq = args.index("=", pos)
        key = args[pos:eq]
        assert re.fullmatch(r"[\w./-]+", key), f"bad option name {key!r}"
        value, pos = _get_token(args, eq + 1, ":")
        options[key] = value
        if pos < len(args):
            assert args[pos] == ":"
            pos += 1
    return options


def _printed(text):
    """drawtext level for literal text: unescape, and refuse any expansion."""
    out = []
    i = 0
    while i < len(text):
        if text[i] == "\\" and i + 1 < len(text):
            out.append(text[i + 1])
            i += 2
            continue
        assert text[i] != "%", f"unescaped % in {text!r}"
        out.append(text[i])
        i += 1
    return "".join(out)


def _drawtexts(vf):
    return [_split_options(args) for name, args in _split_filters(vf) if name == "drawtext"]


@pytest.mark.unit
class TestVideoCommand:
    def test_widescreen_tier_zero_is_deterministic(self):
        element = VideoElement(path="a.mp4", aspect=AspectClass.WIDESCREEN, tier=0, banner=False)
        profile = resolve(AspectClass.WIDESCREEN, 0)

        expected = [
            "-re", "-i", "a.mp4",
            "-map", "0:v:0", "-map", "0:a:0?",
            "-vf",
            "scale=1920:1080:force_original_aspect_ratio=decrease,"
            "pad=1920:1080:(ow-iw)/2:(oh-ih)/2,fps=50,format=yuv420p",
            "-c:v", "libx264", "-b:v", "6000k",
            "-preset", "veryfast", "-tune", "zerolatency",
            "-maxrate", "6000k", "-bufsize", "12000k",
            "-g", "100", "-keyint_min", "100",
            "-c:a", "aac", "-b:a", "192k", "-ar", "44100", "-ac", "2",
            "-f", "flv", RTMP,
        ]  # fmt: skip

        first = build_command(element, profile, _encoder(profile), OVERLAY, RTMP, NOW)
        second = build_command(element, profile, _encoder(profile), OVERLAY, RTMP, NOW)

        assert first == expected
        assert second == first

    def test_hardware_path_has_no_rate_control(self):
        profile = resolve(AspectClass.WIDESCREEN, 2)
        args = build_command(VideoElement(path="b.mp4", tier=2), profile, _encoder(profile), OVERLAY, RTMP, NOW)

        assert args[args.index("-c:v") + 1] == "h264_v4l2m2m"
        assert "-num_output_buffers" in args
        assert "-preset" not in args
        assert "-bufsize" not in args
        assert "fps=30" in _vf(args)

    def test_other_hardware_codecs_skip_v4l2_buffers(self):
        profile = resolve(AspectClass.WIDESCREEN, 2)
        args = video_codec_args(profile, EncoderChoice(codec="h264_vaapi", hardware=True))

        assert args == ["-c:v", "h264_vaapi", "-b:v", "2500k"]

    def test_banner_only_when_requested(self):
        profile = resolve(AspectClass.WIDESCREEN, 2)
        plain = VideoElement(path="/m/Show.mkv", tier=2)
        banner = VideoElement(path="/m/Show.mkv", tier=2, banner=True, title="Tonight: Show")

        assert "drawtext" not in _vf(build_command(plain, profile, _encoder(profile), OVERLAY, RTMP, NOW))

        vf = _vf(build_command(banner, profile, _encoder(profile), OVERLAY, RTMP, NOW))
        assert "drawtext=text=\\'Tonight: Show " in vf
        assert "x=w-mod(time(0)*120\\,w+tw)" in vf

    def test_banner_disabled_by_overlay_options(self):
        profile = resolve(AspectClass.WIDESCREEN, 2)
        element = VideoElement(path="a.mp4", tier=2, banner=True)
        args = build_command(element, profile, _encoder(profile), OverlayOptions(enabled=False), RTMP, NOW)

        assert "drawtext" not in _vf(args)

    def test_font_file_is_used(self):
        profile = resolve(AspectClass.WIDESCREEN, 2)
        element = VideoElement(path="a.mp4", tier=2, banner=True)
        overlay = OverlayOptions(font_file="C:/fonts/mono.ttf")

        assert "drawtext=fontfile=\\'C:/fonts/mono.ttf\\':text=" in _vf(
            build_command(element, profile, _encoder(profile), overlay, RTMP, NOW)
        )

    def test_unknown_element_raises(self):
        profile = resolve(AspectClass.WIDESCREEN, 2)
        with pytest.raises(TypeError):
            build_command({"path": "a.mp4"}, profile, _encoder(profile), OVERLAY, RTMP, NOW)


@pytest.mark.unit
class TestIdleCommand:
    def test_synthesized_sources_and_duration(self):
        profile = resolve(AspectClass.WIDESCREEN, 2)
        element = IdleElement(seconds=45, description="Movie night")
        args = build_command(element, profile, _encoder(profile), OVERLAY, RTMP, now=1000.0)

        assert "-re" in args
        assert "color=c=0x101020:s=1280x720:r=30:d=45" in args
        assert "anullsrc=channel_layout=stereo:sample_rate=44100" in args
        assert args[args.index("-t") + 1] == "45"
        assert "-shortest" in args
        assert args[-3:] == ["-f", "flv", RTMP]
        # no file input
        inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
        assert all(not i.endswith(".mp4") for i in inputs)

    def test_layers(self):
        vf = idle_filter(IdleElement(seconds=45, description="Movie night"), OVERLAY, now=1000.0)
        layers = _drawtexts(vf)

        assert vf.startswith("format=yuv420p,")
        assert [_printed(d["text"]) for d in layers[:3]] == ["INTERMISSION", "COMING UP NEXT", "Movie night"]
        assert layers[0]["alpha"] == "0.55+0.45*sin(PI*t)"
        assert layers[3]["text"] == countdown_text(1045.0)

    def test_no_description_block_without_description(self):
        vf = idle_filter(IdleElement(seconds=10), OVERLAY, now=0.0)

        assert "fontsize=40" not in vf
        assert len(_drawtexts(vf)) == 3

    def test_countdown_runs_to_end_of_slate(self):
        vf = idle_filter(IdleElement(seconds=300), OVERLAY, now=1000.0)

        assert _drawtexts(vf)[-1]["text"] == countdown_text(1300.0)
        assert "max(0\\,1300-time(0))" in vf

    def test_countdown_text(self):
        assert countdown_text(1090.4) == (
            "%{eif:trunc(max(0,1090-time(0))/60):d:2}:%{eif:mod(max(0,1090-time(0)),60):d:2}"
        )

    def test_description_static_at_threshold(self):
        vf = idle_filter(IdleElement(seconds=30, description="d" * 80), OVERLAY, now=0.0)

        assert "text=\\'" + "d" * 80 + "\\':fontcolor=white:fontsize=40:x=(w-tw)/2:y=h/2" in vf

    def test_description_scrolls_above_threshold(self):
        vf = idle_filter(IdleElement(seconds=30, description="d" * 81), OVERLAY, now=0.0)

        assert "text=\\'" + "d" * 81 + "\\':fontcolor=white:fontsize=40:x=w-mod(t*90\\,w+tw):y=h/2" in vf

    def test_overlay_disabled_gives_plain_slate(self):
        vf = idle_filter(IdleElement(seconds=30, description="x"), OverlayOptions(enabled=False), now=0.0)

        assert vf == "format=yuv420p"


@pytest.mark.unit
class TestFiltergraphSyntax:
    """The -vf strings survive ffmpeg's filtergraph, option and drawtext parsing."""

    def test_banner_title_round_trips(self):
        profile = resolve(AspectClass.WIDESCREEN, 2)
        element = VideoElement(path="a.mp4", tier=2, banner=True, title=TRICKY)
        vf = _vf(build_command(element, profile, _encoder(profile), OVERLAY, RTMP, NOW))

        names = [name for name, _ in _split_filters(vf)]
        assert names == ["scale", "pad", "fps", "format", "drawtext"]
        (banner,) = _drawtexts(vf)
        assert _printed(banner["text"]) == fit_label(TRICKY, 48)
        assert banner["x"] == "w-mod(time(0)*120,w+tw)"
        assert banner["fontcolor"] == "white"

    @pytest.mark.parametrize("description", [TRICKY, TRICKY * 3])
    def test_idle_description_round_trips(self, description):
        vf = idle_filter(IdleElement(seconds=45, description=description), OVERLAY, now=NOW)

        names = [name for name, _ in _split_filters(vf)]
        assert names == ["format", "drawtext", "drawtext", "drawtext", "drawtext"]
        texts = [d["text"] for d in _drawtexts(vf)]
        assert _printed(texts[2]) == description
        assert texts[3] == countdown_text(NOW + 45)

    def test_countdown_splits_into_expansions(self):
        vf = idle_filter(IdleElement(seconds=45), OVERLAY, now=1000.0)
        text = _drawtexts(vf)[-1]["text"]

        assert re.fullmatch(r"%\{eif:[^:{}]+:d:2\}:%\{eif:[^:{}]+:d:2\}", text)

    def test_font_path_round_trips(self):
        overlay = OverlayOptions(font_file="C:/fonts/it's mono.ttf")
        vf = idle_filter(IdleElement(seconds=5, description="a, b"), overlay, now=0.0)

        layers = _drawtexts(vf)
        assert {d["fontfile"] for d in layers} == {"C:/fonts/it's mono.ttf"}
        assert _printed(layers[2]["text"]) == "a, b"


@pytest.mark.unit
class TestText:
    def test_escape_drawtext(self):
        assert escape_drawtext("a:b,c[d]e'f\\g%h;i") == r"a:b,c[d]e'f\\g\%h;i"

    def test_escape_flattens_newlines(self):
        assert escape_drawtext("one\ntwo") == "one two"

    def test_quote_option(self):
        assert quote_option("it's") == r"'it'\''s'"

    def test_escape_filtergraph(self):
        assert escape_filtergraph("a'b[c]d,e;f\\g:h") == r"a\'b\[c\]d\,e\;f\\g:h"

    def test_fit_label_pads(self):
        assert fit_label("News", 8) == "News    "

    def test_fit_label_truncates(self):
        label = fit_label("A very long programme title", 10)

        assert label == "A very ..."
        assert len(label) == 10

    def test_fit_label_tiny_width(self):
        assert fit_label("abcdef", 2) == "ab"
