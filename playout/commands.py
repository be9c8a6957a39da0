"""
ffmpeg argument synthesis.

Everything here is a pure function of its inputs: the same element, profile,
encoder choice and overlay options (and, for idle slates, the same clock
reading) always give the same argument list. Nothing is launched.
"""
from dataclasses import dataclass
from typing import List, Optional

from .config import BANNER_WIDTH, DESCRIPTION_SCROLL_THRESHOLD, FONT_FILE
from .elements import Element, IdleElement, VideoElement
from .quality import EncoderChoice, QualityProfile

AUDIO_RATE = "44100"
IDLE_BACKGROUND = "0x101020"
BANNER_SCROLL_SPEED = 120
TICKER_SCROLL_SPEED = 90

# Characters the filtergraph parser treats as separators or quoting.
_FILTERGRAPH_SPECIALS = ("'", "[", "]", ",", ";")


@dataclass(frozen=True)
class OverlayOptions:
    enabled: bool = True
    font_file: Optional[str] = FONT_FILE
    banner_width: int = BANNER_WIDTH
    scroll_threshold: int = DESCRIPTION_SCROLL_THRESHOLD


def escape_drawtext(text: str) -> str:
    """
    Free-form text in drawtext's own syntax: printed literally, on one line.

    drawtext expands ``%{...}`` and unescapes backslashes in its text, so both
    are escaped here. Quoting for the option and filtergraph levels is left
    to _drawtext.
    """
    flat = " ".join(text.splitlines())
    return flat.replace("\\", "\\\\").replace("%", "\\%")


def quote_option(value: str) -> str:
    """Single-quote a filter option value; an embedded quote becomes '\\''."""
    return "'" + value.replace("'", "'\\''") + "'"


def escape_filtergraph(value: str) -> str:
    """Escape a filter's argument string so the -vf parser passes it through intact."""
    out = value.replace("\\", "\\\\")
    for ch in _FILTERGRAPH_SPECIALS:
        out = out.replace(ch, "\\" + ch)
    return out


def fit_label(label: str, width: int) -> str:
    """Truncate (with an ellipsis) or right-pad a label to exactly width chars."""
    if width <= 3:
        return label[:width]
    if len(label) > width:
        return label[: width - 3] + "..."
    return label.ljust(width)


def _drawtext(text: str, options: str, overlay: OverlayOptions) -> str:
    """
    One drawtext filter for a -vf chain.

    `text` is in drawtext syntax (see escape_drawtext); `options` are plain
    ``key=value`` pairs. The text and font path are quoted at the option level
    and the whole argument string is then escaped for the filtergraph.
    """
    parts = []
    if overlay.font_file:
        parts.append("fontfile=" + quote_option(overlay.font_file))
    parts.append("text=" + quote_option(text))
    parts.append(options)
    return "drawtext=" + escape_filtergraph(":".join(parts))


def video_codec_args(profile: QualityProfile, encoder: EncoderChoice) -> List[str]:
    args = ["-c:v", encoder.codec, "-b:v", f"{profile.video_kbps}k"]
    if encoder.hardware:
        if encoder.codec.endswith("_v4l2m2m"):
            args += ["-num_output_buffers", "32", "-num_capture_buffers", "16"]
        return args
    args += [
        "-preset",
        encoder.preset or "veryfast",
        "-tune",
        "zerolatency",
        "-maxrate",
        f"{encoder.maxrate_kbps}k",
        "-bufsize",
        f"{encoder.bufsize_kbps}k",
        "-g",
        str(encoder.gop),
        "-keyint_min",
        str(encoder.gop),
    ]
    return args


def audio_codec_args(profile: QualityProfile) -> List[str]:
    return ["-c:a", "aac", "-b:a", f"{profile.audio_kbps}k", "-ar", AUDIO_RATE, "-ac", "2"]


def banner_filter(label: str, overlay: OverlayOptions) -> str:
    """Scrolling text banner along the bottom edge, driven by wall-clock time."""
    text = escape_drawtext(fit_label(label, overlay.banner_width))
    return _drawtext(
        text,
        "fontcolor=white:fontsize=28:box=1:boxcolor=black@0.5:boxborderw=8:"
        f"y=h-th-24:x=w-mod(time(0)*{BANNER_SCROLL_SPEED},w+tw)",
        overlay,
    )


def video_filter(element: VideoElement, profile: QualityProfile, overlay: OverlayOptions) -> str:
    w, h = profile.width, profile.height
    chain = [
        f"scale={w}:{h}:force_original_aspect_ratio=decrease",
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2",
        f"fps={profile.fps}",
        "format=yuv420p",
    ]
    if overlay.enabled and element.banner:
        chain.append(banner_filter(element.label(), overlay))
    return ",".join(chain)


def countdown_text(target_start: float) -> str:
    """
    MM:SS drawtext expansion counting down to `target_start` (epoch seconds).
    The remaining time is re-evaluated against the wall clock on every frame.
    """
    left = f"max(0,{int(round(target_start))}-time(0))"
    return f"%{{eif:trunc({left}/60):d:2}}:%{{eif:mod({left},60):d:2}}"


def description_filter(description: str, overlay: OverlayOptions) -> str:
    text = escape_drawtext(description)
    if len(description) <= overlay.scroll_threshold:
        position = "x=(w-tw)/2:y=h/2"
    else:
        position = f"x=w-mod(t*{TICKER_SCROLL_SPEED},w+tw):y=h/2"
    return _drawtext(text, f"fontcolor=white:fontsize=40:{position}", overlay)


def idle_filter(element: IdleElement, overlay: OverlayOptions, now: float) -> str:
    """Intermission slate layers. The countdown runs to `now` plus the slate length."""
    chain = ["format=yuv420p"]
    if not overlay.enabled:
        return chain[0]
    chain.append(
        _drawtext(
            "INTERMISSION",
            "fontcolor=white:fontsize=72:x=(w-tw)/2:y=h/6:alpha=0.55+0.45*sin(PI*t)",
            overlay,
        )
    )
    chain.append(
        _drawtext("COMING UP NEXT", "fontcolor=0xC0C0C0:fontsize=36:x=(w-tw)/2:y=h/3", overlay)
    )
    if element.description:
        chain.append(description_filter(element.description, overlay))
    chain.append(
        _drawtext(
            countdown_text(now + element.seconds),
            "fontcolor=yellow:fontsize=56:x=(w-tw)/2:y=h-h/4",
            overlay,
        )
    )
    return ",".join(chain)


def build_video_command(
    element: VideoElement,
    profile: QualityProfile,
    encoder: EncoderChoice,
    overlay: OverlayOptions,
    rtmp_url: str,
) -> List[str]:
    return [
        # Read at native rate so the schedule follows the wall clock
        "-re",
        "-i",
        element.path,
        "-map",
        "0:v:0",
        "-map",
        "0:a:0?",
        "-vf",
        video_filter(element, profile, overlay),
        *video_codec_args(profile, encoder),
        *audio_codec_args(profile),
        "-f",
        "flv",
        rtmp_url,
    ]


def build_idle_command(
    element: IdleElement,
    profile: QualityProfile,
    encoder: EncoderChoice,
    overlay: OverlayOptions,
    rtmp_url: str,
    now: float,
) -> List[str]:
    seconds = str(element.seconds)
    return [
        "-re",
        "-f",
        "lavfi",
        "-i",
        f"color=c={IDLE_BACKGROUND}:s={profile.size}:r={profile.fps}:d={seconds}",
        "-f",
        "lavfi",
        "-i",
        f"anullsrc=channel_layout=stereo:sample_rate={AUDIO_RATE}",
        "-map",
        "0:v:0",
        "-map",
        "1:a:0",
        "-t",
        seconds,
        "-vf",
        idle_filter(element, overlay, now),
        *video_codec_args(profile, encoder),
        *audio_codec_args(profile),
        "-shortest",
        "-f",
        "flv",
        rtmp_url,
    ]


def build_command(
    element: Element,
    profile: QualityProfile,
    encoder: EncoderChoice,
    overlay: OverlayOptions,
    rtmp_url: str,
    now: float,
) -> List[str]:
    """
    Build the ffmpeg arguments (without binary and global flags) for one element.
    `now` is the wall-clock reading (epoch seconds) the idle countdown starts from.
    """
    if isinstance(element, VideoElement):
        return build_video_command(element, profile, encoder, overlay, rtmp_url)
    if isinstance(element, IdleElement):
        return build_idle_command(element, profile, encoder, overlay, rtmp_url, now)
    raise TypeError(f"unknown playlist element: {element!r}")
