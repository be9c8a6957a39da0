import os
from pathlib import Path
from typing import Optional


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


# Determine ffprobe path:
# - If FFPROBE_PATH is set in env, use it directly.
# - Otherwise, if FFMPEG_PATH is an absolute/explicit path, try to derive ffprobe
#   from the same directory (ffprobe.exe or ffprobe).
FFMPEG_PATH = os.getenv("FFMPEG_PATH", "ffmpeg")
_ffprobe_env = os.getenv("FFPROBE_PATH")

if _ffprobe_env:
    FFPROBE_PATH = _ffprobe_env
else:
    ff = Path(FFMPEG_PATH)
    if ff.is_absolute():
        # On Windows this will typically map ffmpeg.exe -> ffprobe.exe
        probe_name = "ffprobe" + (ff.suffix if ff.suffix else "")
        FFPROBE_PATH = str(ff.with_name(probe_name))
    else:
        FFPROBE_PATH = "ffprobe"

# Single push destination for the whole broadcast.
RTMP_URL = os.getenv("RTMP_URL") or os.getenv(
    "DEFAULT_RTMP_URL", "rtmp://localhost:1935/live/stream"
)

# Seconds the player loop sleeps when there is nothing to play.
IDLE_POLL_INTERVAL = _env_float("IDLE_POLL_INTERVAL", 0.25)

# Encoders. The hardware one is the Raspberry Pi V4L2 mem2mem H.264 block,
# which tops out around 1080p30.
HW_VIDEO_ENCODER = os.getenv("HW_VIDEO_ENCODER", "h264_v4l2m2m")
SW_VIDEO_ENCODER = os.getenv("SW_VIDEO_ENCODER", "libx264")
SW_PRESET = os.getenv("SW_PRESET", "veryfast")
HW_MAX_PIXEL_RATE = _env_int("HW_MAX_PIXEL_RATE", 1920 * 1080 * 30)

DEFAULT_QUALITY_TIER = _env_int("DEFAULT_QUALITY_TIER", 2)
IDLE_QUALITY_TIER = _env_int("IDLE_QUALITY_TIER", 2)

# drawtext layout
BANNER_WIDTH = _env_int("BANNER_WIDTH", 48)
DESCRIPTION_SCROLL_THRESHOLD = _env_int("DESCRIPTION_SCROLL_THRESHOLD", 80)
FONT_FILE: Optional[str] = os.getenv("FONT_FILE") or None

# 0 disables the per-element watchdog.
_max_element = _env_float("MAX_ELEMENT_SECONDS", 0.0)
MAX_ELEMENT_SECONDS: Optional[float] = _max_element if _max_element > 0 else None

LOG_MAX_LINES = _env_int("LOG_MAX_LINES", 300)
# Also print log lines to stdout (handy under a process supervisor).
LOG_ECHO = os.getenv("LOG_ECHO", "0").strip().lower() in ("1", "true", "yes", "on")

# Pause before retrying when every element in a row failed to stream.
FAILURE_BACKOFF_SECONDS = _env_float("FAILURE_BACKOFF_SECONDS", 5.0)
