import subprocess
import threading
import time
from typing import Callable, Dict, List, Optional

from .commands import OverlayOptions
from .config import (
    FFMPEG_PATH,
    FFPROBE_PATH,
    IDLE_POLL_INTERVAL,
    IDLE_QUALITY_TIER,
    LOG_ECHO,
    LOG_MAX_LINES,
    MAX_ELEMENT_SECONDS,
    RTMP_URL,
)
from .elements import Element
from .scope import CancelScope


class BaseState:
    def __init__(
        self,
        *,
        rtmp_url: str = RTMP_URL,
        ffmpeg_path: str = FFMPEG_PATH,
        ffprobe_path: str = FFPROBE_PATH,
        launcher: Optional[Callable[..., subprocess.Popen]] = None,
        prober: Optional[Callable[[str], float]] = None,
        clock: Optional[Callable[[], float]] = None,
        poll_interval: float = IDLE_POLL_INTERVAL,
        overlay: Optional[OverlayOptions] = None,
        idle_tier: int = IDLE_QUALITY_TIER,
        max_element_seconds: Optional[float] = MAX_ELEMENT_SECONDS,
        log_max: int = LOG_MAX_LINES,
        log_echo: bool = LOG_ECHO,
    ) -> None:
        self.playlist: List[Element] = []
        self.current_index: int = 0
        self.loop: bool = True

        # configuration
        self.rtmp_url: str = rtmp_url
        self.ffmpeg_path: str = ffmpeg_path
        self.ffprobe_path: str = ffprobe_path
        self.overlay: OverlayOptions = overlay or OverlayOptions()
        self.idle_tier: int = idle_tier
        self.poll_interval: float = poll_interval
        self.max_element_seconds: Optional[float] = max_element_seconds

        # injected collaborators
        self._launcher = launcher or subprocess.Popen
        self._prober = prober
        self._clock = clock or time.time

        # run-level control: set while the player loop thread is alive
        self.player_running: bool = False
        self.run_scope: Optional[CancelScope] = None
        self._player_thread: Optional[threading.Thread] = None

        # element-level control: set while an element is being encoded
        self.element_scope: Optional[CancelScope] = None

        # bumped by every explicit index move; the loop only advances after
        # an element if nobody moved the index while it was streaming
        self.generation: int = 0
        # non-looping playlist ran past its last element
        self.exhausted: bool = False

        # sync primitives (RLock to allow nested acquire in same thread)
        self.lock = threading.RLock()

        # log buffer
        self._logs: List[str] = []
        self._log_max = log_max
        self._log_echo = log_echo

        # video durations (seconds) keyed by source path
        self.durations: Dict[str, float] = {}
        # ffprobe errors keyed by source path, forgotten whenever the playlist changes
        self.probe_errors: Dict[str, str] = {}

        # ffmpeg processes that exited non-zero, reset by each success
        self._consecutive_failures: int = 0
