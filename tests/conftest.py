"""
Shared fixtures: a fake ffmpeg launcher, a fake prober and a PlayerState
wired to them so the player loop can be driven without real processes.
"""

import io
import subprocess
import threading
import time
from typing import Callable, Dict, List, Optional

import pytest

from playout.commands import OverlayOptions
from playout.errors import ProbeFailure
from playout.player_state import PlayerState

RTMP = "rtmp://ingest.test/live/stream"
FIXED_NOW = 1_700_000_000.0


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class FakeProcess:
    """Stands in for subprocess.Popen; runs until finish() or terminate()."""

    def __init__(self, args, exit_code: int = 0, finished: bool = False, stubborn: bool = False):
        self.args = args
        self.exit_code = exit_code
        self.returncode: Optional[int] = None
        self.stdout = io.BytesIO(b"frame=    1 fps=0.0 q=0.0 size=0kB\n")
        self.terminated = False
        self.killed = False
        self.stubborn = stubborn
        self._done = threading.Event()
        if finished:
            self._done.set()

    def finish(self) -> None:
        self._done.set()

    def poll(self) -> Optional[int]:
        if self.returncode is None and self._done.is_set():
            self.returncode = self.exit_code
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        if self.stubborn:
            return
        if self.returncode is None:
            self.returncode = -15
        self._done.set()

    def kill(self) -> None:
        self.killed = True
        if self.returncode is None:
            self.returncode = -9
        self._done.set()

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        if self.stubborn and not self.killed:
            raise subprocess.TimeoutExpired(self.args, timeout)
        if not self._done.wait(timeout):
            raise subprocess.TimeoutExpired(self.args, timeout)
        return self.poll()


class FakeLauncher:
    """
    Records every launch. `exit_codes` are consumed one per launch (0 after
    that); `finished=True` makes processes exit on their first poll.
    """

    def __init__(
        self,
        exit_codes: Optional[List[int]] = None,
        finished: bool = False,
        error: Optional[Exception] = None,
        stubborn: bool = False,
    ):
        self.processes: List[FakeProcess] = []
        self.calls: List[dict] = []
        self.exit_codes = list(exit_codes or [])
        self.finished = finished
        self.error = error
        self.stubborn = stubborn
        self._lock = threading.Lock()

    def __call__(self, cmd, **kwargs):
        with self._lock:
            self.calls.append({"cmd": cmd, **kwargs})
            if self.error is not None:
                raise self.error
            code = self.exit_codes.pop(0) if self.exit_codes else 0
            proc = FakeProcess(cmd, exit_code=code, finished=self.finished, stubborn=self.stubborn)
            self.processes.append(proc)
            return proc

    def wait_for(self, count: int, timeout: float = 3.0) -> FakeProcess:
        assert wait_until(lambda: len(self.processes) >= count, timeout), (
            f"expected {count} launches, got {len(self.processes)}"
        )
        return self.processes[count - 1]


class FakeProber:
    def __init__(self, durations: Optional[Dict[str, float]] = None):
        self.durations = durations or {}
        self.calls: List[str] = []

    def __call__(self, path: str) -> float:
        self.calls.append(path)
        if path not in self.durations:
            raise ProbeFailure(f"cannot open {path}")
        return self.durations[path]


def make_state(launcher=None, prober=None, **overrides) -> PlayerState:
    kwargs = dict(
        rtmp_url=RTMP,
        ffmpeg_path="ffmpeg",
        ffprobe_path="ffprobe",
        launcher=launcher or FakeLauncher(),
        prober=prober or FakeProber(),
        clock=lambda: FIXED_NOW,
        poll_interval=0.01,
        overlay=OverlayOptions(font_file=None),
        idle_tier=2,
        max_element_seconds=None,
        log_echo=False,
    )
    kwargs.update(overrides)
    state = PlayerState(**kwargs)
    state.process_poll_interval = 0.01
    state.failure_backoff = 0.05
    return state


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber({"/media/a.mp4": 120.0, "/media/b.mp4": 300.0, "/media/c.mp4": 60.0})


@pytest.fixture
def state(launcher, prober):
    s = make_state(launcher, prober)
    yield s
    if s.stop():
        s.join(timeout=3)
