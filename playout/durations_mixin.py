import json
import subprocess
from typing import List, Optional, Tuple

from .config import FFPROBE_PATH
from .elements import IdleElement, VideoElement
from .errors import ProbeFailure


def probe_duration(path: str, ffprobe_path: str = FFPROBE_PATH, timeout: float = 30.0) -> float:
    """
    Use ffprobe to get a media file's duration in seconds.
    Raises ProbeFailure if ffprobe is missing, fails, or prints nothing usable.
    """
    cmd = [
        ffprobe_path,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        str(path),
    ]
    try:
        out = subprocess.check_output(cmd, stderr=subprocess.PIPE, text=True, timeout=timeout)
    except FileNotFoundError:
        raise ProbeFailure(f"ffprobe executable not found: {ffprobe_path}")
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip() or f"exit code {e.returncode}"
        raise ProbeFailure(f"ffprobe failed for {path}: {detail}")
    except subprocess.TimeoutExpired:
        raise ProbeFailure(f"ffprobe timed out for {path}")
    return parse_probe_output(out, path)


def parse_probe_output(out: str, path: str = "") -> float:
    try:
        data = json.loads(out)
        dur = float(data["format"]["duration"])
    except (ValueError, KeyError, TypeError) as e:
        raise ProbeFailure(f"unparsable ffprobe output for {path}: {e!r}")
    if dur < 0:
        raise ProbeFailure(f"negative duration for {path}: {dur}")
    return dur


class DurationsMixin:
    def _probe(self, path: str) -> float:
        if self._prober is not None:
            return float(self._prober(path))
        return probe_duration(path, self.ffprobe_path)

    def get_duration(self, index: int) -> float:
        """
        Duration in seconds of the element at `index`.

        Idle elements answer from their own length; video elements are probed
        once and cached by path. A failed probe is remembered too, so status()
        does not rerun ffprobe for it until the playlist changes. The lock is
        not held while ffprobe runs.
        """
        with self.lock:
            if index < 0 or index >= len(self.playlist):
                raise ProbeFailure(
                    f"index {index} out of bounds (playlist length: {len(self.playlist)})"
                )
            item = self.playlist[index]
            if isinstance(item, VideoElement):
                cached = self.durations.get(item.path)
                if cached is not None:
                    return cached
                error = self.probe_errors.get(item.path)
                if error is not None:
                    raise ProbeFailure(error)

        if isinstance(item, IdleElement):
            return float(item.seconds)
        if isinstance(item, VideoElement):
            try:
                dur = self._probe(item.path)
            except ProbeFailure as e:
                self._remember_probe_error(item.path, str(e))
                raise
            except Exception as e:
                msg = f"ffprobe error for {item.path}: {e}"
                self._remember_probe_error(item.path, msg)
                raise ProbeFailure(msg) from e
            with self.lock:
                self.durations[item.path] = dur
            return dur
        raise TypeError(f"unknown playlist element at index {index}: {item!r}")

    def _remember_probe_error(self, path: str, msg: str) -> None:
        self._append_log(msg, level="warning")
        with self.lock:
            self.probe_errors[path] = msg

    def _forget_probe_errors_unlocked(self) -> None:
        self.probe_errors.clear()

    def scheduled_durations(self) -> Tuple[List[Optional[float]], List[int]]:
        """Per-index durations (None where probing failed) and the failed indexes."""
        out: List[Optional[float]] = []
        failed: List[int] = []
        for i in range(self.length()):
            try:
                out.append(self.get_duration(i))
            except ProbeFailure:
                out.append(None)
                failed.append(i)
        return out, failed

