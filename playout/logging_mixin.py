import time
from typing import List, Optional


class LoggingMixin:
    """Bounded console buffer fed by scheduler actions and ffmpeg output."""

    def _append_log(self, msg: str, level: str = "info") -> None:
        ts = time.strftime("%Y-%m-%d %H:%M:%S")
        tag = "" if level == "info" else f"{level.upper()}: "
        line = f"[{ts}] {tag}{msg}"
        with self.lock:
            self._logs.append(line)
            if len(self._logs) > self._log_max:
                del self._logs[: len(self._logs) - self._log_max]
        if self._log_echo:
            print(line, flush=True)

    def get_logs(self, limit: int = 200, match: Optional[str] = None) -> List[str]:
        """Most recent lines, oldest first; `match` keeps lines containing it."""
        with self.lock:
            lines = list(self._logs)
        if match:
            lines = [line for line in lines if match in line]
        if limit <= 0 or limit >= len(lines):
            return lines
        return lines[-limit:]
