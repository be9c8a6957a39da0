import threading
from typing import Optional, Tuple

from .elements import Element
from .scope import CancelScope


class ControlMixin:
    def start(self) -> bool:
        with self.lock:
            if self.player_running:
                self._append_log("Start ignored: already running")
                return False
            self.current_index = 0
            self.exhausted = False
            self.generation += 1
            run_scope = CancelScope()
            self.run_scope = run_scope
            self.player_running = True
            self._player_thread = threading.Thread(
                target=self.player_loop, args=(run_scope,), name="player-loop", daemon=True
            )
            self._append_log("Start requested")
            self._player_thread.start()
            return True

    def stop(self) -> bool:
        with self.lock:
            if not self.player_running or self.run_scope is None:
                return False
            self._append_log("Stop requested")
            if self.element_scope is not None:
                self.element_scope.cancel()
            self.run_scope.cancel()
            return True

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the player loop thread to exit; True if it is gone."""
        with self.lock:
            t = self._player_thread
        if t is None:
            return True
        t.join(timeout)
        return not t.is_alive()

    def _skip_unlocked(self, delta: int) -> bool:
        if not self.player_running:
            return False
        if not self._step_unlocked(delta):
            return False
        self.generation += 1
        self.exhausted = False
        if self.element_scope is not None:
            self.element_scope.cancel()
        return True

    def next(self) -> bool:
        with self.lock:
            ok = self._skip_unlocked(+1)
            self._append_log(
                f"Skip next -> index {self.current_index}" if ok else "Skip next rejected"
            )
            return ok

    def previous(self) -> bool:
        with self.lock:
            ok = self._skip_unlocked(-1)
            self._append_log(
                f"Skip previous -> index {self.current_index}" if ok else "Skip previous rejected"
            )
            return ok

    def set_loop(self, loop: bool) -> None:
        with self.lock:
            self.loop = bool(loop)
            self._append_log(f"Loop set to {self.loop}")

    def is_loop(self) -> bool:
        with self.lock:
            return self.loop

    def current(self) -> Tuple[Optional[Element], bool]:
        with self.lock:
            item = self._current_unlocked()
            return item, item is not None

    def is_running(self) -> bool:
        with self.lock:
            return self.player_running

    def is_playing(self) -> bool:
        with self.lock:
            return self.player_running and self.element_scope is not None

    def status(self) -> dict:
        # Durations are gathered first: probing must not happen under the lock.
        durations, failed = self.scheduled_durations()
        known = [d for d in durations if d is not None]
        total = sum(known)
        with self.lock:
            return {
                "running": self.player_running,
                "playing": self.player_running and self.element_scope is not None,
                "current_index": self.current_index,
                "loop": self.loop,
                "length": len(self.playlist),
                "exhausted": self.exhausted,
                "total_scheduled_seconds": int(total),
                "total_scheduled_hours": round(total / 3600.0, 2),
                "average_item_seconds": round(total / len(known), 1) if known else 0.0,
                "probe_failures": failed,
                "consecutive_failures": self._consecutive_failures,
                "rtmp_url": self.rtmp_url,
            }
