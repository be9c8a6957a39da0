from typing import Optional

from .config import FAILURE_BACKOFF_SECONDS
from .elements import Element, describe
from .errors import StreamingFailure
from .scope import CancelScope


class LoopMixin:
    failure_backoff: float = FAILURE_BACKOFF_SECONDS

    def _next_element_unlocked(self) -> Optional[Element]:
        """
        Element the loop should stream now, or None to idle-wait.
        A finished non-looping playlist resumes once it grows or loop is enabled.
        Caller must hold self.lock.
        """
        if self.exhausted:
            if not self._step_unlocked(+1):
                return None
            self.exhausted = False
            self._append_log(f"Resuming at index {self.current_index}")
        return self._current_unlocked()

    def _finish_element_unlocked(self, generation: int) -> None:
        """
        Natural end (or failure, or skip) of the in-flight element.
        Caller must hold self.lock.
        """
        self.element_scope = None
        if self.generation != generation:
            # next()/previous()/remove() already moved the index for us
            return
        if self._step_unlocked(+1):
            self.generation += 1
            return
        if self.playlist:
            self.exhausted = True
            self._append_log("Reached end of playlist (no loop); waiting for more elements")

    def player_loop(self, run_scope: CancelScope) -> None:
        """
        Stream the playlist, one element at a time, until run_scope is cancelled.

        The lock is only held for state transitions, never while ffmpeg runs,
        so stop()/next() always get through.
        """
        self._append_log("Player loop started")
        try:
            while not run_scope.cancelled:
                with self.lock:
                    item = self._next_element_unlocked()
                    if item is not None:
                        element_scope = run_scope.child()
                        self.element_scope = element_scope
                        generation = self.generation
                        index = self.current_index
                if item is None:
                    run_scope.wait(self.poll_interval)
                    continue

                self._append_log(f"Now streaming [{index}] {describe(item)}")
                failed = False
                try:
                    self.stream_element(element_scope, item)
                except StreamingFailure as e:
                    failed = True
                    self._append_log(f"Streaming error: {e}", level="error")
                except Exception as e:
                    failed = True
                    self._append_log(f"Unexpected streaming error: {e!r}", level="error")
                finally:
                    element_scope.release()
                    with self.lock:
                        self._finish_element_unlocked(generation)
                        self._consecutive_failures = (
                            self._consecutive_failures + 1 if failed else 0
                        )
                        every_item_failed = (
                            failed and self._consecutive_failures >= max(len(self.playlist), 1)
                        )
                if every_item_failed:
                    # Whole playlist is failing (ingest down?); don't hammer it.
                    self._append_log(
                        f"All elements failing; backing off {self.failure_backoff:.0f}s",
                        level="warning",
                    )
                    run_scope.wait(self.failure_backoff)
        finally:
            with self.lock:
                self.player_running = False
                self.run_scope = None
                self.element_scope = None
            self._append_log("Player loop stopped")
