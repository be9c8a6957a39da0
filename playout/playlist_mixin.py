from typing import List, Optional, Tuple

from .elements import Element, describe


class PlaylistMixin:
    def _step_unlocked(self, delta: int) -> bool:
        """
        Move current_index by delta (+1 next, -1 previous).

        - With ``loop`` on, the index wraps around modulo the playlist length.
        - With ``loop`` off, a move that would leave [0, len) fails and the
          index is left untouched.

        Both explicit skips and natural end of an element go through here.
        Caller must hold ``self.lock``.
        """
        n = len(self.playlist)
        if n == 0:
            return False
        target = self.current_index + delta
        if self.loop:
            self.current_index = target % n
            return True
        if target < 0 or target >= n:
            return False
        self.current_index = target
        return True

    def _current_unlocked(self) -> Optional[Element]:
        if 0 <= self.current_index < len(self.playlist):
            return self.playlist[self.current_index]
        return None

    # ---------- public API (used by web handlers) ----------

    def append(self, item: Element) -> int:
        with self.lock:
            self.playlist.append(item)
            self._forget_probe_errors_unlocked()
            n = len(self.playlist)
            self._append_log(f"Appended {describe(item)!r} (length {n})")
            return n

    def insert(self, index: int, item: Element) -> bool:
        with self.lock:
            if index < 0 or index > len(self.playlist):
                self._append_log(f"insert out of range: {index}")
                return False
            self.playlist.insert(index, item)
            self._forget_probe_errors_unlocked()
            # keep pointing at the element that was current
            if index <= self.current_index and len(self.playlist) > 1:
                self.current_index += 1
            self._append_log(f"Inserted {describe(item)!r} at {index}")
            return True

    def remove(self, index: int) -> Tuple[Optional[Element], bool]:
        with self.lock:
            if index < 0 or index >= len(self.playlist):
                self._append_log(f"remove out of range: {index}")
                return None, False
            item = self.playlist.pop(index)
            self._forget_probe_errors_unlocked()
            n = len(self.playlist)
            if index < self.current_index:
                self.current_index -= 1
            elif index == self.current_index:
                # The follower slides into the current slot, so the loop must
                # not step past it when the removed element stops streaming.
                self.generation += 1
                if self.current_index >= n:
                    if self.loop or n == 0:
                        self.current_index = 0
                    else:
                        self.current_index = n - 1
                        self.exhausted = True
            self._append_log(f"Removed {describe(item)!r} from {index}")
            return item, True

    def list(self) -> List[Element]:
        with self.lock:
            return list(self.playlist)

    def clear(self) -> None:
        with self.lock:
            self.playlist = []
            self._forget_probe_errors_unlocked()
            self.current_index = 0
            self.exhausted = False
            self.generation += 1
            self._append_log("Playlist cleared")

    def length(self) -> int:
        with self.lock:
            return len(self.playlist)

    def load(self, items: List[Element]) -> int:
        """Replace the whole playlist; playback restarts from the first element."""
        with self.lock:
            self.playlist = list(items)
            self._forget_probe_errors_unlocked()
            self.current_index = 0
            self.exhausted = False
            self.generation += 1
            self._append_log(f"Playlist loaded with {len(self.playlist)} elements")
            return len(self.playlist)
