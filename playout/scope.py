import threading
from typing import List, Optional


class CancelScope:
    """
    A cancellation handle that can have children.

    Cancelling a scope cancels every scope derived from it with child();
    cancelling a child leaves its parent alone. The player uses one scope for
    the whole run and one child per streamed element.
    """

    def __init__(self, parent: Optional["CancelScope"] = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: List["CancelScope"] = []
        self.parent = parent

    def child(self) -> "CancelScope":
        scope = CancelScope(parent=self)
        with self._lock:
            self._children.append(scope)
            cancelled = self._event.is_set()
        if cancelled:
            scope.cancel()
        return scope

    def cancel(self) -> None:
        self._event.set()
        with self._lock:
            children = list(self._children)
            self._children.clear()
        for c in children:
            c.cancel()
        if self.parent is not None:
            self.parent._forget(self)

    def _forget(self, child: "CancelScope") -> None:
        with self._lock:
            try:
                self._children.remove(child)
            except ValueError:
                pass

    def release(self) -> None:
        """Detach a finished child so the parent does not keep it alive."""
        if self.parent is not None:
            self.parent._forget(self)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; returns True if cancelled."""
        return self._event.wait(timeout)
