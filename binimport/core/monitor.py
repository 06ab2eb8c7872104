"""Cooperative cancellation and progress reporting."""

from __future__ import annotations

from collections.abc import Callable

from binimport.core.exceptions import CancelledError

UpdateCallback = Callable[["TaskMonitor"], None]


class TaskMonitor:
    """Progress sink that long-running calls poll for cancellation."""

    def __init__(self, on_update: UpdateCallback | None = None, cancellable: bool = True) -> None:
        self._on_update = on_update
        self._cancellable = cancellable
        self._cancelled = False
        self.message = ""
        self.progress = 0
        self.maximum = 0

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancellable:
            self._cancelled = True

    def check_cancelled(self) -> None:
        """Raise CancelledError if cancel() has been called."""
        if self._cancelled:
            raise CancelledError("Operation cancelled")

    def set_message(self, message: str) -> None:
        self.message = message
        self._notify()

    def set_maximum(self, maximum: int) -> None:
        self.maximum = maximum
        self._notify()

    def set_progress(self, progress: int) -> None:
        self.progress = progress
        self._notify()

    def increment_progress(self, amount: int = 1) -> None:
        self.set_progress(self.progress + amount)

    def _notify(self) -> None:
        if self._on_update:
            self._on_update(self)


DUMMY_MONITOR = TaskMonitor(cancellable=False)
