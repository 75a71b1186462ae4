"""Cancellable delayed action used to debounce writes.

Each ``schedule`` replaces the pending call, so a burst of changes produces
one write carrying the latest arguments. Without a running event loop the
action runs immediately.
"""

import asyncio
from collections.abc import Callable


class DelayedAction:
    def __init__(self, delay_seconds: float, action: Callable[..., None]) -> None:
        self.delay_seconds = delay_seconds
        self.action = action
        self._handle: asyncio.TimerHandle | None = None
        self._args: tuple = ()
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def schedule(self, *args) -> None:
        self.cancel()
        self._args = args
        self._pending = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return

        if self.delay_seconds <= 0:
            self.flush()
        else:
            self._handle = loop.call_later(self.delay_seconds, self.flush)

    def flush(self) -> None:
        """Run the pending action now, if there is one."""
        if not self._pending:
            return
        args = self._args
        self.cancel()
        self.action(*args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = False
        self._args = ()
