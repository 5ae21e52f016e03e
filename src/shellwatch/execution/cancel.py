"""Cancellation signal source for supervised commands."""

from __future__ import annotations

import threading
from typing import Callable

CancelCallback = Callable[[], None]


class CancelSignal:
    """One-shot, thread-safe cancellation signal.

    Any thread may call :meth:`cancel`; the supervisor subscribes a callback
    for the lifetime of one command and unsubscribes once the race is decided.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[CancelCallback] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the signal. Subsequent calls do nothing."""

        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or the timeout elapsed."""

        return self._event.wait(timeout)

    def subscribe(self, callback: CancelCallback) -> Callable[[], None]:
        """Run ``callback`` once when the signal fires.

        If the signal already fired the callback runs immediately.

        Returns:
            A function that removes the subscription; calling it more than
            once is harmless.
        """

        with self._lock:
            fired = self._event.is_set()
            if not fired:
                self._callbacks.append(callback)
        if fired:
            callback()

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe
