"""Outcome record and error types for supervised commands."""

from __future__ import annotations

import threading
from enum import Enum

from shellwatch.execution.output import OutputBuffer


class CommandError(RuntimeError):
    """Base class for errors recorded on an :class:`Outcome`."""


class CommandStartError(CommandError):
    """Raised when the shell could not be resolved or the process not started."""


class CommandCancelledError(CommandError):
    """Recorded when a cancel signal stopped the command."""


class CommandTimeoutError(CommandError, TimeoutError):
    """Recorded when the command outlived its deadline."""


class SupervisorCrashError(CommandError):
    """Recorded when supervision itself failed unexpectedly."""


class CompletionReason(str, Enum):
    """Terminal classification of why supervision ended."""

    NORMAL = "normal"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    CRASHED = "crashed"


class Outcome:
    """Result of one supervised command.

    The outcome starts out not ready. The supervisor records errors and at most
    one abnormal completion reason while the command runs, then calls
    :meth:`finish` which fixes the exit code and duration and flips the ready
    signal. Only the output buffers may change after that point.

    Attributes:
        command: The argument vector that was (or would have been) executed.
        stdout: Buffer accumulating standard output.
        stderr: Buffer accumulating standard error.
    """

    def __init__(self, command: list[str]) -> None:
        self.command = list(command)
        self.stdout = OutputBuffer()
        self.stderr = OutputBuffer()
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._errors: list[Exception] = []
        self._reason = CompletionReason.NORMAL
        self._exit_code: int | None = None
        self._duration_s = 0.0
        self._pid: int | None = None
        self._killed = False

    def __repr__(self) -> str:
        state = "ready" if self.is_ready else "running"
        return (
            f"Outcome(command={self.command!r}, state={state}, "
            f"reason={self._reason.value}, exit_code={self._exit_code}, "
            f"errors={len(self._errors)})"
        )

    @property
    def exit_code(self) -> int | None:
        """Exit status; ``None`` until ready or if the process never started."""

        return self._exit_code

    @property
    def duration_s(self) -> float:
        return self._duration_s

    @property
    def pid(self) -> int | None:
        return self._pid

    @property
    def completion_reason(self) -> CompletionReason:
        return self._reason

    @property
    def cancelled(self) -> bool:
        return self._reason is CompletionReason.CANCELLED

    @property
    def timed_out(self) -> bool:
        return self._reason is CompletionReason.TIMED_OUT

    @property
    def crashed(self) -> bool:
        return self._reason is CompletionReason.CRASHED

    @property
    def killed(self) -> bool:
        """Whether the supervisor sent the process a kill signal."""

        return self._killed

    @property
    def errors(self) -> tuple[Exception, ...]:
        with self._lock:
            return tuple(self._errors)

    @property
    def is_error(self) -> bool:
        """True if anything went wrong preparing, running or supervising.

        A non-zero exit code on its own is not an error.
        """

        with self._lock:
            return bool(self._errors)

    @property
    def error_text(self) -> str:
        """All recorded errors, one message per line."""

        return "\n".join(str(error) for error in self.errors)

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the outcome is ready.

        Args:
            timeout: Maximum number of seconds to wait; ``None`` waits forever.

        Returns:
            True if the outcome is ready.
        """

        return self._ready.wait(timeout)

    def add_error(self, error: Exception) -> bool:
        """Append an error. Recorded errors are never replaced or dropped.

        Returns:
            False if the outcome was already ready and the error was not recorded.
        """

        with self._lock:
            if self._ready.is_set():
                return False
            self._errors.append(error)
            return True

    def mark(self, reason: CompletionReason) -> bool:
        """Record an abnormal completion reason.

        Returns:
            True if this call set the reason, False if one was already set or
            the outcome is already ready.
        """

        with self._lock:
            if self._ready.is_set() or self._reason is not CompletionReason.NORMAL:
                return False
            self._reason = reason
            return True

    def mark_started(self, pid: int) -> None:
        with self._lock:
            self._pid = pid

    def mark_killed(self) -> None:
        with self._lock:
            self._killed = True

    def finish(self, exit_code: int | None, duration_s: float) -> bool:
        """Freeze exit code and duration and signal readiness.

        Safe to call from several completion paths; only the first call has an
        effect.

        Returns:
            True if this call made the outcome ready.
        """

        with self._lock:
            if self._ready.is_set():
                return False
            self._exit_code = exit_code
            self._duration_s = duration_s
            self._ready.set()
            return True
