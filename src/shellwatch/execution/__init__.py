"""Command supervision package."""

from shellwatch.execution.base import (
    CommandCancelledError,
    CommandError,
    CommandStartError,
    CommandTimeoutError,
    CompletionReason,
    Outcome,
    SupervisorCrashError,
)
from shellwatch.execution.cancel import CancelSignal
from shellwatch.execution.options import (
    Option,
    RunOptions,
    apply_options,
    background,
    cancel_on,
    environment,
    timeout,
)
from shellwatch.execution.output import OutputBuffer, OutputCursor
from shellwatch.execution.supervisor import Supervisor, default_options, run

__all__ = [
    "CancelSignal",
    "CommandCancelledError",
    "CommandError",
    "CommandStartError",
    "CommandTimeoutError",
    "CompletionReason",
    "Option",
    "Outcome",
    "OutputBuffer",
    "OutputCursor",
    "RunOptions",
    "Supervisor",
    "SupervisorCrashError",
    "apply_options",
    "background",
    "cancel_on",
    "default_options",
    "environment",
    "run",
    "timeout",
]
