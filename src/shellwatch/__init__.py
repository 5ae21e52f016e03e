"""Supervised execution of shell commands."""

from shellwatch.execution import (
    CancelSignal,
    CompletionReason,
    Outcome,
    background,
    cancel_on,
    environment,
    run,
    timeout,
)

__version__ = "0.1.0"

__all__ = [
    "CancelSignal",
    "CompletionReason",
    "Outcome",
    "background",
    "cancel_on",
    "environment",
    "run",
    "timeout",
]
