"""Run options applied to a supervisor before launch."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Callable

from shellwatch.execution.cancel import CancelSignal


@dataclass(frozen=True)
class RunOptions:
    """Settings for one supervised command.

    Attributes:
        timeout_s: Deadline in seconds; ``None`` means no deadline.
        env: Full ``KEY=VALUE`` environment for the child, or ``None`` to
            inherit the parent's environment unchanged.
        cancel: Signal whose firing cancels the command.
        background: Return immediately and supervise on a background thread.
    """

    timeout_s: float | None = None
    env: tuple[str, ...] | None = None
    cancel: CancelSignal | None = None
    background: bool = False

    def resolved_env(self) -> dict[str, str] | None:
        """Return the child environment as a mapping; later entries win."""

        if self.env is None:
            return None
        resolved: dict[str, str] = {}
        for entry in self.env:
            key, sep, value = entry.partition("=")
            if not key or not sep:
                raise ValueError(f"Environment entry must be KEY=VALUE: {entry!r}")
            resolved[key] = value
        return resolved


Option = Callable[[RunOptions], RunOptions]


def timeout(seconds: float) -> Option:
    """Set or overwrite the deadline. Values ``<= 0`` are ignored."""

    def apply(options: RunOptions) -> RunOptions:
        if seconds <= 0:
            return options
        return replace(options, timeout_s=float(seconds))

    return apply


def environment(values: Iterable[str] | Mapping[str, str]) -> Option:
    """Add environment variables for the child process.

    The first call seeds the environment from ``os.environ``; later calls
    append to it.

    Args:
        values: ``KEY=VALUE`` strings or a mapping of names to values.
    """

    if isinstance(values, Mapping):
        extras = tuple(f"{key}={value}" for key, value in values.items())
    else:
        extras = tuple(values)

    def apply(options: RunOptions) -> RunOptions:
        if options.env:
            return replace(options, env=options.env + extras)
        inherited = tuple(f"{key}={value}" for key, value in os.environ.items())
        return replace(options, env=inherited + extras)

    return apply


def cancel_on(signal: CancelSignal) -> Option:
    """Cancel the command when ``signal`` fires."""

    def apply(options: RunOptions) -> RunOptions:
        return replace(options, cancel=signal)

    return apply


def background() -> Option:
    """Supervise the command without blocking the caller."""

    def apply(options: RunOptions) -> RunOptions:
        return replace(options, background=True)

    return apply


def apply_options(options: Iterable[Option], base: RunOptions | None = None) -> RunOptions:
    """Apply option functions in call order on top of ``base``."""

    result = base if base is not None else RunOptions()
    for option in options:
        result = option(result)
    return result
