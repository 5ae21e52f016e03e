"""Application wiring for CLI-friendly command supervision."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import yaml

from shellwatch.config import AppConfig, config_to_dict, load_config
from shellwatch.execution.base import Outcome
from shellwatch.execution.cancel import CancelSignal
from shellwatch.execution.options import Option, background, cancel_on, environment, timeout
from shellwatch.execution.supervisor import run
from shellwatch.util.logging import get_logger
from shellwatch.util.observability import ObservabilityManager, create_observability_manager


class AppConfigError(RuntimeError):
    """Raised when configuration or runtime setup fails."""


@dataclass(frozen=True)
class CommandRequest:
    """A command line plus the per-run settings requested by the caller.

    Attributes:
        command_line: Shell command line to run.
        timeout_s: Optional deadline overriding the configured default.
        env: Extra ``KEY=VALUE`` entries for the child environment.
        cancel: Optional signal that cancels the command.
        background: Whether to return before the command completes.
    """

    command_line: str
    timeout_s: float | None = None
    env: tuple[str, ...] = ()
    cancel: CancelSignal | None = None
    background: bool = False

    def options(self) -> list[Option]:
        """Translate the request into run option functions."""

        options: list[Option] = []
        if self.timeout_s is not None:
            options.append(timeout(self.timeout_s))
        if self.env:
            options.append(environment(self.env))
        if self.cancel is not None:
            options.append(cancel_on(self.cancel))
        if self.background:
            options.append(background())
        return options


_LOGGER = get_logger("shellwatch.app")


def initialize_config(workspace: Path) -> Path:
    """Create a default configuration file in the workspace.

    Args:
        workspace: Directory where the config should be written.

    Returns:
        Path to the generated configuration file.

    Raises:
        AppConfigError: If the config file already exists.
    """

    workspace = workspace.resolve()
    config_path = workspace / "shellwatch.yaml"
    if config_path.exists():
        raise AppConfigError(
            f"Config file already exists at {config_path}. Remove it or choose another "
            "directory."
        )
    config_path.write_text(
        yaml.safe_dump(config_to_dict(AppConfig()), sort_keys=False),
        encoding="utf-8",
    )
    _LOGGER.info("Initialized configuration at %s", config_path)
    return config_path


def load_app_config(config_path: Path | None) -> AppConfig:
    """Load configuration, converting loader failures into AppConfigError."""

    try:
        return load_config(config_path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise AppConfigError(f"Invalid configuration: {exc}") from exc


def run_command(
    request: CommandRequest,
    config: AppConfig | None = None,
    observability: ObservabilityManager | None = None,
) -> Outcome:
    """Run a command request with the application configuration.

    Args:
        request: The command and its per-run settings.
        config: Application configuration; defaults apply when omitted.
        observability: Optional event and metrics sink; a default one is created.

    Returns:
        The command's Outcome.
    """

    config = config or AppConfig()
    observability = observability or create_observability_manager()
    _LOGGER.debug("Running %r with shell %s", request.command_line, config.supervisor.shell)
    return run(
        request.command_line,
        *request.options(),
        config=config.supervisor,
        observability=observability,
    )


def parse_env_entries(entries: Iterable[str]) -> tuple[str, ...]:
    """Validate ``KEY=VALUE`` entries given on the command line.

    Raises:
        AppConfigError: If an entry has no ``=`` or an empty key.
    """

    parsed: list[str] = []
    for entry in entries:
        key, sep, _ = entry.partition("=")
        if not key or not sep:
            raise AppConfigError(f"Environment entries must look like KEY=VALUE: {entry!r}")
        parsed.append(entry)
    return tuple(parsed)
