"""Configuration models and loaders for shellwatch."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILE_NAMES: tuple[str, ...] = ("shellwatch.yaml", "shellwatch.yml")
DEFAULT_EXCLUDE_DIRS: list[str] = [".git"]


@dataclass(frozen=True)
class SupervisorConfig:
    """Configuration for the command supervisor.

    Attributes:
        shell: Shell executable used to interpret command lines.
        shell_flag: Flag that makes the shell read the command from its argument.
        default_timeout_s: Deadline applied when a run does not set one.
        env: Extra environment variables added to every command.
        drain_timeout_s: How long to wait for output readers once the process is gone.
        encoding: Encoding used to decode process output.
    """

    shell: str = "bash"
    shell_flag: str = "-c"
    default_timeout_s: float | None = None
    env: dict[str, str] = field(default_factory=dict)
    drain_timeout_s: float = 1.0
    encoding: str = "utf-8"


@dataclass(frozen=True)
class FilesConfig:
    """Defaults for the filesystem helpers."""

    exclude_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    max_depth: int = 0


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration for the application.

    Attributes:
        supervisor: Configuration for running commands.
        files: Defaults for tree walking and file searches.
        log_level: Default logging level name.
    """

    supervisor: SupervisorConfig = field(default_factory=lambda: SupervisorConfig())
    files: FilesConfig = field(default_factory=lambda: FilesConfig())
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load application configuration from disk.

    Args:
        path: Optional path to a configuration file or a directory holding one.

    Returns:
        Parsed AppConfig with defaults applied when no config exists.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        return AppConfig()

    if config_path.suffix in {".yaml", ".yml"}:
        raw_data = _load_yaml(config_path)
    elif config_path.name == "pyproject.toml" or config_path.suffix == ".toml":
        raw_data = _load_toml(config_path)
    else:
        raise ValueError(f"Unsupported config file type: {config_path}")

    return _parse_app_config(raw_data)


def config_to_dict(config: AppConfig) -> dict[str, Any]:
    """Serialize an AppConfig into a YAML/JSON-compatible dictionary."""

    return {
        "log_level": config.log_level,
        "supervisor": {
            "shell": config.supervisor.shell,
            "shell_flag": config.supervisor.shell_flag,
            "default_timeout_s": config.supervisor.default_timeout_s,
            "env": dict(config.supervisor.env),
            "drain_timeout_s": config.supervisor.drain_timeout_s,
            "encoding": config.supervisor.encoding,
        },
        "files": {
            "exclude_dirs": list(config.files.exclude_dirs),
            "max_depth": config.files.max_depth,
        },
    }


def _resolve_config_path(path: Path | None) -> Path | None:
    candidate_paths: list[Path] = []
    if path is None:
        candidate_paths.extend(Path(name) for name in CONFIG_FILE_NAMES)
        candidate_paths.append(Path("pyproject.toml"))
    elif path.is_dir():
        candidate_paths.extend(path / name for name in CONFIG_FILE_NAMES)
        candidate_paths.append(path / "pyproject.toml")
    else:
        candidate_paths.append(path)

    for candidate in candidate_paths:
        if candidate.exists():
            return candidate
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    if path.name == "pyproject.toml":
        tool_config = data.get("tool", {}).get("shellwatch", {})
        if not isinstance(tool_config, dict):
            raise ValueError("tool.shellwatch must be a mapping.")
        return tool_config
    return data


def _load_yaml(path: Path) -> dict[str, Any]:
    parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError("YAML configuration must be a mapping.")
    return parsed


def _parse_app_config(raw_data: dict[str, Any]) -> AppConfig:
    return AppConfig(
        supervisor=_parse_supervisor_config(raw_data.get("supervisor", {})),
        files=_parse_files_config(raw_data.get("files", {})),
        log_level=str(raw_data.get("log_level", "INFO")),
    )


def _parse_supervisor_config(raw: Any) -> SupervisorConfig:
    if not isinstance(raw, dict):
        return SupervisorConfig()
    env = raw.get("env", {})
    env_map: dict[str, str] = {}
    if isinstance(env, dict):
        env_map = {str(key): str(value) for key, value in env.items()}
    elif env is not None:
        raise ValueError("supervisor.env must be a mapping.")
    return SupervisorConfig(
        shell=str(raw.get("shell", "bash")),
        shell_flag=str(raw.get("shell_flag", "-c")),
        default_timeout_s=_optional_float(raw.get("default_timeout_s")),
        env=env_map,
        drain_timeout_s=float(raw.get("drain_timeout_s", 1.0)),
        encoding=str(raw.get("encoding", "utf-8")),
    )


def _parse_files_config(raw: Any) -> FilesConfig:
    if not isinstance(raw, dict):
        return FilesConfig()
    exclude_dirs = raw.get("exclude_dirs", None)
    if exclude_dirs is None:
        exclude_dirs = list(DEFAULT_EXCLUDE_DIRS)
    elif not isinstance(exclude_dirs, list):
        raise ValueError("files.exclude_dirs must be a list of directory names.")
    return FilesConfig(
        exclude_dirs=[str(item) for item in exclude_dirs],
        max_depth=int(raw.get("max_depth", 0)),
    )


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    number = float(value)
    return number if number > 0 else None
