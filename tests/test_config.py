from pathlib import Path

import pytest

from shellwatch.config import AppConfig, SupervisorConfig, config_to_dict, load_config


def test_app_config_defaults() -> None:
    config = AppConfig()
    assert config.supervisor.shell == "bash"
    assert config.supervisor.shell_flag == "-c"
    assert config.supervisor.default_timeout_s is None
    assert config.files.exclude_dirs == [".git"]
    assert config.log_level == "INFO"


def test_load_config_without_file_returns_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path) == AppConfig()


def test_load_config_from_pyproject(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        """
[tool.shellwatch]
log_level = "DEBUG"

[tool.shellwatch.supervisor]
shell = "sh"
default_timeout_s = 30
drain_timeout_s = 0.5

[tool.shellwatch.supervisor.env]
CI = "true"

[tool.shellwatch.files]
exclude_dirs = [".git", "node_modules"]
max_depth = 3
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.log_level == "DEBUG"
    assert config.supervisor.shell == "sh"
    assert config.supervisor.default_timeout_s == 30.0
    assert config.supervisor.drain_timeout_s == 0.5
    assert config.supervisor.env == {"CI": "true"}
    assert config.files.exclude_dirs == [".git", "node_modules"]
    assert config.files.max_depth == 3


def test_load_config_from_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "shellwatch.yaml"
    config_path.write_text(
        """
supervisor:
  default_timeout_s: 0
  env:
    RETRIES: 3
files:
  max_depth: 2
""",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.supervisor.default_timeout_s is None
    assert config.supervisor.env == {"RETRIES": "3"}
    assert config.files.max_depth == 2
    assert config.files.exclude_dirs == [".git"]


def test_yaml_must_be_a_mapping(tmp_path: Path) -> None:
    config_path = tmp_path / "shellwatch.yml"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_unsupported_config_type(tmp_path: Path) -> None:
    config_path = tmp_path / "shellwatch.ini"
    config_path.write_text("[shellwatch]\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_config_to_dict() -> None:
    config = AppConfig(supervisor=SupervisorConfig(default_timeout_s=12.0))

    data = config_to_dict(config)

    assert data["supervisor"]["default_timeout_s"] == 12.0
    assert data["files"]["exclude_dirs"] == [".git"]
