from __future__ import annotations

import os

import pytest

from shellwatch.config import SupervisorConfig
from shellwatch.execution.cancel import CancelSignal
from shellwatch.execution.options import (
    RunOptions,
    apply_options,
    background,
    cancel_on,
    environment,
    timeout,
)
from shellwatch.execution.supervisor import default_options


def test_defaults() -> None:
    options = apply_options([])

    assert options == RunOptions()
    assert options.resolved_env() is None


def test_timeout_last_wins_and_non_positive_is_ignored() -> None:
    options = apply_options([timeout(5), timeout(2), timeout(0), timeout(-1)])

    assert options.timeout_s == 2.0


def test_environment_seeds_from_os_environ_then_appends(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHELLWATCH_BASE", "base")

    options = apply_options(
        [environment(["HIP_HIP=hooray"]), environment({"SHELLWATCH_BASE": "override"})]
    )
    env = options.resolved_env()

    assert env is not None
    assert env["HIP_HIP"] == "hooray"
    assert env["SHELLWATCH_BASE"] == "override"
    assert set(os.environ) <= set(env)
    assert options.env is not None
    assert options.env[-2:] == ("HIP_HIP=hooray", "SHELLWATCH_BASE=override")


def test_resolved_env_rejects_malformed_entries() -> None:
    options = RunOptions(env=("NOEQUALS",))

    with pytest.raises(ValueError):
        options.resolved_env()


def test_cancel_and_background() -> None:
    signal = CancelSignal()

    options = apply_options([cancel_on(signal), background()])

    assert options.cancel is signal
    assert options.background is True


def test_default_options_come_from_config() -> None:
    config = SupervisorConfig(default_timeout_s=3.0, env={"FROM_CONFIG": "1"})

    options = apply_options([timeout(1)], base=default_options(config))

    assert options.timeout_s == 1.0
    env = options.resolved_env()
    assert env is not None
    assert env["FROM_CONFIG"] == "1"
