from __future__ import annotations

import os
import sys
import threading
import time
from pathlib import Path
from signal import SIGKILL

import pytest

from shellwatch.config import SupervisorConfig
from shellwatch.execution.base import (
    CommandCancelledError,
    CommandStartError,
    CommandTimeoutError,
    CompletionReason,
    SupervisorCrashError,
)
from shellwatch.execution.cancel import CancelSignal
from shellwatch.execution.options import RunOptions, background, cancel_on, environment, timeout
from shellwatch.execution.supervisor import Supervisor, run
from shellwatch.util.observability import EventLogger, MetricsCollector, ObservabilityManager


def _pid_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    # zombies still answer signal 0; on Linux check the process state
    stat = Path(f"/proc/{pid}/stat")
    try:
        state = stat.read_text(encoding="utf-8").rsplit(")", 1)[1].split()[0]
    except (OSError, IndexError):
        return not sys.platform.startswith("linux")
    return state != "Z"


def _cancel_later(signal: CancelSignal, delay_s: float) -> None:
    timer = threading.Timer(delay_s, signal.cancel)
    timer.daemon = True
    timer.start()


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        ("ls >& /dev/null", 0),
        ("lssss >& /dev/null", 127),
        ("exit 1;", 1),
    ],
)
def test_exit_codes_are_data_not_errors(command: str, expected: int) -> None:
    outcome = run(command)

    assert outcome.is_ready is True
    assert outcome.exit_code == expected
    assert outcome.completion_reason is CompletionReason.NORMAL
    assert outcome.is_error is False
    assert outcome.killed is False


def test_stdout_and_stderr_are_captured() -> None:
    outcome = run("echo 'hello'; echo 'oops' >&2")

    assert outcome.stdout.lines() == ["hello"]
    assert outcome.stdout.text(strip=True) == "hello"
    assert outcome.stderr.lines() == ["oops"]
    assert outcome.duration_s >= 0


def test_output_sent_to_devnull_is_empty() -> None:
    outcome = run("ls >& /dev/null")

    assert outcome.stdout.empty is True
    assert outcome.stdout.lines() == []


def test_timeout_kills_the_process() -> None:
    started = time.monotonic()
    outcome = run("sleep 5", timeout(0.2))

    assert outcome.completion_reason is CompletionReason.TIMED_OUT
    assert outcome.timed_out is True
    assert outcome.killed is True
    assert time.monotonic() - started < 4
    assert any(isinstance(error, CommandTimeoutError) for error in outcome.errors)
    assert outcome.pid is not None
    assert not _pid_running(outcome.pid)
    assert outcome.exit_code is not None and outcome.exit_code < 0


def test_timeout_kills_shell_descendants() -> None:
    outcome = run("sleep 5 & echo $!; wait", timeout(0.5))

    assert outcome.timed_out is True
    child_pid = int(outcome.stdout.lines()[0])
    deadline = time.monotonic() + 2
    while _pid_running(child_pid) and time.monotonic() < deadline:
        time.sleep(0.05)
    assert not _pid_running(child_pid)


def test_cancel_wins_over_later_timeout() -> None:
    signal = CancelSignal()
    _cancel_later(signal, 0.2)

    outcome = run("sleep 5", cancel_on(signal), timeout(4))

    assert outcome.completion_reason is CompletionReason.CANCELLED
    assert outcome.cancelled is True
    assert outcome.timed_out is False
    assert [type(error) for error in outcome.errors] == [CommandCancelledError]
    assert outcome.pid is not None
    assert not _pid_running(outcome.pid)


def test_already_cancelled_signal_stops_command_immediately() -> None:
    signal = CancelSignal()
    signal.cancel()

    outcome = run("sleep 5", cancel_on(signal))

    assert outcome.cancelled is True
    assert outcome.duration_s < 4


def test_command_finishing_first_ignores_timeout_and_cancel() -> None:
    signal = CancelSignal()

    outcome = run("echo done", timeout(5), cancel_on(signal))
    signal.cancel()

    assert outcome.completion_reason is CompletionReason.NORMAL
    assert outcome.exit_code == 0
    assert outcome.errors == ()


def test_background_mode_returns_before_completion() -> None:
    outcome = run("echo 'hello'; sleep 1; echo 'world'", background())

    assert outcome.is_ready is False
    assert outcome.wait(10) is True
    assert outcome.is_ready is True
    assert outcome.stdout.lines() == ["hello", "world"]
    assert outcome.exit_code == 0


def test_background_incremental_reads_consume_output() -> None:
    outcome = run("echo first; sleep 1; echo second", background())

    reads: list[str] = []
    deadline = time.monotonic() + 5
    while "first" not in "".join(reads) and time.monotonic() < deadline:
        reads.append(outcome.stdout.read())
        time.sleep(0.01)
    assert "".join(reads) == "first\n"
    assert outcome.is_ready is False

    outcome.wait(10)
    reads.append(outcome.stdout.read())

    assert reads[-1] == "second\n"
    assert outcome.stdout.read() == ""
    assert "".join(reads) == outcome.stdout.text()


def test_environment_option_adds_variable() -> None:
    before = run("env", environment([])).stdout.lines()
    after = run("env", environment(["HIP_HIP=hooray"])).stdout.lines()

    assert set(before) <= set(after)
    assert set(after) - set(before) == {"HIP_HIP=hooray"}


def test_environment_path_is_used_to_find_the_shell(tmp_path: Path) -> None:
    shell = tmp_path / "shellwatch-test-shell"
    shell.write_text('#!/bin/sh\necho "custom $2"\n', encoding="utf-8")
    shell.chmod(0o755)
    config = SupervisorConfig(shell=shell.name)

    outcome = run("hi", environment({"PATH": str(tmp_path)}), config=config)

    assert outcome.errors == ()
    assert outcome.stdout.lines() == ["custom hi"]


def test_missing_shell_is_a_start_error() -> None:
    config = SupervisorConfig(shell="definitely-not-a-shell-binary")

    outcome = run("echo hi", config=config)

    assert outcome.is_ready is True
    assert outcome.is_error is True
    assert isinstance(outcome.errors[0], CommandStartError)
    assert outcome.exit_code is None
    assert outcome.pid is None
    assert outcome.completion_reason is CompletionReason.NORMAL
    assert outcome.stdout.closed is True


def test_unknown_encoding_is_a_start_error() -> None:
    outcome = run("echo hi", config=SupervisorConfig(encoding="no-such-codec"))

    assert isinstance(outcome.errors[0], CommandStartError)
    assert outcome.exit_code is None


def test_crash_during_supervision_is_captured(monkeypatch: pytest.MonkeyPatch) -> None:
    def explode(self: Supervisor) -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr(Supervisor, "_arbitrate", explode)

    outcome = run("sleep 5")

    assert outcome.is_ready is True
    assert outcome.crashed is True
    assert outcome.killed is True
    assert isinstance(outcome.errors[0], SupervisorCrashError)
    assert isinstance(outcome.errors[0].__cause__, RuntimeError)
    assert outcome.pid is not None
    assert not _pid_running(outcome.pid)


def test_supervisor_runs_only_once() -> None:
    supervisor = Supervisor.for_shell("true", RunOptions())
    supervisor.run()

    with pytest.raises(RuntimeError):
        supervisor.run()


def test_observability_records_events_and_metrics(caplog: pytest.LogCaptureFixture) -> None:
    metrics = MetricsCollector()
    events_logger = "shellwatch.test.supervisor"
    observability = ObservabilityManager(events=EventLogger(events_logger), metrics=metrics)
    caplog.set_level("INFO", logger=events_logger)

    run("exit 3", observability=observability)
    run("sleep 5", timeout(0.2), observability=observability)

    events = [record.message for record in caplog.records if record.name == events_logger]
    assert sum('"command.started"' in message for message in events) == 2
    assert sum('"command.finished"' in message for message in events) == 2
    assert metrics.counters["commands.started"] == 2
    assert metrics.counters["commands.normal"] == 1
    assert metrics.counters["commands.timed_out"] == 1
    assert metrics.counters["commands.errors"] == 1
    assert len(metrics.durations["commands.duration"]) == 2


def test_duration_stops_at_exit_even_if_a_grandchild_holds_the_pipes() -> None:
    config = SupervisorConfig(drain_timeout_s=0.3)
    started = time.monotonic()

    outcome = run("(sleep 4 &); exit 0", config=config)

    elapsed = time.monotonic() - started
    assert outcome.pid is not None
    try:
        assert outcome.exit_code == 0
        assert outcome.duration_s < 0.3
        # both readers share one drain deadline
        assert elapsed < 0.3 * 2
    finally:
        try:
            os.killpg(outcome.pid, SIGKILL)
        except ProcessLookupError:
            pass


class _FailingSink(ObservabilityManager):
    def command_finished(self, outcome) -> None:
        raise RuntimeError("sink down")


def test_failing_observability_sink_does_not_escape_run(
    caplog: pytest.LogCaptureFixture,
) -> None:
    sink = _FailingSink(events=EventLogger("shellwatch.test.failing"), metrics=MetricsCollector())

    outcome = run("exit 2", observability=sink)

    assert outcome.is_ready is True
    assert outcome.exit_code == 2
    assert outcome.errors == ()
    assert any("Reporting" in record.message for record in caplog.records)
