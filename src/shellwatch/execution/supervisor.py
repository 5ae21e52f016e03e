"""Command supervisor: runs one shell command and decides how it ended.

Three sources race to end a command: the process exiting on its own, a
cancel signal, and a deadline timer. Each source posts a single event to a
queue and the supervising thread blocks on that queue; the first event to
arrive wins and the others are released. On every path that is not a natural
exit the process group is killed before the outcome is marked ready.
"""

from __future__ import annotations

import codecs
import io
import os
import queue
import shutil
import signal
import subprocess
import threading
import time
from enum import Enum

from shellwatch.config import SupervisorConfig
from shellwatch.execution.base import (
    CommandCancelledError,
    CommandStartError,
    CommandTimeoutError,
    CompletionReason,
    Outcome,
    SupervisorCrashError,
)
from shellwatch.execution.options import (
    Option,
    RunOptions,
    apply_options,
    environment,
    timeout,
)
from shellwatch.execution.output import OutputBuffer
from shellwatch.util.logging import get_logger
from shellwatch.util.observability import ObservabilityManager

_CHUNK_SIZE = 4096


class _Signal(Enum):
    EXITED = "exited"
    CANCELLED = "cancelled"
    DEADLINE = "deadline"


class Supervisor:
    """Owns one external process from launch to outcome.

    A supervisor is single use: create it, call :meth:`run` once, keep the
    returned :class:`Outcome` and drop the supervisor.
    """

    def __init__(
        self,
        executable: str,
        args: list[str],
        options: RunOptions | None = None,
        *,
        config: SupervisorConfig | None = None,
        observability: ObservabilityManager | None = None,
    ) -> None:
        """Initialize the supervisor.

        Args:
            executable: Program name or path, resolved on ``PATH`` at launch.
            args: Arguments passed to the program.
            options: Run options (timeout, environment, cancel signal, mode).
            config: Supervisor configuration.
            observability: Optional sink for structured events and metrics.
        """

        self._executable = executable
        self._args = list(args)
        self._options = options or RunOptions()
        self._config = config or SupervisorConfig()
        self._observability = observability
        self._logger = get_logger(self.__class__.__name__)
        self._process: subprocess.Popen[bytes] | None = None
        self._readers: list[threading.Thread] = []
        self._signals: queue.Queue[_Signal] = queue.Queue()
        self._started_at: float | None = None
        self._used = False
        self.outcome = Outcome([executable, *self._args])

    @classmethod
    def for_shell(
        cls,
        command_line: str,
        options: RunOptions | None = None,
        *,
        config: SupervisorConfig | None = None,
        observability: ObservabilityManager | None = None,
    ) -> Supervisor:
        """Build a supervisor that hands ``command_line`` to the configured shell."""

        config = config or SupervisorConfig()
        return cls(
            config.shell,
            [config.shell_flag, command_line],
            options,
            config=config,
            observability=observability,
        )

    def run(self) -> Outcome:
        """Launch and supervise the command.

        In foreground mode this blocks until the outcome is ready. In
        background mode it returns immediately and a daemon thread finishes
        the supervision.

        Raises:
            RuntimeError: If the supervisor was already run.
        """

        if self._used:
            raise RuntimeError("A supervisor can only run once.")
        self._used = True

        if self._options.background:
            thread = threading.Thread(
                target=self._supervise,
                name="shellwatch-supervisor",
                daemon=True,
            )
            thread.start()
        else:
            self._supervise()
        return self.outcome

    def _supervise(self) -> None:
        try:
            if self._launch():
                self._arbitrate()
        except Exception as exc:
            self._record_crash(exc)
        finally:
            self._settle()

    def _launch(self) -> bool:
        try:
            env = self._options.resolved_env()
        except ValueError as exc:
            error = CommandStartError(f"Failed to start {self._executable}: {exc}")
            error.__cause__ = exc
            self._fail_start(error)
            return False
        search_path = env.get("PATH") if env is not None else None
        executable = shutil.which(self._executable, path=search_path)
        if executable is None:
            self._fail_start(CommandStartError(f"Executable not found: {self._executable}"))
            return False
        try:
            codecs.lookup(self._config.encoding)
            process = subprocess.Popen(
                [executable, *self._args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                start_new_session=os.name == "posix",
            )
        except (OSError, LookupError, ValueError) as exc:
            error = CommandStartError(f"Failed to start {self._executable}: {exc}")
            error.__cause__ = exc
            self._fail_start(error)
            return False

        self._started_at = time.monotonic()
        self._process = process
        self.outcome.mark_started(process.pid)
        self._readers = [
            self._start_reader(process.stdout, self.outcome.stdout, "stdout"),
            self._start_reader(process.stderr, self.outcome.stderr, "stderr"),
        ]
        self._logger.info("Started %s (pid %s)", self.outcome.command, process.pid)
        if self._observability is not None:
            self._observability.command_started(self.outcome.command, process.pid)
        return True

    def _fail_start(self, error: CommandStartError) -> None:
        self._logger.error("%s", error)
        self.outcome.add_error(error)
        self.outcome.stdout.close()
        self.outcome.stderr.close()

    def _start_reader(
        self,
        stream: io.BufferedReader | None,
        buffer: OutputBuffer,
        name: str,
    ) -> threading.Thread:
        if stream is None:
            raise SupervisorCrashError(f"Process {name} pipe was not created.")
        thread = threading.Thread(
            target=self._pump,
            args=(stream, buffer),
            name=f"shellwatch-{name}",
            daemon=True,
        )
        thread.start()
        return thread

    def _pump(self, stream: io.BufferedReader, buffer: OutputBuffer) -> None:
        decoder = codecs.getincrementaldecoder(self._config.encoding)(errors="replace")
        try:
            for chunk in iter(lambda: stream.read1(_CHUNK_SIZE), b""):
                buffer.write(decoder.decode(chunk))
            buffer.write(decoder.decode(b"", final=True))
        except (OSError, ValueError) as exc:
            self._logger.warning("Output reader stopped early: %s", exc)
            self.outcome.add_error(exc)
        finally:
            stream.close()
            buffer.close()

    def _arbitrate(self) -> None:
        process = self._process
        if process is None:
            raise SupervisorCrashError("No process to supervise.")

        waiter = threading.Thread(
            target=self._wait_for_exit,
            args=(process,),
            name="shellwatch-waiter",
            daemon=True,
        )
        waiter.start()

        timer: threading.Timer | None = None
        unsubscribe = None
        try:
            if self._options.timeout_s is not None:
                timer = threading.Timer(
                    self._options.timeout_s,
                    self._signals.put,
                    args=(_Signal.DEADLINE,),
                )
                timer.daemon = True
                timer.start()
            if self._options.cancel is not None:
                unsubscribe = self._options.cancel.subscribe(
                    lambda: self._signals.put(_Signal.CANCELLED)
                )
            winner = self._signals.get()
        finally:
            if timer is not None:
                timer.cancel()
            if unsubscribe is not None:
                unsubscribe()

        if winner is _Signal.CANCELLED:
            self._abort(CompletionReason.CANCELLED, CommandCancelledError("Command cancelled"))
        elif winner is _Signal.DEADLINE:
            self._abort(
                CompletionReason.TIMED_OUT,
                CommandTimeoutError(f"Command timed out after {self._options.timeout_s:g}s"),
            )

    def _wait_for_exit(self, process: subprocess.Popen[bytes]) -> None:
        try:
            process.wait()
        finally:
            self._signals.put(_Signal.EXITED)

    def _abort(self, reason: CompletionReason, error: Exception) -> None:
        if self.outcome.mark(reason):
            self._logger.warning("%s: %s", self.outcome.command, error)
            self.outcome.add_error(error)
        self._kill()

    def _kill(self) -> None:
        process = self._process
        if process is None or process.poll() is not None:
            return
        self.outcome.mark_killed()
        try:
            if os.name == "posix":
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            # exited between poll() and the signal
            return
        except OSError as exc:
            self._logger.error("Failed to kill pid %s: %s", process.pid, exc)
            self.outcome.add_error(exc)

    def _record_crash(self, exc: Exception) -> None:
        self._logger.exception("Supervision of %s failed", self.outcome.command)
        self.outcome.mark(CompletionReason.CRASHED)
        error = SupervisorCrashError(f"Supervisor crashed: {exc}")
        error.__cause__ = exc
        self.outcome.add_error(error)
        self._kill()

    def _settle(self) -> None:
        exit_code: int | None = None
        ended_at: float | None = None
        try:
            exit_code, ended_at = self._reap()
        except Exception as exc:
            self._record_crash(exc)
        finally:
            duration = 0.0
            if self._started_at is not None:
                duration = (ended_at or time.monotonic()) - self._started_at
            if self.outcome.finish(exit_code, duration):
                try:
                    self._report()
                except Exception:
                    self._logger.exception("Reporting %s failed", self.outcome.command)

    def _reap(self) -> tuple[int | None, float | None]:
        process = self._process
        if process is None:
            return None, None
        if process.poll() is None:
            self._kill()
        exit_code = process.wait()
        ended_at = time.monotonic()
        deadline = ended_at + self._config.drain_timeout_s
        for reader in self._readers:
            reader.join(max(0.0, deadline - time.monotonic()))
            if reader.is_alive():
                self._logger.warning(
                    "%s still open %.1fs after pid %s exited",
                    reader.name,
                    self._config.drain_timeout_s,
                    process.pid,
                )
        return exit_code, ended_at

    def _report(self) -> None:
        outcome = self.outcome
        self._logger.info(
            "Finished %s: reason=%s exit_code=%s duration=%.2fs",
            outcome.command,
            outcome.completion_reason.value,
            outcome.exit_code,
            outcome.duration_s,
        )
        if self._observability is not None:
            self._observability.command_finished(outcome)


def default_options(config: SupervisorConfig) -> RunOptions:
    """Build the run options implied by the supervisor configuration."""

    options = RunOptions()
    if config.default_timeout_s is not None:
        options = timeout(config.default_timeout_s)(options)
    if config.env:
        options = environment(config.env)(options)
    return options


def run(
    command_line: str,
    *options: Option,
    config: SupervisorConfig | None = None,
    observability: ObservabilityManager | None = None,
) -> Outcome:
    """Run a shell command line under supervision.

    Args:
        command_line: Passed verbatim as the shell's ``-c`` argument.
        options: Option functions such as ``timeout(2)`` or ``background()``.
        config: Supervisor configuration; defaults apply when omitted.
        observability: Optional sink for structured events and metrics.

    Returns:
        The command's Outcome. It is ready on return unless ``background()``
        was given.

    Example:
        >>> outcome = run("echo hello")
        >>> outcome.stdout.lines()
        ['hello']
    """

    config = config or SupervisorConfig()
    run_options = apply_options(options, base=default_options(config))
    supervisor = Supervisor.for_shell(
        command_line,
        run_options,
        config=config,
        observability=observability,
    )
    return supervisor.run()
