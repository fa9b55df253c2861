"""Concurrent command execution across repositories."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Sequence

from .errors import ExternalCommandError, MissingCommandError, TargetNotFoundError
from .registry import Target

LOG = logging.getLogger(__name__)


class TargetStatus(Enum):
    """Status of a target's unit of work."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Outcome:
    """Result of running the command in one target."""

    target_name: str
    local_path: Path
    succeeded: bool = False
    stdout: str = ""
    stderr: str = ""
    returncode: int | None = None
    error: ExternalCommandError | None = None

    @property
    def status(self) -> TargetStatus:
        return TargetStatus.SUCCEEDED if self.succeeded else TargetStatus.FAILED


# Type alias for callbacks
OutcomeCallback = Callable[[Outcome], None]
StatusCallback = Callable[[str, TargetStatus], None]  # (target_name, status) -> None


def _log_name(name: str) -> str:
    """File-system safe log file stem for a target name."""
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in name).lstrip(".") or "_"


def select_targets(targets: Sequence[Target], target_filter: str | None = None) -> list[Target]:
    """Return the working set: every target, or the one named by the filter."""
    if target_filter is None:
        return list(targets)
    for target in targets:
        if target.name == target_filter:
            return [target]
    raise TargetNotFoundError(target_filter)


class Dispatcher:
    """Runs one command in many repositories in parallel.

    Each target gets its own task; its output is buffered and handed to
    ``on_outcome`` once the process exits. ``on_outcome`` runs while holding
    ``output_lock``, so a reporter writing to a shared stream never
    interleaves two targets. Pass the same lock to every dispatcher that
    writes to the same sink.
    """

    def __init__(
        self,
        program: str = "git",
        on_outcome: OutcomeCallback | None = None,
        on_status: StatusCallback | None = None,
        max_concurrency: int | None = None,
        log_dir: Path | None = None,
        output_lock: threading.Lock | None = None,
    ):
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be a positive integer")
        self.program = program
        self.on_outcome = on_outcome
        self.on_status = on_status
        self.max_concurrency = max_concurrency
        self.log_dir = log_dir
        self.output_lock = output_lock or threading.Lock()
        self.states: dict[str, TargetStatus] = {}
        self._run_log_dir: Path | None = None

    def _setup_logging(self) -> None:
        """Set up a timestamped log directory for this run."""
        self._run_log_dir = None
        if self.log_dir is None:
            return
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self._run_log_dir = Path(self.log_dir) / timestamp
        self._run_log_dir.mkdir(parents=True, exist_ok=True)

    def _emit_status(self, target_name: str, status: TargetStatus) -> None:
        """Emit status change for a target."""
        self.states[target_name] = status
        if self.on_status:
            self.on_status(target_name, status)

    def _emit_outcome(self, outcome: Outcome) -> None:
        """Hand a finished outcome to the reporter under the output lock."""
        with self.output_lock:
            if self.on_outcome:
                self.on_outcome(outcome)

    def _write_log(self, outcome: Outcome, command: str) -> None:
        """Write one target's output to the run log; failures only warn."""
        if self._run_log_dir is None:
            return
        log_file = self._run_log_dir / f"{_log_name(outcome.target_name)}.log"
        try:
            self._write_log_file(log_file, outcome, command)
        except OSError as e:
            LOG.warning("Could not write log for %s: %s", outcome.target_name, e)

    def _write_log_file(self, log_file: Path, outcome: Outcome, command: str) -> None:
        with open(log_file, "w") as f:
            f.write(f"$ {command}\n")
            f.write(f"cwd: {outcome.local_path}\n\n")
            if outcome.stdout:
                f.write(outcome.stdout)
            if outcome.stderr:
                f.write("\n--- stderr ---\n")
                f.write(outcome.stderr)
            status = "ok" if outcome.succeeded else f"failed: {outcome.error}"
            f.write(f"\n--- {status} ---\n")

    async def run(
        self,
        targets: Sequence[Target],
        command_line: Sequence[str],
        target_filter: str | None = None,
    ) -> list[Outcome]:
        """Run ``program command_line...`` in every selected target.

        Returns one outcome per target in completion order. Per-target
        failures are recorded in the outcomes and never raised.
        """
        working_set = select_targets(targets, target_filter)
        if not working_set:
            return []
        if not command_line:
            raise MissingCommandError()

        args = list(command_line)
        self._setup_logging()
        self.states = {}
        for target in working_set:
            self._emit_status(target.name, TargetStatus.PENDING)

        semaphore = (
            asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        )
        outcomes: list[Outcome] = []

        async def run_one(target: Target) -> None:
            limit = semaphore if semaphore is not None else contextlib.nullcontext()
            async with limit:
                outcome = await self._run_target(target, args)
            outcomes.append(outcome)
            self._emit_status(target.name, outcome.status)
            self._emit_outcome(outcome)
            self._write_log(outcome, " ".join([self.program, *args]))

        # Run all targets in parallel
        results = await asyncio.gather(
            *(run_one(target) for target in working_set), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        return outcomes

    async def _run_target(self, target: Target, args: list[str]) -> Outcome:
        """Run the command in a single target and capture its output."""
        outcome = Outcome(target_name=target.name, local_path=target.local_path)
        self._emit_status(target.name, TargetStatus.RUNNING)

        if not target.local_path.is_dir():
            outcome.error = ExternalCommandError(
                f"Directory does not exist: {target.local_path}"
            )
            LOG.debug("%s: %s", target.name, outcome.error)
            return outcome

        LOG.debug("%s: running %s %s", target.name, self.program, " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                self.program,
                *args,
                cwd=target.local_path,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            outcome.error = ExternalCommandError(f"Could not run {self.program}: {e}")
            LOG.debug("%s: %s", target.name, outcome.error)
            return outcome

        outcome.stdout = stdout.decode("utf-8", errors="replace")
        outcome.stderr = stderr.decode("utf-8", errors="replace")
        outcome.returncode = proc.returncode

        if proc.returncode != 0:
            outcome.error = ExternalCommandError(
                f"Command exited with status {proc.returncode}",
                returncode=proc.returncode,
            )
            return outcome

        outcome.succeeded = True
        return outcome


def dispatch(
    targets: Sequence[Target],
    command_line: Sequence[str],
    target_filter: str | None = None,
    **options,
) -> list[Outcome]:
    """Blocking helper: run a Dispatcher built from ``options`` to completion."""
    dispatcher = Dispatcher(**options)
    return asyncio.run(dispatcher.run(targets, command_line, target_filter))
