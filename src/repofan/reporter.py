"""Console rendering for repofan."""

from __future__ import annotations

import os
import sys
from typing import TextIO

from .executor import Outcome
from .registry import Target

RESET = "\033[0m"
BRIGHT = "\033[1m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"

BORDER = "─" * 80


def _use_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class ConsoleReporter:
    """Prints listings, warnings and dispatch outcomes."""

    def __init__(
        self,
        stream: TextIO | None = None,
        err_stream: TextIO | None = None,
        color: bool | None = None,
    ):
        self.stream = stream or sys.stdout
        self.err_stream = err_stream or sys.stderr
        self.color = _use_color(self.stream) if color is None else color

    def paint(self, color: str, text: str) -> str:
        if not self.color:
            return text
        return f"{color}{text}{RESET}"

    def _print(self, text: str = "", err: bool = False) -> None:
        print(text, file=self.err_stream if err else self.stream)

    def info(self, message: str) -> None:
        self._print(self.paint(YELLOW, message))

    def warning(self, message: str) -> None:
        self._print(self.paint(YELLOW, f"[Warning]: {message}"), err=True)

    def error(self, message: str) -> None:
        self._print(self.paint(RED, f"Error: {message}"), err=True)

    def print_targets(self, targets: list[Target], full: bool = False) -> None:
        if not targets:
            self.info("No repositories found")
            return
        for target in targets:
            if full:
                self._print_target_full(target)
            else:
                self._print(self._target_line(target))

    def _target_line(self, target: Target) -> str:
        branch = f" [{target.branch}]" if target.branch else ""
        return (
            self.paint(BRIGHT + RED, target.name)
            + self.paint(YELLOW, branch)
            + " │ "
            + self.paint(GREEN, str(target.local_path))
            + " │ "
            + self.paint(CYAN, target.remote_url or "-")
        )

    def _print_target_full(self, target: Target) -> None:
        self._print(self.paint(RED, BORDER))
        self._print(self._target_line(target))
        if target.config is None:
            self._print(self.paint(YELLOW, "  (configuration not loaded)"))
            return
        for section, values in target.config.to_dict().items():
            for key, value in values.items():
                if isinstance(value, dict):
                    for subkey, subvalue in value.items():
                        self._print(f"  {section}.{key}.{subkey} = {subvalue}")
                else:
                    self._print(f"  {section}.{key} = {value}")

    def print_outcome(self, outcome: Outcome, command: str) -> None:
        """Print one target's buffered output as a single block."""
        lines = [
            self.paint(CYAN, "======================================="),
            self.paint(CYAN, f"Executing '{command}' in {outcome.local_path}"),
            self.paint(CYAN, "---------------------------------------"),
        ]
        if outcome.stdout:
            lines.append(outcome.stdout.rstrip("\n"))
        if outcome.stderr:
            lines.append(outcome.stderr.rstrip("\n"))
        if outcome.succeeded:
            lines.append(
                self.paint(GREEN, f"Successfully executed command in {outcome.target_name}")
            )
        else:
            lines.append(
                self.paint(
                    RED,
                    f"Error executing command in {outcome.target_name}: {outcome.error}",
                )
            )
        lines.append(self.paint(CYAN, "======================================="))
        lines.append("")
        self.stream.write("\n".join(lines) + "\n")
        self.stream.flush()

    def print_summary(self, outcomes: list[Outcome]) -> None:
        failed = sorted(o.target_name for o in outcomes if not o.succeeded)
        if failed:
            self._print(self.paint(RED, f"\nFailed repositories: {', '.join(failed)}"), err=True)
