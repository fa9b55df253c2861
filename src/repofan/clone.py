"""Clone registered repositories that are missing on disk."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum

from .registry import Target

LOG = logging.getLogger(__name__)


class CloneStatus(Enum):
    CLONED = "cloned"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CloneResult:
    target_name: str
    status: CloneStatus
    message: str = ""


def clone_target(target: Target, program: str = "git") -> CloneResult:
    """Clone ``target.remote_url`` into ``target.local_path`` unless it exists."""
    if target.local_path.exists():
        return CloneResult(target.name, CloneStatus.SKIPPED, "repository already exists")
    if not target.remote_url:
        return CloneResult(target.name, CloneStatus.FAILED, "no remote URL configured")

    target.local_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = [program, "clone", target.remote_url, str(target.local_path)]
    LOG.debug("Running: %s", " ".join(cmd))
    try:
        completed = subprocess.run(
            cmd,
            check=False,
            text=True,
            capture_output=True,
            stdin=subprocess.DEVNULL,
        )
    except OSError as exc:
        return CloneResult(target.name, CloneStatus.FAILED, f"failed to execute {program}: {exc}")

    if completed.returncode != 0:
        LOG.debug("clone stderr: %s", completed.stderr)
        return CloneResult(target.name, CloneStatus.FAILED, completed.stderr.strip())

    return CloneResult(target.name, CloneStatus.CLONED)


def clone_missing(targets: list[Target], program: str = "git") -> list[CloneResult]:
    """Clone every target whose local path does not exist yet."""
    return [clone_target(target, program) for target in targets]
