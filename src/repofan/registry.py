"""Repository registry: targets loaded from the JSON store."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .errors import ConfigKeyError, ParseError, RegistryError, TargetNotFoundError
from .gitconfig import ConfigTree, load_config_file

LOG = logging.getLogger(__name__)

ConfigLoader = Callable[[Path], ConfigTree]


@dataclass
class Target:
    """A managed repository."""

    name: str
    local_path: Path
    declared_remote: str = ""  # remote as written in the store
    config: ConfigTree | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Repository must have a 'name'")
        if not str(self.local_path):
            raise ValueError(f"Repository '{self.name}' must have a 'local' path")
        self.local_path = Path(self.local_path)

    @property
    def config_path(self) -> Path:
        return self.local_path / ".git" / "config"

    @property
    def remote_url(self) -> str:
        """URL of the origin remote, falling back to the stored remote."""
        if self.config is not None:
            try:
                return self.config.get_value("remote.origin.url")
            except ConfigKeyError:
                pass
        return self.declared_remote

    @property
    def branch(self) -> str:
        if self.config is None:
            return ""
        branches = self.config.subsections("branch")
        return branches[0] if branches else ""

    def to_dict(self, include_config: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "local": str(self.local_path)}
        if self.remote_url:
            data["remote"] = self.remote_url
        if include_config and self.config is not None:
            data["config"] = self.config.to_dict()
        return data


@dataclass
class LoadWarning:
    """A target whose configuration could not be loaded."""

    target_name: str
    message: str

    def __str__(self) -> str:
        return f"{self.target_name}: {self.message}"


def targets_from_json(text: str, base_dir: Path | None = None) -> list[Target]:
    """Parse the JSON store; relative paths are resolved against ``base_dir``."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise RegistryError(f"Error parsing JSON: {e}") from e

    if not isinstance(raw, list):
        raise RegistryError("Repository file must contain a JSON array")

    targets = []
    seen: set[str] = set()
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise RegistryError(f"Entry {i} must be an object")
        name = entry.get("name")
        if not name or not isinstance(name, str):
            raise RegistryError(f"Entry {i} must have a 'name' field")
        if name in seen:
            raise RegistryError(f"Duplicate repository name '{name}'")
        seen.add(name)
        local = entry.get("local")
        if not local or not isinstance(local, str):
            raise RegistryError(f"Repository '{name}' must have a 'local' field")

        local_path = Path(local).expanduser()
        if not local_path.is_absolute() and base_dir is not None:
            local_path = base_dir / local_path

        # A stored 'config' is ignored; it is always re-read from disk.
        targets.append(
            Target(
                name=name,
                local_path=local_path.absolute(),
                declared_remote=entry.get("remote") or "",
            )
        )

    return targets


def targets_to_json(targets: list[Target], include_config: bool = False) -> str:
    """Serialize targets for the JSON store."""
    return json.dumps(
        [target.to_dict(include_config=include_config) for target in targets],
        indent=2,
    )


class TargetRegistry:
    """In-memory collection of targets backed by a JSON file."""

    def __init__(self, store_path: str | Path, config_loader: ConfigLoader = load_config_file):
        self.store_path = Path(store_path).expanduser()
        self.config_loader = config_loader
        self.warnings: list[LoadWarning] = []
        self._targets: list[Target] = []

    @property
    def targets(self) -> list[Target]:
        return list(self._targets)

    def load(self) -> list[Target]:
        """Read the store and hydrate each target's git config.

        Targets whose config cannot be read are kept with ``config=None`` and
        recorded in ``warnings``.
        """
        try:
            text = self.store_path.read_text(encoding="utf-8")
        except OSError as e:
            raise RegistryError(f"Could not open {self.store_path}: {e}") from e

        targets = targets_from_json(text, base_dir=self.store_path.parent)
        self.warnings = []
        for target in targets:
            try:
                target.config = self.config_loader(target.config_path)
            except ParseError as e:
                warning = LoadWarning(target.name, str(e))
                LOG.warning("Could not load config for %s: %s", target.name, e)
                self.warnings.append(warning)
                target.config = None

        self._targets = targets
        LOG.info("Loaded %d repositories from %s", len(targets), self.store_path)
        return self.targets

    def find_by_name(self, name: str) -> Target:
        for target in self._targets:
            if target.name == name:
                return target
        raise TargetNotFoundError(name)


def target_from_local(directory: str | Path) -> Target:
    """Create a target from an existing working copy."""
    directory = Path(directory)
    if not directory.is_dir():
        raise RegistryError(f"Directory does not exist: {directory}")
    directory = directory.resolve()
    if not (directory / ".git").exists():
        raise RegistryError(f"Directory is not a git repository: {directory}")

    target = Target(name=directory.name, local_path=directory)
    target.config = load_config_file(target.config_path)
    return target


def scan_root(root: str | Path) -> list[Target]:
    """Find every git working copy below ``root``.

    The walk does not descend into a working copy once found. Directories
    that cannot be turned into a target are logged and skipped. A working
    copy whose directory name is already taken is named by its path
    relative to ``root`` instead.
    """
    root = Path(root)
    if not root.is_dir():
        raise RegistryError(f"Error walking the path {root}: not a directory")

    targets = []
    seen: set[str] = set()
    for dirpath, dirnames, _ in os.walk(root):
        if ".git" not in dirnames and not os.path.isfile(os.path.join(dirpath, ".git")):
            dirnames.sort()
            continue
        dirnames.clear()
        try:
            target = target_from_local(dirpath)
        except (RegistryError, ParseError) as e:
            LOG.warning("Error creating repo from %s: %s", dirpath, e)
            continue
        if target.name in seen:
            target.name = Path(dirpath).relative_to(root).as_posix()
        seen.add(target.name)
        targets.append(target)

    return targets
