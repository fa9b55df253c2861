"""Configuration loader for repofan."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping

import yaml

from .errors import MissingCommandError

# Shortcuts available to `do` and `show` unless overridden in the config file.
DEFAULT_COMMANDS: dict[str, list[str]] = {
    "status": ["status", "--short", "--branch"],
    "fetch": ["fetch", "--all", "--prune"],
    "pull": ["pull", "--ff-only"],
    "branch": ["branch", "--show-current"],
    "last": ["log", "-1", "--oneline"],
}


def default_config_dir() -> Path:
    """Return ~/.config/repofan, honouring XDG_CONFIG_HOME."""
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base).expanduser() / "repofan"
    return Path("~/.config").expanduser() / "repofan"


class CommandTable(Mapping[str, tuple[str, ...]]):
    """Read-only mapping of command shortcuts to argument lists."""

    def __init__(self, commands: Mapping[str, list[str] | tuple[str, ...]]):
        self._commands = MappingProxyType(
            {name: tuple(args) for name, args in commands.items()}
        )

    def __getitem__(self, name: str) -> tuple[str, ...]:
        return self._commands[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def resolve(self, command: str) -> list[str]:
        """Split a command string and expand a leading shortcut."""
        args = shlex.split(command)
        if not args:
            raise MissingCommandError()
        if args[0] in self._commands:
            return [*self._commands[args[0]], *args[1:]]
        return args


@dataclass
class Config:
    """Main configuration for repofan."""

    repos_file: Path = field(default_factory=lambda: default_config_dir() / "repos.json")
    program: str = "git"
    max_concurrency: int | None = None
    log_dir: Path | None = None
    commands: CommandTable = field(default_factory=lambda: CommandTable(DEFAULT_COMMANDS))
    source_path: Path | None = None  # Path to the config file, if one was read


def load_config(config_path: str | Path | None = None) -> Config:
    """Load and validate configuration from a YAML file.

    Without an explicit path the default location is used, and a missing
    file there simply means defaults.
    """
    if config_path is None:
        config_path = default_config_dir() / "config.yaml"
        if not config_path.exists():
            return Config()
    config_path = Path(config_path).expanduser().resolve()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"{config_path}: top level must be a mapping")

    config = _parse_config(raw, config_path.parent)
    config.source_path = config_path
    return config


def _parse_config(raw: dict[str, Any], base_dir: Path) -> Config:
    """Parse raw YAML data into Config object."""
    config = Config()

    if "repos_file" in raw:
        config.repos_file = _resolve_path(raw["repos_file"], base_dir)

    program = raw.get("program", config.program)
    if not isinstance(program, str) or not program:
        raise ValueError("'program' must be a non-empty string")
    config.program = program

    max_concurrency = raw.get("max_concurrency")
    if max_concurrency is not None:
        if not isinstance(max_concurrency, int) or max_concurrency < 1:
            raise ValueError("'max_concurrency' must be a positive integer")
        config.max_concurrency = max_concurrency

    if raw.get("log_dir"):
        config.log_dir = _resolve_path(raw["log_dir"], base_dir)

    config.commands = CommandTable(
        {**DEFAULT_COMMANDS, **_parse_commands(raw.get("commands") or {})}
    )
    return config


def _parse_commands(commands_raw: Any) -> dict[str, list[str]]:
    """Parse the commands section; values may be lists or shell-like strings."""
    if not isinstance(commands_raw, dict):
        raise ValueError("'commands' must be a mapping of name to arguments")

    commands = {}
    for name, args in commands_raw.items():
        if isinstance(args, str):
            args = shlex.split(args)
        if not isinstance(args, list) or not args:
            raise ValueError(f"Command '{name}' must have at least one argument")
        commands[str(name)] = [str(arg) for arg in args]

    return commands


def _resolve_path(value: Any, base_dir: Path) -> Path:
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path.resolve()
