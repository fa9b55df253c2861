"""repofan: Run commands across many git repositories in parallel."""

from .config import CommandTable, Config, load_config
from .errors import (
    ConfigKeyError,
    ExternalCommandError,
    MissingCommandError,
    NotFoundError,
    ParseError,
    RepofanError,
    TargetNotFoundError,
)
from .executor import Dispatcher, Outcome, TargetStatus, dispatch
from .gitconfig import ConfigTree, FlatSection, QualifiedSection, load_config_file, parse_lines
from .registry import Target, TargetRegistry

__all__ = [
    "CommandTable",
    "Config",
    "load_config",
    "ConfigKeyError",
    "ExternalCommandError",
    "MissingCommandError",
    "NotFoundError",
    "ParseError",
    "RepofanError",
    "TargetNotFoundError",
    "Dispatcher",
    "Outcome",
    "TargetStatus",
    "dispatch",
    "ConfigTree",
    "FlatSection",
    "QualifiedSection",
    "load_config_file",
    "parse_lines",
    "Target",
    "TargetRegistry",
]
