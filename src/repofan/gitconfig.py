"""Parser for the git config format used by repository working copies."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Union

from .errors import ConfigKeyError, ParseError

LOG = logging.getLogger(__name__)


@dataclass
class FlatSection:
    """A section without a qualifier, e.g. ``[core]``."""

    values: dict[str, str] = field(default_factory=dict)


@dataclass
class QualifiedSection:
    """A section whose header carries a quoted qualifier, e.g. ``[remote "origin"]``."""

    subsections: dict[str, dict[str, str]] = field(default_factory=dict)


SectionNode = Union[FlatSection, QualifiedSection]


@dataclass
class ConfigTree:
    """Parsed configuration: section name -> section node."""

    sections: dict[str, SectionNode] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list, compare=False)

    def __contains__(self, section: str) -> bool:
        return section in self.sections

    def __len__(self) -> int:
        return len(self.sections)

    def get_value(self, path: str) -> str:
        """Resolve ``section.key`` or ``section.subsection.key``.

        The subsection is everything between the first and the last dot, so
        qualifiers containing dots (``branch.release/1.0.remote``) resolve.
        Raises ConfigKeyError when the path does not name a stored value.
        """
        parts = path.split(".")
        if len(parts) < 2 or not parts[0] or not parts[-1]:
            raise ConfigKeyError(
                path, "expected format section.key or section.subsection.key"
            )

        section, key = parts[0], parts[-1]
        node = self.sections.get(section)
        if node is None:
            raise ConfigKeyError(path, f"section {section} not found")

        if len(parts) == 2:
            if not isinstance(node, FlatSection):
                raise ConfigKeyError(path, f"section {section} requires a subsection")
            if key not in node.values:
                raise ConfigKeyError(path, f"key {key} not found in section {section}")
            return node.values[key]

        subsection = ".".join(parts[1:-1])
        if not isinstance(node, QualifiedSection):
            raise ConfigKeyError(path, f"section {section} has no subsections")
        values = node.subsections.get(subsection)
        if values is None:
            raise ConfigKeyError(
                path, f"subsection {subsection} not found in section {section}"
            )
        if key not in values:
            raise ConfigKeyError(
                path,
                f"key {key} not found in subsection {subsection} of section {section}",
            )
        return values[key]

    def has_value(self, path: str) -> bool:
        try:
            self.get_value(path)
        except ConfigKeyError:
            return False
        return True

    def subsections(self, section: str) -> list[str]:
        """Names of the qualified subsections of ``section`` in file order."""
        node = self.sections.get(section)
        if isinstance(node, QualifiedSection):
            return list(node.subsections)
        return []

    def to_dict(self) -> dict[str, Any]:
        """Nested plain dicts, as stored in the repository JSON file."""
        result: dict[str, Any] = {}
        for name, node in self.sections.items():
            if isinstance(node, FlatSection):
                result[name] = dict(node.values)
            else:
                result[name] = {sub: dict(values) for sub, values in node.subsections.items()}
        return result

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ConfigTree:
        """Build a tree from nested dicts; a section whose values are dicts is qualified.

        Empty sections and subsections are dropped; the parser never produces
        them either.
        """
        tree = cls()
        for name, body in raw.items():
            if not isinstance(body, dict):
                raise ValueError(f"Section '{name}' must be a mapping")
            if not body:
                continue
            if all(isinstance(v, dict) for v in body.values()):
                subsections = {
                    sub: {k: str(v) for k, v in values.items()}
                    for sub, values in body.items()
                    if values
                }
                if subsections:
                    tree.sections[name] = QualifiedSection(subsections)
            else:
                tree.sections[name] = FlatSection({k: str(v) for k, v in body.items()})
        return tree

    def dumps(self) -> str:
        """Render the tree in the git config format."""
        lines: list[str] = []
        for name, node in self.sections.items():
            if isinstance(node, FlatSection):
                if not node.values:
                    continue
                lines.append(f"[{name}]")
                lines.extend(_format_values(node.values))
            else:
                for sub, values in node.subsections.items():
                    if not values:
                        continue
                    lines.append(f'[{name} "{sub}"]')
                    lines.extend(_format_values(values))
        return "\n".join(lines) + "\n" if lines else ""


def _format_values(values: dict[str, str]) -> list[str]:
    return [f"\t{key} = {value}" for key, value in values.items()]


class _TreeBuilder:
    """Accumulates key/value assignments into a ConfigTree."""

    def __init__(self, source: str):
        self.source = source
        self.tree = ConfigTree()

    def _warn(self, message: str) -> None:
        LOG.warning("%s: %s", self.source, message)
        self.tree.warnings.append(message)

    def set(self, section: str, qualifier: str, key: str, value: str) -> None:
        node = self.tree.sections.get(section)

        if qualifier:
            if not isinstance(node, QualifiedSection):
                if node is not None:
                    self._warn(
                        f"section '{section}' written with and without a qualifier; "
                        "keeping the qualified form"
                    )
                node = QualifiedSection()
                self.tree.sections[section] = node
            node.subsections.setdefault(qualifier, {})[key] = value
            return

        if not isinstance(node, FlatSection):
            if node is not None:
                self._warn(
                    f"section '{section}' written with and without a qualifier; "
                    "keeping the unqualified form"
                )
            node = FlatSection()
            self.tree.sections[section] = node
        node.values[key] = value


def parse_lines(lines: Iterable[str], source: str = "<string>") -> ConfigTree:
    """Parse git config lines into a ConfigTree.

    Unrecognized lines are skipped. A key/value line before any section
    header raises ParseError since it has no section to belong to.
    """
    builder = _TreeBuilder(source)
    current_section: str | None = None
    current_qualifier = ""

    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith((";", "#")):
            continue

        if line.startswith("[") and line.endswith("]"):
            header = line[1:-1].split(" ", 1)
            current_section = header[0]
            current_qualifier = header[1].strip('"') if len(header) > 1 else ""
            continue

        if "=" in line:
            key, value = line.split("=", 1)
            key = key.strip().strip('"')
            value = value.strip()
            if current_section is None:
                raise ParseError(
                    f"key '{key}' appears before any section header",
                    source=source,
                    line=lineno,
                )
            builder.set(current_section, current_qualifier, key, value)
            continue

        LOG.debug("%s:%d: ignoring line %r", source, lineno, line)

    return builder.tree


def parse_text(text: str, source: str = "<string>") -> ConfigTree:
    """Parse git config text."""
    return parse_lines(text.splitlines(), source=source)


def load_config_file(path: str | Path) -> ConfigTree:
    """Read and parse a git config file; unreadable files raise ParseError."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            return parse_lines(f, source=str(path))
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"could not read config: {e}", source=str(path)) from e
