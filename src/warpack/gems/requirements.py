"""RubyGems-style version requirements evaluated with ``packaging``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from packaging.version import InvalidVersion, Version

from warpack.errors import InvalidRequirement

if TYPE_CHECKING:
    from collections.abc import Iterable

OPERATORS: tuple[str, ...] = ("~>", ">=", "<=", "!=", "=", ">", "<")

_CLAUSE_RE = re.compile(r"^\s*(~>|>=|<=|!=|=|>|<)?\s*([0-9][0-9A-Za-z.\-]*)\s*$")


@dataclass(frozen=True)
class Clause:
    """One ``op version`` comparison."""

    operator: str
    version: Version
    raw: str

    def matches(self, candidate: Version) -> bool:
        if self.operator == "=":
            return candidate == self.version
        if self.operator == "!=":
            return candidate != self.version
        if self.operator == ">":
            return candidate > self.version
        if self.operator == "<":
            return candidate < self.version
        if self.operator == ">=":
            return candidate >= self.version
        if self.operator == "<=":
            return candidate <= self.version
        return self.version <= candidate < pessimistic_upper_bound(self.raw)


@dataclass(frozen=True)
class Requirement:
    """All clauses must match (RubyGems ``Gem::Requirement`` semantics)."""

    raw: str
    clauses: tuple[Clause, ...]

    def matches(self, version: str | Version) -> bool:
        """Search semantics: prereleases only match when a clause names one."""
        candidate = version if isinstance(version, Version) else parse_version(version)
        if candidate is None:
            return False
        if candidate.is_prerelease and not any(c.version.is_prerelease for c in self.clauses):
            return False
        return self.satisfied_by(candidate)

    def satisfied_by(self, version: str | Version) -> bool:
        """Plain comparison, for a version that was already chosen."""
        candidate = version if isinstance(version, Version) else parse_version(version)
        if candidate is None:
            return False
        return all(clause.matches(candidate) for clause in self.clauses)

    def __str__(self) -> str:
        return self.raw


ANY = Requirement(raw=">= 0", clauses=())


def parse_version(text: str) -> Version | None:
    """Parse a gem version, returning None when ``packaging`` rejects it."""
    try:
        return Version(text)
    except InvalidVersion:
        return None


def parse_requirement(constraint: str | Iterable[str] | None) -> Requirement:
    """Parse ``"~> 1.2, != 1.2.5"`` (or a list of clauses) into a Requirement."""
    if constraint is None:
        return ANY
    if isinstance(constraint, str):
        pieces = constraint.split(",")
        raw = constraint.strip()
    else:
        pieces = list(constraint)
        raw = ", ".join(piece.strip() for piece in pieces)

    clauses: list[Clause] = []
    for piece in pieces:
        if not piece.strip():
            continue
        match = _CLAUSE_RE.match(piece)
        if match is None:
            raise InvalidRequirement(f"Invalid version requirement: {raw!r}")
        operator = match.group(1) or "="
        version_text = match.group(2)
        version = parse_version(version_text)
        if version is None:
            raise InvalidRequirement(f"Invalid version in requirement {raw!r}: {version_text!r}")
        if operator == ">=" and version == Version("0"):
            continue
        clauses.append(Clause(operator=operator, version=version, raw=version_text))

    if not clauses:
        return ANY
    return Requirement(raw=raw, clauses=tuple(clauses))


def pessimistic_upper_bound(version_text: str) -> Version:
    """Exclusive upper bound for ``~> version_text``.

    ``~> 2.3.1`` -> ``2.4``; ``~> 2.3`` -> ``3``; ``~> 2`` -> ``3``.
    """
    segments = []
    for segment in version_text.split("."):
        if not segment.isdigit():
            break
        segments.append(int(segment))
    if not segments:
        raise InvalidRequirement(f"Invalid version for '~>': {version_text!r}")
    if len(segments) > 1:
        segments = segments[:-1]
    segments[-1] += 1
    return Version(".".join(str(segment) for segment in segments))


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Ascending version order; unparsable versions sort first, by text."""
    def key(text: str) -> tuple[int, Version, str]:
        parsed = parse_version(text)
        if parsed is None:
            return (0, Version("0"), text)
        return (1, parsed, text)

    return sorted(versions, key=key)
