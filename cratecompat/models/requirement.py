"""
Version requirement algebra for cratecompat.

Cargo version requirements (``^1.2``, ``~0.3.1``, ``>=1.0, <1.5``,
``1.*``…) are parsed into :class:`Comparator` objects and normalized into
an :class:`Interval` over semantic-version precedence. Intersecting
requirements is then a matter of intersecting intervals: the tightest
lower bound and the tightest upper bound win.

Pre-release versions follow Cargo's rule on top of the interval test: a
version such as ``2.0.0-beta.1`` only matches a requirement that names
``2.0.0`` with a pre-release tag in one of its comparators. Without that
rule ``^1.0`` (``>=1.0.0, <2.0.0``) would accept ``2.0.0-beta.1``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import semantic_version

from cratecompat.exceptions import InvalidRequirement

__all__ = [
    "Bound",
    "Interval",
    "Comparator",
    "VersionRequirement",
    "DependentConstraint",
]

_COMPARATOR_RE = re.compile(
    r"""
    ^\s*
    (?P<op>\^|~|>=|<=|=|>|<)?
    \s*
    (?P<major>\d+|[*xX])
    (?:\.(?P<minor>\d+|[*xX]))?
    (?:\.(?P<patch>\d+|[*xX]))?
    (?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    (?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    \s*$
    """,
    re.VERBOSE,
)

_WILDCARDS = frozenset("*xX")


def _version(
    major: int,
    minor: int,
    patch: int,
    pre: Tuple[str, ...] = (),
) -> semantic_version.Version:
    return semantic_version.Version(
        major=major,
        minor=minor,
        patch=patch,
        prerelease=pre,
        build=(),
    )


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bound:
    """One end of an interval."""

    version: semantic_version.Version
    inclusive: bool

    def __str__(self) -> str:
        return str(self.version)


def tighter_lower(a: Optional[Bound], b: Optional[Bound]) -> Optional[Bound]:
    """Return the more restrictive of two lower bounds (``None`` = unbounded)."""
    if a is None:
        return b
    if b is None:
        return a
    if a.version < b.version:
        return b
    if b.version < a.version:
        return a
    return a if not a.inclusive else b


def tighter_upper(a: Optional[Bound], b: Optional[Bound]) -> Optional[Bound]:
    """Return the more restrictive of two upper bounds (``None`` = unbounded)."""
    if a is None:
        return b
    if b is None:
        return a
    if a.version < b.version:
        return a
    if b.version < a.version:
        return b
    return a if not a.inclusive else b


@dataclass(frozen=True)
class Interval:
    """A contiguous range of versions under semver precedence.

    ``None`` bounds are unbounded. Equality of versions is decided by
    precedence only, so build metadata never affects membership.
    """

    lower: Optional[Bound] = None
    upper: Optional[Bound] = None

    @property
    def is_empty(self) -> bool:
        if self.lower is None or self.upper is None:
            return False
        if self.upper.version < self.lower.version:
            return True
        if self.lower.version < self.upper.version:
            return False
        return not (self.lower.inclusive and self.upper.inclusive)

    def contains(self, version: semantic_version.Version) -> bool:
        if self.lower is not None:
            if self.lower.inclusive:
                if version < self.lower.version:
                    return False
            elif not self.lower.version < version:
                return False
        if self.upper is not None:
            if self.upper.inclusive:
                if self.upper.version < version:
                    return False
            elif not version < self.upper.version:
                return False
        return True

    def intersect(self, other: "Interval") -> "Interval":
        return Interval(
            lower=tighter_lower(self.lower, other.lower),
            upper=tighter_upper(self.upper, other.upper),
        )

    @classmethod
    def intersect_all(cls, intervals: Iterable["Interval"]) -> "Interval":
        result = cls()
        for interval in intervals:
            result = result.intersect(interval)
        return result

    def __str__(self) -> str:
        if self.is_empty:
            return "<empty>"
        parts = []
        if self.lower is not None:
            parts.append(f"{'>=' if self.lower.inclusive else '>'}{self.lower}")
        if self.upper is not None:
            parts.append(f"{'<=' if self.upper.inclusive else '<'}{self.upper}")
        return ", ".join(parts) or "*"


# ---------------------------------------------------------------------------
# Comparators
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Comparator:
    """A single ``op version`` term of a requirement.

    ``minor`` and ``patch`` are ``None`` for partial versions (``^1``,
    ``~1.2``) and for wildcards (``1.*``). An ``op`` of ``"*"`` matches
    every version.
    """

    op: str
    major: Optional[int] = None
    minor: Optional[int] = None
    patch: Optional[int] = None
    pre: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "Comparator":
        """Parse one comparator.

        Raises:
            InvalidRequirement: ``text`` is not a valid comparator.
        """
        match = _COMPARATOR_RE.match(text)
        if not match:
            raise InvalidRequirement(text, "unrecognized comparator")

        op = match.group("op")
        major, minor, patch = (match.group(part) for part in ("major", "minor", "patch"))
        pre = match.group("pre")

        if major in _WILDCARDS:
            if minor is not None or patch is not None or pre or op not in (None, "="):
                raise InvalidRequirement(text, "unexpected characters after wildcard")
            return cls("*")

        wildcard = False
        if minor is not None and minor in _WILDCARDS:
            if patch is not None and patch not in _WILDCARDS:
                raise InvalidRequirement(text, "unexpected characters after wildcard")
            minor, patch, wildcard = None, None, True
        elif patch is not None and patch in _WILDCARDS:
            patch, wildcard = None, True

        if pre and patch is None:
            raise InvalidRequirement(text, "pre-release requires a full version")

        if op is None:
            op = "=" if wildcard else "^"

        return cls(
            op=op,
            major=int(major),
            minor=int(minor) if minor is not None else None,
            patch=int(patch) if patch is not None else None,
            pre=tuple(pre.split(".")) if pre else (),
        )

    def interval(self) -> Interval:
        """Return the range of versions this comparator accepts."""
        if self.op == "*":
            return Interval()

        major = self.major if self.major is not None else 0
        minor, patch, pre = self.minor, self.patch, self.pre
        floor = _version(major, minor or 0, patch or 0, pre)

        if self.op == "=":
            if minor is None:
                return Interval(Bound(floor, True), Bound(_version(major + 1, 0, 0), False))
            if patch is None:
                return Interval(Bound(floor, True), Bound(_version(major, minor + 1, 0), False))
            return Interval(Bound(floor, True), Bound(floor, True))

        if self.op == ">":
            if minor is None:
                return Interval(lower=Bound(_version(major + 1, 0, 0), True))
            if patch is None:
                return Interval(lower=Bound(_version(major, minor + 1, 0), True))
            return Interval(lower=Bound(floor, False))

        if self.op == ">=":
            return Interval(lower=Bound(floor, True))

        if self.op == "<":
            return Interval(upper=Bound(floor, False))

        if self.op == "<=":
            if minor is None:
                return Interval(upper=Bound(_version(major + 1, 0, 0), False))
            if patch is None:
                return Interval(upper=Bound(_version(major, minor + 1, 0), False))
            return Interval(upper=Bound(floor, True))

        if self.op == "~":
            if minor is None:
                ceiling = _version(major + 1, 0, 0)
            else:
                ceiling = _version(major, minor + 1, 0)
            return Interval(Bound(floor, True), Bound(ceiling, False))

        if self.op == "^":
            if minor is None:
                ceiling = _version(major + 1, 0, 0)
            elif major > 0:
                ceiling = _version(major + 1, 0, 0)
            elif patch is None or minor > 0:
                ceiling = _version(0, minor + 1, 0)
            else:
                ceiling = _version(0, 0, patch + 1)
            return Interval(Bound(floor, True), Bound(ceiling, False))

        raise InvalidRequirement(str(self), f"unsupported operator {self.op!r}")

    def names_prerelease_of(self, version: semantic_version.Version) -> bool:
        """True if this comparator opts in to pre-releases of ``version``'s release."""
        return (
            bool(self.pre)
            and self.major == version.major
            and self.minor == version.minor
            and self.patch == version.patch
        )

    def __str__(self) -> str:
        if self.op == "*":
            return "*"
        text = str(self.major)
        if self.minor is not None:
            text += f".{self.minor}"
            if self.patch is not None:
                text += f".{self.patch}"
                if self.pre:
                    text += "-" + ".".join(self.pre)
        return f"{self.op}{text}"


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VersionRequirement:
    """A parsed requirement: comma-separated comparators, all of which must hold.

    Attributes:
        raw: The requirement as declared, e.g. ``"^1.2, <1.8"``.
        comparators: Parsed comparators. Empty for ``*``.
    """

    raw: str
    comparators: Tuple[Comparator, ...] = ()

    @classmethod
    def parse(cls, raw: str) -> "VersionRequirement":
        """Parse a Cargo version requirement.

        An empty string or ``*`` accepts every release.

        Raises:
            InvalidRequirement: Any comparator is malformed.

        Examples:
            >>> str(VersionRequirement.parse("^0.2.3").interval)
            '>=0.2.3, <0.3.0'
        """
        text = (raw or "").strip()
        if not text or text == "*":
            return cls(raw=text or "*")

        comparators = []
        for part in text.split(","):
            if not part.strip():
                raise InvalidRequirement(raw, "empty comparator")
            try:
                comparators.append(Comparator.parse(part))
            except InvalidRequirement as exc:
                raise InvalidRequirement(raw, exc.reason) from exc

        return cls(raw=text, comparators=tuple(comparators))

    @property
    def interval(self) -> Interval:
        """Intersection of every comparator's interval."""
        return Interval.intersect_all(c.interval() for c in self.comparators)

    def admits_prerelease(self, version: semantic_version.Version) -> bool:
        """Cargo's opt-in rule for pre-release versions."""
        if not version.prerelease:
            return True
        return any(c.names_prerelease_of(version) for c in self.comparators)

    def matches(self, version: semantic_version.Version) -> bool:
        return self.interval.contains(version) and self.admits_prerelease(version)

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class DependentConstraint:
    """The requirement one dependent places on the target crate.

    Attributes:
        dependent: Dependent package name.
        version: Dependent's pinned version, as locked.
        requirement: Requirement it declared on the target at that version.
    """

    dependent: str
    version: str
    requirement: VersionRequirement

    def to_json(self) -> dict:
        return {
            "dependent": self.dependent,
            "version": self.version,
            "requirement": self.requirement.raw,
        }

    def __str__(self) -> str:
        return f"{self.dependent} {self.version} requires {self.requirement}"
