"""Compatibility resolution for cratecompat.

Intersects the requirements of every dependent of a crate and returns the
published versions that satisfy all of them. The work is pure: no I/O,
no mutation of inputs.

When nothing satisfies every requirement, a :class:`ConstraintConflict`
explains which dependents are responsible. The explanation is a hint,
not a proof: each dependent is examined at its *locked* version only,
and a newer release of a dependent may well relax its requirement.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from cratecompat.utils.logger import get_logger
from cratecompat.models.version import VersionRecord, sort_records
from cratecompat.models.requirement import DependentConstraint, Interval

logger = get_logger("resolver")

__all__ = ["ConstraintConflict", "Resolution", "resolve", "CONFLICT_CAVEAT"]

CONFLICT_CAVEAT = (
    "This only considers the currently locked dependents; upgrading one of "
    "them may relax its requirement."
)


@dataclass(frozen=True)
class ConstraintConflict:
    """Why no version satisfies every dependent.

    Attributes:
        message: One-sentence explanation.
        culprits: Dependents whose requirements clash.
        caveat: Reminder that the conflict is not proof of incompatibility.
    """

    message: str
    culprits: Tuple[DependentConstraint, ...] = ()
    caveat: str = CONFLICT_CAVEAT

    def to_json(self) -> dict:
        return {
            "message": self.message,
            "culprits": [c.to_json() for c in self.culprits],
            "caveat": self.caveat,
        }

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class Resolution:
    """Result of intersecting dependent requirements.

    Attributes:
        candidates: Matching versions, ascending precedence.
        interval: Intersection of every requirement.
        conflict: Explanation when ``candidates`` is empty.
    """

    candidates: Tuple[VersionRecord, ...]
    interval: Interval
    conflict: Optional[ConstraintConflict] = None

    @property
    def is_satisfiable(self) -> bool:
        return bool(self.candidates)


def resolve(
    target_versions: Iterable[VersionRecord],
    constraints: Sequence[DependentConstraint],
) -> Resolution:
    """Return the versions of the target that satisfy every constraint.

    With no constraints, every known version is a candidate. Adding a
    constraint never adds candidates.

    Example::

        >>> resolution = resolve(records, constraints)
        >>> [str(r.version) for r in resolution.candidates]
        ['1.5.0', '1.6.0', '1.7.0']
    """
    records = sort_records(target_versions)
    interval = Interval.intersect_all(c.requirement.interval for c in constraints)

    candidates = tuple(
        record
        for record in records
        if interval.contains(record.version)
        and all(c.requirement.admits_prerelease(record.version) for c in constraints)
    )
    logger.debug(
        "%d of %d version(s) within %s",
        len(candidates),
        len(records),
        interval,
    )

    conflict = None
    if not candidates and constraints:
        conflict = _explain(records, constraints, interval)
        logger.info("Unsatisfiable: %s", conflict.message)

    return Resolution(candidates=candidates, interval=interval, conflict=conflict)


def _explain(
    records: Sequence[VersionRecord],
    constraints: Sequence[DependentConstraint],
    interval: Interval,
) -> ConstraintConflict:
    # A single dependent that no published version satisfies
    for constraint in constraints:
        if not any(constraint.requirement.matches(r.version) for r in records):
            return ConstraintConflict(
                message=(
                    f"{constraint.dependent} {constraint.version} requires "
                    f"{constraint.requirement}, which no published version satisfies"
                ),
                culprits=(constraint,),
            )

    if interval.is_empty:
        lower_owner = _owner(constraints, lambda i: i.lower == interval.lower)
        upper_owner = _owner(constraints, lambda i: i.upper == interval.upper)
        if lower_owner is not None and upper_owner is not None and lower_owner != upper_owner:
            return ConstraintConflict(
                message=(
                    f"{lower_owner.dependent} {lower_owner.version} requires "
                    f"{lower_owner.requirement} but {upper_owner.dependent} "
                    f"{upper_owner.version} requires {upper_owner.requirement}"
                ),
                culprits=(lower_owner, upper_owner),
            )

    culprit = _disjoint_from_rest(records, constraints)
    if culprit is not None:
        return ConstraintConflict(
            message=(
                f"{culprit.dependent} {culprit.version} requires {culprit.requirement}, "
                f"which no version accepted by the other dependents satisfies"
            ),
            culprits=(culprit,),
        )

    return ConstraintConflict(
        message=f"No published version satisfies every dependent ({interval})",
        culprits=tuple(constraints),
    )


def _owner(constraints, predicate) -> Optional[DependentConstraint]:
    for constraint in constraints:
        if predicate(constraint.requirement.interval):
            return constraint
    return None


def _disjoint_from_rest(
    records: Sequence[VersionRecord],
    constraints: Sequence[DependentConstraint],
) -> Optional[DependentConstraint]:
    for index, constraint in enumerate(constraints):
        others: List[DependentConstraint] = [
            c for i, c in enumerate(constraints) if i != index
        ]
        accepted = [
            r for r in records if all(c.requirement.matches(r.version) for c in others)
        ]
        if accepted:
            return constraint
    return None
