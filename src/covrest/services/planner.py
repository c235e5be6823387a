"""Constraint splitting — decide, per axis, between remote delegation and local evaluation.

Per-axis decision table (first match wins):

1. Unknown concept -> local.
2. No capability record for the concept -> local.
3. Exact: remote if exact is supported; else, with range support, emulated
   as ``Range(v, v)`` when ``v`` is exactly an axis value; else local.
4. Nearest: remote if nearest is supported; else, with range support, the
   target is snapped to the nearest axis value and sent as ``Range(v, v)``.
   A target outside the axis extent raises OutOfExtentError.
5. Range: remote if range is supported. Subset ranges are snapped inward
   to the outermost axis values they cover; a range entirely outside the
   axis extent raises OutOfExtentError. Longitude ranges spanning the full
   circle cover the whole axis; ranges crossing its seam are sent as given.
6. Index constraints go remote as a generic index subset when the API
   supports it; otherwise each is converted to axis values and re-enters
   the table (non-unit steps stay local).

Dependency repair then demotes every remote concept whose dependencies are
not all remote (the bounding box needs both x and y), repeating until stable.

INVARIANT: Every input axis ends up in exactly one of Plan.remote (via
Plan.sources), Plan.index, or Plan.local.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from covrest.domain.capabilities import CapabilityDescriptor
from covrest.domain.concepts import is_longitude_axis, resolve_axis_concepts
from covrest.domain.constraints import (
    Constraint,
    Exact,
    Index,
    IndexConstraint,
    IndexRange,
    Nearest,
    Range,
    ValueConstraint,
)
from covrest.domain.model import Axis, Domain
from covrest.domain.snapping import AxisScale
from covrest.domain.types import Concept, OperationKind
from covrest.errors import OutOfExtentError, QueryError

logger = logging.getLogger(__name__)


@dataclass
class Plan:
    """Outcome of splitting one operation's constraints.

    Attributes:
        kind: The operation the constraints belong to.
        remote: Concept -> (possibly rewritten) constraint for the remote API.
        local: Axis identifier -> original constraint to apply locally.
        index: Axis identifier -> index constraint for generic index subsetting.
        sources: Concept -> (axis identifier, original constraint) for every
            remote entry, so it can be demoted without loss.
    """

    kind: OperationKind
    remote: dict[Concept, ValueConstraint] = field(default_factory=dict)
    local: dict[str, Constraint] = field(default_factory=dict)
    index: dict[str, IndexConstraint] = field(default_factory=dict)
    sources: dict[Concept, tuple[str, Constraint]] = field(default_factory=dict)

    @property
    def has_remote(self) -> bool:
        return bool(self.remote or self.index)

    @property
    def has_local(self) -> bool:
        return bool(self.local)

    def remote_axes(self) -> set[str]:
        """Axis identifiers delegated to the remote API."""
        return {axis for axis, _ in self.sources.values()} | set(self.index)

    def summary(self) -> dict[str, Any]:
        return {
            "kind": str(self.kind),
            "remote": {str(c): axis for c, (axis, _) in self.sources.items()},
            "index": sorted(self.index),
            "local": sorted(self.local),
        }


# ---------------------------------------------------------------------------
# Constraint hygiene
# ---------------------------------------------------------------------------


T = TypeVar("T")


def clean_constraints(
    constraints: Mapping[str, Any] | None,
    coerce: Callable[[Any], T],
    *,
    operation: str,
) -> dict[str, T]:
    """Drop ``None`` entries and coerce raw specs into typed constraints."""
    cleaned: dict[str, T] = {}
    for axis_key, raw in (constraints or {}).items():
        if raw is None:
            continue
        try:
            cleaned[axis_key] = coerce(raw)
        except ValueError as exc:
            raise QueryError(str(exc), operation=operation, axis=axis_key) from exc
    return cleaned


def check_axes(domain: Domain, constraints: Mapping[str, Any], *, operation: str) -> None:
    """Reject constraints on axes the domain does not have."""
    for axis_key in constraints:
        if axis_key not in domain.axes:
            msg = f"Unknown axis '{axis_key}' in {operation} constraints"
            raise QueryError(msg, operation=operation, axis=axis_key)


def requires_subsetting(domain: Domain, constraints: Mapping[str, Any]) -> bool:
    """Whether the constraints may actually shrink the domain.

    Constraints on single-valued axes can never remove anything.
    """
    return any(len(domain.axis(axis_key)) > 1 for axis_key in constraints)


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------


def split(
    kind: OperationKind,
    constraints: Mapping[str, ValueConstraint],
    domain: Domain,
    capabilities: CapabilityDescriptor,
    *,
    snap_ranges: bool = True,
) -> Plan:
    """Partition value constraints into remote and local parts."""
    check_axes(domain, constraints, operation=str(kind))
    concepts = resolve_axis_concepts(domain)
    plan = Plan(kind=kind)
    snap = snap_ranges and kind == OperationKind.SUBSET

    for axis_key, constraint in constraints.items():
        concept = concepts.get(axis_key)
        rewritten = _decide(kind, domain, axis_key, concept, constraint, capabilities, snap=snap)
        _assign(plan, axis_key, concept, constraint, rewritten)

    _repair_dependencies(plan, capabilities)
    logger.debug("plan.computed %s", plan.summary())
    return plan


def split_index(
    constraints: Mapping[str, IndexConstraint],
    domain: Domain,
    capabilities: CapabilityDescriptor,
) -> Plan:
    """Partition index constraints into remote and local parts."""
    operation = str(OperationKind.SUBSET)
    check_axes(domain, constraints, operation=operation)
    for axis_key, constraint in constraints.items():
        _check_index_bounds(domain.axis(axis_key), constraint)

    plan = Plan(kind=OperationKind.SUBSET)
    if capabilities.supports_index:
        plan.index = dict(constraints)
        logger.debug("plan.computed %s", plan.summary())
        return plan

    concepts = resolve_axis_concepts(domain)
    for axis_key, constraint in constraints.items():
        concept = concepts.get(axis_key)
        as_value = _index_to_value(domain, axis_key, constraint)
        rewritten = None
        if as_value is not None:
            rewritten = _decide(
                OperationKind.SUBSET,
                domain,
                axis_key,
                concept,
                as_value,
                capabilities,
                snap=False,
            )
        _assign(plan, axis_key, concept, constraint, rewritten)

    _repair_dependencies(plan, capabilities)
    logger.debug("plan.computed %s", plan.summary())
    return plan


def _assign(
    plan: Plan,
    axis_key: str,
    concept: Concept | None,
    original: Constraint,
    rewritten: ValueConstraint | None,
) -> None:
    # A second axis resolving to an already-claimed concept stays local.
    if rewritten is None or concept is None or concept in plan.remote:
        plan.local[axis_key] = original
        return
    plan.remote[concept] = rewritten
    plan.sources[concept] = (axis_key, original)


def _decide(
    kind: OperationKind,
    domain: Domain,
    axis_key: str,
    concept: Concept | None,
    constraint: ValueConstraint,
    capabilities: CapabilityDescriptor,
    *,
    snap: bool,
) -> ValueConstraint | None:
    """Return the constraint to send remotely, or None to keep it local."""
    record = capabilities.record(kind, concept)
    if record is None:
        return None

    scale = AxisScale(
        axis=domain.axis(axis_key),
        time=concept == Concept.TIME,
        longitude=is_longitude_axis(domain, axis_key),
    )

    if isinstance(constraint, Exact):
        if record.exact:
            return constraint
        if record.range:
            if scale.same_value(scale.nearest_value(constraint.value), constraint.value):
                return Range(start=constraint.value, stop=constraint.value)
        return None

    if isinstance(constraint, Nearest):
        if record.nearest:
            return constraint
        if record.range:
            if not scale.contains(constraint.target):
                msg = (
                    f"{kind} target {constraint.target!r} lies outside the extent "
                    f"of axis '{axis_key}'"
                )
                raise OutOfExtentError(msg, operation=str(kind), axis=axis_key, concept=concept)
            value = scale.nearest_value(constraint.target)
            return Range(start=value, stop=value)
        return None

    if not record.range:
        return None
    if snap:
        return _snap_range(kind, axis_key, scale, constraint)
    return constraint


def _snap_range(kind: OperationKind, axis_key: str, scale: AxisScale, constraint: Range) -> Range:
    """Snap a range inward to the outermost axis values it covers.

    A longitude range spanning the full circle covers the whole axis. One
    crossing the seam of the axis window is left to the server unsnapped.
    """
    if scale.crosses_seam(constraint.start, constraint.stop):
        return constraint
    if not scale.spans_full_circle(constraint.start, constraint.stop):
        a, b = scale.normalize(constraint.start), scale.normalize(constraint.stop)
        lo, hi = scale.extent()
        if max(a, b) < lo or min(a, b) > hi:
            msg = f"{kind} range on axis '{axis_key}' lies entirely outside its extent"
            raise OutOfExtentError(msg, operation=str(kind), axis=axis_key)
    hits = scale.indices_within(constraint.start, constraint.stop)
    if not hits:
        return constraint
    values = scale.axis.values
    start, stop = scale.ordered(values[hits[0]], values[hits[-1]])
    return Range(start=start, stop=stop)


def _index_to_value(
    domain: Domain, axis_key: str, constraint: IndexConstraint
) -> ValueConstraint | None:
    """Convert an index constraint into axis values; None if not expressible."""
    axis = domain.axis(axis_key)
    if isinstance(constraint, Index):
        return Exact(value=axis.values[constraint.index])
    if not constraint.unit_step:
        return None
    scale = AxisScale(axis=axis)
    start, stop = scale.ordered(axis.values[constraint.start], axis.values[constraint.stop - 1])
    return Range(start=start, stop=stop)


def _check_index_bounds(axis: Axis, constraint: IndexConstraint) -> None:
    size = len(axis)
    operation = str(OperationKind.SUBSET)
    if isinstance(constraint, Index):
        if not 0 <= constraint.index < size:
            msg = f"Index {constraint.index} out of range for axis '{axis.key}' (size {size})"
            raise QueryError(msg, operation=operation, axis=axis.key)
        return
    if not 0 <= constraint.start < constraint.stop <= size:
        msg = (
            f"Index range {constraint.start}:{constraint.stop} invalid for axis "
            f"'{axis.key}' (size {size})"
        )
        raise QueryError(msg, operation=operation, axis=axis.key)
    if constraint.step is not None and constraint.step < 1:
        msg = f"Index step must be positive on axis '{axis.key}'"
        raise QueryError(msg, operation=operation, axis=axis.key)


def _repair_dependencies(plan: Plan, capabilities: CapabilityDescriptor) -> None:
    """Demote remote concepts with unmet dependencies until the plan is stable."""
    changed = True
    while changed:
        changed = False
        for concept in list(plan.remote):
            depends = capabilities.dependencies_of(plan.kind, concept)
            if all(dep in plan.remote for dep in depends):
                continue
            axis_key, original = plan.sources.pop(concept)
            del plan.remote[concept]
            plan.local[axis_key] = original
            changed = True
