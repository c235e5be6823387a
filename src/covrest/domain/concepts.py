"""Axis-concept resolution.

Maps each axis identifier of a domain to the abstract concept it plays
(x, y, vertical, time) by interpreting the domain's referencing entries.
Axis identifiers are never hard-coded: ``"t"`` is only a time axis if a
temporal referencing entry says so.

INVARIANT: Resolution is pure and deterministic for a given Domain.
"""

from __future__ import annotations

from covrest.domain.model import Domain, Referencing
from covrest.domain.types import Concept, SystemType

# Position of an axis within a geodetic/projected CRS entry -> concept.
_POSITIONAL_CONCEPTS: tuple[Concept, ...] = (Concept.X, Concept.Y, Concept.VERTICAL)


def _referencing_for(domain: Domain, axis_key: str) -> Referencing | None:
    """Return the single referencing entry covering *axis_key*, else None.

    An axis referenced by zero or by several entries has no usable concept.
    """
    matches = [ref for ref in domain.referencing if axis_key in ref.components]
    if len(matches) != 1:
        return None
    return matches[0]


def resolve_axis_concepts(domain: Domain) -> dict[str, Concept | None]:
    """Map every axis identifier of *domain* to its concept (None if unknown).

    - TemporalRS: time. A single time axis is assumed.
    - VerticalCRS: vertical.
    - GeodeticCRS / ProjectedCRS: x, y, vertical by position within the
      entry's components; positions beyond 2 are unknown.
    """
    concepts: dict[str, Concept | None] = {}
    for axis_key in domain.axes:
        concept: Concept | None = None
        ref = _referencing_for(domain, axis_key)
        if ref is not None:
            system_type = ref.system.type
            if system_type == SystemType.TEMPORAL:
                concept = Concept.TIME
            elif system_type == SystemType.VERTICAL:
                concept = Concept.VERTICAL
            elif system_type in (SystemType.GEODETIC, SystemType.PROJECTED):
                position = ref.components.index(axis_key)
                if position < len(_POSITIONAL_CONCEPTS):
                    concept = _POSITIONAL_CONCEPTS[position]
        concepts[axis_key] = concept
    return concepts


def is_longitude_axis(domain: Domain, axis_key: str) -> bool:
    """Whether *axis_key* is the first (longitude) component of a geodetic CRS."""
    ref = _referencing_for(domain, axis_key)
    if ref is None or ref.system.type != SystemType.GEODETIC:
        return False
    return ref.components.index(axis_key) == 0

