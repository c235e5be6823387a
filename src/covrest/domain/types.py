"""Classification enums shared by every layer.

Concepts are the abstract semantic roles an axis can play, independent of
its local identifier. Operation and match kinds index the capability table.
"""

from __future__ import annotations

from enum import StrEnum


class Concept(StrEnum):
    """Abstract axis roles understood by a remote API."""

    X = "x"
    Y = "y"
    VERTICAL = "vertical"
    TIME = "time"
    INDEX = "index"


class OperationKind(StrEnum):
    """Query operations that may be delegated to a remote API."""

    FILTER = "filter"
    SUBSET = "subset"


class MatchKind(StrEnum):
    """How a constraint matches axis values."""

    EXACT = "exact"
    RANGE = "range"
    NEAREST = "nearest"


class EmbedPart(StrEnum):
    """Sub-resources a server may inline in its response."""

    DOMAIN = "domain"
    RANGE = "range"


class SystemType(StrEnum):
    """Referencing system type tags as they appear in CoverageJSON."""

    TEMPORAL = "TemporalRS"
    VERTICAL = "VerticalCRS"
    GEODETIC = "GeodeticCRS"
    PROJECTED = "ProjectedCRS"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: str | None) -> SystemType:
        """Map a raw ``system.type`` string to a member, defaulting to OTHER."""
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER
