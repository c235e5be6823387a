"""Exception hierarchy for covrest.

Caller contract violations are raised synchronously, before any network
call is attempted. Loader failures are never wrapped: they propagate to the
caller unchanged.
"""

from __future__ import annotations


class CovrestError(Exception):
    """Root of all errors raised by covrest itself."""


class QueryError(CovrestError, ValueError):
    """A caller contract violation.

    Attributes:
        operation: The operation that failed (``filter``, ``subset``,
            ``embed``, ``wrap`` or ``request``).
        axis: Axis identifier that triggered the failure, if any.
        concept: Abstract concept that triggered the failure, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        axis: str | None = None,
        concept: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.axis = axis
        self.concept = concept


class OutOfExtentError(QueryError):
    """A target or range lies entirely outside the extent of its axis."""


class UnsupportedConceptError(QueryError):
    """URL construction was requested for a concept with no template variable."""


class DocumentError(CovrestError):
    """A CoverageJSON document cannot be read into a data object."""
