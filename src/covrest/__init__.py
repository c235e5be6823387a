"""covrest — capability-negotiating query adapter for coverage data.

Wrap an in-memory coverage or collection together with a loader; subset,
filter and embed requests are then answered by the remote API where its
discovered capabilities allow, and locally otherwise.
"""

from covrest.domain.constraints import Exact, Index, IndexRange, Nearest, Range
from covrest.domain.types import Concept, EmbedPart, MatchKind, OperationKind
from covrest.errors import CovrestError, OutOfExtentError, QueryError, UnsupportedConceptError
from covrest.services.composer import WrappedCollection, WrappedCoverage, wrap

__version__ = "0.4.0"

__all__ = [
    "Concept",
    "CovrestError",
    "EmbedPart",
    "Exact",
    "Index",
    "IndexRange",
    "MatchKind",
    "Nearest",
    "OperationKind",
    "OutOfExtentError",
    "QueryError",
    "Range",
    "UnsupportedConceptError",
    "WrappedCollection",
    "WrappedCoverage",
    "__version__",
    "wrap",
]
