"""
Progress analysis — scores the coaching conversation on a hidden side channel.

The ProgressAnalyzer lives in coachwire.analysis.analyzer; this package
also holds the dimension sets, prompt templates, payload parsing and the
in-flight request table it is built from.
"""

from coachwire.analysis.dimensions import (
    COACHING_MODES,
    GROW_PHASES,
    Dimension,
    DimensionSet,
    get_dimension_set,
)
from coachwire.analysis.payload import Assessment, ConsentDecision, parse_assessment
from coachwire.analysis.requests import InFlightRequests, RequestKind

__all__ = [
    "Dimension",
    "DimensionSet",
    "GROW_PHASES",
    "COACHING_MODES",
    "get_dimension_set",
    "Assessment",
    "ConsentDecision",
    "parse_assessment",
    "InFlightRequests",
    "RequestKind",
]
