"""Closure negotiation — consent state machine and the summary protocol."""

from coachwire.closure.consent import ClosureState, ConsentFlow
from coachwire.closure.negotiator import SummaryNegotiator

__all__ = ["ClosureState", "ConsentFlow", "SummaryNegotiator"]
