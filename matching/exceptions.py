"""
Exceptions raised by the matching package.

The resolver never lets these escape; they surface to callers only through
``MatchDecision.failure`` and the event stream. Oracle adapters and the
indexing helpers raise them directly.
"""


class MatchingError(Exception):
    """Base class for matching errors."""


class OracleError(MatchingError):
    """An embedding or completion oracle failed or returned unusable output."""
