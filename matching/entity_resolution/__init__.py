"""
Entity Resolution Module

Hybrid entity resolution combining:
- Identifier-based matching (supplier catalog number, tax ID, VAT ID)
- Embedding similarity with deterministic field-match boosts
- Language-model arbitration for indecisive matches
- Static fallback codes
"""

from matching.entity_resolution.resolver import (
    EntityResolver,
    FailureReason,
    MatchDecision,
    MatchOutcome,
    ResolverConfig,
    resolve_business_partner,
    resolve_card_code,
    resolve_item,
    resolve_item_code,
)
from matching.entity_resolution.adapters import (
    BUSINESS_PARTNER_ADAPTER,
    ITEM_ADAPTER,
    EntityAdapter,
)
from matching.entity_resolution.arbitration import Completer, Embedder
from matching.entity_resolution.events import (
    CallbackSink,
    EventSink,
    LoggingSink,
    NullSink,
    Severity,
)
from matching.entity_resolution.matchers import (
    CandidateScorer,
    IdentifierMatcher,
    ScoredCandidate,
)
from matching.entity_resolution.ranking import DecisionGate, GateResult

__all__ = [
    "EntityResolver",
    "FailureReason",
    "MatchDecision",
    "MatchOutcome",
    "ResolverConfig",
    "resolve_business_partner",
    "resolve_card_code",
    "resolve_item",
    "resolve_item_code",
    "BUSINESS_PARTNER_ADAPTER",
    "ITEM_ADAPTER",
    "EntityAdapter",
    "Completer",
    "Embedder",
    "CallbackSink",
    "EventSink",
    "LoggingSink",
    "NullSink",
    "Severity",
    "CandidateScorer",
    "IdentifierMatcher",
    "ScoredCandidate",
    "DecisionGate",
    "GateResult",
]
