"""
Hybrid Entity Resolver

Resolves an invoice seller or invoice line to one catalog code with a tiered
strategy:

1. Identifier pre-match (sellers only) - a unique shared ID is decisive
2. Hybrid score - 0.70 * cosine + field-match boosts, gated on best score
   and margin over the runner-up
3. Model arbitration over the top 3 when the score is indecisive
4. Static fallback code

``resolve`` is total: every call returns a MatchDecision with a non-empty
code. Failures are absorbed here, reported once to the event sink and kept
in-band on the decision.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence

from config.settings import settings
from matching.models import BusinessPartner, CatalogItem, LineItemQuery, SellerQuery
from matching.entity_resolution.adapters import (
    BUSINESS_PARTNER_ADAPTER,
    ITEM_ADAPTER,
    EntityAdapter,
)
from matching.entity_resolution.arbitration import Arbiter, Completer, Embedder
from matching.entity_resolution.events import EventSink, Severity, SinkLike, as_sink, emit_safely
from matching.entity_resolution.matchers import (
    CandidateScorer,
    IdentifierMatcher,
    ScoredCandidate,
    usable_embedding,
)
from matching.entity_resolution.ranking import DecisionGate

logger = logging.getLogger(__name__)


class MatchOutcome(Enum):
    """Which tier produced the code."""
    IDENTIFIER = "identifier"      # Unique seller-assigned ID match
    ACCEPTED = "accepted"          # Hybrid score passed the gate
    ARBITRATED = "arbitrated"      # Language model picked the code
    FALLBACK = "fallback"          # Static fallback code


class FailureReason(Enum):
    """Why a resolution ended in the fallback code."""
    INVALID_INPUT = "invalid_input"
    NO_SCORABLE_CANDIDATES = "no_scorable_candidates"
    ORACLE_FAILURE = "oracle_failure"
    ARBITRATION_INCONCLUSIVE = "arbitration_inconclusive"
    INTERNAL_ERROR = "internal_error"


@dataclass
class ResolverConfig:
    """Configuration for entity resolution."""
    # Accept the best candidate outright at or above this score
    accept_threshold: float = 0.85

    # ... or at or above this score with a clear margin
    margin_threshold: float = 0.75
    min_delta: float = 0.10

    # Weight of the embedding cosine in the final score
    cosine_weight: float = 0.70

    # Candidates shown to the model when arbitrating
    arbitration_top_k: int = 3

    # Run the deterministic ID tier for adapters that support it
    identifier_prematch: bool = True


@dataclass
class MatchDecision:
    """Terminal outcome of one resolution call."""
    code: str
    outcome: MatchOutcome
    failure: Optional[FailureReason] = None
    score: float = 0.0
    delta: float = 0.0
    ranked: list[ScoredCandidate] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.outcome == MatchOutcome.FALLBACK

    def __repr__(self) -> str:
        if self.failure:
            return f"<MatchDecision({self.code}, {self.outcome.value}, {self.failure.value})>"
        return f"<MatchDecision({self.code}, {self.outcome.value}, score={self.score:.2f})>"


class EntityResolver:
    """
    Generic hybrid resolver, parameterized by an entity adapter.

    Usage:
        resolver = EntityResolver(ITEM_ADAPTER)
        decision = await resolver.resolve(
            line, items, item_index, embedder, completer, fallback_code="E10000",
        )
        decision.code
    """

    def __init__(self, adapter: EntityAdapter, config: Optional[ResolverConfig] = None):
        self.adapter = adapter
        self.config = config or ResolverConfig()
        self.identifier_matcher = IdentifierMatcher()
        self.scorer = CandidateScorer(adapter, self.config.cosine_weight)
        self.gate = DecisionGate(
            accept_threshold=self.config.accept_threshold,
            margin_threshold=self.config.margin_threshold,
            min_delta=self.config.min_delta,
            top_k=self.config.arbitration_top_k,
        )

    async def resolve(
        self,
        query,
        candidates: Optional[Sequence],
        embedding_index: Optional[Mapping[str, Sequence[float]]],
        embedder: Embedder,
        completer: Completer,
        fallback_code: Optional[str] = None,
        sink: SinkLike = None,
    ) -> MatchDecision:
        """
        Resolve a query to a catalog code.

        Args:
            query: SellerQuery or LineItemQuery
            candidates: Catalog entries already loaded by the caller
            embedding_index: Candidate code -> embedding vector
            embedder: Embedding oracle for the query description
            completer: Completion oracle used for arbitration
            fallback_code: Code returned when no tier decides (blank = configured default)
            sink: Event sink or ``callback(message, severity)``; optional

        Returns:
            MatchDecision; never raises
        """
        events = as_sink(sink)
        kind = self.adapter.kind
        if fallback_code and fallback_code.strip():
            fallback_code = fallback_code.strip()
        else:
            fallback_code = getattr(settings, self.adapter.fallback_setting)

        try:
            return await self._resolve(
                query, candidates, embedding_index, embedder, completer, fallback_code, events
            )
        except Exception as e:
            logger.exception(f"{kind} match aborted")
            return self._absorb(e, FailureReason.INTERNAL_ERROR, fallback_code, events)

    async def _resolve(
        self,
        query,
        candidates,
        embedding_index,
        embedder: Embedder,
        completer: Completer,
        fallback_code: str,
        events: EventSink,
    ) -> MatchDecision:
        kind = self.adapter.kind

        # Preconditions
        if query is None:
            return self._reject(f"no {self.adapter.query_label}", fallback_code, events)
        if not candidates:
            return self._reject(f"no {self.adapter.catalog_label} to match against", fallback_code, events)

        # Tier 1: deterministic identifier match
        if self.adapter.identifier_prematch and self.config.identifier_prematch:
            decision = self._identifier_tier(query, candidates, events)
            if decision:
                return decision

        if not embedding_index:
            return self._reject("embedding index is empty", fallback_code, events)

        if self.adapter.require_scorable_candidates and not any(
            usable_embedding(self.adapter.candidate_code(c), embedding_index) is not None
            for c in candidates
        ):
            emit_safely(
                events,
                f"{kind} match failed: no {self.adapter.catalog_label} with an embedding",
                Severity.WARNING,
            )
            return MatchDecision(
                code=fallback_code,
                outcome=MatchOutcome.FALLBACK,
                failure=FailureReason.NO_SCORABLE_CANDIDATES,
            )

        # Tier 2: hybrid score
        description = self.adapter.describe_query(query)
        emit_safely(events, f"{kind} query: {description}", Severity.SUCCESS)

        try:
            query_vector = await embedder.embed(description)
        except Exception as e:
            return self._absorb(e, FailureReason.ORACLE_FAILURE, fallback_code, events)

        if query_vector is None or len(query_vector) == 0:
            emit_safely(events, f"{kind} match failed: query embedding is empty", Severity.WARNING)
            return MatchDecision(
                code=fallback_code,
                outcome=MatchOutcome.FALLBACK,
                failure=FailureReason.ORACLE_FAILURE,
                error="empty query embedding",
            )

        scored = self.scorer.score_all(query, query_vector, candidates, embedding_index)
        gate = self.gate.evaluate(scored)
        best = gate.best

        if gate.accepted:
            emit_safely(
                events,
                f"{kind} match accepted {best.code}: score={best.score:.2f} "
                f"delta={gate.delta:.2f} [{best.reason}]",
                Severity.SUCCESS,
            )
            return MatchDecision(
                code=best.code,
                outcome=MatchOutcome.ACCEPTED,
                score=best.score,
                delta=gate.delta,
                ranked=gate.ranked,
            )

        if not gate.top:
            emit_safely(
                events,
                f"{kind} match failed: no {self.adapter.catalog_label} could be scored, fallback used",
                Severity.WARNING,
            )
            return MatchDecision(
                code=fallback_code,
                outcome=MatchOutcome.FALLBACK,
                failure=FailureReason.NO_SCORABLE_CANDIDATES,
            )

        # Tier 3: model arbitration
        candidates_by_code = {}
        for candidate in candidates:
            code = self.adapter.candidate_code(candidate)
            if code:
                candidates_by_code[code] = candidate

        arbiter = Arbiter(self.adapter, completer)
        try:
            pick = await arbiter.arbitrate(description, gate.top, candidates_by_code, fallback_code)
        except Exception as e:
            decision = self._absorb(e, FailureReason.ORACLE_FAILURE, fallback_code, events)
            decision.score, decision.delta, decision.ranked = best.score, gate.delta, gate.ranked
            return decision

        # A model answering with the fallback code found no match
        if pick and pick != fallback_code:
            shortlist = " >> ".join(
                f"#{i}: {s.code} ({s.score:.2f})" for i, s in enumerate(gate.top, 1)
            )
            emit_safely(events, f"{kind} match (LLM) picked {pick} from [{shortlist}]", Severity.SUCCESS)
            return MatchDecision(
                code=pick,
                outcome=MatchOutcome.ARBITRATED,
                score=best.score,
                delta=gate.delta,
                ranked=gate.ranked,
            )

        # Tier 4: static fallback
        emit_safely(events, f"{kind} match failed: final fallback {fallback_code} used", Severity.WARNING)
        return MatchDecision(
            code=fallback_code,
            outcome=MatchOutcome.FALLBACK,
            failure=FailureReason.ARBITRATION_INCONCLUSIVE,
            score=best.score,
            delta=gate.delta,
            ranked=gate.ranked,
        )

    def _identifier_tier(self, query, candidates, events: EventSink) -> Optional[MatchDecision]:
        """Accept a unique identifier match; otherwise hand over to scoring."""
        kind = self.adapter.kind
        matches = self.identifier_matcher.match(query, candidates)

        if len(matches) == 1:
            code = matches[0].card_code
            emit_safely(events, f"{kind} catalog number unique, scoring skipped: {code}", Severity.SUCCESS)
            return MatchDecision(code=code, outcome=MatchOutcome.IDENTIFIER, score=1.0)

        if len(matches) > 1:
            codes = ", ".join(m.card_code for m in matches)
            emit_safely(
                events,
                f"{kind} catalog number shared by several partners ({codes}), scoring decides",
                Severity.WARNING,
            )
        else:
            emit_safely(events, f"{kind} no catalog number match, scoring decides", Severity.NONE)
        return None

    def _reject(self, why: str, fallback_code: str, events: EventSink) -> MatchDecision:
        emit_safely(events, f"{self.adapter.kind} match failed: {why}", Severity.WARNING)
        return MatchDecision(
            code=fallback_code,
            outcome=MatchOutcome.FALLBACK,
            failure=FailureReason.INVALID_INPUT,
            error=why,
        )

    def _absorb(
        self,
        error: Exception,
        reason: FailureReason,
        fallback_code: str,
        events: EventSink,
    ) -> MatchDecision:
        message = f"{type(error).__name__}: {error}"
        emit_safely(events, f"{self.adapter.kind} match exception: {message}", Severity.WARNING)
        return MatchDecision(
            code=fallback_code,
            outcome=MatchOutcome.FALLBACK,
            failure=reason,
            error=message,
        )


async def resolve_business_partner(
    seller: Optional[SellerQuery],
    partners: Optional[Sequence[BusinessPartner]],
    embedding_index: Optional[Mapping[str, Sequence[float]]],
    embedder: Embedder,
    completer: Completer,
    fallback_code: Optional[str] = None,
    sink: SinkLike = None,
    config: Optional[ResolverConfig] = None,
) -> MatchDecision:
    """Resolve an invoice seller to a business partner decision."""
    resolver = EntityResolver(BUSINESS_PARTNER_ADAPTER, config)
    return await resolver.resolve(
        seller, partners, embedding_index, embedder, completer, fallback_code, sink
    )


async def resolve_item(
    line: Optional[LineItemQuery],
    items: Optional[Sequence[CatalogItem]],
    embedding_index: Optional[Mapping[str, Sequence[float]]],
    embedder: Embedder,
    completer: Completer,
    fallback_code: Optional[str] = None,
    sink: SinkLike = None,
    config: Optional[ResolverConfig] = None,
) -> MatchDecision:
    """Resolve an invoice line to an item decision."""
    resolver = EntityResolver(ITEM_ADAPTER, config)
    return await resolver.resolve(
        line, items, embedding_index, embedder, completer, fallback_code, sink
    )


async def resolve_card_code(seller, partners, embedding_index, embedder, completer,
                            fallback_code: Optional[str] = None, sink: SinkLike = None) -> str:
    """Resolve an invoice seller to a card code. Never raises."""
    decision = await resolve_business_partner(
        seller, partners, embedding_index, embedder, completer, fallback_code, sink
    )
    return decision.code


async def resolve_item_code(line, items, embedding_index, embedder, completer,
                            fallback_code: Optional[str] = None, sink: SinkLike = None) -> str:
    """Resolve an invoice line to an item code. Never raises."""
    decision = await resolve_item(
        line, items, embedding_index, embedder, completer, fallback_code, sink
    )
    return decision.code
