"""
Matching strategies: deterministic identifier pre-match and the hybrid
candidate scorer.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from matching.models import BusinessPartner, SellerQuery
from matching.entity_resolution.adapters import EntityAdapter
from matching.entity_resolution.similarity import cosine_similarity


@dataclass
class ScoredCandidate:
    """One candidate's final score and the signals behind it."""
    code: str
    score: float
    reasons: list[str] = field(default_factory=list)

    @property
    def reason(self) -> str:
        return ", ".join(self.reasons)

    def __repr__(self) -> str:
        return f"<ScoredCandidate({self.code}, score={self.score:.3f})>"


def usable_embedding(code: Optional[str], embedding_index: Mapping[str, Sequence[float]]) -> Optional[Sequence[float]]:
    """Return the candidate's vector, or None when it has no code or no non-empty embedding."""
    if not code or not code.strip():
        return None
    vector = embedding_index.get(code)
    if vector is None or len(vector) == 0:
        return None
    return vector


class IdentifierMatcher:
    """
    Matches an invoice seller to business partners by the IDs it assigned
    to itself.

    The seller's party ID, global ID and legal organization ID are compared
    (trimmed, case-insensitive) against each partner's supplier catalog
    number, federal tax ID and VAT number. Only a unique hit is decisive.
    """

    def match(self, seller: SellerQuery, partners: Iterable[BusinessPartner]) -> list[BusinessPartner]:
        """
        Find every partner sharing an identifier with the seller.

        Returns one entry per distinct card code (last write wins).
        """
        seller_ids = set(seller.supplier_ids())
        if not seller_ids:
            return []

        matches: dict[str, BusinessPartner] = {}
        for partner in partners:
            if not partner.card_code:
                continue
            partner_ids = {
                value.strip().lower()
                for value in (partner.supplier_catalog_no, partner.federal_tax_id, partner.vat_id)
                if value and value.strip()
            }
            if partner_ids & seller_ids:
                matches[partner.card_code] = partner

        return list(matches.values())


class CandidateScorer:
    """
    Scores catalog candidates against a query.

    score = min(1.0, cosine_weight * cosine + boosts)

    Boosts come from the adapter's signal table. Each signal fires at most
    once and the sum is only capped by the final min(1.0, ...).
    """

    def __init__(self, adapter: EntityAdapter, cosine_weight: float = 0.70):
        self.adapter = adapter
        self.cosine_weight = cosine_weight

    def score(
        self,
        query,
        query_vector: Sequence[float],
        candidate,
        candidate_vector: Sequence[float],
    ) -> ScoredCandidate:
        """Score one candidate with a known embedding."""
        cosine = cosine_similarity(query_vector, candidate_vector)
        boost = 0.0
        reasons = [f"cos={cosine:.3f}"]

        for signal in self.adapter.signals:
            hit = signal.evaluate(query, candidate)
            if hit:
                weight, reason = hit
                boost += weight
                reasons.append(reason)

        final = min(1.0, self.cosine_weight * cosine + boost)
        return ScoredCandidate(
            code=self.adapter.candidate_code(candidate),
            score=final,
            reasons=reasons,
        )

    def score_all(
        self,
        query,
        query_vector: Sequence[float],
        candidates: Iterable,
        embedding_index: Mapping[str, Sequence[float]],
    ) -> list[ScoredCandidate]:
        """Score every candidate that has a usable embedding, in source order."""
        scored = []
        for candidate in candidates:
            vector = usable_embedding(self.adapter.candidate_code(candidate), embedding_index)
            if vector is None:
                continue
            scored.append(self.score(query, query_vector, candidate, vector))
        return scored
