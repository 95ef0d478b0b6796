"""
Ranking and the accept/defer decision gate.
"""

from dataclasses import dataclass, field
from typing import Optional

from matching.entity_resolution.matchers import ScoredCandidate


@dataclass
class GateResult:
    """Outcome of the decision gate over one ranked candidate list."""
    accepted: bool
    ranked: list[ScoredCandidate] = field(default_factory=list)
    top: list[ScoredCandidate] = field(default_factory=list)
    delta: float = 0.0

    @property
    def best(self) -> Optional[ScoredCandidate]:
        return self.ranked[0] if self.ranked else None


def rank(scored: list[ScoredCandidate]) -> list[ScoredCandidate]:
    """Sort by score descending. Stable: equal scores keep source order."""
    return sorted(scored, key=lambda s: s.score, reverse=True)


class DecisionGate:
    """
    Accept the best candidate on a high score, or on a good score with a
    clear margin over the runner-up. Everything else is indecisive and goes
    to arbitration with the top ``top_k`` candidates.
    """

    def __init__(
        self,
        accept_threshold: float = 0.85,
        margin_threshold: float = 0.75,
        min_delta: float = 0.10,
        top_k: int = 3,
    ):
        self.accept_threshold = accept_threshold
        self.margin_threshold = margin_threshold
        self.min_delta = min_delta
        self.top_k = top_k

    def evaluate(self, scored: list[ScoredCandidate]) -> GateResult:
        ranked = rank(scored)
        top = ranked[: self.top_k]
        if not ranked:
            return GateResult(accepted=False)

        best = ranked[0]
        second_score = ranked[1].score if len(ranked) > 1 else 0.0
        delta = best.score - second_score

        accepted = best.score >= self.accept_threshold or (
            best.score >= self.margin_threshold and delta >= self.min_delta
        )
        return GateResult(accepted=accepted, ranked=ranked, top=top, delta=delta)
