"""
Language-model arbitration for indecisive matches.

The model sees the query's semantic summary and up to three ranked
candidates, and answers with a single code. The answer is taken as-is: it is
not checked against the candidate codes.
"""

from typing import Mapping, Optional, Protocol, Sequence

from matching.entity_resolution.adapters import EntityAdapter
from matching.entity_resolution.matchers import ScoredCandidate


class Embedder(Protocol):
    """Turns text into an embedding vector."""

    async def embed(self, text: str) -> Sequence[float]:
        ...


class Completer(Protocol):
    """Answers a single prompt with text."""

    async def complete(self, prompt: str) -> Optional[str]:
        ...


def build_prompt(
    adapter: EntityAdapter,
    query_description: str,
    top: Sequence[ScoredCandidate],
    candidates_by_code: Mapping[str, object],
    fallback_code: str,
) -> str:
    """Build the arbitration prompt over the ranked top candidates."""
    lines = []
    for rank, scored in enumerate(top, 1):
        candidate = candidates_by_code.get(scored.code)
        summary = adapter.describe_candidate(candidate) if candidate is not None else ""
        lines.append(f"{rank}. {scored.code}: {summary}")

    return (
        f"There is a {adapter.query_label} from an invoice (semantic summary):\n"
        f"\"{query_description}\"\n\n"
        f"These are the {len(top)} most similar {adapter.catalog_label} from the catalog "
        f"({adapter.catalog_legend}):\n"
        + "\n".join(lines)
        + "\n\n"
        f"Only return the {adapter.code_label} of the single best match.\n"
        f"If there is none, return '{fallback_code}'."
    )


class Arbiter:
    """Delegates an indecisive match to a completion oracle. One call, no retry."""

    def __init__(self, adapter: EntityAdapter, completer: Completer):
        self.adapter = adapter
        self.completer = completer

    async def arbitrate(
        self,
        query_description: str,
        top: Sequence[ScoredCandidate],
        candidates_by_code: Mapping[str, object],
        fallback_code: str,
    ) -> Optional[str]:
        """
        Ask the model for the best code.

        Returns the trimmed answer, or None for an empty shortlist or a
        blank answer.
        """
        if not top:
            return None

        prompt = build_prompt(
            self.adapter, query_description, top, candidates_by_code, fallback_code
        )
        answer = await self.completer.complete(prompt)
        if answer is None:
            return None

        pick = str(answer).strip()
        return pick or None
