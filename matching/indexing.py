"""
Catalog embedding index.

Embeds the semantic description of every catalog entry once, so a whole
invoice can be resolved against the same in-memory index.
"""

import logging
import time
from typing import Iterable, Sequence

from matching.entity_resolution.arbitration import Embedder

logger = logging.getLogger(__name__)


async def build_embedding_index(candidates: Iterable, embedder: Embedder) -> dict[str, Sequence[float]]:
    """
    Build a ``code -> embedding`` index for catalog entries.

    Entries without a code or with an empty description are skipped.
    Duplicate codes keep the last entry's embedding. Embedder errors
    propagate: an index that silently misses entries would skew every match.

    Args:
        candidates: BusinessPartner or CatalogItem records
        embedder: Embedding oracle

    Returns:
        Dict mapping candidate code to its embedding vector
    """
    t0 = time.time()
    index: dict[str, Sequence[float]] = {}
    skipped = 0

    for candidate in candidates:
        code = candidate.code
        description = candidate.semantic_description()
        if not code or not description:
            skipped += 1
            continue
        index[code] = await embedder.embed(description)

    logger.info(
        "Embedded %d catalog entries (%d skipped) in %.1fs",
        len(index), skipped, time.time() - t0,
    )
    return index
