"""
Similarity functions: cosine over embeddings, token-set (Jaccard) over names.
"""

from typing import Sequence

import numpy as np


def cosine_similarity(v1: Sequence[float], v2: Sequence[float]) -> float:
    """
    Cosine similarity of two embedding vectors.

    Vectors of different length are compared over the shorter length. Returns
    0.0 when either vector has zero norm. The result is not clamped: unrelated
    texts can produce a negative value.
    """
    length = min(len(v1), len(v2))
    if length == 0:
        return 0.0

    a = np.asarray(v1[:length], dtype=np.float64)
    b = np.asarray(v2[:length], dtype=np.float64)

    n1 = float(np.dot(a, a))
    n2 = float(np.dot(b, b))
    if n1 == 0 or n2 == 0:
        return 0.0

    return float(np.dot(a, b) / (np.sqrt(n1) * np.sqrt(n2)))


def token_set_similarity(a: str, b: str) -> float:
    """
    Jaccard index of the whitespace tokens of two normalized strings.

    Two blank strings are identical (1.0).
    """
    tokens_a = set((a or "").split())
    tokens_b = set((b or "").split())
    if not tokens_a and not tokens_b:
        return 1.0

    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)
