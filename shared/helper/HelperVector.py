"""Vector math for the in-memory reference stores."""

import math


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors. Returns 0.0 for empty, mismatched or zero vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = 0.0
    mag_a = 0.0
    mag_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        mag_a += x * x
        mag_b += y * y
    den = math.sqrt(mag_a) * math.sqrt(mag_b)
    if den == 0:
        return 0.0
    return dot / den


def rank_key(score: float, tie_break: object) -> tuple[float, str]:
    """Sort key for descending score with a stable tie-break on the given id."""
    return (-score, str(tie_break))
