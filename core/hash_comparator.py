# core/hash_comparator.py

import logging

from core.errors import ComparisonDegraded
from core.models import ComparisonResult

logger = logging.getLogger(__name__)

HEX_DIGITS = frozenset('0123456789abcdef')


def _normalize(hash_str: str) -> str:
    normalized = hash_str.strip().lower()
    if not normalized or not set(normalized) <= HEX_DIGITS:
        raise ValueError(f"Not a hex hash: {hash_str!r}")
    return normalized


def hamming_distance(hash_a: str, hash_b: str) -> int:
    """Number of differing bits between two equal-length hex hashes"""
    a, b = _normalize(hash_a), _normalize(hash_b)
    if len(a) != len(b):
        raise ComparisonDegraded(len(a), len(b))
    return bin(int(a, 16) ^ int(b, 16)).count('1')


class HashComparator:
    """
    Hamming comparison of perceptual hashes

    Hashes of different length are left-padded with '0' up to the longer
    length and the result is flagged as degraded. Hashes written before
    zero-padding was enforced lose their leading zeros, which left-padding
    restores; a genuinely different hash scheme still compares poorly.
    With allow_padding=False the mismatch raises ComparisonDegraded.
    """

    def __init__(self,
                 max_distance: int = 64,
                 similarity_threshold: float = 0.85,
                 allow_padding: bool = True):
        self.max_distance = max_distance
        self.similarity_threshold = similarity_threshold
        self.allow_padding = allow_padding

    def compare(self, hash_a: str, hash_b: str) -> ComparisonResult:
        a, b = _normalize(hash_a), _normalize(hash_b)
        degraded = len(a) != len(b)

        if degraded:
            if not self.allow_padding:
                raise ComparisonDegraded(len(a), len(b))
            width = max(len(a), len(b))
            logger.warning(
                "Comparing hashes of length %d and %d with zero-padding",
                len(a), len(b)
            )
            a, b = a.zfill(width), b.zfill(width)

        distance = hamming_distance(a, b)
        # Padded hashes wider than the scheme can exceed max_distance
        max_distance = max(self.max_distance, len(a) * 4) if degraded else self.max_distance
        similarity = 1.0 - distance / max_distance

        return ComparisonResult(
            distance=distance,
            similarity=similarity,
            is_similar=similarity > self.similarity_threshold,
            degraded=degraded
        )
