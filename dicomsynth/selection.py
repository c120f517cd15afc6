from typing import List, Optional, Sequence

from .configuration import ExamMixConfig
from .random_source import RandomSource

PAIR_A = "PAIR_A"
PAIR_B = "PAIR_B"
MIXED = "MIXED"


class WeightedBucketSelector:
    """
    Chooses one of three buckets (pair A, pair B, mixed) from integer weights.

    A roll is drawn uniformly in [0, total) and mapped onto the partitions in
    fixed order: pair A first, then pair B, then mixed. Negative weights count
    as 0; a zero total behaves as weight 1 on the mixed bucket.
    """

    def __init__(self, pair_a_weight: int, pair_b_weight: int, mixed_weight: int):
        self.pair_a_weight = max(0, pair_a_weight)
        self.pair_b_weight = max(0, pair_b_weight)
        self.mixed_weight = max(0, mixed_weight)

    @property
    def total(self) -> int:
        return max(1, self.pair_a_weight + self.pair_b_weight + self.mixed_weight)

    def bucket_for(self, roll: int) -> str:
        if roll < self.pair_a_weight:
            return PAIR_A
        if roll < self.pair_a_weight + self.pair_b_weight:
            return PAIR_B
        return MIXED

    def select(self, rng: RandomSource) -> str:
        return self.bucket_for(rng.below(self.total))


def normalize_pool(modalities: Optional[Sequence[str]]) -> List[str]:
    """Drops blanks and case-insensitive duplicates, keeping first occurrences."""
    seen = set()
    pool = []
    for m in modalities or []:
        if not m or not m.strip():
            continue
        key = m.strip().upper()
        if key in seen:
            continue
        seen.add(key)
        pool.append(m.strip())
    return pool


class ExamMixSelector:
    """
    Picks the distinct modality set of one exam.

    Exact pair buckets apply only when the requested count k is 2 and both
    pair modalities are in the pool; every other case uses the mixed policy
    (shuffle the pool, take the first k). Bucket shares converge to the
    configured weights over many exams, not per exam.
    """

    def __init__(self, modalities: Sequence[str], mix: Optional[ExamMixConfig] = None):
        mix = mix or ExamMixConfig()
        self.pool = normalize_pool(modalities)
        self.pairs = {PAIR_A: list(mix.pair_a), PAIR_B: list(mix.pair_b)}
        self.selector = WeightedBucketSelector(mix.pair_a_percent, mix.pair_b_percent, mix.mixed_percent)

    def _pool_has(self, modality: str) -> bool:
        return any(m.upper() == modality.upper() for m in self.pool)

    def choose(self, rng: RandomSource, k: int) -> List[str]:
        if not self.pool:
            return ["CT"]

        bucket = self.selector.select(rng)
        pair = self.pairs.get(bucket)
        if pair and k == 2 and all(self._pool_has(m) for m in pair):
            return list(pair)

        return self.choose_mixed(rng, k)

    def choose_mixed(self, rng: RandomSource, k: int) -> List[str]:
        pool = list(self.pool)
        rng.shuffle(pool)
        k = min(max(1, k), len(pool))
        return pool[:k]
