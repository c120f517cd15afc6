import random
from typing import List, Optional, Sequence, TypeVar

T = TypeVar('T')


class RandomSource:
    """
    The single pseudo-random stream of a generation run.

    Every sampling operation in the pipeline draws from one shared instance,
    passed explicitly by reference. With a seed the whole run is reproducible;
    without one the stream is seeded from OS entropy.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def sample_range(self, min_value: int, max_value: int) -> int:
        """Returns an integer in [min_value, max_value], both inclusive."""
        return self._rng.randint(min_value, max_value)

    def below(self, n: int) -> int:
        """Returns a uniform integer in [0, n)."""
        return self._rng.randrange(n)

    def choice(self, items: Sequence[T]) -> T:
        return items[self.below(len(items))]

    def shuffle(self, items: List[T]) -> None:
        """In-place Fisher-Yates shuffle, last index first."""
        for i in range(len(items) - 1, 0, -1):
            j = self.below(i + 1)
            items[i], items[j] = items[j], items[i]

    def digits(self, count: int) -> str:
        """Returns `count` random decimal digits, zero padded."""
        if count <= 0:
            return ""
        return str(self.below(10 ** count)).zfill(count)

    def getrandbits(self, k: int) -> int:
        return self._rng.getrandbits(k)

    def __repr__(self):
        return f"<RandomSource seed={self.seed!r}>"
