from typing import List

from .errors import ConfigurationError
from .random_source import RandomSource


class SeriesCountPartitioner:
    """
    Splits a study's instance count across its series.

    Two policies:
      - partition: one total is cut at random points into positive parts
        that sum exactly to the total.
      - equal: every series receives the same count.
    """

    def __init__(self, rng: RandomSource):
        self.rng = rng

    def partition(self, total: int, series_count: int) -> List[int]:
        """
        Returns min(series_count, total) positive integers summing to `total`.

        Raises:
            ConfigurationError: If total < 1.
        """
        if total < 1:
            raise ConfigurationError(f"Study instance total must be >= 1, got {total}")

        series_count = min(max(1, series_count), total)
        if series_count == 1:
            return [total]

        cuts = set()
        while len(cuts) < series_count - 1:
            cuts.add(self.rng.sample_range(1, total - 1))

        bounds = [0] + sorted(cuts) + [total]
        return [bounds[i + 1] - bounds[i] for i in range(series_count)]

    @staticmethod
    def equal(count: int, series_count: int) -> List[int]:
        """Assigns `count` instances to each of `series_count` series."""
        if count < 1:
            raise ConfigurationError(f"Series instance count must be >= 1, got {count}")
        return [count] * max(1, series_count)

    def split(self, policy: str, count: int, series_count: int) -> List[int]:
        if policy == "equal":
            return self.equal(count, series_count)
        return self.partition(count, series_count)
