from collections import Counter

import pytest

from dicomsynth.configuration import ExamMixConfig
from dicomsynth.random_source import RandomSource
from dicomsynth.selection import (
    ExamMixSelector, WeightedBucketSelector, normalize_pool, PAIR_A, PAIR_B, MIXED,
)


class TestWeightedBucketSelector:

    def test_roll_boundaries(self):
        selector = WeightedBucketSelector(70, 10, 20)
        assert selector.bucket_for(0) == PAIR_A
        assert selector.bucket_for(69) == PAIR_A
        assert selector.bucket_for(70) == PAIR_B
        assert selector.bucket_for(79) == PAIR_B
        assert selector.bucket_for(80) == MIXED
        assert selector.bucket_for(99) == MIXED

    def test_negative_weights_count_as_zero(self):
        selector = WeightedBucketSelector(-5, 10, 0)
        assert selector.total == 10
        assert selector.bucket_for(0) == PAIR_B

    def test_zero_total_falls_through_to_mixed(self, rng):
        selector = WeightedBucketSelector(0, 0, 0)
        assert selector.total == 1
        assert all(selector.select(rng) == MIXED for _ in range(20))

    def test_weights_need_not_sum_to_100(self):
        rng = RandomSource(3)
        selector = WeightedBucketSelector(1, 1, 2)
        counts = Counter(selector.select(rng) for _ in range(20000))
        assert counts[MIXED] / 20000 == pytest.approx(0.5, abs=0.02)


def test_normalize_pool_drops_blanks_and_duplicates():
    assert normalize_pool(["CT", " ", "", "ct", "PT", None, "MR "]) == ["CT", "PT", "MR"]
    assert normalize_pool(None) == []


class TestExamMixSelector:

    def test_mix_converges_to_weights(self):
        """Exact pair frequencies include the mixed bucket's share of each ordering."""
        mix = ExamMixConfig(pair_a=["CT", "PT"], pair_b=["CT", "NM"],
                            pair_a_percent=70, pair_b_percent=10, mixed_percent=20)
        selector = ExamMixSelector(["CT", "PT", "MR", "NM"], mix)
        rng = RandomSource(2024)

        n = 20000
        counts = Counter(tuple(selector.choose(rng, 2)) for _ in range(n))

        # Mixed yields each of the 12 ordered pairs with probability 1/12.
        assert counts[("CT", "PT")] / n == pytest.approx(0.70 + 0.20 / 12, abs=0.02)
        assert counts[("CT", "NM")] / n == pytest.approx(0.10 + 0.20 / 12, abs=0.02)

    def test_all_mixed_uses_whole_pool(self):
        selector = ExamMixSelector(["CT", "PT", "MR"], ExamMixConfig())
        rng = RandomSource(5)
        seen = set()
        for _ in range(500):
            chosen = selector.choose(rng, 1)
            assert len(chosen) == 1
            seen.update(chosen)
        assert seen == {"CT", "PT", "MR"}

    def test_pair_requires_k_of_two(self):
        mix = ExamMixConfig(pair_a_percent=100, pair_b_percent=0, mixed_percent=0)
        selector = ExamMixSelector(["CT", "PT", "MR", "NM"], mix)
        rng = RandomSource(1)
        assert selector.choose(rng, 2) == ["CT", "PT"]
        chosen = selector.choose(rng, 3)
        assert len(chosen) == 3 and len(set(chosen)) == 3

    def test_pair_requires_both_modalities_in_pool(self):
        mix = ExamMixConfig(pair_a_percent=100, pair_b_percent=0, mixed_percent=0)
        selector = ExamMixSelector(["CT", "MR"], mix)
        rng = RandomSource(1)
        for _ in range(50):
            assert set(selector.choose(rng, 2)) == {"CT", "MR"}

    def test_pair_membership_is_case_insensitive(self):
        mix = ExamMixConfig(pair_a_percent=100, pair_b_percent=0, mixed_percent=0)
        selector = ExamMixSelector(["ct", "pt"], mix)
        assert selector.choose(RandomSource(1), 2) == ["CT", "PT"]

    def test_k_clamped_to_pool(self):
        selector = ExamMixSelector(["CT", "PT"], ExamMixConfig())
        rng = RandomSource(8)
        assert sorted(selector.choose(rng, 6)) == ["CT", "PT"]
        assert len(selector.choose(rng, 0)) == 1

    def test_mixed_results_are_distinct(self):
        selector = ExamMixSelector(["CT", "PT", "MR", "NM", "XA", "CR", "SR"], ExamMixConfig())
        rng = RandomSource(11)
        for _ in range(200):
            chosen = selector.choose(rng, rng.sample_range(1, 6))
            assert len(chosen) == len(set(chosen))

    def test_empty_pool_returns_ct(self, rng):
        selector = ExamMixSelector([" ", ""], ExamMixConfig())
        assert selector.choose(rng, 3) == ["CT"]
