# =============================================================================
# test_banks.py - Bank-Size Finder Tests
# =============================================================================
# Tests for the mapper-compatible bank count search.
#
# Test coverage includes:
#   - Smallest covering candidate for every request up to 10000
#   - Exact matches and the reported index
#   - Requests past the largest candidate
#   - Candidate list ordering and shape
#   - Byte size to bank count conversion
# =============================================================================

import pytest
from nes_sdk.cartridge import (
    BankCandidate,
    banks_for_size,
    find_best_match,
    for_each,
    get_all,
    iter_candidates,
)
from nes_sdk.cartridge.banks import MULTIPLIERS


class TestFindBestMatch:
    """Test find_best_match."""

    def test_worked_example(self):
        """9 banks round up to 10 = 5 * 2^1."""
        assert find_best_match(9) == (BankCandidate(count=10, multiplier=5, exponent=1), 8)

    def test_exact_match(self):
        """A request that is itself a candidate is returned unchanged."""
        candidate, _ = find_best_match(12)
        assert candidate == BankCandidate(12, 3, 2)

    def test_zero(self):
        """Zero banks round up to the smallest candidate."""
        assert find_best_match(0) == (BankCandidate(1, 1, 0), 0)

    def test_smallest_covering_candidate(self):
        """For every request the result covers it and its predecessor does not."""
        candidates = get_all()
        for requested in range(10001):
            candidate, index = find_best_match(requested)
            assert candidates[index] is candidate
            assert candidate.count >= requested
            if index > 0:
                assert candidates[index - 1].count < requested

    def test_past_largest_candidate(self):
        """Requests beyond 64 bits get the largest candidate."""
        candidate, index = find_best_match(2 ** 64)
        assert index == len(get_all()) - 1
        assert candidate == BankCandidate(7 << 61, 7, 61)

    def test_negative(self):
        """Negative requests are rejected."""
        with pytest.raises(ValueError):
            find_best_match(-1)


class TestCandidates:
    """Test the candidate list."""

    def test_for_each_order_and_shape(self):
        """Candidates come smallest first and are multiplier * 2**exponent."""
        seen = []
        for_each(seen.append)
        assert len(seen) == 251
        assert [c.count for c in seen] == sorted({c.count for c in seen})
        for candidate in seen:
            assert candidate.multiplier in MULTIPLIERS
            assert candidate.count == candidate.multiplier << candidate.exponent
            assert candidate.count < 2 ** 64

    def test_iter_matches_get_all(self):
        """Both accessors list the same candidates."""
        assert list(iter_candidates()) == list(get_all())

    def test_first_candidates(self):
        """Small counts skip 9."""
        assert [c.count for c in get_all()[:9]] == [1, 2, 3, 4, 5, 6, 7, 8, 10]


class TestBanksForSize:
    """Test banks_for_size."""

    @pytest.mark.parametrize("size,expected", [
        (0, BankCandidate(1, 1, 0)),
        (16 * 1024, BankCandidate(1, 1, 0)),
        (16 * 1024 + 1, BankCandidate(2, 1, 1)),
        (40 * 1024, BankCandidate(3, 3, 0)),
        (9 * 16 * 1024, BankCandidate(10, 5, 1)),
    ])
    def test_sizes(self, size, expected):
        """Sizes round up to whole banks, then to a candidate."""
        assert banks_for_size(size, 16 * 1024) == expected

    @pytest.mark.parametrize("size,bank_size", [(1, 0), (1, -1), (-1, 16)])
    def test_bad_arguments(self, size, bank_size):
        """Bad sizes raise ValueError."""
        with pytest.raises(ValueError):
            banks_for_size(size, bank_size)
