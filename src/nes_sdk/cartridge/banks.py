"""
Bank-Size Finder
================

Cartridge program memory is split into fixed-size banks, and mappers only
accept bank counts of the form ``multiplier * 2**exponent`` with an odd
multiplier of 1, 3, 5 or 7. This module lists every such count that fits
in 64 bits and finds the smallest one that covers a requested size.

    >>> find_best_match(9)
    (BankCandidate(count=10, multiplier=5, exponent=1), 8)
    >>> banks_for_size(40 * 1024, bank_size=16 * 1024)
    BankCandidate(count=3, multiplier=3, exponent=0)
"""

from bisect import bisect_left
from dataclasses import dataclass
from typing import Callable, Iterator

MULTIPLIERS = (1, 3, 5, 7)
MAX_EXPONENT = 63
_LIMIT = 1 << 64


@dataclass(frozen=True)
class BankCandidate:
    """A bank count: count = multiplier * 2**exponent."""
    count: int
    multiplier: int
    exponent: int


def _build_candidates() -> tuple[BankCandidate, ...]:
    candidates = [
        BankCandidate(multiplier << exponent, multiplier, exponent)
        for exponent in range(MAX_EXPONENT + 1)
        for multiplier in MULTIPLIERS
        if multiplier << exponent < _LIMIT
    ]
    candidates.sort(key=lambda candidate: candidate.count)
    return tuple(candidates)


_CANDIDATES = _build_candidates()
_COUNTS = tuple(candidate.count for candidate in _CANDIDATES)


def find_best_match(requested: int) -> tuple[BankCandidate, int]:
    """
    Find the smallest candidate whose count is at least ``requested``.

    Past the largest candidate, the largest candidate is returned even
    though it does not cover the request; callers check coverage.

    Returns:
        (candidate, index into get_all())

    Raises:
        ValueError: If requested is negative
    """
    if requested < 0:
        raise ValueError(f"requested bank count must not be negative, got {requested}")
    index = bisect_left(_COUNTS, requested)
    if index >= len(_CANDIDATES):
        index = len(_CANDIDATES) - 1
    return _CANDIDATES[index], index


def for_each(consumer: Callable[[BankCandidate], None]) -> None:
    """Call ``consumer`` with every candidate, smallest first."""
    for candidate in _CANDIDATES:
        consumer(candidate)


def iter_candidates() -> Iterator[BankCandidate]:
    return iter(_CANDIDATES)


def get_all() -> tuple[BankCandidate, ...]:
    return _CANDIDATES


def banks_for_size(size: int, bank_size: int) -> BankCandidate:
    """
    Bank count needed to hold ``size`` bytes in banks of ``bank_size`` bytes.

    Raises:
        ValueError: If size is negative or bank_size is not positive
    """
    if bank_size <= 0:
        raise ValueError(f"bank size must be positive, got {bank_size}")
    if size < 0:
        raise ValueError(f"size must not be negative, got {size}")
    candidate, _ = find_best_match(-(-size // bank_size))
    return candidate
