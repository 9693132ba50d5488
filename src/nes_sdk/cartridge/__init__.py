"""
NES SDK Cartridge Helpers
=========================

Numeric helpers for packaging an assembled image into cartridge banks.

Usage:
    from nes_sdk.cartridge import banks_for_size

    banks = banks_for_size(len(prg), bank_size=16 * 1024)
    print(f"{banks.count} PRG banks")
"""

from .banks import (
    BankCandidate,
    banks_for_size,
    find_best_match,
    for_each,
    get_all,
    iter_candidates,
)

__all__ = [
    "BankCandidate",
    "banks_for_size",
    "find_best_match",
    "for_each",
    "get_all",
    "iter_candidates",
]
