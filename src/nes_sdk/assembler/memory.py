"""
Assembled Image
===============

The output buffer of one assembly: ``size`` bytes covering the address
window ``[start, start + size)``. The assembler walks ``pointer`` while it
assigns addresses, then writes bytes at those addresses.

Addresses outside the window may still be allocated (zero-page variables
declared with ``.org $0000`` / ``.ds``), but writing to them raises
MemoryRangeError. Nothing wraps.
"""

from typing import Optional

from nes_sdk.errors import MemoryRangeError
from nes_sdk.disassembler.mos6502 import MOS6502Disassembler


class AssembledImage:
    """
    A fixed-size memory window with a write cursor.

    Attributes:
        start: First address of the window
        size: Number of bytes in the window
        data: The window contents, zero-filled
        pointer: Current allocation address
    """

    def __init__(self, start: int = 0x8000, size: int = 0x8000):
        if start < 0 or size < 0:
            raise ValueError(f"invalid image window: start={start}, size={size}")
        self.start = start
        self.size = size
        self.data = bytearray(size)
        self.pointer = start
        self._written: set[int] = set()
        self._highest: Optional[int] = None

    @property
    def end(self) -> int:
        """One past the last address of the window."""
        return self.start + self.size

    @property
    def highest_written(self) -> Optional[int]:
        """Highest address written so far, or None."""
        return self._highest

    def __contains__(self, address: int) -> bool:
        return self.start <= address < self.end

    # =========================================================================
    # Access
    # =========================================================================

    def write(self, address: int, value: int) -> None:
        """
        Store one byte.

        Raises:
            MemoryRangeError: If the address is outside the window
        """
        if address not in self:
            raise MemoryRangeError(address, self.start, self.size)
        self.data[address - self.start] = value & 0xFF
        self._written.add(address)
        if self._highest is None or address > self._highest:
            self._highest = address

    def write_word(self, address: int, value: int) -> None:
        """Store a little-endian word."""
        self.write(address, value & 0xFF)
        self.write(address + 1, (value >> 8) & 0xFF)

    def read(self, address: int) -> int:
        if address not in self:
            raise MemoryRangeError(address, self.start, self.size)
        return self.data[address - self.start]

    def is_written(self, address: int) -> bool:
        return address in self._written

    # =========================================================================
    # Output
    # =========================================================================

    def to_bytes(self, trim: bool = False) -> bytes:
        """
        The window contents.

        Args:
            trim: Stop after the highest written byte instead of returning
                  the whole window
        """
        if not trim:
            return bytes(self.data)
        if self._highest is None:
            return b""
        return bytes(self.data[:self._highest - self.start + 1])

    def disassemble(self, from_address: Optional[int] = None, to_address: Optional[int] = None) -> dict[int, str]:
        """
        Disassemble part of the image.

        Args:
            from_address: First address (default: window start)
            to_address: Address to stop before (default: one past the
                        highest written byte)

        Returns:
            Address -> formatted instruction, in address order
        """
        if from_address is None:
            from_address = self.start
        if to_address is None:
            to_address = self._highest + 1 if self._highest is not None else self.start
        return MOS6502Disassembler().disassemble_to_map(
            bytes(self.data), self.start, from_address, to_address
        )
