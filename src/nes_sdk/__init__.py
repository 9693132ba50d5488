"""
NES SDK - 6502 Cross-Assembler for the NES/Famicom
==================================================

This package assembles 6502 source code (the CPU core of the NES 2A03)
into a binary image ready to be packaged into cartridge PRG banks.

Main Components
---------------
- **assembler**: Four-pass 6502 assembler (nesasm)
    Expressions, addressing-mode selection, file-local and global labels,
    directives and macros

- **disassembler**: 6502 disassembler
    Turns machine code back into tagged instruction text

- **cartridge**: Bank-size finder
    Smallest mapper-compatible bank count for an image

Quick Start
-----------
Assemble a program:
    >>> from nes_sdk import assemble
    >>> image = assemble(0x8000, 0x8000, {"main.asm": "reset: jmp reset"})
    >>> image.disassemble()
    {32768: '$8000:  JMP  $8000 {ABS}'}

Or use the command-line tool:
    $ nesasm main.asm -o game.prg -s game.sym
"""

__version__ = "0.1.0"

# =============================================================================
# Public API Exports
# =============================================================================

from nes_sdk.assembler import Assembler, AssembledImage, AssemblerConfig, assemble
from nes_sdk.cartridge import BankCandidate, banks_for_size, find_best_match
from nes_sdk.disassembler import MOS6502Disassembler
from nes_sdk.errors import (
    NESError,
    AssemblerError,
    AssemblySyntaxError,
    UndefinedSymbolError,
    DuplicateSymbolError,
    AddressingModeError,
    BranchRangeError,
    ExpressionError,
    DirectiveError,
    MacroError,
    MemoryRangeError,
    AssemblyFailedError,
    SourceLocation,
)

__all__ = [
    "__version__",
    # Assembler
    "Assembler",
    "AssembledImage",
    "AssemblerConfig",
    "assemble",
    # Disassembler
    "MOS6502Disassembler",
    # Cartridge
    "BankCandidate",
    "banks_for_size",
    "find_best_match",
    # Errors
    "NESError",
    "AssemblerError",
    "AssemblySyntaxError",
    "UndefinedSymbolError",
    "DuplicateSymbolError",
    "AddressingModeError",
    "BranchRangeError",
    "ExpressionError",
    "DirectiveError",
    "MacroError",
    "MemoryRangeError",
    "AssemblyFailedError",
    "SourceLocation",
]
