"""
6502 Cross-Assembler
====================

Assembles 6502 source files (as run by the NES/Famicom 2A03) into a binary
image, a symbol table and a disassembly map.

Main Components
---------------
- **Assembler**: Runs the four passes over a set of source files
- **ExpressionEvaluator**: Evaluates operand expressions
- **select_mode**: Picks the addressing mode of an instruction operand
- **SymbolTable**: File-local and global labels and equivalences
- **MacroTable**: Macro definitions and their expansion
- **AssembledImage**: The output buffer
- **AssemblerConfig**: Instruction set, directive registry and limits

Assembly Process
----------------
1. Comments are stripped and every line is classified (equivalence,
   label, directive, instruction or macro invocation).
2. Pass 1 declares names and sizes directives.
3. Pass 2 expands macro invocations.
4. Pass 3 assigns addresses and addressing modes.
5. Pass 4 evaluates operands and writes the bytes.

Example Usage
-------------
>>> from nes_sdk.assembler import assemble
>>> image = assemble(0x8000, 0x8000, {"main.asm": "test: jmp test"})
>>> image.to_bytes(trim=True)
b'L\\x00\\x80'

Supported Features
------------------
- The 151 official 6502 opcodes and all twelve addressing modes
- Decimal, $hex, %binary, @octal and 'c' character literals
- Byte selectors (<, >, .b) and word forcing (.w)
- Labels local to their file, exported with .globl
- Equivalences (NAME = expression) with forward references
- Macros with % parameters and per-expansion label suffixes
- Directives: .org .db .dw .ds .globl .macro .endmacro
"""

from nes_sdk.assembler.assembler import Assembler, assemble
from nes_sdk.assembler.addressing import MatchResult, match_mode, select_mode
from nes_sdk.assembler.config import AssemblerConfig
from nes_sdk.assembler.directives import DIRECTIVE_HANDLERS, DirectiveHandler, DirectiveKind
from nes_sdk.assembler.expressions import (
    Deferred,
    ExpressionEvaluator,
    Resolved,
    Value,
    evaluate,
    parse_number,
)
from nes_sdk.assembler.macros import MacroDefinition, MacroTable
from nes_sdk.assembler.memory import AssembledImage
from nes_sdk.assembler.symbols import SymbolTable, is_label_legal

__all__ = [
    # Main class and functions
    "Assembler",
    "assemble",
    "AssembledImage",
    "AssemblerConfig",
    # Expressions
    "ExpressionEvaluator",
    "Value",
    "Resolved",
    "Deferred",
    "evaluate",
    "parse_number",
    # Addressing modes
    "MatchResult",
    "match_mode",
    "select_mode",
    # Symbols
    "SymbolTable",
    "is_label_legal",
    # Directives and macros
    "DirectiveKind",
    "DirectiveHandler",
    "DIRECTIVE_HANDLERS",
    "MacroDefinition",
    "MacroTable",
]
