"""
NES SDK CPU Package
===================

CPU architecture definitions shared by the assembler and disassembler.

Modules:
    mos6502: The 6502 instruction set, addressing modes, operand value
             ranges and opcode lookup helpers.

Usage:
    from nes_sdk.cpu import AddressingMode, get_instruction_info
"""

from nes_sdk.cpu.mos6502 import (
    # Core types
    AddressingMode,
    InstructionInfo,
    # Operand ranges
    BYTE_RANGE,
    WORD_RANGE,
    # Instruction database
    OPCODE_TABLE,
    DECODE_TABLE,
    MNEMONICS,
    BRANCH_INSTRUCTIONS,
    # Lookup functions
    get_instruction_info,
    get_valid_modes,
    is_valid_instruction,
    is_branch_instruction,
    decode_opcode,
)

__all__ = [
    "AddressingMode",
    "InstructionInfo",
    "BYTE_RANGE",
    "WORD_RANGE",
    "OPCODE_TABLE",
    "DECODE_TABLE",
    "MNEMONICS",
    "BRANCH_INSTRUCTIONS",
    "get_instruction_info",
    "get_valid_modes",
    "is_valid_instruction",
    "is_branch_instruction",
    "decode_opcode",
]
