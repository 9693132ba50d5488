"""
NES SDK Disassembler Module
===========================

Decodes 6502 machine code for listings and the disassembly map of an
assembled image.

Usage:
    from nes_sdk.disassembler import MOS6502Disassembler

    disasm = MOS6502Disassembler()
    print(disasm.disassemble_to_text(code, start_address=0x8000))
"""

from .mos6502 import MOS6502Disassembler, DisassembledInstruction

__all__ = [
    "MOS6502Disassembler",
    "DisassembledInstruction",
]
