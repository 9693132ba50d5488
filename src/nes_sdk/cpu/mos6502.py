"""
MOS 6502 Instruction Set Definition
===================================

This module defines the official 6502 instruction set (56 mnemonics,
151 opcodes) as executed by the NES/Famicom 2A03. The 2A03 drops decimal
mode but keeps the opcodes, so CLD/SED assemble normally.

The 6502 is little-endian: word operands are stored low byte first.

Addressing Modes
----------------
| Mode        | Syntax      | Operand | Example          |
|-------------|-------------|---------|------------------|
| IMPLIED     | (none), A   | 0 bytes | ``asl a``        |
| IMMEDIATE   | #expr       | 1 byte  | ``lda #$01``     |
| ZERO_PAGE   | expr        | 1 byte  | ``lda $10``      |
| ZERO_PAGE_X | expr,x      | 1 byte  | ``lda $10,x``    |
| ZERO_PAGE_Y | expr,y      | 1 byte  | ``ldx $10,y``    |
| RELATIVE    | expr        | 1 byte  | ``bne loop``     |
| ABSOLUTE    | expr        | 2 bytes | ``jmp $8000``    |
| ABSOLUTE_X  | expr,x      | 2 bytes | ``lda $0300,x``  |
| ABSOLUTE_Y  | expr,y      | 2 bytes | ``lda $0300,y``  |
| INDIRECT    | (expr)      | 2 bytes | ``jmp ($fffc)``  |
| INDIRECT_X  | (expr,x)    | 1 byte  | ``lda ($20,x)``  |
| INDIRECT_Y  | (expr),y    | 1 byte  | ``lda ($20),y``  |

Reference
---------
- MOS MCS6500 Microcomputer Family Programming Manual
- https://www.nesdev.org/wiki/CPU
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


# =============================================================================
# Value Ranges
# =============================================================================
# A byte operand may be written signed or unsigned, same for words.

BYTE_RANGE = range(-128, 256)
WORD_RANGE = range(-32768, 65536)


# =============================================================================
# Addressing Mode Enumeration
# =============================================================================

class AddressingMode(Enum):
    """6502 addressing modes."""
    IMPLIED = auto()      # No operand, or the accumulator (asl a)
    IMMEDIATE = auto()    # #byte
    ZERO_PAGE = auto()    # $00-$FF
    ZERO_PAGE_X = auto()  # zp,X
    ZERO_PAGE_Y = auto()  # zp,Y
    RELATIVE = auto()     # Branch target, encoded as signed displacement
    ABSOLUTE = auto()     # $0000-$FFFF
    ABSOLUTE_X = auto()   # abs,X
    ABSOLUTE_Y = auto()   # abs,Y
    INDIRECT = auto()     # (abs), JMP only
    INDIRECT_X = auto()   # (zp,X)
    INDIRECT_Y = auto()   # (zp),Y

    @property
    def operand_size(self) -> int:
        """Number of operand bytes following the opcode."""
        return _OPERAND_SIZES[self]

    @property
    def uses_word(self) -> bool:
        """True when the operand expression is an address that needs 16 bits."""
        return self in _WORD_MODES

    @property
    def tag(self) -> str:
        """Three-letter tag used in disassembly output."""
        return _MODE_TAGS[self]

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")


_OPERAND_SIZES = {
    AddressingMode.IMPLIED: 0,
    AddressingMode.IMMEDIATE: 1,
    AddressingMode.ZERO_PAGE: 1,
    AddressingMode.ZERO_PAGE_X: 1,
    AddressingMode.ZERO_PAGE_Y: 1,
    AddressingMode.RELATIVE: 1,
    AddressingMode.ABSOLUTE: 2,
    AddressingMode.ABSOLUTE_X: 2,
    AddressingMode.ABSOLUTE_Y: 2,
    AddressingMode.INDIRECT: 2,
    AddressingMode.INDIRECT_X: 1,
    AddressingMode.INDIRECT_Y: 1,
}

_WORD_MODES = frozenset({
    AddressingMode.RELATIVE,
    AddressingMode.ABSOLUTE,
    AddressingMode.ABSOLUTE_X,
    AddressingMode.ABSOLUTE_Y,
    AddressingMode.INDIRECT,
})

_MODE_TAGS = {
    AddressingMode.IMPLIED: "IMP",
    AddressingMode.IMMEDIATE: "IMM",
    AddressingMode.ZERO_PAGE: "ZP0",
    AddressingMode.ZERO_PAGE_X: "ZPX",
    AddressingMode.ZERO_PAGE_Y: "ZPY",
    AddressingMode.RELATIVE: "REL",
    AddressingMode.ABSOLUTE: "ABS",
    AddressingMode.ABSOLUTE_X: "ABX",
    AddressingMode.ABSOLUTE_Y: "ABY",
    AddressingMode.INDIRECT: "IND",
    AddressingMode.INDIRECT_X: "IZX",
    AddressingMode.INDIRECT_Y: "IZY",
}


# =============================================================================
# Instruction Information
# =============================================================================

@dataclass(frozen=True)
class InstructionInfo:
    """
    One encoding of an instruction.

    Attributes:
        mnemonic: Upper-case mnemonic (e.g., "LDA")
        mode: Addressing mode of this encoding
        opcode: Opcode byte
        cycles: Base cycle count (page-crossing penalties not included)
    """
    mnemonic: str
    mode: AddressingMode
    opcode: int
    cycles: int

    @property
    def size(self) -> int:
        """Total instruction size in bytes."""
        return 1 + self.mode.operand_size

    def __repr__(self) -> str:
        return (
            f"InstructionInfo({self.mnemonic} {self.mode.tag}, "
            f"opcode=${self.opcode:02X}, cycles={self.cycles})"
        )


# =============================================================================
# Opcode Table
# =============================================================================
# mnemonic -> {mode: (opcode, cycles)}
# Grouped the way the programming manual groups them.
# =============================================================================

_IMP = AddressingMode.IMPLIED
_IMM = AddressingMode.IMMEDIATE
_ZP0 = AddressingMode.ZERO_PAGE
_ZPX = AddressingMode.ZERO_PAGE_X
_ZPY = AddressingMode.ZERO_PAGE_Y
_REL = AddressingMode.RELATIVE
_ABS = AddressingMode.ABSOLUTE
_ABX = AddressingMode.ABSOLUTE_X
_ABY = AddressingMode.ABSOLUTE_Y
_IND = AddressingMode.INDIRECT
_IZX = AddressingMode.INDIRECT_X
_IZY = AddressingMode.INDIRECT_Y

_ENCODINGS: dict[str, dict[AddressingMode, tuple[int, int]]] = {
    # Load / store
    "LDA": {_IMM: (0xA9, 2), _ZP0: (0xA5, 3), _ZPX: (0xB5, 4), _ABS: (0xAD, 4),
            _ABX: (0xBD, 4), _ABY: (0xB9, 4), _IZX: (0xA1, 6), _IZY: (0xB1, 5)},
    "LDX": {_IMM: (0xA2, 2), _ZP0: (0xA6, 3), _ZPY: (0xB6, 4), _ABS: (0xAE, 4),
            _ABY: (0xBE, 4)},
    "LDY": {_IMM: (0xA0, 2), _ZP0: (0xA4, 3), _ZPX: (0xB4, 4), _ABS: (0xAC, 4),
            _ABX: (0xBC, 4)},
    "STA": {_ZP0: (0x85, 3), _ZPX: (0x95, 4), _ABS: (0x8D, 4), _ABX: (0x9D, 5),
            _ABY: (0x99, 5), _IZX: (0x81, 6), _IZY: (0x91, 6)},
    "STX": {_ZP0: (0x86, 3), _ZPY: (0x96, 4), _ABS: (0x8E, 4)},
    "STY": {_ZP0: (0x84, 3), _ZPX: (0x94, 4), _ABS: (0x8C, 4)},

    # Arithmetic and logic
    "ADC": {_IMM: (0x69, 2), _ZP0: (0x65, 3), _ZPX: (0x75, 4), _ABS: (0x6D, 4),
            _ABX: (0x7D, 4), _ABY: (0x79, 4), _IZX: (0x61, 6), _IZY: (0x71, 5)},
    "SBC": {_IMM: (0xE9, 2), _ZP0: (0xE5, 3), _ZPX: (0xF5, 4), _ABS: (0xED, 4),
            _ABX: (0xFD, 4), _ABY: (0xF9, 4), _IZX: (0xE1, 6), _IZY: (0xF1, 5)},
    "AND": {_IMM: (0x29, 2), _ZP0: (0x25, 3), _ZPX: (0x35, 4), _ABS: (0x2D, 4),
            _ABX: (0x3D, 4), _ABY: (0x39, 4), _IZX: (0x21, 6), _IZY: (0x31, 5)},
    "ORA": {_IMM: (0x09, 2), _ZP0: (0x05, 3), _ZPX: (0x15, 4), _ABS: (0x0D, 4),
            _ABX: (0x1D, 4), _ABY: (0x19, 4), _IZX: (0x01, 6), _IZY: (0x11, 5)},
    "EOR": {_IMM: (0x49, 2), _ZP0: (0x45, 3), _ZPX: (0x55, 4), _ABS: (0x4D, 4),
            _ABX: (0x5D, 4), _ABY: (0x59, 4), _IZX: (0x41, 6), _IZY: (0x51, 5)},
    "BIT": {_ZP0: (0x24, 3), _ABS: (0x2C, 4)},

    # Compare
    "CMP": {_IMM: (0xC9, 2), _ZP0: (0xC5, 3), _ZPX: (0xD5, 4), _ABS: (0xCD, 4),
            _ABX: (0xDD, 4), _ABY: (0xD9, 4), _IZX: (0xC1, 6), _IZY: (0xD1, 5)},
    "CPX": {_IMM: (0xE0, 2), _ZP0: (0xE4, 3), _ABS: (0xEC, 4)},
    "CPY": {_IMM: (0xC0, 2), _ZP0: (0xC4, 3), _ABS: (0xCC, 4)},

    # Increment / decrement
    "INC": {_ZP0: (0xE6, 5), _ZPX: (0xF6, 6), _ABS: (0xEE, 6), _ABX: (0xFE, 7)},
    "DEC": {_ZP0: (0xC6, 5), _ZPX: (0xD6, 6), _ABS: (0xCE, 6), _ABX: (0xDE, 7)},
    "INX": {_IMP: (0xE8, 2)},
    "INY": {_IMP: (0xC8, 2)},
    "DEX": {_IMP: (0xCA, 2)},
    "DEY": {_IMP: (0x88, 2)},

    # Shifts and rotates (implied form operates on A)
    "ASL": {_IMP: (0x0A, 2), _ZP0: (0x06, 5), _ZPX: (0x16, 6), _ABS: (0x0E, 6),
            _ABX: (0x1E, 7)},
    "LSR": {_IMP: (0x4A, 2), _ZP0: (0x46, 5), _ZPX: (0x56, 6), _ABS: (0x4E, 6),
            _ABX: (0x5E, 7)},
    "ROL": {_IMP: (0x2A, 2), _ZP0: (0x26, 5), _ZPX: (0x36, 6), _ABS: (0x2E, 6),
            _ABX: (0x3E, 7)},
    "ROR": {_IMP: (0x6A, 2), _ZP0: (0x66, 5), _ZPX: (0x76, 6), _ABS: (0x6E, 6),
            _ABX: (0x7E, 7)},

    # Jumps and calls
    "JMP": {_ABS: (0x4C, 3), _IND: (0x6C, 5)},
    "JSR": {_ABS: (0x20, 6)},
    "RTS": {_IMP: (0x60, 6)},
    "RTI": {_IMP: (0x40, 6)},
    "BRK": {_IMP: (0x00, 7)},

    # Branches
    "BCC": {_REL: (0x90, 2)},
    "BCS": {_REL: (0xB0, 2)},
    "BEQ": {_REL: (0xF0, 2)},
    "BNE": {_REL: (0xD0, 2)},
    "BMI": {_REL: (0x30, 2)},
    "BPL": {_REL: (0x10, 2)},
    "BVC": {_REL: (0x50, 2)},
    "BVS": {_REL: (0x70, 2)},

    # Flags
    "CLC": {_IMP: (0x18, 2)},
    "CLD": {_IMP: (0xD8, 2)},
    "CLI": {_IMP: (0x58, 2)},
    "CLV": {_IMP: (0xB8, 2)},
    "SEC": {_IMP: (0x38, 2)},
    "SED": {_IMP: (0xF8, 2)},
    "SEI": {_IMP: (0x78, 2)},

    # Transfers
    "TAX": {_IMP: (0xAA, 2)},
    "TAY": {_IMP: (0xA8, 2)},
    "TXA": {_IMP: (0x8A, 2)},
    "TYA": {_IMP: (0x98, 2)},
    "TSX": {_IMP: (0xBA, 2)},
    "TXS": {_IMP: (0x9A, 2)},

    # Stack
    "PHA": {_IMP: (0x48, 3)},
    "PHP": {_IMP: (0x08, 3)},
    "PLA": {_IMP: (0x68, 4)},
    "PLP": {_IMP: (0x28, 4)},

    "NOP": {_IMP: (0xEA, 2)},
}

OPCODE_TABLE: dict[tuple[str, AddressingMode], InstructionInfo] = {
    (mnemonic, mode): InstructionInfo(mnemonic, mode, opcode, cycles)
    for mnemonic, modes in _ENCODINGS.items()
    for mode, (opcode, cycles) in modes.items()
}

# Reverse table for the disassembler: opcode byte -> encoding
DECODE_TABLE: dict[int, InstructionInfo] = {
    info.opcode: info for info in OPCODE_TABLE.values()
}

MNEMONICS: frozenset[str] = frozenset(_ENCODINGS)

BRANCH_INSTRUCTIONS: frozenset[str] = frozenset({
    "BCC", "BCS", "BEQ", "BNE", "BMI", "BPL", "BVC", "BVS",
})


# =============================================================================
# Lookup Functions
# =============================================================================

def get_instruction_info(
    mnemonic: str,
    mode: AddressingMode
) -> Optional[InstructionInfo]:
    """
    Look up an encoding by mnemonic and addressing mode.

    Returns:
        InstructionInfo if found, None if the combination does not exist
    """
    return OPCODE_TABLE.get((mnemonic.upper(), mode))


def get_valid_modes(mnemonic: str) -> list[AddressingMode]:
    """Get every addressing mode an instruction supports, in enum order."""
    modes = _ENCODINGS.get(mnemonic.upper(), {})
    return [mode for mode in AddressingMode if mode in modes]


def is_valid_instruction(mnemonic: str) -> bool:
    return mnemonic.upper() in MNEMONICS


def is_branch_instruction(mnemonic: str) -> bool:
    return mnemonic.upper() in BRANCH_INSTRUCTIONS


def decode_opcode(opcode: int) -> Optional[InstructionInfo]:
    """Return the encoding for an opcode byte, or None for undefined opcodes."""
    return DECODE_TABLE.get(opcode & 0xFF)
