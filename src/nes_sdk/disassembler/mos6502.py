"""
6502 Disassembler
=================

Turns 6502 machine code back into one line of text per instruction. This
is the inverse of the assembler's emission pass and is used for the
address -> instruction map of an assembled image.

Output Format
-------------
Every operand carries the tag of its addressing mode:

    $8000:  LDA  #$01 {IMM}
    $8002:  STA  $4015 {ABS}
    $8005:  LDX  $10, Y {ZPY}
    $8007:  BNE  $F7 [$8000] {REL}
    $8009:  RTS  {IMP}

Relative branches show the raw displacement and, in brackets, the target.
Undefined opcodes decode as ``???`` and take one byte.

Usage:
    disasm = MOS6502Disassembler()
    for instr in disasm.disassemble(code, start_address=0x8000, count=10):
        print(instr)
"""

from dataclasses import dataclass
from typing import Optional

from nes_sdk.cpu.mos6502 import AddressingMode, decode_opcode


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class DisassembledInstruction:
    """
    A single decoded instruction.

    Attributes:
        address: Address of the opcode byte
        opcode: The opcode byte
        mnemonic: Upper-case mnemonic, or "???" for undefined opcodes
        mode: Addressing mode
        operand_str: Operand text including the mode tag
        size: Bytes consumed
        raw_bytes: Opcode and operand bytes
        comment: Symbol name of the referenced address, if known
    """
    address: int
    opcode: int
    mnemonic: str
    mode: AddressingMode
    operand_str: str
    size: int
    raw_bytes: bytes
    comment: str = ""

    @property
    def text(self) -> str:
        """The line as it appears in a disassembly map."""
        return f"${self.address:04X}:  {self.mnemonic}  {self.operand_str}"

    def __str__(self) -> str:
        hex_bytes = " ".join(f"{b:02X}" for b in self.raw_bytes).ljust(8)
        asm = f"{self.mnemonic}  {self.operand_str}"
        if self.comment:
            return f"${self.address:04X}: {hex_bytes}  {asm:<24} ; {self.comment}"
        return f"${self.address:04X}: {hex_bytes}  {asm}"


# =============================================================================
# Disassembler
# =============================================================================

class MOS6502Disassembler:
    """
    Disassembler for 6502 machine code.

    Attributes:
        symbols: Address -> name, used to annotate operands
    """

    def __init__(self, symbols: Optional[dict[int, str]] = None):
        self.symbols = dict(symbols or {})

    def add_symbol(self, address: int, name: str) -> None:
        self.symbols[address] = name

    def disassemble_one(self, data: bytes, offset: int = 0, address: int = 0) -> DisassembledInstruction:
        """
        Decode the instruction at ``data[offset]``.

        Args:
            data: Byte buffer
            offset: Index of the opcode byte in ``data``
            address: Address of that byte, for display and branch targets

        Raises:
            ValueError: If offset is past the end of data
        """
        if offset >= len(data):
            raise ValueError(f"offset {offset} beyond data length {len(data)}")

        opcode = data[offset]
        info = decode_opcode(opcode)
        if info is None:
            return DisassembledInstruction(
                address, opcode, "???", AddressingMode.IMPLIED,
                "{IMP}", 1, bytes([opcode]),
            )

        size = info.size
        raw = bytes(data[offset:offset + size])
        if len(raw) < size:
            return DisassembledInstruction(
                address, opcode, info.mnemonic, info.mode, "???",
                len(raw), raw, comment="incomplete instruction",
            )

        operand_str, target = self._format_operand(info.mode, raw[1:], address + size)
        return DisassembledInstruction(
            address, opcode, info.mnemonic, info.mode, operand_str, size, raw,
            comment=self.symbols.get(target, "") if target is not None else "",
        )

    def _format_operand(self, mode: AddressingMode, operand: bytes, next_address: int) -> tuple[str, Optional[int]]:
        """Return the operand text and the address it refers to, if any."""
        tag = "{" + mode.tag + "}"

        if mode == AddressingMode.IMPLIED:
            return tag, None
        if mode == AddressingMode.IMMEDIATE:
            return f"#${operand[0]:02X} {tag}", None
        if mode == AddressingMode.RELATIVE:
            displacement = operand[0] - 256 if operand[0] >= 0x80 else operand[0]
            target = (next_address + displacement) & 0xFFFF
            return f"${operand[0]:02X} [${target:04X}] {tag}", target

        if len(operand) == 1:
            value = operand[0]
            formatted = f"${value:02X}"
        else:
            value = operand[0] | (operand[1] << 8)
            formatted = f"${value:04X}"

        if mode in (AddressingMode.ZERO_PAGE_X, AddressingMode.ABSOLUTE_X):
            return f"{formatted}, X {tag}", value
        if mode in (AddressingMode.ZERO_PAGE_Y, AddressingMode.ABSOLUTE_Y):
            return f"{formatted}, Y {tag}", value
        if mode == AddressingMode.INDIRECT_X:
            return f"({formatted}, X) {tag}", value
        if mode == AddressingMode.INDIRECT_Y:
            return f"({formatted}), Y {tag}", value
        if mode == AddressingMode.INDIRECT:
            return f"({formatted}) {tag}", value
        return f"{formatted} {tag}", value

    def disassemble(
        self,
        data: bytes,
        start_address: int = 0,
        count: Optional[int] = None,
    ) -> list[DisassembledInstruction]:
        """
        Decode instructions from the start of ``data``.

        Args:
            data: Byte buffer; data[0] is at start_address
            start_address: Address of the first byte
            count: Maximum number of instructions (None = all)
        """
        result = []
        offset = 0
        while offset < len(data) and (count is None or len(result) < count):
            instr = self.disassemble_one(data, offset, start_address + offset)
            result.append(instr)
            offset += instr.size
        return result

    def disassemble_to_map(
        self,
        data: bytes,
        start_address: int,
        from_address: int,
        to_address: int,
    ) -> dict[int, str]:
        """
        Decode the instructions that start in ``[from_address, to_address)``.

        Returns:
            Address -> formatted line, in address order
        """
        result: dict[int, str] = {}
        address = max(from_address, start_address)
        end = min(to_address, start_address + len(data))
        while address < end:
            instr = self.disassemble_one(data, address - start_address, address)
            result[address] = instr.text
            address += instr.size
        return result

    def disassemble_to_text(
        self,
        data: bytes,
        start_address: int = 0,
        count: Optional[int] = None,
    ) -> str:
        """Disassemble and join the lines, with raw bytes and symbol comments."""
        return "\n".join(str(instr) for instr in self.disassemble(data, start_address, count))
