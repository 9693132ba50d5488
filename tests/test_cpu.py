# =============================================================================
# test_cpu.py - 6502 Instruction Set Tests
# =============================================================================
# Tests for the opcode tables and addressing-mode metadata.
# =============================================================================

import pytest
from nes_sdk.cpu import (
    DECODE_TABLE,
    MNEMONICS,
    OPCODE_TABLE,
    AddressingMode,
    decode_opcode,
    get_instruction_info,
    get_valid_modes,
    is_branch_instruction,
    is_valid_instruction,
)


class TestOpcodeTable:
    """Test the official instruction set tables."""

    def test_counts(self):
        """56 mnemonics and 151 opcodes."""
        assert len(MNEMONICS) == 56
        assert len(OPCODE_TABLE) == 151
        assert len(DECODE_TABLE) == 151

    def test_lookup(self):
        """Lookup ignores mnemonic case."""
        info = get_instruction_info("lda", AddressingMode.IMMEDIATE)
        assert info.opcode == 0xA9
        assert info.size == 2
        assert get_instruction_info("LDA", AddressingMode.INDIRECT) is None

    def test_valid_modes(self):
        """Modes come back in enum order."""
        assert get_valid_modes("jmp") == [AddressingMode.ABSOLUTE, AddressingMode.INDIRECT]
        assert get_valid_modes("xyz") == []

    def test_predicates(self):
        """Instruction and branch checks."""
        assert is_valid_instruction("Nop")
        assert not is_valid_instruction("mov")
        assert is_branch_instruction("bne")
        assert not is_branch_instruction("jmp")

    def test_decode(self):
        """Opcode bytes decode to their encoding."""
        assert decode_opcode(0x4C).mnemonic == "JMP"
        assert decode_opcode(0x02) is None

    def test_decode_table_inverts_opcode_table(self):
        """Every encoding decodes back to itself."""
        for info in OPCODE_TABLE.values():
            assert DECODE_TABLE[info.opcode] is info


class TestAddressingMode:
    """Test addressing-mode metadata."""

    @pytest.mark.parametrize("mode,size,tag", [
        (AddressingMode.IMPLIED, 0, "IMP"),
        (AddressingMode.IMMEDIATE, 1, "IMM"),
        (AddressingMode.ZERO_PAGE, 1, "ZP0"),
        (AddressingMode.RELATIVE, 1, "REL"),
        (AddressingMode.ABSOLUTE_X, 2, "ABX"),
        (AddressingMode.INDIRECT, 2, "IND"),
        (AddressingMode.INDIRECT_Y, 1, "IZY"),
    ])
    def test_metadata(self, mode, size, tag):
        """Operand sizes and tags."""
        assert mode.operand_size == size
        assert mode.tag == tag

    def test_str(self):
        """Modes print in lower case words."""
        assert str(AddressingMode.ZERO_PAGE_X) == "zero page x"

    def test_uses_word(self):
        """Relative takes a word target even though it encodes one byte."""
        assert AddressingMode.RELATIVE.uses_word
        assert not AddressingMode.ZERO_PAGE.uses_word
