# =============================================================================
# test_parser.py - Line Classification Tests
# =============================================================================
# Tests for splitting source into lines and classifying each line.
#
# Test coverage includes:
#   - Comment and blank line removal with line numbers kept
#   - Equivalences, labels, directives, instructions, macro invocations
#   - Label detection around '::' and literals
#   - Syntax errors found while classifying
# =============================================================================

import pytest
from nes_sdk.assembler.config import AssemblerConfig
from nes_sdk.assembler.directives import DirectiveKind
from nes_sdk.assembler.parser import (
    DirectiveCall,
    Equivalence,
    InstructionCall,
    MacroCall,
    SourceLine,
    find_label_end,
    load_source,
    parse_line,
    substitute_text,
)
from nes_sdk.errors import AssemblySyntaxError, DirectiveError


CONFIG = AssemblerConfig()


def classify(text: str):
    """Parse one line of main.asm."""
    return parse_line(SourceLine("main.asm", 1, text), CONFIG)


# =============================================================================
# Source Loading Tests
# =============================================================================

class TestLoadSource:
    """Test load_source."""

    def test_drops_comments_and_blanks(self):
        """Only lines with code remain, numbered as in the file."""
        lines = load_source("main.asm", "\n  nop ; idle\n\n; header only\n  rts\n")
        assert [(line.number, line.text) for line in lines] == [(2, "nop"), (5, "rts")]

    def test_location(self):
        """Lines know their file and number."""
        (line,) = load_source("game.asm", "nop")
        assert str(line.location) == "game.asm:1"
        assert line.macro is None


# =============================================================================
# Classification Tests
# =============================================================================

class TestClassification:
    """Test parse_line."""

    def test_equivalence(self):
        """NAME = expression."""
        line = classify("SND_NOISE_REG = $400C")
        assert line.statement == Equivalence("SND_NOISE_REG", "$400C")
        assert line.label is None

    def test_equivalence_without_spaces(self):
        """Spaces around '=' are optional."""
        assert classify("x=1+2").statement == Equivalence("x", "1+2")

    def test_scoped_equivalence(self):
        """Equivalence names may contain '::'."""
        assert classify("player::speed = 2").statement == Equivalence("player::speed", "2")

    def test_label_only(self):
        """A label on its own line."""
        line = classify("reset:")
        assert line.label == "reset"
        assert line.statement is None

    def test_label_and_instruction(self):
        """A label followed by an instruction."""
        line = classify("loop: dex")
        assert line.label == "loop"
        assert line.statement == InstructionCall("DEX", "")

    def test_instruction(self):
        """Mnemonics are upper-cased, operands kept as written."""
        assert classify("lda #$01").statement == InstructionCall("LDA", "#$01")
        assert classify("Sta ( $20 ),y").statement == InstructionCall("STA", "( $20 ),y")

    def test_directive(self):
        """Directives are split into name and operands."""
        statement = classify(".DB $0FE 20, 1 + 2").statement
        assert isinstance(statement, DirectiveCall)
        assert statement.name == "db"
        assert statement.kind == DirectiveKind.DB
        assert statement.operands == ["$0FE", "20", "1+2"]

    def test_labelled_directive(self):
        """A label before a directive."""
        line = classify("table: .dw 1")
        assert line.label == "table"
        assert line.statement.kind == DirectiveKind.DW

    def test_macro_call_parenthesized(self):
        """A wrapped argument list is unwrapped."""
        assert classify("set_ppu_addr ($2000)").statement == MacroCall("set_ppu_addr", ["$2000"])
        assert classify("store(1, $10)").statement == MacroCall("store", ["1", "$10"])

    def test_macro_call_plain(self):
        """Arguments separated by commas or whitespace."""
        assert classify("store 1 $10").statement == MacroCall("store", ["1", "$10"])
        assert classify("clear").statement == MacroCall("clear", [])

    def test_colon_in_literal_is_not_label(self):
        """A ':' inside a character literal is not a label end."""
        line = classify("lda #':'")
        assert line.label is None
        assert line.statement == InstructionCall("LDA", "#':'")


# =============================================================================
# Error Tests
# =============================================================================

class TestErrors:
    """Test errors found while classifying."""

    def test_empty_label(self):
        """':' without a name."""
        with pytest.raises(AssemblySyntaxError, match="missing label name"):
            classify(": nop")

    def test_empty_equivalence(self):
        """'=' without a value."""
        with pytest.raises(AssemblySyntaxError, match="missing value for 'x'"):
            classify("x =")

    def test_unknown_directive(self):
        """Unknown directives are rejected with the known list."""
        with pytest.raises(DirectiveError) as exc_info:
            classify(".incbin 'chr.bin'")
        assert "unknown directive '.incbin'" in str(exc_info.value)
        assert ".org" in str(exc_info.value)


# =============================================================================
# Helper Tests
# =============================================================================

class TestHelpers:
    """Test find_label_end and substitute_text."""

    @pytest.mark.parametrize("text,expected", [
        ("loop: dex", 4),
        ("player::init:", 12),
        ("player::init", -1),
        ("lda #':'", -1),
        ("nop", -1),
        (": x", 0),
    ])
    def test_find_label_end(self, text, expected):
        """Only a single ':' before any whitespace ends a label."""
        assert find_label_end(text) == expected

    def test_substitute_whole_names(self):
        """Names are replaced only where they stand alone."""
        text = substitute_text("lda loop + loops", {"loop": "loop_M1"})
        assert text == "lda loop_M1 + loops"

    def test_substitute_skips_strings(self):
        """String contents are left alone."""
        assert substitute_text('.db "x", x', {"x": "1"}) == '.db "x", 1'

    def test_substitute_keeps_registers_and_selectors(self):
        """Label names are not replaced where they read as ',x' or '.b'."""
        replacements = {"x": "x_M1", "b": "b_M1"}
        labels = frozenset(replacements)
        assert substitute_text("lda x,x", replacements, labels) == "lda x_M1,x"
        assert substitute_text("lda b.b + b", replacements, labels) == "lda b_M1.b + b_M1"
