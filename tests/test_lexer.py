# =============================================================================
# test_lexer.py - Lexer and Line Helper Unit Tests
# =============================================================================
# Tests for the expression tokenizer and the line-level text helpers.
#
# Test coverage includes:
#   - Expression tokens (numbers, names, operators, selectors)
#   - Modulo vs. binary literal disambiguation
#   - Comment stripping outside literals
#   - Operand splitting on commas and whitespace
#   - Parenthesis wrapping checks
#   - String literal decoding
# =============================================================================

import pytest
from nes_sdk.assembler.lexer import (
    ExpressionLexer,
    TokenType,
    is_wrapped,
    parse_string_literal,
    split_operands,
    strip_comments,
    strip_whitespace,
)
from nes_sdk.errors import ExpressionError


# =============================================================================
# Helper Functions
# =============================================================================

def token_types(text: str) -> list[TokenType]:
    """Tokenize and return the token types, EOF included."""
    return [token.type for token in ExpressionLexer(text).tokenize()]


# =============================================================================
# Expression Lexer Tests
# =============================================================================

class TestExpressionLexer:
    """Test tokenization of expressions."""

    def test_numbers(self):
        """Every radix produces a NUMBER token with its value."""
        tokens = list(ExpressionLexer("$10+%11").tokenize())
        assert [t.type for t in tokens] == [
            TokenType.NUMBER, TokenType.PLUS, TokenType.NUMBER, TokenType.EOF,
        ]
        assert tokens[0].value == 16
        assert tokens[2].value == 3

    def test_columns(self):
        """Columns are 1-indexed positions."""
        tokens = list(ExpressionLexer("$10+%11").tokenize())
        assert [t.column for t in tokens] == [1, 4, 5, 8]

    def test_identifier(self):
        """Names become IDENTIFIER tokens."""
        tokens = list(ExpressionLexer("player::x_pos").tokenize())
        assert tokens[0].type == TokenType.IDENTIFIER
        assert tokens[0].value == "player::x_pos"

    def test_percent_after_operand_is_modulo(self):
        """'%' after a number is the modulo operator."""
        assert token_types("1%2") == [
            TokenType.NUMBER, TokenType.PERCENT, TokenType.NUMBER, TokenType.EOF,
        ]

    def test_percent_at_start_is_binary(self):
        """'%' at the start of an operand begins a binary literal."""
        assert token_types("%10") == [TokenType.NUMBER, TokenType.EOF]

    def test_shift_and_byte_selectors(self):
        """'<<' is a shift, a single '<' selects the low byte."""
        assert token_types("<x<<1") == [
            TokenType.LT, TokenType.IDENTIFIER, TokenType.LSHIFT,
            TokenType.NUMBER, TokenType.EOF,
        ]
        assert token_types(">x>>1")[:3] == [
            TokenType.GT, TokenType.IDENTIFIER, TokenType.RSHIFT,
        ]

    def test_postfix_selectors(self):
        """'.b' and '.w' follow an operand."""
        assert token_types("x.b")[1] == TokenType.SELECT_BYTE
        assert token_types("(x).W")[3] == TokenType.SELECT_WORD

    def test_character_literal(self):
        """Character literals become numbers."""
        tokens = list(ExpressionLexer("'\\n'").tokenize())
        assert tokens[0].type == TokenType.NUMBER
        assert tokens[0].value == 10

    @pytest.mark.parametrize("text", ["1#2", "12ab", "$g", "'\\q'", "x.c", "'a"])
    def test_bad_input(self, text):
        """Malformed input raises ExpressionError."""
        with pytest.raises(ExpressionError):
            list(ExpressionLexer(text).tokenize())


# =============================================================================
# Comment and Whitespace Tests
# =============================================================================

class TestLineHelpers:
    """Test comment stripping and literal-aware scanning."""

    def test_strip_comment(self):
        """Text after ';' is removed."""
        assert strip_comments("lda #1 ; load one") == "lda #1 "

    def test_semicolon_in_string(self):
        """';' inside a string does not start a comment."""
        assert strip_comments('.db "a;b" ; text') == '.db "a;b" '

    def test_semicolon_in_character(self):
        """';' inside a character literal does not start a comment."""
        assert strip_comments("lda #';' ; semicolon") == "lda #';' "

    def test_whole_line_comment(self):
        """A line that is all comment becomes empty."""
        assert strip_comments("; header") == ""

    def test_escaped_quote(self):
        """An escaped quote does not end the string."""
        assert strip_comments('.db "a\\";b" ; c') == '.db "a\\";b" '

    def test_strip_whitespace_keeps_literals(self):
        """Whitespace inside literals survives."""
        assert strip_whitespace(' 1 + " a " ') == '1+" a "'

    @pytest.mark.parametrize("text,expected", [
        ("(a+1)", True),
        ("((a))", True),
        ('(")")', True),
        ("(a)+(b)", False),
        ("a", False),
        ("(a", False),
    ])
    def test_is_wrapped(self, text, expected):
        """Only a single enclosing group counts as wrapped."""
        assert is_wrapped(text) is expected


# =============================================================================
# Operand Splitting Tests
# =============================================================================

class TestSplitOperands:
    """Test splitting directive and macro operands."""

    def test_commas(self):
        """Commas separate operands."""
        assert split_operands("1, 2, 3") == ["1", "2", "3"]

    def test_whitespace(self):
        """Whitespace separates operands."""
        assert split_operands("$0FE 20 20") == ["$0FE", "20", "20"]

    def test_empty(self):
        """No operands."""
        assert split_operands("") == []

    def test_string_not_split(self):
        """Separators inside strings do not split."""
        assert split_operands('"hi, there" 3') == ['"hi, there"', "3"]

    def test_characters(self):
        """Character literals are operands of their own."""
        assert split_operands("'a' 'b'") == ["'a'", "'b'"]

    def test_parentheses_grouped(self):
        """Separators inside parentheses do not split by default."""
        assert split_operands("(1, 2) 3") == ["(1, 2)", "3"]

    def test_parentheses_not_grouped(self):
        """Without grouping, parentheses are ordinary characters."""
        assert split_operands("(%a, %b)", group_parentheses=False) == ["(%a", "%b)"]

    def test_operator_joins(self):
        """Whitespace around a binary operator does not split."""
        assert split_operands("1 + 2, 3") == ["1+2", "3"]
        assert split_operands("7 % 2") == ["7%2"]

    def test_unary_operator_starts_operand(self):
        """Byte selectors and binary literals start a new operand."""
        assert split_operands("<label >label") == ["<label", ">label"]
        assert split_operands("%01 %10") == ["%01", "%10"]

    def test_no_join(self):
        """join_operators=False keeps every piece."""
        assert split_operands("1 + 2", join_operators=False) == ["1", "+", "2"]


# =============================================================================
# String Literal Tests
# =============================================================================

class TestStringLiterals:
    """Test parse_string_literal."""

    def test_plain_string(self):
        """Characters become bytes."""
        assert parse_string_literal('"ok"') == b"ok"

    def test_empty_string(self):
        """The empty string is a literal with no bytes."""
        assert parse_string_literal('""') == b""

    def test_escape(self):
        """Escape sequences are decoded."""
        assert parse_string_literal('"a\\n"') == b"a\n"
        assert parse_string_literal('"\\"q\\""') == b'"q"'

    @pytest.mark.parametrize("text", ["ok", "'a'", '"a"b"', '"open'])
    def test_not_a_string(self, text):
        """Non-literals return None."""
        assert parse_string_literal(text) is None

    def test_unknown_escape(self):
        """Unknown escapes are errors."""
        with pytest.raises(ExpressionError):
            parse_string_literal('"\\q"')
