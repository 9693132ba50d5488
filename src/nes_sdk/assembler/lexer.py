"""
6502 Assembly Lexer
===================

Line-level text handling for the assembler plus the tokenizer used by the
expression evaluator.

Line Handling
-------------
- ``strip_comments``: a ``;`` outside a string or character literal ends
  the line. Backslash escapes inside literals are honoured.
- ``split_operands``: splits directive and macro operands on commas and
  whitespace, never inside literals or parentheses. Whitespace next to a
  binary operator does not split, so ``.db 1 + 2, 3`` has two operands.
- ``strip_whitespace``: removes whitespace outside literals.

Expression Tokens
-----------------
| Kind        | Syntax        | Example   | Value |
|-------------|---------------|-----------|-------|
| Decimal     | digits        | 123       | 123   |
| Hexadecimal | $             | $7F       | 127   |
| Binary      | %             | %1010     | 10    |
| Octal       | @             | @177      | 127   |
| Character   | 'c'           | 'A'       | 65    |
| Identifier  | name          | reset     | -     |
| Selector    | .b .w         | label.b   | -     |

``%`` directly after an operand is the modulo operator, otherwise it
starts a binary literal.

Example
-------
>>> list(ExpressionLexer("$10+%11").tokenize())
[Token(NUMBER, $10, 1), Token(PLUS, '+', 4), Token(NUMBER, $3, 5), Token(EOF, 8)]
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional
import string

from nes_sdk.errors import ExpressionError


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types of the expression language."""

    EOF = auto()

    # Values
    IDENTIFIER = auto()  # Label or equivalence name
    NUMBER = auto()      # Numeric literal (any base) or character literal

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    STAR = auto()        # *
    SLASH = auto()       # /
    PERCENT = auto()     # % (modulo, only after an operand)

    # Bitwise operators
    AMPERSAND = auto()   # &
    PIPE = auto()        # |
    CARET = auto()       # ^
    TILDE = auto()       # ~
    LSHIFT = auto()      # <<
    RSHIFT = auto()      # >>

    # Byte selectors
    LT = auto()          # < (prefix, low byte)
    GT = auto()          # > (prefix, high byte)
    SELECT_BYTE = auto()  # .b (postfix, low byte)
    SELECT_WORD = auto()  # .w (postfix, force word)

    # Grouping
    LPAREN = auto()      # (
    RPAREN = auto()      # )


@dataclass(frozen=True)
class Token:
    """
    A single expression token.

    Attributes:
        type: The TokenType classification
        value: Identifier text, integer value or operator text
        column: Position in the whitespace-free expression (1-indexed)
    """
    type: TokenType
    value: str | int | None
    column: int

    def __repr__(self) -> str:
        if self.value is not None:
            if isinstance(self.value, int):
                return f"Token({self.type.name}, ${self.value:X}, {self.column})"
            return f"Token({self.type.name}, {self.value!r}, {self.column})"
        return f"Token({self.type.name}, {self.column})"


# Tokens after which '%' means modulo and '.b'/'.w' are allowed
_OPERAND_END = frozenset({
    TokenType.NUMBER,
    TokenType.IDENTIFIER,
    TokenType.RPAREN,
    TokenType.SELECT_BYTE,
    TokenType.SELECT_WORD,
})

IDENT_START = string.ascii_letters + "_"
IDENT_CHARS = string.ascii_letters + string.digits + "_"

ESCAPE_SEQUENCES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "0": "\0",
}


# =============================================================================
# Expression Lexer
# =============================================================================

class ExpressionLexer:
    """
    Tokenizes one operand expression.

    The text must already be free of whitespace outside literals; the
    evaluator calls ``strip_whitespace`` first.

    Usage:
        tokens = list(ExpressionLexer("<(reset+2)").tokenize())
    """

    SINGLE_CHAR_TOKENS = {
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "&": TokenType.AMPERSAND,
        "|": TokenType.PIPE,
        "^": TokenType.CARET,
        "~": TokenType.TILDE,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
    }

    def __init__(self, text: str):
        self.text = text
        self._pos = 0
        self._previous: Optional[TokenType] = None

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens, always ending with EOF.

        Raises:
            ExpressionError: On an unexpected character or malformed literal
        """
        while self._pos < len(self.text):
            token = self._scan_token()
            self._previous = token.type
            yield token
        yield Token(TokenType.EOF, None, self._pos + 1)

    def _peek(self, offset: int = 0) -> str:
        pos = self._pos + offset
        if pos >= len(self.text):
            return ""
        return self.text[pos]

    def _error(self, message: str) -> ExpressionError:
        return ExpressionError(f"{message} in '{self.text}'")

    def _scan_token(self) -> Token:
        column = self._pos + 1
        char = self._peek()

        if char.isdigit():
            return self._scan_digits(string.digits, 10, column, skip=0)

        if char == "$":
            return self._scan_digits(string.hexdigits, 16, column, skip=1)

        if char == "%":
            if self._previous in _OPERAND_END:
                self._pos += 1
                return Token(TokenType.PERCENT, "%", column)
            return self._scan_digits("01", 2, column, skip=1)

        if char == "@":
            return self._scan_digits("01234567", 8, column, skip=1)

        if char == "'":
            return self._scan_char(column)

        if char in IDENT_START:
            return self._scan_identifier(column)

        if char == ".":
            return self._scan_selector(column)

        if char == "<":
            if self._peek(1) == "<":
                self._pos += 2
                return Token(TokenType.LSHIFT, "<<", column)
            self._pos += 1
            return Token(TokenType.LT, "<", column)

        if char == ">":
            if self._peek(1) == ">":
                self._pos += 2
                return Token(TokenType.RSHIFT, ">>", column)
            self._pos += 1
            return Token(TokenType.GT, ">", column)

        if char in self.SINGLE_CHAR_TOKENS:
            self._pos += 1
            return Token(self.SINGLE_CHAR_TOKENS[char], char, column)

        raise self._error(f"unexpected character '{char}'")

    def _scan_digits(self, digits: str, base: int, column: int, skip: int) -> Token:
        start = self._pos + skip
        end = start
        while end < len(self.text) and self.text[end] in digits:
            end += 1
        literal = self.text[self._pos:end]
        if end == start:
            raise self._error(f"malformed number '{self.text[self._pos:end + 1]}'")
        # "12ab", "%102": digits running into a name or a wrong digit
        if end < len(self.text) and self.text[end] in IDENT_CHARS:
            raise self._error(f"malformed number '{literal}{self.text[end]}'")
        self._pos = end
        return Token(TokenType.NUMBER, int(self.text[start:end], base), column)

    def _scan_char(self, column: int) -> Token:
        self._pos += 1
        char = self._peek()
        if char == "\\":
            escaped = self._peek(1)
            if escaped not in ESCAPE_SEQUENCES:
                raise self._error(f"unknown escape sequence '\\{escaped}'")
            value = ESCAPE_SEQUENCES[escaped]
            self._pos += 2
        elif char and char != "'":
            value = char
            self._pos += 1
        else:
            raise self._error("empty character literal")
        if self._peek() != "'":
            raise self._error("unterminated character literal")
        self._pos += 1
        return Token(TokenType.NUMBER, ord(value), column)

    def _scan_identifier(self, column: int) -> Token:
        end = self._pos
        while end < len(self.text):
            if self.text[end] in IDENT_CHARS:
                end += 1
            elif self.text.startswith("::", end) and end + 2 < len(self.text) \
                    and self.text[end + 2] in IDENT_CHARS:
                end += 2
            else:
                break
        name = self.text[self._pos:end]
        self._pos = end
        return Token(TokenType.IDENTIFIER, name, column)

    def _scan_selector(self, column: int) -> Token:
        suffix = self._peek(1).lower()
        if self._previous not in _OPERAND_END or suffix not in ("b", "w"):
            raise self._error(f"unexpected '.{self._peek(1)}'")
        if self._peek(2) and self._peek(2) in IDENT_CHARS:
            raise self._error(f"unknown selector '.{self.text[self._pos + 1:self._pos + 3]}'")
        self._pos += 2
        if suffix == "b":
            return Token(TokenType.SELECT_BYTE, ".b", column)
        return Token(TokenType.SELECT_WORD, ".w", column)


# =============================================================================
# Line Helpers
# =============================================================================

def literal_spans(text: str) -> Iterator[tuple[int, str, bool]]:
    """
    Yield (index, char, inside_literal) for each character.

    Quote characters themselves are reported as inside. A literal runs
    until its matching unescaped quote or the end of the text.
    """
    quote = ""
    escaped = False
    for i, char in enumerate(text):
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = ""
            yield i, char, True
        elif char in "\"'":
            quote = char
            yield i, char, True
        else:
            yield i, char, False


def strip_comments(line: str) -> str:
    """
    Remove a trailing ``;`` comment.

    >>> strip_comments("lda #';' ; load a semicolon")
    "lda #';' "
    """
    for i, char, inside in literal_spans(line):
        if char == ";" and not inside:
            return line[:i]
    return line


def strip_whitespace(text: str) -> str:
    """Remove all whitespace that is not inside a string or character literal."""
    return "".join(
        char for _, char, inside in literal_spans(text)
        if inside or not char.isspace()
    )


def is_wrapped(text: str) -> bool:
    """True if the whole text is one parenthesized group: '(a+1)' but not '(a)+(b)'."""
    if not text.startswith("(") or not text.endswith(")"):
        return False
    depth = 0
    for i, char, inside in literal_spans(text):
        if inside:
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i == len(text) - 1
    return False


# Characters that glue whitespace-separated pieces into one expression
_BINARY_OPERATOR_CHARS = "+-*/&|^<>%"


def _starts_unary_or_literal(piece: str) -> bool:
    """True for pieces like '<label', '~mask' or '%0101' that begin a new operand."""
    if piece[0] in "<>~" and len(piece) > 1 and piece[1] not in "<>":
        return True
    if piece[0] == "%" and len(piece) > 1 and piece[1] in "01":
        return True
    return False


def _join_operator_pieces(pieces: list[str]) -> list[str]:
    joined: list[str] = []
    for piece in pieces:
        if joined:
            previous = joined[-1]
            glue = previous[-1] in _BINARY_OPERATOR_CHARS or (
                piece[0] in _BINARY_OPERATOR_CHARS
                and not _starts_unary_or_literal(piece)
            )
            if glue:
                joined[-1] = previous + piece
                continue
        joined.append(piece)
    return joined


def split_operands(
    text: str,
    join_operators: bool = True,
    group_parentheses: bool = True,
) -> list[str]:
    """
    Split an operand list on commas and whitespace.

    Separators inside string/character literals never split. With
    ``group_parentheses`` they do not split inside parentheses either. With
    ``join_operators``, pieces separated only by whitespace are rejoined
    when the whitespace touches a binary operator.

    >>> split_operands("$0FE 20, 1 + 2")
    ['$0FE', '20', '1+2']
    """
    chunks: list[list[str]] = [[]]
    current: list[str] = []
    depth = 0

    def flush() -> None:
        if current:
            chunks[-1].append("".join(current))
            current.clear()

    for _, char, inside in literal_spans(text):
        if inside:
            current.append(char)
            continue
        if group_parentheses and char == "(":
            depth += 1
        elif group_parentheses and char == ")":
            depth = max(depth - 1, 0)
        if depth == 0 and char == ",":
            flush()
            chunks.append([])
        elif depth == 0 and char.isspace():
            flush()
        else:
            current.append(char)
    flush()

    operands: list[str] = []
    for pieces in chunks:
        if join_operators:
            pieces = _join_operator_pieces(pieces)
        operands.extend(pieces)
    return operands


def parse_string_literal(text: str) -> Optional[bytes]:
    """
    Decode a double-quoted string operand to bytes.

    Returns None when ``text`` is not a complete string literal.

    Raises:
        ExpressionError: On an unknown escape sequence or a character
                         outside latin-1
    """
    if len(text) < 2 or text[0] != '"' or text[-1] != '"':
        return None
    body = text[1:-1]
    result = bytearray()
    i = 0
    while i < len(body):
        char = body[i]
        if char == "\\":
            if i + 1 >= len(body):
                return None
            escaped = body[i + 1]
            if escaped not in ESCAPE_SEQUENCES:
                raise ExpressionError(f"unknown escape sequence '\\{escaped}' in {text}")
            result.append(ord(ESCAPE_SEQUENCES[escaped]))
            i += 2
            continue
        if char == '"':
            return None
        try:
            result.extend(char.encode("latin-1"))
        except UnicodeEncodeError as e:
            raise ExpressionError(
                f"character '{char}' in {text} does not fit in one byte",
                hint="strings may only hold latin-1 characters",
            ) from e
        i += 1
    return bytes(result)
