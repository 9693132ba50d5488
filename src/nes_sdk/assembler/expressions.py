"""
Assembly Expression Evaluator
=============================

Evaluates the arithmetic and bitwise expressions that appear in operands
and directive arguments.

Supported Operations
--------------------
**Arithmetic:** ``+ - * / %`` (division and modulo truncate toward zero)

**Bitwise:** ``& | ^ ~ << >>``

**Byte selection:**
- ``<expr`` or ``expr.b`` - low byte
- ``>expr`` - high byte
- ``expr.w`` - keep the value but force word (absolute) addressing

Expression Grammar
------------------
Recursive descent with this fixed precedence, lowest first. Binary
operators are left-associative.

1. Bitwise OR: ``|``
2. Bitwise XOR: ``^``
3. Bitwise AND: ``&``
4. Shift: ``<< >>``
5. Addition/Subtraction: ``+ -``
6. Multiplication/Division/Modulo: ``* / %``
7. Unary prefix: ``- + ~ < >``
8. Postfix selector: ``.b .w``
9. Primary: number, character, name, (grouped expression)

So ``$7F & 128`` is 0, ``2 + 5 / 2`` is 4 and ``1 + 2 & 3`` is 3.

Word Tracking
-------------
Each result carries ``is_word``, which tells the addressing-mode matcher
whether the operand needs 16 bits. A literal is a word when it lies outside
-128..255, binary results inherit word-ness from either side, ``.b``, ``<``
and ``>`` clear it and ``.w`` sets it. ``overflowed`` records that ``.b``
discarded significant bits; ``<`` and ``>`` select a byte on purpose.

Deferred Symbols
----------------
Names the evaluator cannot resolve either raise UndefinedSymbolError or,
with ``allow_unresolved=True``, produce a ``Deferred`` result holding the
unknown names and a placeholder computed with each of them as a word-sized
zero. The assembler uses the
placeholder to size instructions before all labels have addresses and
re-evaluates in the final pass.

Example Usage
-------------
>>> evaluator = ExpressionEvaluator()
>>> evaluator.set_symbol("PPU_CTRL", 0x2000)
>>> evaluator.evaluate("PPU_CTRL + 1")
Resolved(value=Value(value=8193, is_word=True, overflowed=False), symbols=frozenset({'PPU_CTRL'}))
"""

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from nes_sdk.cpu.mos6502 import BYTE_RANGE
from nes_sdk.errors import ExpressionError, UndefinedSymbolError
from nes_sdk.assembler.lexer import (
    ExpressionLexer,
    Token,
    TokenType,
    strip_whitespace,
)


# A resolver maps a name to its value, or None while it is still unknown
SymbolResolver = Callable[[str], Optional[int]]


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class Value:
    """
    A numeric expression result.

    Attributes:
        value: Signed integer result (not truncated)
        is_word: True if the operand needs a 16-bit encoding
        overflowed: True if a byte selector discarded significant bits
    """
    value: int
    is_word: bool = False
    overflowed: bool = False

    @classmethod
    def of(cls, number: int) -> "Value":
        """Wrap a literal, sizing it by magnitude."""
        return cls(number, number not in BYTE_RANGE)

    def __int__(self) -> int:
        return self.value


@dataclass(frozen=True)
class Resolved:
    """Every name in the expression was known."""
    value: Value
    symbols: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Deferred:
    """
    At least one name is still unknown.

    Attributes:
        unresolved: Names that could not be resolved
        placeholder: Value computed with each unknown name as a word-sized zero
        symbols: Every name the expression mentions
    """
    unresolved: frozenset[str]
    placeholder: Value = field(default_factory=lambda: Value(0, True))
    symbols: frozenset[str] = frozenset()


EvaluationResult = Resolved | Deferred


# =============================================================================
# Expression Evaluator
# =============================================================================

class ExpressionEvaluator:
    """
    Evaluates assembly expressions.

    Names are looked up in the evaluator's own table first, then through
    the optional resolver callback. The assembler passes a resolver bound
    to its symbol table and the current file's scope.

    Attributes:
        resolver: Callback used for names missing from the local table
    """

    def __init__(self, resolver: Optional[SymbolResolver] = None):
        self.resolver = resolver
        self._symbols: dict[str, int] = {}
        self._unresolved: set[str] = set()
        self._mentioned: set[str] = set()

    # =========================================================================
    # Symbol Table Management
    # =========================================================================

    def set_symbol(self, name: str, value: int) -> None:
        self._symbols[name] = value

    def get_symbol(self, name: str) -> Optional[int]:
        return self._symbols.get(name)

    def has_symbol(self, name: str) -> bool:
        return name in self._symbols

    # =========================================================================
    # Main Evaluation Interface
    # =========================================================================

    def evaluate(self, text: str, allow_unresolved: bool = False) -> EvaluationResult:
        """
        Evaluate an expression string.

        Args:
            text: Expression text; whitespace outside literals is ignored
            allow_unresolved: If True, unknown names yield a Deferred result.
                              If False, they raise UndefinedSymbolError.

        Returns:
            Resolved or Deferred

        Raises:
            ExpressionError: If the expression is malformed
            UndefinedSymbolError: If a name is unknown and not allowed
        """
        self._text = strip_whitespace(text)
        if not self._text:
            raise ExpressionError("empty expression")

        self._tokens = list(ExpressionLexer(self._text).tokenize())
        self._pos = 0
        self._allow_unresolved = allow_unresolved
        self._unresolved = set()
        self._mentioned = set()

        result = self._parse_or()

        token = self._current()
        if token.type == TokenType.RPAREN:
            raise ExpressionError(f"unbalanced ')' in '{self._text}'")
        if token.type != TokenType.EOF:
            raise ExpressionError(
                f"unexpected '{token.value}' at column {token.column} in '{self._text}'"
            )

        if self._unresolved:
            return Deferred(
                frozenset(self._unresolved),
                result,
                frozenset(self._mentioned),
            )
        return Resolved(result, frozenset(self._mentioned))

    def evaluate_value(self, text: str) -> Value:
        """Evaluate an expression that must resolve completely."""
        return self.evaluate(text).value

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._current()
        if token.type != TokenType.EOF:
            self._pos += 1
        return token

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._current().type in types:
            return self._advance()
        return None

    # =========================================================================
    # Recursive Descent Parser with Evaluation
    # =========================================================================

    def _parse_or(self) -> Value:
        left = self._parse_xor()
        while self._match(TokenType.PIPE):
            right = self._parse_xor()
            left = self._combine(left, right, left.value | right.value)
        return left

    def _parse_xor(self) -> Value:
        left = self._parse_and()
        while self._match(TokenType.CARET):
            right = self._parse_and()
            left = self._combine(left, right, left.value ^ right.value)
        return left

    def _parse_and(self) -> Value:
        left = self._parse_shift()
        while self._match(TokenType.AMPERSAND):
            right = self._parse_shift()
            left = self._combine(left, right, left.value & right.value)
        return left

    def _parse_shift(self) -> Value:
        left = self._parse_additive()
        while True:
            token = self._match(TokenType.LSHIFT, TokenType.RSHIFT)
            if token is None:
                return left
            right = self._parse_additive()
            if right.value < 0:
                raise ExpressionError(f"negative shift count in '{self._text}'")
            if token.type == TokenType.LSHIFT:
                left = self._combine(left, right, left.value << right.value)
            else:
                left = self._combine(left, right, left.value >> right.value)

    def _parse_additive(self) -> Value:
        left = self._parse_multiplicative()
        while True:
            token = self._match(TokenType.PLUS, TokenType.MINUS)
            if token is None:
                return left
            right = self._parse_multiplicative()
            if token.type == TokenType.PLUS:
                left = self._combine(left, right, left.value + right.value)
            else:
                left = self._combine(left, right, left.value - right.value)

    def _parse_multiplicative(self) -> Value:
        left = self._parse_unary()
        while True:
            token = self._match(TokenType.STAR, TokenType.SLASH, TokenType.PERCENT)
            if token is None:
                return left
            right = self._parse_unary()
            if token.type == TokenType.STAR:
                left = self._combine(left, right, left.value * right.value)
                continue
            if right.value == 0:
                if self._unresolved:
                    # Divisor depends on an unknown name, keep the placeholder
                    left = Value(0, True)
                    continue
                operation = "division" if token.type == TokenType.SLASH else "modulo"
                raise ExpressionError(f"{operation} by zero in '{self._text}'")
            quotient = _truncating_divide(left.value, right.value)
            if token.type == TokenType.SLASH:
                left = self._combine(left, right, quotient)
            else:
                left = self._combine(left, right, left.value - right.value * quotient)

    def _parse_unary(self) -> Value:
        token = self._match(
            TokenType.MINUS, TokenType.PLUS, TokenType.TILDE, TokenType.LT, TokenType.GT
        )
        if token is None:
            return self._parse_postfix()

        operand = self._parse_unary()
        if token.type == TokenType.MINUS:
            return self._combine_values(operand, -operand.value)
        if token.type == TokenType.PLUS:
            return operand
        if token.type == TokenType.TILDE:
            return self._combine_values(operand, ~operand.value)
        if token.type == TokenType.LT:
            return Value(operand.value & 0xFF, False, operand.overflowed)
        # High byte
        return Value((operand.value >> 8) & 0xFF, False, operand.overflowed)

    def _parse_postfix(self) -> Value:
        value = self._parse_primary()
        while True:
            token = self._match(TokenType.SELECT_BYTE, TokenType.SELECT_WORD)
            if token is None:
                return value
            if token.type == TokenType.SELECT_BYTE:
                value = _low_byte(value)
            else:
                value = Value(value.value, True, value.overflowed)

    def _parse_primary(self) -> Value:
        token = self._current()

        if token.type == TokenType.NUMBER:
            self._advance()
            return Value.of(token.value)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return self._resolve_symbol(token.value)

        if token.type == TokenType.LPAREN:
            self._advance()
            value = self._parse_or()
            if self._current().type != TokenType.RPAREN:
                raise ExpressionError(f"unbalanced '(' in '{self._text}'")
            self._advance()
            return value

        if token.type == TokenType.EOF:
            raise ExpressionError(f"missing operand at end of '{self._text}'")
        raise ExpressionError(
            f"missing operand before '{token.value}' at column {token.column} "
            f"in '{self._text}'"
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _combine(left: Value, right: Value, result: int) -> Value:
        return Value(
            result,
            left.is_word or right.is_word or result not in BYTE_RANGE,
            left.overflowed or right.overflowed,
        )

    @staticmethod
    def _combine_values(operand: Value, result: int) -> Value:
        return Value(
            result,
            operand.is_word or result not in BYTE_RANGE,
            operand.overflowed,
        )

    def _resolve_symbol(self, name: str) -> Value:
        """
        Look up a name.

        Raises:
            UndefinedSymbolError: If unknown and unresolved names are not allowed
        """
        self._mentioned.add(name)

        value = self._symbols.get(name)
        if value is None and self.resolver is not None:
            value = self.resolver(name)
        if value is not None:
            return Value.of(value)

        self._unresolved.add(name)
        if self._allow_unresolved:
            return Value(0, True)

        raise UndefinedSymbolError(name, similar_symbols=self._find_similar_symbols(name))

    def _find_similar_symbols(self, name: str) -> list[str]:
        """Find known names within a small edit distance, for error hints."""
        name_lower = name.lower()
        similar = []
        for sym in self._symbols:
            sym_lower = sym.lower()
            if (
                sym_lower == name_lower or
                abs(len(sym) - len(name)) <= 1 and
                edit_distance(name_lower, sym_lower) <= 2
            ):
                similar.append(sym)
        return similar[:3]


def _truncating_divide(dividend: int, divisor: int) -> int:
    quotient = abs(dividend) // abs(divisor)
    if (dividend < 0) != (divisor < 0):
        return -quotient
    return quotient


def _low_byte(value: Value) -> Value:
    return Value(
        value.value & 0xFF,
        False,
        value.overflowed or value.value not in BYTE_RANGE,
    )


def edit_distance(s1: str, s2: str) -> int:
    """Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min(
                    distances[j],
                    distances[j + 1],
                    new_distances[-1],
                ))
        distances = new_distances

    return distances[-1]


# =============================================================================
# Literal Helpers
# =============================================================================

_RADIX_PREFIXES = {16: "$", 2: "%", 8: "@", 10: ""}
_DIGITS = {
    16: frozenset("0123456789abcdefABCDEF"),
    10: frozenset("0123456789"),
    8: frozenset("01234567"),
    2: frozenset("01"),
}


def parse_number(text: str) -> Optional[int]:
    """
    Parse a single numeric literal, or return None.

    Accepts ``$`` hex, ``%`` binary, ``@`` octal and (optionally negative)
    decimal. Used where an operand must be a plain number, such as ``.org``.
    """
    text = text.strip()
    if not text:
        return None
    radix = {"$": 16, "%": 2, "@": 8}.get(text[0])
    digits = text[1:] if radix else text
    radix = radix or 10
    sign = 1
    if radix == 10 and digits[0] in "+-":
        sign = -1 if digits[0] == "-" else 1
        digits = digits[1:]
    if not digits or any(char not in _DIGITS[radix] for char in digits):
        return None
    return sign * int(digits, radix)


def format_number(value: int, radix: int = 16) -> str:
    """
    Format an integer as a literal the evaluator reads back.

    >>> format_number(255, 2)
    '%11111111'
    """
    prefix = _RADIX_PREFIXES[radix]
    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    if radix == 16:
        digits = f"{magnitude:X}"
    elif radix == 2:
        digits = f"{magnitude:b}"
    elif radix == 8:
        digits = f"{magnitude:o}"
    else:
        digits = str(magnitude)
    return f"{sign}{prefix}{digits}"


# =============================================================================
# Convenience Functions
# =============================================================================

def evaluate(
    text: str,
    symbols: Optional[Mapping[str, int]] = None,
    allow_unresolved: bool = False,
) -> EvaluationResult:
    """
    Evaluate an expression against a plain name -> value mapping.

    Args:
        text: Expression text
        symbols: Known names
        allow_unresolved: Return Deferred instead of raising for unknown names
    """
    evaluator = ExpressionEvaluator()
    for name, value in (symbols or {}).items():
        evaluator.set_symbol(name, value)
    return evaluator.evaluate(text, allow_unresolved)
