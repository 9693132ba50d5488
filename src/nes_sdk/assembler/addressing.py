"""
Addressing-Mode Matcher
=======================

Classifies an instruction operand into one of the twelve 6502 addressing
modes and extracts its expression.

Each mode has its own matcher in a dispatch table. A matcher first checks
the operand's shape (``#``, parentheses, ``,x``/``,y`` suffix) and then
whether the expression value fits the mode's range:

| Modes                                   | Accepted values   |
|-----------------------------------------|-------------------|
| IMMEDIATE, ZERO_PAGE(_X/_Y), INDIRECT_X/Y | -128..255       |
| ABSOLUTE(_X/_Y), INDIRECT, RELATIVE     | -32768..65535     |

A value outside the range is a non-match, not an error, so matching falls
through to a wider mode. RELATIVE takes the branch target address; the
displacement is range-checked when the instruction is emitted.

Priority
--------
``select_mode`` tries modes in MODE_PRIORITY order and the first match
that the instruction supports wins:

    lda (20,x)   -> INDIRECT_X   (never INDIRECT)
    lda 20,x     -> ZERO_PAGE_X  (before ABSOLUTE_X)
    lda 300,x    -> ABSOLUTE_X   (300 does not fit a byte)
    jmp 20       -> ABSOLUTE     (JMP has no zero-page form)

Operands that mention a name without a value yet are treated as words,
so forward references pick absolute forms. If that leaves no mode (for
example ``stx fwd,y``, which only has a zero-page form), a second round
accepts the unresolved operand in any mode of the right shape and the
value is checked when it is emitted.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from nes_sdk.cpu.mos6502 import BYTE_RANGE, WORD_RANGE, AddressingMode
from nes_sdk.assembler.expressions import (
    Deferred,
    ExpressionEvaluator,
    SymbolResolver,
)
from nes_sdk.assembler.lexer import is_wrapped, strip_whitespace


# =============================================================================
# Match Result
# =============================================================================

@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of matching one operand against one mode.

    Attributes:
        matched: True if the operand has the mode's shape and its value fits
        value: Inline value when every name in the expression is known
        expression: The operand with the mode syntax removed ("$20" for "($20),y")
        unresolved: Names whose values are not known yet
        is_word: True if the value needs 16 bits
    """
    matched: bool
    value: Optional[int] = None
    expression: str = ""
    unresolved: frozenset[str] = frozenset()
    is_word: bool = False


NO_MATCH = MatchResult(False)


MODE_PRIORITY: tuple[AddressingMode, ...] = (
    AddressingMode.IMPLIED,
    AddressingMode.IMMEDIATE,
    AddressingMode.INDIRECT_X,
    AddressingMode.INDIRECT_Y,
    AddressingMode.INDIRECT,
    AddressingMode.ZERO_PAGE_X,
    AddressingMode.ABSOLUTE_X,
    AddressingMode.ZERO_PAGE_Y,
    AddressingMode.ABSOLUTE_Y,
    AddressingMode.ZERO_PAGE,
    AddressingMode.RELATIVE,
    AddressingMode.ABSOLUTE,
)


# =============================================================================
# Shape Helpers
# =============================================================================

def _strip_index(text: str, register: str) -> Optional[str]:
    """Remove a trailing ',x' or ',y' (any case); None if absent."""
    if text.lower().endswith("," + register) and len(text) > 2:
        return text[:-2]
    return None


def _evaluate(
    expression: str,
    resolver: Optional[SymbolResolver],
    value_range: range,
    lenient: bool,
) -> MatchResult:
    result = ExpressionEvaluator(resolver).evaluate(expression, allow_unresolved=True)

    if isinstance(result, Deferred):
        value = result.placeholder
        fits = lenient or not value.is_word or value_range is WORD_RANGE
        if not fits:
            return NO_MATCH
        return MatchResult(True, None, expression, result.unresolved, value.is_word)

    value = result.value
    if value.is_word and value_range is not WORD_RANGE:
        return NO_MATCH
    if value.value not in value_range:
        return NO_MATCH
    return MatchResult(True, value.value, expression, frozenset(), value.is_word)


# =============================================================================
# Per-Mode Matchers
# =============================================================================
# Every matcher receives the operand with whitespace already removed.

Matcher = Callable[[str, Optional[SymbolResolver], bool], MatchResult]


def _match_implied(operand: str, resolver, lenient) -> MatchResult:
    if operand in ("", "a", "A"):
        return MatchResult(True)
    return NO_MATCH


def _match_immediate(operand: str, resolver, lenient) -> MatchResult:
    if not operand.startswith("#"):
        return NO_MATCH
    return _evaluate(operand[1:], resolver, BYTE_RANGE, lenient)


def _match_indirect_x(operand: str, resolver, lenient) -> MatchResult:
    if not is_wrapped(operand):
        return NO_MATCH
    inner = _strip_index(operand[1:-1], "x")
    if inner is None:
        return NO_MATCH
    return _evaluate(inner, resolver, BYTE_RANGE, lenient)


def _match_indirect_y(operand: str, resolver, lenient) -> MatchResult:
    pointer = _strip_index(operand, "y")
    if pointer is None or not is_wrapped(pointer):
        return NO_MATCH
    return _evaluate(pointer[1:-1], resolver, BYTE_RANGE, lenient)


def _match_indirect(operand: str, resolver, lenient) -> MatchResult:
    if not is_wrapped(operand):
        return NO_MATCH
    inner = operand[1:-1]
    if _strip_index(inner, "x") is not None or _strip_index(inner, "y") is not None:
        return NO_MATCH
    return _evaluate(inner, resolver, WORD_RANGE, lenient)


def _indexed(register: str, value_range: range) -> Matcher:
    def match(operand: str, resolver, lenient) -> MatchResult:
        base = _strip_index(operand, register)
        if base is None or is_wrapped(base):
            return NO_MATCH
        return _evaluate(base, resolver, value_range, lenient)
    return match


def _direct(value_range: range) -> Matcher:
    def match(operand: str, resolver, lenient) -> MatchResult:
        if not operand or operand.startswith("#") or is_wrapped(operand):
            return NO_MATCH
        if _strip_index(operand, "x") is not None or _strip_index(operand, "y") is not None:
            return NO_MATCH
        return _evaluate(operand, resolver, value_range, lenient)
    return match


MATCHERS: dict[AddressingMode, Matcher] = {
    AddressingMode.IMPLIED: _match_implied,
    AddressingMode.IMMEDIATE: _match_immediate,
    AddressingMode.INDIRECT_X: _match_indirect_x,
    AddressingMode.INDIRECT_Y: _match_indirect_y,
    AddressingMode.INDIRECT: _match_indirect,
    AddressingMode.ZERO_PAGE_X: _indexed("x", BYTE_RANGE),
    AddressingMode.ABSOLUTE_X: _indexed("x", WORD_RANGE),
    AddressingMode.ZERO_PAGE_Y: _indexed("y", BYTE_RANGE),
    AddressingMode.ABSOLUTE_Y: _indexed("y", WORD_RANGE),
    AddressingMode.ZERO_PAGE: _direct(BYTE_RANGE),
    AddressingMode.RELATIVE: _direct(WORD_RANGE),
    AddressingMode.ABSOLUTE: _direct(WORD_RANGE),
}


# =============================================================================
# Public Interface
# =============================================================================

def match_mode(
    mode: AddressingMode,
    operand: str,
    resolver: Optional[SymbolResolver] = None,
    lenient: bool = False,
) -> MatchResult:
    """
    Match an operand against a single addressing mode.

    Args:
        mode: The mode to test
        operand: Raw operand text (whitespace is ignored)
        resolver: Looks up names; without one every name is unresolved
        lenient: Accept unresolved word-sized values in byte modes

    Raises:
        ExpressionError: If the operand has the mode's shape but its
                         expression is malformed
    """
    return MATCHERS[mode](strip_whitespace(operand), resolver, lenient)


def select_mode(
    operand: str,
    supported: Optional[Iterable[AddressingMode]] = None,
    resolver: Optional[SymbolResolver] = None,
) -> Optional[tuple[AddressingMode, MatchResult]]:
    """
    Pick the addressing mode for an operand.

    Args:
        operand: Raw operand text
        supported: Modes the instruction has; None means all modes
        resolver: Looks up names

    Returns:
        (mode, result) for the first matching mode, or None if nothing matches
    """
    allowed = set(supported) if supported is not None else set(MODE_PRIORITY)
    candidates = [mode for mode in MODE_PRIORITY if mode in allowed]

    for lenient in (False, True):
        for mode in candidates:
            result = match_mode(mode, operand, resolver, lenient)
            if result.matched:
                return mode, result
    return None
