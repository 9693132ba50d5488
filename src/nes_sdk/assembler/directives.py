"""
Assembler Directives
====================

Directives are lines that start with ``.``. Each one is a member of the
closed DirectiveKind enum, and DIRECTIVE_HANDLERS maps every member to the
callbacks the driver runs in each pass:

| Pass | Callback   | Work                                          |
|------|------------|-----------------------------------------------|
| 1    | ``scan``     | validate operands, compute size, open macros |
| 2    | ``expand``   | runs after macro bodies are materialized     |
| 3    | ``allocate`` | move the memory pointer                      |
| 4    | ``emit``     | write bytes into the image                   |

Supported directives:

    .org $C000             ; move the memory pointer (numeric literal only)
    .db $0FE 20, "ok", 'x' ; bytes; strings emit one byte per character
    .dw reset, $FFFA       ; little-endian words
    .ds 16                 ; reserve bytes without writing them
    .globl reset, nmi      ; export names to every file
    .macro name (%a, %b)   ; open a macro definition
    .endmacro              ; close it

Operands are separated by commas or whitespace; whitespace next to a binary
operator does not separate (``.db 1 + 2, 3`` is two bytes).
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable
import logging

from nes_sdk.errors import (
    AssemblySyntaxError,
    DirectiveError,
    ExpressionError,
    MacroError,
)
from nes_sdk.cpu.mos6502 import BYTE_RANGE, WORD_RANGE
from nes_sdk.assembler.expressions import parse_number
from nes_sdk.assembler.lexer import parse_string_literal
from nes_sdk.assembler.macros import parse_macro_header
from nes_sdk.assembler.symbols import is_label_legal

if TYPE_CHECKING:
    from nes_sdk.assembler.assembler import Assembler
    from nes_sdk.assembler.parser import DirectiveCall, Line

logger = logging.getLogger(__name__)


# =============================================================================
# Directive Kinds
# =============================================================================

class DirectiveKind(Enum):
    """Every directive the assembler understands, keyed by its lowercase name."""
    ORG = "org"
    DB = "db"
    DW = "dw"
    DS = "ds"
    GLOBL = "globl"
    MACRO = "macro"
    ENDMACRO = "endmacro"


DirectiveCallback = Callable[["Assembler", "Line", "DirectiveCall"], None]


def _nothing(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    pass


@dataclass(frozen=True)
class DirectiveHandler:
    """The per-pass callbacks of one directive."""
    scan: DirectiveCallback = _nothing
    expand: DirectiveCallback = _nothing
    allocate: DirectiveCallback = _nothing
    emit: DirectiveCallback = _nothing


def _error(message: str, line: "Line", hint: str | None = None) -> DirectiveError:
    return DirectiveError(message, line.location, hint=hint, source_line=line.source.text)


# =============================================================================
# .org
# =============================================================================

def _scan_org(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    if len(call.operands) != 1:
        raise _error(f"'.org' takes exactly one operand, got {len(call.operands)}", line)
    value = parse_number(call.operands[0])
    if value is None:
        raise _error(
            f"'.org' operand must be a numeric literal, not '{call.operands[0]}'",
            line,
            hint="use $hex, %binary, @octal or decimal",
        )
    if value not in range(0x10000):
        raise _error(f"'.org' address {value} is outside $0000-$FFFF", line)
    call.value = value


def _allocate_org(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    logger.debug(f"{line.location}: memory pointer moved to ${call.value:04X}")
    asm.image.pointer = call.value


# =============================================================================
# .db / .dw
# =============================================================================

def _scan_db(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    if not call.operands:
        raise _error("'.db' needs at least one operand", line)
    size = 0
    for operand in call.operands:
        text = parse_string_literal(operand)
        size += len(text) if text is not None else 1
    call.size = size


def _emit_db(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    address = call.address
    for operand in call.operands:
        text = parse_string_literal(operand)
        if text is not None:
            for byte in text:
                asm.image.write(address, byte)
                address += 1
            continue

        value = asm.evaluate(operand, line, call.address)
        if value.overflowed or value.value not in BYTE_RANGE:
            asm.warn(f"'{operand}' in '.db' truncated to ${value.value & 0xFF:02X}", line)
        asm.image.write(address, value.value & 0xFF)
        address += 1


def _scan_dw(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    if not call.operands:
        raise _error("'.dw' needs at least one operand", line)
    call.size = 2 * len(call.operands)


def _emit_dw(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    address = call.address
    for operand in call.operands:
        value = asm.evaluate(operand, line, call.address)
        if value.overflowed or value.value not in WORD_RANGE:
            asm.warn(f"'{operand}' in '.dw' truncated to ${value.value & 0xFFFF:04X}", line)
        asm.image.write_word(address, value.value & 0xFFFF)
        address += 2


# =============================================================================
# .ds
# =============================================================================

def _scan_ds(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    if len(call.operands) != 1:
        raise _error(f"'.ds' takes exactly one operand, got {len(call.operands)}", line)


def _allocate_ds(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    # Every name in the count must be known before addresses are assigned.
    count = asm.evaluate(call.operands[0], line, call.address).value
    if count < 0:
        raise ExpressionError(f"'.ds' count must not be negative, got {count}")
    call.size = count


# =============================================================================
# .globl
# =============================================================================

def _scan_globl(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    if not call.operands:
        raise _error("'.globl' needs at least one name", line)
    for name in call.operands:
        if not is_label_legal(name):
            raise AssemblySyntaxError(
                f"illegal label name '{name}' in '.globl'",
                line.location,
                source_line=line.source.text,
            )
        asm.symbols.promote_to_global(name, line.source.filename)


# =============================================================================
# .macro / .endmacro
# =============================================================================

def _scan_macro(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    if asm.macros.is_defining:
        raise MacroError(
            f"macro definitions cannot be nested (inside '{asm.macros.open_definition.name}')",
            line.location,
            source_line=line.source.text,
        )
    name, parameters = parse_macro_header(call.operand_text, asm.config)
    asm.macros.open(name, parameters, line.location)


def _scan_endmacro(asm: "Assembler", line: "Line", call: "DirectiveCall") -> None:
    if call.operands:
        raise _error("'.endmacro' takes no operands", line)
    if not asm.macros.is_defining:
        raise MacroError(
            "'.endmacro' without a matching '.macro'",
            line.location,
            source_line=line.source.text,
        )
    asm.macros.close()


# =============================================================================
# Dispatch Table
# =============================================================================

DIRECTIVE_HANDLERS: dict[DirectiveKind, DirectiveHandler] = {
    DirectiveKind.ORG: DirectiveHandler(scan=_scan_org, allocate=_allocate_org),
    DirectiveKind.DB: DirectiveHandler(scan=_scan_db, emit=_emit_db),
    DirectiveKind.DW: DirectiveHandler(scan=_scan_dw, emit=_emit_dw),
    DirectiveKind.DS: DirectiveHandler(scan=_scan_ds, allocate=_allocate_ds),
    DirectiveKind.GLOBL: DirectiveHandler(scan=_scan_globl),
    DirectiveKind.MACRO: DirectiveHandler(scan=_scan_macro),
    DirectiveKind.ENDMACRO: DirectiveHandler(scan=_scan_endmacro),
}
