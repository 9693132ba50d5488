"""
6502 Assembly Line Parser
=========================

Splits source files into lines and classifies each line before the first
pass runs.

Line Forms
----------
1. **Equivalence**: ``NAME = expression``
   ```asm
   SND_NOISE_REG = $400C
   ```

2. **Label**, optionally followed by any statement below
   ```asm
   reset:
   loop: dex
   ```

3. **Directive**: starts with ``.``
   ```asm
   .org $8000
   .db $0FE 20 20
   ```

4. **Instruction**: a 6502 mnemonic (any case) and its operand
   ```asm
   lda #$01
   STA SND_NOISE_REG*2
   ```

5. **Macro invocation**: anything else
   ```asm
   set_ppu_addr ($2000)
   ```

Classification does not validate names or evaluate expressions; that
happens in the passes. Only an unknown directive is rejected here.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional
import re

from nes_sdk.errors import (
    AssemblySyntaxError,
    DirectiveError,
    SourceLocation,
)
from nes_sdk.cpu.mos6502 import AddressingMode, InstructionInfo
from nes_sdk.assembler.lexer import (
    literal_spans,
    is_wrapped,
    split_operands,
    strip_comments,
)

if TYPE_CHECKING:
    from nes_sdk.assembler.config import AssemblerConfig
    from nes_sdk.assembler.directives import DirectiveKind
    from nes_sdk.assembler.symbols import Equivalent, Label


# =============================================================================
# Source Lines
# =============================================================================

@dataclass(frozen=True)
class SourceLine:
    """
    One non-blank source line after comment stripping.

    Attributes:
        filename: File the line came from
        number: Line number (1-indexed); expanded macro lines keep the
                number of the invocation
        text: Trimmed text without its comment
        macro: Name of the macro this line was expanded from, if any
    """
    filename: str
    number: int
    text: str
    macro: Optional[str] = None

    @property
    def location(self) -> SourceLocation:
        return SourceLocation(self.filename, self.number)


def load_source(filename: str, text: str) -> list[SourceLine]:
    """Split a file into SourceLines, dropping comments and blank lines."""
    lines = []
    for number, raw in enumerate(text.splitlines(), start=1):
        stripped = strip_comments(raw).strip()
        if stripped:
            lines.append(SourceLine(filename, number, stripped))
    return lines


# =============================================================================
# Statements
# =============================================================================

@dataclass
class Statement:
    """Base class for the statement part of a line."""


@dataclass
class Equivalence(Statement):
    """``NAME = expression``"""
    name: str
    expression: str
    entry: Optional["Equivalent"] = None


@dataclass
class DirectiveCall(Statement):
    """
    A directive invocation.

    Attributes:
        name: Lower-case directive name without the '.' marker
        kind: Registry variant handling the directive
        operand_text: Everything after the name
        operands: operand_text split on commas and whitespace
        address: Address assigned in pass 3
        size: Bytes the directive occupies
        value: Operand value decided while scanning (the .org target)
    """
    name: str
    kind: "DirectiveKind"
    operand_text: str = ""
    operands: list[str] = field(default_factory=list)
    address: Optional[int] = None
    size: int = 0
    value: Optional[int] = None


@dataclass
class InstructionCall(Statement):
    """
    A machine instruction.

    Attributes:
        mnemonic: Upper-case mnemonic
        operand: Operand text as written
        mode: Addressing mode chosen in pass 3
        info: Encoding for (mnemonic, mode)
        expression: Operand expression without mode syntax
        address: Address assigned in pass 3
    """
    mnemonic: str
    operand: str = ""
    mode: Optional[AddressingMode] = None
    info: Optional[InstructionInfo] = None
    expression: str = ""
    address: Optional[int] = None

    @property
    def size(self) -> int:
        return self.info.size if self.info else 0


@dataclass
class MacroCall(Statement):
    """A macro invocation and, after pass 2, its expansion."""
    name: str
    arguments: list[str] = field(default_factory=list)
    expansion: list["Line"] = field(default_factory=list)


@dataclass
class Line:
    """
    A classified source line.

    Attributes:
        source: The SourceLine this was parsed from
        label: Label declared on this line, if any
        statement: Equivalence, DirectiveCall, InstructionCall, MacroCall or None
        label_entry: Symbol table entry for the label, set in pass 1
    """
    source: SourceLine
    label: Optional[str] = None
    statement: Optional[Statement] = None
    label_entry: Optional["Label"] = None

    @property
    def location(self) -> SourceLocation:
        return self.source.location


# =============================================================================
# Classification
# =============================================================================

_EQUIVALENCE_PATTERN = re.compile(r"([^\s=:;\"'(),.][^\s=;\"'(),]*)\s*=\s*(.*)\Z")
_WORD_PATTERN = re.compile(r"([^\s(]+)\s*(.*)\Z", re.DOTALL)


def find_label_end(text: str) -> int:
    """
    Index of the ':' that ends a leading label, or -1.

    '::' is part of a name, so only a single ':' ends the label. Whitespace,
    quotes or parentheses before it mean the line has no label.
    """
    i = 0
    while i < len(text):
        char = text[i]
        if char == ":":
            if text.startswith("::", i):
                i += 2
                continue
            return i
        if char.isspace() or char in "\"'()#":
            return -1
        i += 1
    return -1


def parse_line(source: SourceLine, config: "AssemblerConfig") -> Line:
    """
    Classify one line.

    Raises:
        AssemblySyntaxError: If a label or equivalence is syntactically empty
        DirectiveError: If the line uses an unknown directive
    """
    text = source.text

    match = _EQUIVALENCE_PATTERN.match(text)
    if match:
        name, expression = match.group(1), match.group(2).strip()
        if not expression:
            raise AssemblySyntaxError(
                f"missing value for '{name}'", source.location, source_line=text
            )
        return Line(source, statement=Equivalence(name, expression))

    label = None
    end = find_label_end(text)
    if end == 0:
        raise AssemblySyntaxError("missing label name before ':'", source.location, source_line=text)
    if end > 0:
        label = text[:end]
        text = text[end + 1:].strip()

    if not text:
        return Line(source, label=label)

    if text.startswith("."):
        return Line(source, label=label, statement=_parse_directive(source, text, config))

    word_match = _WORD_PATTERN.match(text)
    if word_match is None:
        raise AssemblySyntaxError(
            "expected an instruction, directive or macro name",
            source.location,
            source_line=source.text,
        )
    word, rest = word_match.group(1), word_match.group(2).strip()

    if config.is_instruction(word):
        return Line(source, label=label, statement=InstructionCall(word.upper(), rest))

    if is_wrapped(rest):
        rest = rest[1:-1]
    return Line(source, label=label, statement=MacroCall(word, split_operands(rest)))


def _parse_directive(source: SourceLine, text: str, config: "AssemblerConfig") -> DirectiveCall:
    parts = text[1:].split(None, 1)
    name = parts[0].lower() if parts else ""
    operand_text = parts[1].strip() if len(parts) > 1 else ""

    kind = config.directive_kind(name)
    if kind is None:
        raise DirectiveError(
            f"unknown directive '.{name}'",
            source.location,
            hint=f"known directives: {', '.join('.' + d for d in sorted(config.directive_names()))}",
            source_line=source.text,
        )
    return DirectiveCall(name, kind, operand_text, split_operands(operand_text))


def _is_selector_or_index(text: str, start: int, name: str) -> bool:
    """True if the name at ``start`` is a '.b'/'.w' selector or a ',x'/',y' register."""
    before = text[:start].rstrip()
    if before.endswith("."):
        return True
    return before.endswith(",") and name.lower() in ("x", "y")


def substitute_text(
    text: str,
    replacements: dict[str, str],
    labels: frozenset[str] = frozenset(),
) -> str:
    """
    Replace whole names outside string literals.

    Longer names are replaced first, and a name only matches when the next
    character cannot continue it, so ``%val`` does not touch ``%value``.
    Names in ``labels`` are left alone where they read as a selector
    (``tbl.b``) or an index register (``$10,x``).
    """
    if not replacements:
        return text
    names = sorted(replacements, key=len, reverse=True)
    pattern = re.compile(
        "|".join(rf"(?<![A-Za-z0-9_]){re.escape(name)}(?![A-Za-z0-9_])" for name in names)
    )

    def replace(match: re.Match) -> str:
        name = match.group(0)
        if name in labels and _is_selector_or_index(match.string, match.start(), name):
            return name
        return replacements[name]

    result = []
    segment_start = 0
    literal_start = None
    for i, char, inside in literal_spans(text):
        if inside and literal_start is None:
            result.append(pattern.sub(replace, text[segment_start:i]))
            literal_start = i
        elif not inside and literal_start is not None:
            result.append(text[literal_start:i])
            literal_start = None
            segment_start = i
    if literal_start is not None:
        result.append(text[literal_start:])
    else:
        result.append(pattern.sub(replace, text[segment_start:]))
    return "".join(result)
