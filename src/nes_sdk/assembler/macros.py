"""
Macro Definitions and Expansion
===============================

A macro is declared with ``.macro``, its body is every line up to the
matching ``.endmacro``, and it is invoked by name like an instruction:

    .macro set_ppu_addr (%addr)
        lda #>%addr
        sta $2006
        lda #<%addr
        sta $2006
    .endmacro

        set_ppu_addr ($3F00)
        set_ppu_addr $2000

Parameters start with the sentinel character (``%``) and are substituted
positionally as whole names, so ``%val`` never touches ``%value``. Labels
declared inside the body get a per-expansion suffix (``loop`` becomes
``loop_M3``), so a macro with a loop can be used more than once.

Every expansion builds new SourceLine objects; the definition body is never
modified. Expanding a macro that is already being expanded, directly or
through other macros, is a MacroError.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional
import logging

from nes_sdk.errors import MacroError, SourceLocation
from nes_sdk.assembler.lexer import split_operands
from nes_sdk.assembler.parser import SourceLine, find_label_end, substitute_text

if TYPE_CHECKING:
    from nes_sdk.assembler.config import AssemblerConfig

logger = logging.getLogger(__name__)


# =============================================================================
# Definition Header
# =============================================================================

def parse_macro_header(operand_text: str, config: "AssemblerConfig") -> tuple[str, list[str]]:
    """
    Split the operands of ``.macro`` into the macro name and its parameters.

    Accepts ``name (%a, %b)``, ``name(%a, %b)`` and ``name %a %b``.
    Parentheses may only open the first parameter and close the last.

    Raises:
        MacroError: On a bad name or a malformed, misplaced or repeated
                    parameter
    """
    tokens = split_operands(operand_text, join_operators=False, group_parentheses=False)
    if not tokens:
        raise MacroError("'.macro' needs a name")

    name = tokens[0]
    parameters = tokens[1:]
    paren = name.find("(")
    if paren > 0:
        name, parameters = name[:paren], [name[paren:]] + parameters

    if name.startswith("."):
        raise MacroError(f"macro name '{name}' cannot start with '.'")
    if "(" in name or ")" in name:
        raise MacroError(f"macro name '{name}' cannot contain parentheses")
    if config.is_instruction(name):
        raise MacroError(f"macro name '{name}' is an instruction mnemonic")

    return name, _parse_parameters(parameters, config.macro_sentinel)


def _parse_parameters(tokens: list[str], sentinel: str) -> list[str]:
    parameters: list[str] = []
    opened = closed = False
    last = len(tokens) - 1

    for index, token in enumerate(tokens):
        text = token
        if text.startswith("("):
            if index != 0:
                raise MacroError(f"invalid macro parameter '{token}' (index {index})")
            opened = True
            text = text[1:]
        if text.endswith(")"):
            if index != last or not opened:
                raise MacroError(f"invalid macro parameter '{token}' (index {index})")
            closed = True
            text = text[:-1]

        if not text and token in ("(", ")", "()"):
            continue
        if "(" in text or ")" in text or not text.startswith(sentinel) or text == sentinel:
            raise MacroError(
                f"invalid macro parameter '{token}' (index {index})",
                hint=f"parameters start with '{sentinel}', e.g. {sentinel}value",
            )
        if text in parameters:
            raise MacroError(f"duplicate macro parameter '{text}' (index {index})")
        parameters.append(text)

    if opened and not closed:
        raise MacroError("unbalanced parentheses in macro parameters")
    return parameters


# =============================================================================
# Macro Table
# =============================================================================

@dataclass
class MacroDefinition:
    """
    A captured macro.

    Attributes:
        name: Macro name as declared (case-sensitive)
        parameters: Placeholder names, in call order
        body: Lines between .macro and .endmacro
        location: Where the .macro line is
    """
    name: str
    parameters: list[str]
    location: SourceLocation
    body: list[SourceLine] = field(default_factory=list)

    def body_labels(self) -> list[str]:
        """Names of the labels declared in the body."""
        labels = []
        for line in self.body:
            end = find_label_end(line.text)
            if end > 0:
                labels.append(line.text[:end])
        return labels


class MacroTable:
    """
    Macro definitions of one assembly run and the expansion counter.

    Usage:
        table = MacroTable(config)
        table.open("clear", [], location)
        table.capture(SourceLine("main.asm", 2, "lda #0"))
        table.close()
        lines = table.expand("clear", [], call_line)
    """

    def __init__(self, config: "AssemblerConfig"):
        self.config = config
        self._macros: dict[str, MacroDefinition] = {}
        self._open: Optional[MacroDefinition] = None
        self._expansions = 0

    # =========================================================================
    # Definition
    # =========================================================================

    @property
    def is_defining(self) -> bool:
        return self._open is not None

    @property
    def open_definition(self) -> Optional[MacroDefinition]:
        return self._open

    def open(self, name: str, parameters: list[str], location: SourceLocation) -> MacroDefinition:
        """
        Start capturing a definition.

        Raises:
            MacroError: If a definition is already open or the name is taken
        """
        if self._open is not None:
            raise MacroError(
                f"macro definitions cannot be nested (inside '{self._open.name}')",
                location,
            )
        existing = self._macros.get(name)
        if existing is not None:
            raise MacroError(
                f"macro '{name}' is already defined",
                location,
                hint=f"first defined at {existing.location}",
            )
        self._open = MacroDefinition(name, list(parameters), location)
        return self._open

    def capture(self, line: SourceLine) -> None:
        if self._open is None:
            raise MacroError("no macro definition is open", line.location, source_line=line.text)
        self._open.body.append(line)

    def close(self) -> MacroDefinition:
        if self._open is None:
            raise MacroError("'.endmacro' without a matching '.macro'")
        definition = self._open
        self._macros[definition.name] = definition
        self._open = None
        logger.debug(
            f"{definition.location}: macro '{definition.name}' defined "
            f"({len(definition.parameters)} parameters, {len(definition.body)} lines)"
        )
        return definition

    def abandon(self) -> Optional[MacroDefinition]:
        """Drop an unterminated definition and return it."""
        definition, self._open = self._open, None
        return definition

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, name: str) -> Optional[MacroDefinition]:
        return self._macros.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._macros

    def __len__(self) -> int:
        return len(self._macros)

    # =========================================================================
    # Expansion
    # =========================================================================

    def expand(
        self,
        name: str,
        arguments: list[str],
        call: SourceLine,
        active: tuple[str, ...] = (),
    ) -> list[SourceLine]:
        """
        Produce the substituted body of one invocation.

        Args:
            name: Macro being invoked
            arguments: Argument texts, one per parameter
            call: The invoking line; expanded lines take its file and line
            active: Macros whose expansion contains this invocation

        Returns:
            Fresh SourceLines tagged with the macro name

        Raises:
            MacroError: If the macro is unknown, the argument count is wrong,
                        or the macro is already in ``active``
        """
        definition = self._macros.get(name)
        if definition is None:
            raise MacroError(
                f"unknown instruction or macro '{name}'",
                call.location,
                source_line=call.text,
            )
        if name in active:
            chain = " -> ".join(active + (name,))
            raise MacroError(
                f"recursive expansion of macro '{name}' ({chain})",
                call.location,
                source_line=call.text,
            )
        if len(arguments) != len(definition.parameters):
            raise MacroError(
                f"macro '{name}' takes {len(definition.parameters)} arguments, "
                f"got {len(arguments)}",
                call.location,
                hint=f"defined at {definition.location}",
                source_line=call.text,
            )

        self._expansions += 1
        suffix = self.config.macro_label_suffix.format(count=self._expansions)
        replacements = dict(zip(definition.parameters, arguments))
        labels = frozenset(label for label in definition.body_labels() if label not in replacements)
        for label in labels:
            replacements[label] = label + suffix

        logger.debug(f"{call.location}: expanding macro '{name}' ({suffix})")
        return [
            SourceLine(
                call.filename,
                call.number,
                substitute_text(line.text, replacements, labels),
                macro=name,
            )
            for line in definition.body
        ]
