"""
Assembler Configuration
=======================

Everything an assembler instance looks up while it runs: the instruction
set, the directive registry and the macro conventions. Each Assembler gets
its own AssemblerConfig, so tests can register extra directives or shrink
the instruction set without touching any module-level table.

    config = AssemblerConfig(max_errors=10)
    config.is_instruction("lda")        # True
    config.directive_kind("org")        # DirectiveKind.ORG
"""

from dataclasses import dataclass, field
from typing import Optional

from nes_sdk.cpu.mos6502 import OPCODE_TABLE, AddressingMode, InstructionInfo
from nes_sdk.assembler.directives import (
    DIRECTIVE_HANDLERS,
    DirectiveHandler,
    DirectiveKind,
)


def _default_instruction_set() -> dict[str, dict[AddressingMode, InstructionInfo]]:
    instruction_set: dict[str, dict[AddressingMode, InstructionInfo]] = {}
    for (mnemonic, mode), info in OPCODE_TABLE.items():
        instruction_set.setdefault(mnemonic, {})[mode] = info
    return instruction_set


def _default_directives() -> dict[str, DirectiveKind]:
    return {kind.value: kind for kind in DirectiveKind}


@dataclass
class AssemblerConfig:
    """
    Per-instance assembler settings.

    Attributes:
        instruction_set: Upper-case mnemonic -> addressing mode -> encoding
        directives: Lower-case directive name -> DirectiveKind
        handlers: DirectiveKind -> pass callbacks
        macro_sentinel: Prefix every macro parameter must start with
        macro_label_suffix: Format of the suffix added to labels inside an
                            expanded macro body; ``{count}`` is the
                            expansion number
        max_errors: Errors collected before the run is abandoned
    """
    instruction_set: dict[str, dict[AddressingMode, InstructionInfo]] = field(
        default_factory=_default_instruction_set
    )
    directives: dict[str, DirectiveKind] = field(default_factory=_default_directives)
    handlers: dict[DirectiveKind, DirectiveHandler] = field(
        default_factory=lambda: dict(DIRECTIVE_HANDLERS)
    )
    macro_sentinel: str = "%"
    macro_label_suffix: str = "_M{count}"
    max_errors: int = 100

    # =========================================================================
    # Instructions
    # =========================================================================

    def is_instruction(self, word: str) -> bool:
        return word.upper() in self.instruction_set

    def modes_for(self, mnemonic: str) -> list[AddressingMode]:
        """Modes the instruction supports, in enum order."""
        modes = self.instruction_set.get(mnemonic.upper(), {})
        return [mode for mode in AddressingMode if mode in modes]

    def instruction(self, mnemonic: str, mode: AddressingMode) -> Optional[InstructionInfo]:
        return self.instruction_set.get(mnemonic.upper(), {}).get(mode)

    # =========================================================================
    # Directives
    # =========================================================================

    def directive_kind(self, name: str) -> Optional[DirectiveKind]:
        return self.directives.get(name.lower())

    def directive_names(self) -> list[str]:
        return list(self.directives)

    def handler(self, kind: DirectiveKind) -> DirectiveHandler:
        return self.handlers[kind]
