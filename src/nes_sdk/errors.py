"""
NES SDK Error Hierarchy
=======================

Every exception raised by the SDK derives from NESError, so a host can
catch all assembler failures with a single except clause.

Exception Hierarchy
-------------------
NESError (base)
└── AssemblerError
    ├── AssemblySyntaxError - malformed line, label or literal
    ├── UndefinedSymbolError - name never declared in any visible scope
    ├── DuplicateSymbolError - name declared twice in one scope
    ├── AddressingModeError - operand matches no mode of the instruction
    ├── BranchRangeError - relative displacement outside -128..127
    ├── ExpressionError - malformed expression or division by zero
    ├── DirectiveError - bad directive name or arity
    ├── MacroError - bad definition, argument count or recursive expansion
    ├── MemoryRangeError - write outside the assembled image
    ├── AssemblyFailedError - aggregate raised at the end of a failed pass
    └── TooManyErrors - error limit reached

Message Format
--------------
    game.asm:12: error: undefined symbol 'plyer_x'
        lda plyer_x
    hint: did you mean 'player_x'?
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class NESError(Exception):
    """
    Base exception for all NES SDK errors.

        try:
            image = assemble(0x8000, 0x8000, {"main.asm": source})
        except NESError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A position in an assembly source file.

    Attributes:
        filename: Name of the source file as given to the assembler
        line: Line number (1-indexed)
        column: Column number (1-indexed), 0 when unknown
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        if self.column > 0:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(NESError):
    """
    Base exception for assembler errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)

    def with_location(
        self,
        location: SourceLocation,
        source_line: Optional[str] = None,
    ) -> "AssemblerError":
        """
        Attach a location to an error raised without one.

        Helpers such as the expression evaluator do not know which line
        they are evaluating; the driver fills the location in afterwards.
        Returns self so the call can be used in a raise statement.
        """
        if self.location is None:
            self.location = location
            if self.source_line is None:
                self.source_line = source_line
            self.args = (self._format_message(),)
        return self


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source.

    Examples:
        - Illegal label name
        - Unterminated string literal
        - Malformed numeric literal
    """
    pass


class UndefinedSymbolError(AssemblerError):
    """
    Reference to a label or equivalence that was never declared.

    Raised once every pass has run and the name is still unknown. Similar
    names are offered as a hint to catch typos.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateSymbolError(AssemblerError):
    """
    Name declared twice in the same scope.

    The hint names the first declaration so both sites are reported.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{symbol}' was first defined at {original_location}"

        super().__init__(
            f"duplicate symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class AddressingModeError(AssemblerError):
    """
    Operand does not fit any addressing mode the instruction supports.

    Example:
        stx $1234,x  ; STX has no absolute,X form
    """

    def __init__(
        self,
        mnemonic: str,
        operand: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        valid_modes: Optional[list[str]] = None,
    ):
        self.mnemonic = mnemonic
        self.operand = operand
        self.valid_modes = valid_modes or []

        hint = None
        if self.valid_modes:
            modes_str = ", ".join(self.valid_modes)
            hint = f"{mnemonic} supports: {modes_str}"

        super().__init__(
            f"no addressing mode of '{mnemonic}' matches operand '{operand}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class BranchRangeError(AssemblerError):
    """
    Branch target is out of range.

    6502 branches take a signed 8-bit displacement measured from the
    instruction that follows the branch. Far targets need an inverted
    branch over a JMP:

           bne skip
           jmp far_target
       skip:
    """

    def __init__(
        self,
        target: str,
        offset: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.target = target
        self.offset = offset

        direction = "forward" if offset > 0 else "backward"
        hint = (
            f"branch offset is {offset}, but range is -128 to +127; "
            f"use JMP for {direction} targets this far away"
        )

        super().__init__(
            f"branch target '{target}' is out of range (offset: {offset})",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class ExpressionError(AssemblerError):
    """
    Expression cannot be evaluated.

    Raised for unbalanced parentheses, division by zero, a missing
    operand, a trailing token or a malformed literal.
    """
    pass


class DirectiveError(AssemblerError):
    """
    Directive used incorrectly.

    Examples:
        - Unknown directive name (.foo)
        - .org without exactly one numeric operand
        - .globl without operands
    """
    pass


class MacroError(AssemblerError):
    """
    Error in macro definition or expansion.

    Raised when:
    - A placeholder is malformed or its parentheses are misplaced
    - A macro name is redefined or collides with an instruction
    - An invocation passes the wrong number of arguments
    - Expansion recurses into a macro already being expanded
    """
    pass


class MemoryRangeError(AssemblerError):
    """A write fell outside the [start, start + size) window of the image."""

    def __init__(
        self,
        address: int,
        start: int,
        size: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.address = address
        self.start = start
        self.size = size
        super().__init__(
            f"address ${address:04X} is out of bounds",
            location=location,
            hint=f"image covers ${start:04X}-${start + size - 1:04X}",
            source_line=source_line,
        )


class AssemblyFailedError(AssemblerError):
    """
    Aggregate error raised when any pass collected errors.

    Attributes:
        errors: Every error collected, in the order it was found
        warnings: Warnings collected before the failure
    """

    def __init__(self, errors: list[AssemblerError], warnings: Optional[list[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        count = len(self.errors)
        word = "error" if count == 1 else "errors"
        details = "\n\n".join(str(e) for e in self.errors)
        super().__init__(f"assembly failed with {count} {word}:\n\n{details}")


# =============================================================================
# Error Collection for Multiple Error Reporting
# =============================================================================

class ErrorCollector:
    """
    Collects errors and warnings so one run reports every problem.

    Example:
        collector = ErrorCollector(max_errors=100)
        collector.add(UndefinedSymbolError("reset"))
        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self, max_errors: int = 100):
        """
        Args:
            max_errors: Maximum errors to collect before raising TooManyErrors
        """
        self.errors: list[AssemblerError] = []
        self.warnings: list[str] = []
        self.max_errors = max_errors

    def add(self, error: AssemblerError) -> None:
        """
        Add an error to the collection.

        Raises:
            TooManyErrors: If max_errors has been reached
        """
        self.errors.append(error)
        if len(self.errors) >= self.max_errors:
            raise TooManyErrors(f"too many errors ({self.max_errors}), stopping")

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def error_count(self) -> int:
        return len(self.errors)

    def warning_count(self) -> int:
        return len(self.warnings)

    def report(self) -> str:
        """Format all errors and warnings for display."""
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        if self.warnings:
            lines.append("Warnings:")
            for warning in self.warnings:
                lines.append(f"  {warning}")

        error_word = "error" if len(self.errors) == 1 else "errors"
        warning_word = "warning" if len(self.warnings) == 1 else "warnings"
        lines.append(
            f"\n{len(self.errors)} {error_word}, {len(self.warnings)} {warning_word}"
        )

        return "\n".join(lines)

    def clear(self) -> None:
        self.errors.clear()
        self.warnings.clear()


class TooManyErrors(AssemblerError):
    """Raised when the collector reaches its error limit."""

    def __init__(self, message: str = "too many errors"):
        super().__init__(message)
