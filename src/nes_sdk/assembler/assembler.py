"""
6502 Assembler - Main Interface
===============================

The Assembler class runs the four passes over every source file and
produces an AssembledImage.

Example Usage
-------------
>>> from nes_sdk.assembler import Assembler
>>>
>>> asm = Assembler({"main.asm": '''
... reset:
...     sei
...     lda #$01
...     jmp reset
... '''})
>>> image = asm.assemble()
>>> image.to_bytes(trim=True).hex()
'78a9014c0080'

Passes
------
Each pass runs over all files, in the order they were given, before the
next pass starts:

1. **Scan**: declare labels and equivalences, size directives, capture
   macro bodies, apply ``.globl``.
2. **Expand**: replace macro invocations by their substituted bodies.
3. **Allocate**: walk the memory pointer, pick each instruction's
   addressing mode and give every label the address of the next statement.
4. **Emit**: evaluate operands with every label known and write the bytes.

Errors are collected per line. Any pass that ends with errors raises
AssemblyFailedError with all of them; no image is returned.

Command-Line Usage
------------------
    $ nesasm main.asm vectors.asm -o game.prg -l game.lst -s game.sym
"""

from pathlib import Path
from typing import Optional
import logging
import time

from nes_sdk.errors import (
    AddressingModeError,
    AssemblerError,
    AssemblyFailedError,
    BranchRangeError,
    ErrorCollector,
    ExpressionError,
    MacroError,
    SourceLocation,
    TooManyErrors,
    UndefinedSymbolError,
)
from nes_sdk.cpu.mos6502 import BYTE_RANGE, WORD_RANGE, AddressingMode
from nes_sdk.assembler.addressing import select_mode
from nes_sdk.assembler.config import AssemblerConfig
from nes_sdk.assembler.directives import DirectiveKind
from nes_sdk.assembler.expressions import (
    Deferred,
    ExpressionEvaluator,
    Resolved,
    SymbolResolver,
    Value,
)
from nes_sdk.assembler.macros import MacroTable
from nes_sdk.assembler.memory import AssembledImage
from nes_sdk.assembler.parser import (
    DirectiveCall,
    Equivalence,
    InstructionCall,
    Line,
    MacroCall,
    load_source,
    parse_line,
)
from nes_sdk.assembler.symbols import (
    Equivalent,
    Label,
    LabelReference,
    SymbolTable,
)

logger = logging.getLogger(__name__)


class Assembler:
    """
    Assembles a set of 6502 source files into one image.

    An instance runs once; create a new one for every assembly.

    Attributes:
        files: File name -> source text, in assembly order
        config: Instruction set, directive registry and limits
        symbols: Labels and equivalences of every file
        macros: Macro definitions
        image: The output buffer
        assembled: True once all four passes finished without errors
    """

    def __init__(
        self,
        files: dict[str, str],
        start: int = 0x8000,
        max_size: int = 0x8000,
        config: Optional[AssemblerConfig] = None,
    ):
        """
        Args:
            files: File name -> source text; files are assembled in this order
            start: First address of the image
            max_size: Size of the image in bytes
            config: Assembler configuration (default: AssemblerConfig())
        """
        self.files = dict(files)
        self.config = config or AssemblerConfig()
        self.symbols = SymbolTable()
        self.macros = MacroTable(self.config)
        self.image = AssembledImage(start, max_size)
        self.errors = ErrorCollector(self.config.max_errors)
        self.assembled = False

        self._started = False
        self._lines: dict[str, list[Line]] = {}
        self._evaluating: set[tuple[str, str]] = set()
        self._reported: set[tuple[str, int, str]] = set()

    @property
    def start(self) -> int:
        return self.image.start

    @property
    def max_size(self) -> int:
        return self.image.size

    @property
    def warnings(self) -> list[str]:
        return self.errors.warnings

    # =========================================================================
    # Main Entry Point
    # =========================================================================

    def assemble(self) -> AssembledImage:
        """
        Run all four passes.

        Returns:
            The assembled image

        Raises:
            AssemblyFailedError: If any line had an error
            AssemblerError: If this instance already ran
        """
        if self._started:
            raise AssemblerError("this assembler has already run; create a new Assembler")
        self._started = True
        began = time.perf_counter()

        try:
            self._load()
            self._raise_if_errors()

            logger.info("Scanning metadata...")
            self._pass_scan()
            self._raise_if_errors()

            logger.info("Executing macros...")
            self._pass_expand()
            self._raise_if_errors()

            logger.info("Assigning addresses...")
            self._pass_allocate()
            self._raise_if_errors()

            logger.info("Assigning values...")
            self._pass_emit()
            self._check_references()
            self._raise_if_errors()
        except TooManyErrors as e:
            raise AssemblyFailedError(self.errors.errors, self.errors.warnings) from e

        self.assembled = True
        elapsed = (time.perf_counter() - began) * 1000
        logger.info(f"{len(self.files)} files assembled in {elapsed:.0f} ms")
        return self.image

    # =========================================================================
    # Error Reporting
    # =========================================================================

    def _report(self, error: AssemblerError, line: Optional[Line] = None) -> None:
        if line is not None:
            error.with_location(line.location, line.source.text)
        self.errors.add(error)

    def _raise_if_errors(self) -> None:
        if self.errors.has_errors():
            raise AssemblyFailedError(self.errors.errors, self.errors.warnings)

    def warn(self, message: str, line: Line) -> None:
        """Record a warning against a line."""
        text = f"{line.location}: warning: {message}"
        self.errors.add_warning(text)
        logger.warning(text)

    # =========================================================================
    # Loading
    # =========================================================================

    def _load(self) -> None:
        """Strip comments and classify every line of every file."""
        for filename, text in self.files.items():
            lines = []
            for source in load_source(filename, text):
                try:
                    lines.append(parse_line(source, self.config))
                except AssemblerError as e:
                    self._report(e)
            self._lines[filename] = lines
            logger.debug(f"{filename}: {len(lines)} lines")

    # =========================================================================
    # Pass 1: Scan
    # =========================================================================

    def _pass_scan(self) -> None:
        for filename, lines in self._lines.items():
            kept = []
            for line in lines:
                try:
                    if self._scan(line):
                        kept.append(line)
                except AssemblerError as e:
                    self._report(e, line)

            unclosed = self.macros.abandon()
            if unclosed is not None:
                self._report(MacroError(
                    f"macro '{unclosed.name}' is never closed with '.endmacro'",
                    unclosed.location,
                ))
            self._lines[filename] = kept

    def _scan(self, line: Line) -> bool:
        """
        Run pass-1 work for one line.

        Returns:
            False if the line was captured into an open macro definition
        """
        statement = line.statement
        is_macro_directive = isinstance(statement, DirectiveCall) and statement.kind in (
            DirectiveKind.MACRO,
            DirectiveKind.ENDMACRO,
        )

        if self.macros.is_defining and not is_macro_directive:
            self.macros.capture(line.source)
            return False

        filename = line.source.filename
        if line.label is not None:
            line.label_entry = self.symbols.declare(line.label, None, filename, line.source.number)

        if isinstance(statement, Equivalence):
            statement.entry = self.symbols.declare_equivalent(
                statement.name, statement.expression, filename, line.source.number
            )
        elif isinstance(statement, DirectiveCall):
            self.config.handler(statement.kind).scan(self, line, statement)
        return True

    # =========================================================================
    # Pass 2: Macro Expansion
    # =========================================================================

    def _pass_expand(self) -> None:
        for filename, lines in self._lines.items():
            expanded = []
            for line in lines:
                expanded.append(line)
                statement = line.statement
                try:
                    if isinstance(statement, MacroCall):
                        statement.expansion = self._expand(line, ())
                        expanded.extend(statement.expansion)
                    elif isinstance(statement, DirectiveCall):
                        self.config.handler(statement.kind).expand(self, line, statement)
                except AssemblerError as e:
                    self._report(e, line)
            self._lines[filename] = expanded

    def _expand(self, line: Line, active: tuple[str, ...]) -> list[Line]:
        """
        Expand one invocation, recursing into nested invocations.

        Returns:
            The expanded lines, nested expansions inlined after their
            invocation line
        """
        call = line.statement
        result = []
        for source in self.macros.expand(call.name, call.arguments, line.source, active):
            child = parse_line(source, self.config)
            if not self._scan(child):
                continue
            result.append(child)
            statement = child.statement
            if isinstance(statement, MacroCall):
                statement.expansion = self._expand(child, active + (call.name,))
                result.extend(statement.expansion)
            elif isinstance(statement, DirectiveCall):
                self.config.handler(statement.kind).expand(self, child, statement)
        return result

    # =========================================================================
    # Pass 3: Address Assignment
    # =========================================================================

    def _pass_allocate(self) -> None:
        for filename, lines in self._lines.items():
            pending: list[Label] = []
            for line in lines:
                if line.label_entry is not None:
                    pending.append(line.label_entry)
                statement = line.statement
                try:
                    if isinstance(statement, InstructionCall):
                        self._select_mode(line, statement)
                        statement.address = self.image.pointer
                        self._place(pending, statement.address)
                        self.image.pointer += statement.size
                    elif isinstance(statement, DirectiveCall):
                        statement.address = self.image.pointer
                        self.config.handler(statement.kind).allocate(self, line, statement)
                        # Labels before a pointer move (.org) belong to the new address
                        if self.image.pointer == statement.address:
                            self._place(pending, statement.address)
                        self.image.pointer += statement.size
                except AssemblerError as e:
                    self._report(e, line)
            self._place(pending, self.image.pointer)

    def _place(self, pending: list[Label], address: int) -> None:
        for label in pending:
            self.symbols.assign_address(label, address)
            logger.debug(f"{label.location}: {label.name} = ${address:04X}")
        pending.clear()

    def _select_mode(self, line: Line, call: InstructionCall) -> None:
        supported = self.config.modes_for(call.mnemonic)
        try:
            selection = select_mode(call.operand, supported, self._resolver(line.source.filename))
        except ExpressionError as e:
            raise ExpressionError(
                f"cannot parse operand '{call.operand}' of {call.mnemonic}: {e.message}",
                line.location,
                hint=e.hint,
                source_line=line.source.text,
            ) from e
        if selection is None:
            raise AddressingModeError(
                call.mnemonic,
                call.operand,
                line.location,
                line.source.text,
                valid_modes=[str(mode) for mode in supported],
            )
        mode, result = selection
        call.mode = mode
        call.info = self.config.instruction(call.mnemonic, mode)
        call.expression = result.expression
        logger.debug(f"{line.location}: {call.mnemonic} '{call.operand}' -> {mode.tag}")

    # =========================================================================
    # Pass 4: Emission
    # =========================================================================

    def _pass_emit(self) -> None:
        for lines in self._lines.values():
            for line in lines:
                statement = line.statement
                try:
                    if isinstance(statement, InstructionCall):
                        self._emit_instruction(line, statement)
                    elif isinstance(statement, DirectiveCall):
                        self.config.handler(statement.kind).emit(self, line, statement)
                    elif isinstance(statement, Equivalence):
                        self._check_equivalence(line, statement)
                except AssemblerError as e:
                    self._report(e, line)

    def _emit_instruction(self, line: Line, call: InstructionCall) -> None:
        address = call.address
        mode = call.mode
        self.image.write(address, call.info.opcode)
        if mode == AddressingMode.IMPLIED:
            return

        value = self.evaluate(call.expression, line, address)
        if value.overflowed:
            self.warn(f"operand of {call.mnemonic} truncated to ${value.value & 0xFFFF:02X}", line)

        if mode == AddressingMode.RELATIVE:
            offset = value.value - (address + call.size)
            if not -128 <= offset <= 127:
                raise BranchRangeError(call.expression, offset, line.location, line.source.text)
            self.image.write(address + 1, offset & 0xFF)
        elif not mode.uses_word:
            if value.value not in BYTE_RANGE:
                raise AssemblerError(
                    f"value ${value.value & 0xFFFF:04X} does not fit the {mode} operand of {call.mnemonic}",
                    hint="the operand was assumed to fit in one byte when its address was assigned",
                )
            self.image.write(address + 1, value.value & 0xFF)
        else:
            if value.value not in WORD_RANGE:
                raise AssemblerError(f"value {value.value} does not fit in 16 bits")
            self.image.write_word(address + 1, value.value & 0xFFFF)

    def _check_equivalence(self, line: Line, statement: Equivalence) -> None:
        """Evaluate equivalences nothing used so their errors are still reported."""
        if statement.entry is not None and self._equivalent_value(statement.entry) is None:
            self.evaluate(statement.expression, line)

    def _check_references(self) -> None:
        for name, ref in self.symbols.unresolved_references():
            if (ref.filename, ref.line, name) in self._reported:
                continue
            self._reported.add((ref.filename, ref.line, name))
            self._report(UndefinedSymbolError(
                name,
                location=SourceLocation(ref.filename, ref.line),
                similar_symbols=self.symbols.similar_names(name, ref.filename),
            ))

    # =========================================================================
    # Expression Evaluation
    # =========================================================================

    def evaluate(self, expression: str, line: Line, address: Optional[int] = None) -> Value:
        """
        Evaluate an operand with every known symbol.

        Args:
            expression: Expression text
            line: Line the expression belongs to (its file picks the scope)
            address: Address of the statement; when given, every name used
                     is recorded as a reference from there

        Raises:
            UndefinedSymbolError: If a name has no value
            ExpressionError: If the expression is malformed
        """
        filename = line.source.filename
        site = LabelReference(address, filename, line.source.number) if address is not None else None
        result = ExpressionEvaluator(self._resolver(filename, site)).evaluate(
            expression, allow_unresolved=True
        )
        if isinstance(result, Deferred):
            for name in sorted(result.unresolved):
                self._reported.add((filename, line.source.number, name))
            name = sorted(result.unresolved)[0]
            raise UndefinedSymbolError(
                name,
                line.location,
                source_line=line.source.text,
                similar_symbols=self.symbols.similar_names(name, filename),
            )
        return result.value

    def _resolver(self, filename: str, site: Optional[LabelReference] = None) -> SymbolResolver:
        """Build a resolver for names used in ``filename``."""
        def resolve(name: str) -> Optional[int]:
            if site is not None:
                self.symbols.reference(name, site.address, site.filename, site.line)
            entry = self.symbols.lookup(name, filename)
            if entry is None:
                return None
            if isinstance(entry, Equivalent):
                return self._equivalent_value(entry)
            return entry.address
        return resolve

    def _equivalent_value(self, entry: Equivalent) -> Optional[int]:
        """
        Evaluate an equivalence on first use.

        The value is cached once every name it uses is known.

        Raises:
            ExpressionError: If the equivalence depends on itself
        """
        if entry.value is not None:
            return entry.value

        key = (entry.location.filename, entry.name)
        if key in self._evaluating:
            raise ExpressionError(f"'{entry.name}' is defined in terms of itself", entry.location)

        self._evaluating.add(key)
        try:
            result = ExpressionEvaluator(self._resolver(entry.location.filename)).evaluate(
                entry.expression, allow_unresolved=True
            )
        finally:
            self._evaluating.discard(key)

        if isinstance(result, Resolved):
            entry.value = result.value.value
        return entry.value

    # =========================================================================
    # Output
    # =========================================================================

    def disassemble(self, from_address: Optional[int] = None, to_address: Optional[int] = None) -> dict[int, str]:
        """Address -> instruction text for the assembled image."""
        return self.image.disassemble(from_address, to_address)

    def format_symbols(self) -> str:
        """
        Symbol table as text.

        Format: name, value and scope (``global`` or the declaring file),
        one symbol per line, sorted by name.
        """
        lines = ["# Symbol table", "# Generated by nesasm"]
        for entry in sorted(self.symbols, key=lambda e: (e.name, e.location.filename)):
            if isinstance(entry, Label):
                value = entry.address
            else:
                value = self._equivalent_value(entry)
            if value is None:
                continue
            scope = "global" if entry.is_global else entry.location.filename
            lines.append(f"{entry.name:<24} ${value & 0xFFFF:04X}  {scope}")
        return "\n".join(lines) + "\n"

    def write_symbols(self, filepath: str | Path) -> None:
        with open(filepath, "w") as f:
            f.write(self.format_symbols())

    def write_binary(self, filepath: str | Path, trim: bool = False) -> None:
        """
        Write the image.

        Raises:
            AssemblerError: If assembly has not completed
        """
        if not self.assembled:
            raise AssemblerError("nothing to write; assembly has not completed")
        with open(filepath, "wb") as f:
            f.write(self.image.to_bytes(trim))

    def format_listing(self) -> str:
        """
        Assembly listing: address, emitted bytes, line number and source.

        Lines produced by a macro expansion are marked with '+'.
        """
        lines = [
            "NES Assembler Listing",
            "=" * 72,
            "",
            "Addr  Code          Line   Source",
            "-" * 72,
        ]
        for filename, file_lines in self._lines.items():
            lines.append(f"; {filename}")
            for line in file_lines:
                lines.append(self._listing_row(line))
        return "\n".join(lines) + "\n"

    def _listing_row(self, line: Line) -> str:
        statement = line.statement
        address = None
        size = 0
        if isinstance(statement, (InstructionCall, DirectiveCall)):
            address = statement.address
            size = statement.size

        address_str = f"{address:04X}" if address is not None else ""
        code = []
        if address is not None:
            for byte_address in range(address, address + size):
                if byte_address in self.image and self.image.is_written(byte_address):
                    code.append(f"{self.image.read(byte_address):02X}")
        code_str = " ".join(code[:4]) + (" .." if len(code) > 4 else "")
        marker = "+" if line.source.macro else " "
        return f"{address_str:<4}  {code_str:<12}  {line.source.number:5}{marker} {line.source.text}"

    def write_listing(self, filepath: str | Path) -> None:
        with open(filepath, "w") as f:
            f.write(self.format_listing())


def assemble(start: int, max_size: int, files: dict[str, str]) -> AssembledImage:
    """
    Assemble ``files`` into an image covering ``[start, start + max_size)``.

    Raises:
        AssemblyFailedError: With every error found
    """
    return Assembler(files, start, max_size).assemble()
