"""
Label and Symbol Table
======================

Tracks labels (named addresses) and equivalences (``NAME = expr``) across
every source file of one assembly.

Scopes
------
A name is local to the file that declares it. ``.globl name`` exports it
so every file can see it. Lookups try the file's own scope first, then the
global scope, so a local name may shadow a global one.

``.globl`` may come before or after the declaration:

    .globl reset        ; before: reset is declared straight into global scope
    reset:
        sei

    nmi:
        rti
    .globl nmi          ; after: nmi moves to global scope with its references

References
----------
Every use of a name is recorded as a LabelReference (address, file,
line). References to names that are not declared yet are queued and
attached once the name appears. Whatever is still queued after the last
pass is an undefined symbol.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional
import re

from nes_sdk.errors import (
    AssemblySyntaxError,
    DuplicateSymbolError,
    SourceLocation,
)
from nes_sdk.assembler.expressions import edit_distance


# =============================================================================
# Label Legality
# =============================================================================

_LABEL_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:::[A-Za-z0-9_]+)*\Z")

# 'a' is the accumulator operand (asl a)
_RESERVED_NAMES = frozenset({"a", "A"})


def is_label_legal(name: str) -> bool:
    """
    Check whether ``name`` can be declared as a label or equivalence.

    Legal names start with a letter or underscore, continue with letters,
    digits and underscores, and may be joined with ``::``. They cannot be
    the accumulator name ``a`` or look like an index suffix (``foo,x``).

    >>> is_label_legal("player::x_pos")
    True
    >>> is_label_legal("table,x")
    False
    """
    if not name or name in _RESERVED_NAMES:
        return False
    return _LABEL_PATTERN.match(name) is not None


# =============================================================================
# Symbol Table Entries
# =============================================================================

@dataclass(frozen=True)
class LabelReference:
    """A place where a name was used."""
    address: int
    filename: str
    line: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line} (${self.address:04X})"


@dataclass
class Label:
    """
    A named address.

    Attributes:
        name: Case-sensitive label name
        location: Where the label was declared
        address: Resolved address, None until addresses are assigned
        is_global: True once exported with .globl
        references: Every site that used the label
    """
    name: str
    location: SourceLocation
    address: Optional[int] = None
    is_global: bool = False
    references: set[LabelReference] = field(default_factory=set)

    @property
    def value(self) -> Optional[int]:
        return self.address


@dataclass
class Equivalent:
    """
    A named constant expression (``SND_NOISE_REG = $400C``).

    The expression is evaluated on first use, so it may refer to labels
    and other equivalences declared later in the source.
    """
    name: str
    expression: str
    location: SourceLocation
    value: Optional[int] = None
    is_global: bool = False
    references: set[LabelReference] = field(default_factory=set)


Symbol = Label | Equivalent


# =============================================================================
# Symbol Table
# =============================================================================

class SymbolTable:
    """
    File-scoped and global symbols of one assembly run.

    Usage:
        table = SymbolTable()
        table.declare("reset", 0x8000, "main.asm", 3)
        table.reference("reset", 0x8010, "main.asm", 9)
        table.resolve("reset", "main.asm")   # 0x8000
    """

    def __init__(self):
        self._globals: dict[str, Symbol] = {}
        self._locals: dict[str, dict[str, Symbol]] = {}
        self._exports: dict[str, set[str]] = {}
        self._pending: dict[tuple[str, str], list[LabelReference]] = {}

    # =========================================================================
    # Declaration
    # =========================================================================

    def declare(
        self,
        name: str,
        address: Optional[int],
        filename: str,
        line: int,
        is_global: bool = False,
    ) -> Label:
        """
        Declare a label.

        Args:
            name: Label name
            address: Its address, or None if not assigned yet
            filename: Declaring file
            line: Declaring line (1-indexed)
            is_global: Declare straight into the global scope

        Raises:
            AssemblySyntaxError: If the name is not a legal label
            DuplicateSymbolError: If the name already exists in that scope
        """
        label = Label(name, SourceLocation(filename, line), address)
        return self._add(label, is_global)

    def declare_equivalent(
        self,
        name: str,
        expression: str,
        filename: str,
        line: int,
        is_global: bool = False,
    ) -> Equivalent:
        """Declare an equivalence. Raises like declare()."""
        equivalent = Equivalent(name, expression, SourceLocation(filename, line))
        return self._add(equivalent, is_global)

    def _add(self, entry: Symbol, is_global: bool) -> Symbol:
        name = entry.name
        filename = entry.location.filename
        if not is_label_legal(name):
            raise AssemblySyntaxError(
                f"illegal label name '{name}'",
                entry.location,
                hint="names start with a letter or '_' and use letters, digits, '_' or '::'",
            )

        if is_global or name in self._exports.get(filename, ()):
            entry.is_global = True
            scope = self._globals
        else:
            scope = self._locals.setdefault(filename, {})

        existing = scope.get(name)
        if existing is not None:
            raise DuplicateSymbolError(
                name,
                location=entry.location,
                original_location=existing.location,
            )

        scope[name] = entry
        return entry

    def promote_to_global(self, name: str, filename: str) -> Optional[Symbol]:
        """
        Export ``name`` from ``filename``.

        Returns the now-global entry, or None if the name is not declared
        yet (it will be declared global when it appears).

        Raises:
            DuplicateSymbolError: If another file already exports the name
        """
        local_scope = self._locals.get(filename, {})
        if name in local_scope:
            entry = local_scope[name]
            existing = self._globals.get(name)
            if existing is not None:
                raise DuplicateSymbolError(
                    name,
                    location=entry.location,
                    original_location=existing.location,
                )
            del local_scope[name]
            entry.is_global = True
            self._globals[name] = entry
            return entry

        existing = self._globals.get(name)
        if existing is not None and existing.location.filename == filename:
            return existing

        self._exports.setdefault(filename, set()).add(name)
        return None

    # =========================================================================
    # Lookup and Resolution
    # =========================================================================

    def lookup(self, name: str, filename: str) -> Optional[Symbol]:
        """Find the entry ``name`` refers to when used in ``filename``."""
        entry = self._locals.get(filename, {}).get(name)
        if entry is None:
            entry = self._globals.get(name)
        return entry

    def resolve(self, name: str, filename: str) -> Optional[int]:
        """Return the value of a name, or None while it is unresolved."""
        entry = self.lookup(name, filename)
        if entry is None:
            return None
        return entry.value

    def assign_address(self, label: Label, address: int) -> None:
        label.address = address

    # =========================================================================
    # References
    # =========================================================================

    def reference(self, name: str, address: int, filename: str, line: int) -> None:
        """Record a use of ``name``. Always succeeds; unknown names are queued."""
        ref = LabelReference(address, filename, line)
        entry = self.lookup(name, filename)
        if entry is not None:
            entry.references.add(ref)
        else:
            self._pending.setdefault((filename, name), []).append(ref)

    def unresolved_references(self) -> list[tuple[str, LabelReference]]:
        """
        Attach queued references whose names now exist and return the rest.

        Returns:
            (name, reference) pairs for names that were never declared,
            ordered by file and line
        """
        still_pending: dict[tuple[str, str], list[LabelReference]] = {}
        for (filename, name), refs in self._pending.items():
            entry = self.lookup(name, filename)
            if entry is not None:
                entry.references.update(refs)
            else:
                still_pending[(filename, name)] = refs
        self._pending = still_pending

        unresolved = [
            (name, ref)
            for (_, name), refs in still_pending.items()
            for ref in refs
        ]
        unresolved.sort(key=lambda item: (item[1].filename, item[1].line, item[0]))
        return unresolved

    def similar_names(self, name: str, filename: str) -> list[str]:
        """Visible names within a small edit distance of ``name``."""
        lowered = name.lower()
        visible = set(self._globals) | set(self._locals.get(filename, {}))
        similar = sorted(
            candidate for candidate in visible
            if candidate.lower() == lowered or (
                abs(len(candidate) - len(name)) <= 1
                and edit_distance(lowered, candidate.lower()) <= 2
            )
        )
        return similar[:3]

    # =========================================================================
    # Iteration
    # =========================================================================

    def __iter__(self) -> Iterator[Symbol]:
        """Iterate global entries, then each file's local entries."""
        yield from self._globals.values()
        for scope in self._locals.values():
            yield from scope.values()

    def __len__(self) -> int:
        return len(self._globals) + sum(len(scope) for scope in self._locals.values())

    def __contains__(self, name: str) -> bool:
        return name in self._globals or any(name in scope for scope in self._locals.values())

    def globals(self) -> dict[str, Symbol]:
        return dict(self._globals)

    def locals(self, filename: str) -> dict[str, Symbol]:
        return dict(self._locals.get(filename, {}))

    def labels(self) -> list[Label]:
        """Every label, sorted by address (unassigned last) then name."""
        labels = [entry for entry in self if isinstance(entry, Label)]
        labels.sort(key=lambda label: (label.address is None, label.address or 0, label.name))
        return labels
