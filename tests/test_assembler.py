# =============================================================================
# test_assembler.py - Full Assembler Integration Tests
# =============================================================================
# End-to-end integration tests for the complete 6502 assembler.
# These tests verify the full pipeline from source files to the image.
#
# Test coverage includes:
#   - Complete program assembly and instruction encoding
#   - Zero-page vs. absolute selection with forward references
#   - Equivalences, including lazy and self-referential ones
#   - File-local labels and .globl across files
#   - Branch ranges and operand range checks
#   - Error collection and reporting with locations
#   - Listing, symbol table, disassembly and binary output
# =============================================================================

import pytest

from nes_sdk.assembler import Assembler, AssemblerConfig, assemble
from nes_sdk.errors import (
    AddressingModeError,
    AssemblerError,
    AssemblyFailedError,
    AssemblySyntaxError,
    BranchRangeError,
    DuplicateSymbolError,
    ExpressionError,
    MemoryRangeError,
    UndefinedSymbolError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def assemble_bytes(source: str) -> bytes:
    """Assemble a single file and return the trimmed image."""
    return assemble(0x8000, 0x8000, {"main.asm": source}).to_bytes(trim=True)


def assembly_errors(files) -> list:
    """Assemble failing source and return the collected errors."""
    if isinstance(files, str):
        files = {"main.asm": files}
    with pytest.raises(AssemblyFailedError) as exc_info:
        Assembler(files).assemble()
    return exc_info.value.errors


# =============================================================================
# Full Assembly Pipeline Tests
# =============================================================================

class TestFullPipeline:
    """Test the complete assembly pipeline."""

    def test_jump_to_self(self):
        """The smallest program."""
        assert assemble_bytes("test: jmp test") == b"\x4c\x00\x80"

    def test_reset_routine(self):
        """Labels on their own line."""
        source = """
reset:
    sei
    lda #$01
    jmp reset
"""
        assert assemble_bytes(source) == bytes.fromhex("78a9014c0080")

    def test_data_bytes(self):
        """Data directive in a program."""
        assert assemble_bytes(".db 1 2 3") == b"\x01\x02\x03"

    def test_full_image_size(self):
        """Without trimming the whole window is returned."""
        image = assemble(0x8000, 0x8000, {"main.asm": "nop"})
        data = image.to_bytes()
        assert len(data) == 0x8000
        assert data[0] == 0xEA

    def test_comments_and_case(self):
        """Mnemonics ignore case and comments are dropped."""
        assert assemble_bytes("LDA #$01 ; load\n  Sta $10") == b"\xa9\x01\x85\x10"

    def test_character_immediate(self):
        """Character literals as operands."""
        assert assemble_bytes("lda #'A'") == b"\xa9\x41"

    @pytest.mark.parametrize("source,expected", [
        ("asl", "0a"),
        ("asl a", "0a"),
        ("lda ($20,x)", "a120"),
        ("lda ($20),y", "b120"),
        ("jmp ($FFFC)", "6cfcff"),
        ("ldx $10,y", "b610"),
        ("lda $0300,y", "b90003"),
        ("lda $10", "a510"),
        ("lda $1234", "ad3412"),
        ("lda $10.w", "ad1000"),
    ])
    def test_encodings(self, source, expected):
        """Addressing modes encode to the right opcode and operand."""
        assert assemble_bytes(source) == bytes.fromhex(expected)

    def test_scoped_label_name(self):
        """Labels may use '::'."""
        assert assemble_bytes("player::init: rts\njsr player::init") == bytes.fromhex("60200080")

    def test_forward_reference_is_absolute(self):
        """A label declared later is addressed as a word."""
        assert assemble_bytes("lda data\ndata: .db 7") == bytes.fromhex("ad038007")

    def test_zero_page_variable(self):
        """A label in the zero page gets zero-page addressing."""
        source = """
    .org $0010
temp: .ds 1
    .org $8000
    sta temp
"""
        assert assemble_bytes(source) == b"\x85\x10"

    def test_label_at_end_of_file(self):
        """A label after the last statement takes the next address."""
        asm = Assembler({"main.asm": "nop\nend:"})
        asm.assemble()
        assert asm.symbols.resolve("end", "main.asm") == 0x8001

    def test_module_function(self):
        """assemble() builds and runs an Assembler."""
        image = assemble(0xC000, 0x4000, {"main.asm": "here: jmp here"})
        assert image.to_bytes(trim=True) == b"\x4c\x00\xc0"


# =============================================================================
# Equivalence Tests
# =============================================================================

class TestEquivalences:
    """Test NAME = expression."""

    def test_zero_page_equivalence(self):
        """A byte-sized constant selects zero page."""
        assert assemble_bytes("TEMP = $10\nlda TEMP") == b"\xa5\x10"

    def test_equivalence_declared_later(self):
        """Constants are evaluated on first use."""
        assert assemble_bytes("lda TEMP\nTEMP = $10") == b"\xa5\x10"

    def test_equivalence_using_label(self):
        """An equivalence may depend on a label."""
        source = """
PTR = data + 1
    lda PTR
data: .db 1 2
"""
        assert assemble_bytes(source) == bytes.fromhex("ad04800102")

    def test_chained_equivalences(self):
        """Equivalences may refer to each other."""
        assert assemble_bytes("NEXT = BASE + 1\nBASE = 2\nlda #NEXT") == b"\xa9\x03"

    def test_self_reference(self):
        """An equivalence cannot depend on itself."""
        errors = assembly_errors("X = X + 1\nlda #X")
        assert [type(e) for e in errors] == [ExpressionError]
        assert "'X' is defined in terms of itself" in str(errors[0])

    def test_mutual_reference(self):
        """Two equivalences cannot depend on each other."""
        errors = assembly_errors("P = Q\nQ = P\nlda P")
        assert all(isinstance(e, ExpressionError) for e in errors)

    def test_unused_bad_equivalence(self):
        """Errors in unused equivalences are still reported."""
        errors = assembly_errors("UNUSED = missing + 1\nnop")
        assert [type(e) for e in errors] == [UndefinedSymbolError]

    def test_duplicate_equivalence(self):
        """A constant cannot be defined twice."""
        errors = assembly_errors("X = 1\nX = 2")
        assert [type(e) for e in errors] == [DuplicateSymbolError]


# =============================================================================
# Multi-File Tests
# =============================================================================

class TestMultipleFiles:
    """Test assembling several files together."""

    def test_globl_before_declaration(self):
        """An exported label is visible from other files."""
        files = {
            "main.asm": "reset:\n    jmp handler",
            "handler.asm": ".globl handler\nhandler:\n    rti",
        }
        image = Assembler(files).assemble()
        assert image.to_bytes(trim=True) == bytes.fromhex("4c038040")

    def test_globl_after_declaration(self):
        """.globl may follow the label."""
        files = {
            "main.asm": "jmp handler",
            "handler.asm": "handler: rti\n.globl handler",
        }
        assert Assembler(files).assemble().to_bytes(trim=True) == bytes.fromhex("4c038040")

    def test_local_label_not_visible(self):
        """Without .globl a label stays in its file."""
        files = {
            "main.asm": "jmp handler",
            "handler.asm": "handler: rti",
        }
        errors = assembly_errors(files)
        assert [type(e) for e in errors] == [UndefinedSymbolError]
        assert "main.asm:1" in str(errors[0])

    def test_same_local_name_in_each_file(self):
        """Every file may have its own 'loop'."""
        files = {
            "a.asm": "loop: jmp loop",
            "b.asm": "loop: jmp loop",
        }
        assert Assembler(files).assemble().to_bytes(trim=True) == bytes.fromhex("4c00804c0380")

    def test_local_shadows_global(self):
        """A file's own label wins over an exported one."""
        files = {
            "a.asm": ".globl x\nx: nop",
            "b.asm": "x: nop\njmp x",
        }
        assert Assembler(files).assemble().to_bytes(trim=True) == bytes.fromhex("eaea4c0180")

    def test_pointer_carries_across_files(self):
        """The second file starts where the first ended."""
        files = {"a.asm": "nop\ntail:", "b.asm": "nop"}
        asm = Assembler(files)
        asm.assemble()
        assert asm.symbols.resolve("tail", "a.asm") == 0x8001
        assert asm.image.to_bytes(trim=True) == b"\xea\xea"


# =============================================================================
# Branch and Range Tests
# =============================================================================

class TestRanges:
    """Test displacement and operand range checks."""

    def test_backward_branch(self):
        """A short loop."""
        assert assemble_bytes("loop: dex\nbne loop") == bytes.fromhex("cad0fd")

    def test_forward_branch_limit(self):
        """+127 is the farthest forward branch."""
        data = assemble_bytes("bne far\n.ds 127\nfar: nop")
        assert data[:2] == b"\xd0\x7f"

    def test_branch_out_of_range(self):
        """+128 is too far."""
        errors = assembly_errors("bne far\n.ds 128\nfar: nop")
        assert [type(e) for e in errors] == [BranchRangeError]
        assert errors[0].offset == 128

    def test_byte_operand_too_large(self):
        """A forward reference in a byte-only mode must end up fitting."""
        errors = assembly_errors("stx fwd,y\nfwd: nop")
        assert [type(e) for e in errors] == [AssemblerError]

    def test_overflowed_selector_warnings(self):
        """.b that drops bits is reported for byte and word operands."""
        asm = Assembler({"main.asm": "jmp $1234.b\nlda $1234.b\nlda #<$1234"})
        assert asm.assemble().to_bytes(trim=True) == bytes.fromhex("4c3400a534a934")
        assert len(asm.warnings) == 2
        assert "main.asm:1: warning: operand of JMP truncated to $34" in asm.warnings[0]
        assert "main.asm:2: warning: operand of LDA truncated to $34" in asm.warnings[1]

    def test_write_below_image(self):
        """Code outside the image window is an error."""
        errors = assembly_errors(".org $7FFF\nnop")
        assert [type(e) for e in errors] == [MemoryRangeError]

    def test_write_past_image(self):
        """Code past the end of the window is an error."""
        with pytest.raises(AssemblyFailedError) as exc_info:
            Assembler({"main.asm": "nop\nnop\nnop"}, 0x8000, 2).assemble()
        assert [type(e) for e in exc_info.value.errors] == [MemoryRangeError]


# =============================================================================
# Error Reporting Tests
# =============================================================================

class TestErrorReporting:
    """Test error collection and messages."""

    def test_undefined_label(self):
        """Unknown names are reported with their line."""
        errors = assembly_errors("nop\njmp nowhere")
        assert [type(e) for e in errors] == [UndefinedSymbolError]
        assert "main.asm:2: error: undefined symbol 'nowhere'" in str(errors[0])

    def test_suggestion(self):
        """Similar names are suggested."""
        errors = assembly_errors("player_x = $10\nlda plyer_x")
        assert "did you mean 'player_x'?" in str(errors[0])

    def test_all_errors_collected(self):
        """One run reports every bad line."""
        errors = assembly_errors("jmp nowhere\njmp elsewhere")
        assert [e.symbol for e in errors] == ["nowhere", "elsewhere"]

    def test_duplicate_label(self):
        """A label declared twice in a file."""
        errors = assembly_errors("a1: nop\na1: nop")
        assert [type(e) for e in errors] == [DuplicateSymbolError]

    def test_illegal_label(self):
        """Label names must be legal."""
        errors = assembly_errors("1abc: nop")
        assert [type(e) for e in errors] == [AssemblySyntaxError]

    def test_addressing_mode_error(self):
        """An operand no mode accepts."""
        errors = assembly_errors("stx $1234,x")
        assert [type(e) for e in errors] == [AddressingModeError]
        assert "STX supports: zero page, zero page y, absolute" in str(errors[0])

    def test_malformed_operand_names_instruction(self):
        """Operand syntax errors name the instruction."""
        errors = assembly_errors("nop\nsta $10,z")
        assert [type(e) for e in errors] == [ExpressionError]
        assert str(errors[0]).startswith("main.asm:2: error: cannot parse operand '$10,z' of STA")

    def test_error_limit(self):
        """Collection stops at the configured limit."""
        source = "\n".join(f"jmp missing{i}" for i in range(5))
        config = AssemblerConfig(max_errors=3)
        with pytest.raises(AssemblyFailedError) as exc_info:
            Assembler({"main.asm": source}, config=config).assemble()
        assert len(exc_info.value.errors) == 3

    def test_failed_error_summary(self):
        """The aggregate message counts the errors."""
        with pytest.raises(AssemblyFailedError, match="assembly failed with 2 errors"):
            Assembler({"main.asm": "jmp x1\njmp x2"}).assemble()

    def test_assembler_runs_once(self):
        """A second assemble() on the same instance is refused."""
        asm = Assembler({"main.asm": "nop"})
        asm.assemble()
        with pytest.raises(AssemblerError, match="already run"):
            asm.assemble()


# =============================================================================
# Output Tests
# =============================================================================

class TestOutput:
    """Test binary, listing, symbol and disassembly output."""

    def test_disassemble(self):
        """The image disassembles to tagged lines."""
        asm = Assembler({"main.asm": "reset: jmp reset"})
        asm.assemble()
        assert asm.disassemble() == {0x8000: "$8000:  JMP  $8000 {ABS}"}

    def test_write_binary_requires_assembly(self, tmp_path):
        """Nothing is written before a successful run."""
        asm = Assembler({"main.asm": "nop"})
        with pytest.raises(AssemblerError):
            asm.write_binary(tmp_path / "out.bin")

    def test_write_binary(self, tmp_path):
        """Full and trimmed binaries."""
        asm = Assembler({"main.asm": "nop"}, 0x8000, 0x100)
        asm.assemble()
        asm.write_binary(tmp_path / "full.bin")
        asm.write_binary(tmp_path / "trim.bin", trim=True)
        assert len((tmp_path / "full.bin").read_bytes()) == 0x100
        assert (tmp_path / "trim.bin").read_bytes() == b"\xea"

    def test_symbol_table(self):
        """Symbols list value and scope."""
        files = {
            "main.asm": "PPU_CTRL = $2000\nreset: jmp reset",
            "vectors.asm": ".globl nmi\nnmi: rti",
        }
        asm = Assembler(files)
        asm.assemble()
        text = asm.format_symbols()
        assert text.startswith("# Symbol table\n")
        assert f"{'PPU_CTRL':<24} $2000  main.asm" in text
        assert f"{'reset':<24} $8000  main.asm" in text
        assert f"{'nmi':<24} $8003  global" in text

    def test_listing(self):
        """The listing shows addresses, bytes and macro lines."""
        source = """
.macro clear
    lda #0
.endmacro
test: jmp test
    clear
"""
        asm = Assembler({"main.asm": source})
        asm.assemble()
        listing = asm.format_listing()
        assert listing.startswith("NES Assembler Listing")
        assert "; main.asm" in listing
        assert "8000  4C 00 80" in listing
        assert "8003  A9 00" in listing
        assert "+ lda #0" in listing

    def test_write_files(self, tmp_path):
        """Listing and symbol files are written."""
        asm = Assembler({"main.asm": "reset: nop"})
        asm.assemble()
        asm.write_listing(tmp_path / "out.lst")
        asm.write_symbols(tmp_path / "out.sym")
        assert "reset" in (tmp_path / "out.sym").read_text()
        assert "reset: nop" in (tmp_path / "out.lst").read_text()
