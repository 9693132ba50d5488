"""
nesasm - 6502 Assembler Command-Line Interface
==============================================

Assembles one or more 6502 source files into a binary image.

Usage Examples
--------------
Basic assembly (writes main.bin):
    $ nesasm main.asm

Several files, assembled in the order given:
    $ nesasm main.asm ppu.asm vectors.asm -o game.prg

Generate all output files:
    $ nesasm main.asm -o game.prg -l game.lst -s game.sym

Image window and bank report:
    $ nesasm --start 0xC000 --size 0x4000 --bank-size 16384 main.asm

Verbose mode:
    $ nesasm -v main.asm
"""

from pathlib import Path
from typing import Optional
import logging
import sys

import click

from nes_sdk import __version__
from nes_sdk.assembler import Assembler
from nes_sdk.cartridge import banks_for_size
from nes_sdk.cli.errors import ExitCode, handle_cli_exception


# =============================================================================
# Parameter Types
# =============================================================================

class AddressType(click.ParamType):
    """An integer written as $hex, 0xhex or decimal."""
    name = "address"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        text = value.strip()
        try:
            if text.startswith("$"):
                return int(text[1:], 16)
            if text.lower().startswith("0x"):
                return int(text[2:], 16)
            return int(text)
        except ValueError:
            self.fail(f"'{value}' is not a number ($hex, 0xhex or decimal)", param, ctx)


ADDRESS = AddressType()


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output binary file (default: first input with .bin suffix)",
)
@click.option(
    "-l", "--listing",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate listing file",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate symbol file",
)
@click.option(
    "--start",
    type=ADDRESS,
    default="$8000",
    show_default=True,
    help="First address of the image",
)
@click.option(
    "--size",
    type=ADDRESS,
    default="$8000",
    show_default=True,
    help="Size of the image in bytes",
)
@click.option(
    "--trim",
    is_flag=True,
    help="Stop the binary after the last written byte",
)
@click.option(
    "--bank-size",
    type=ADDRESS,
    default=None,
    help="Report how many banks of this size the image needs",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="nesasm")
def main(
    input_files: tuple[Path, ...],
    output: Optional[Path],
    listing: Optional[Path],
    symbols: Optional[Path],
    start: int,
    size: int,
    trim: bool,
    bank_size: Optional[int],
    verbose: bool,
) -> None:
    """
    Assemble 6502 source code into a binary image.

    INPUT_FILES are assembled together, in the order given. Labels are
    local to their file unless exported with .globl.

    \b
    Examples:
        nesasm main.asm                  # Outputs main.bin
        nesasm main.asm -o game.prg      # Specify output file
        nesasm --start 0xC000 main.asm   # Image from $C000 up
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )

    if start > 0xFFFF or start + size > 0x10000:
        click.echo(f"Error: image ${start:04X} + {size} bytes exceeds the 64 KB address space", err=True)
        sys.exit(ExitCode.INVALID_ARGS)
    if bank_size is not None and bank_size <= 0:
        click.echo("Error: --bank-size must be positive", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    output_file = output if output is not None else input_files[0].with_suffix(".bin")

    try:
        files = {str(path): path.read_text(encoding="utf-8") for path in input_files}
        if verbose:
            click.echo(f"Assembling {len(files)} file(s) at ${start:04X}...")

        asm = Assembler(files, start=start, max_size=size)
        image = asm.assemble()

        asm.write_binary(output_file, trim=trim)
        if verbose:
            click.echo(f"Wrote {len(image.to_bytes(trim))} bytes to {output_file}")

        if listing:
            asm.write_listing(listing)
            if verbose:
                click.echo(f"Wrote listing to {listing}")

        if symbols:
            asm.write_symbols(symbols)
            if verbose:
                click.echo(f"Wrote symbols to {symbols}")

        if bank_size is not None:
            used = len(image.to_bytes(trim=True))
            banks = banks_for_size(used, bank_size)
            click.echo(
                f"Banks: {banks.count} x {bank_size} bytes "
                f"({banks.multiplier} * 2^{banks.exponent}) for {used} bytes"
            )

        if verbose:
            click.echo(f"Assembly complete: {len(asm.symbols)} symbols, {len(asm.warnings)} warnings")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
