"""
NES SDK Command-Line Interface
==============================

- **nesasm**: 6502 assembler

The tool is a Click application with built-in help and consistent exit
codes (see nes_sdk.cli.errors).
"""

__all__ = ["nesasm"]
