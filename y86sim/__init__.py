"""Y86-64 assembler, instruction-set simulator and pipeline simulator library."""

__version__ = "1.0.0"