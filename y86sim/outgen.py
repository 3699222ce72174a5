"""Output generator that keeps generated lines within a column limit."""

from __future__ import annotations

import sys
from typing import Optional, TextIO


class OutputGenerator:
    """Writes tokens, breaking lines and indenting when a token would not fit."""

    def __init__(
        self,
        out: Optional[TextIO] = None,
        max_column: int = 80,
        first_indent: int = 4,
        other_indents: int = 2,
    ):
        self.out = out
        self.max_column = max_column
        self.first_indent = first_indent
        self.other_indents = other_indents
        self.cur_pos = 0
        self.indent = first_indent

    def _stream(self) -> TextIO:
        return sys.stdout if self.out is None else self.out

    def print(self, text: str) -> None:
        """Write one token, starting a new indented line if it would overflow."""
        out = self._stream()
        if len(text) + self.cur_pos > self.max_column:
            out.write("\n" + " " * self.indent)
            self.cur_pos = self.indent
        out.write(text)
        self.cur_pos += len(text)

    def terminate(self) -> None:
        """End the current statement and reset the indentation."""
        self._stream().write("\n")
        self.cur_pos = 0
        self.indent = self.first_indent

    def upindent(self) -> None:
        self.indent += self.other_indents

    def downindent(self) -> None:
        self.indent -= self.other_indents