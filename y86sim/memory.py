"""Byte-addressed memory and the register file of the Y86-64 machine."""

from __future__ import annotations

import re
import sys
from typing import Iterable, Optional, TextIO, Union

from .isa import WORD_MASK, Register, reg_name, reg_valid, to_signed

BPL = 32  # bytes per line; memory sizes are rounded up to a multiple of this

_ADDR_RE = re.compile(r"\s*0[xX]([0-9a-fA-F]*)\s*", re.ASCII)
_CODE_RE = re.compile(r"(?:[0-9a-fA-F]{2})*", re.ASCII)
_SPACE = " \t\n\r\v\f"


class LoadError(ValueError):
    """Raised when an object (.yo) file cannot be loaded."""

    def __init__(self, message: str, lineno: int):
        super().__init__(message)
        self.lineno = lineno


class Memory:
    """A block of memory; reads and writes outside it raise IndexError."""

    def __init__(self, length: int):
        length = ((length + BPL - 1) // BPL) * BPL
        self.contents = bytearray(max(length, 0))

    def __len__(self) -> int:
        return len(self.contents)

    def clear(self) -> None:
        self.contents[:] = bytes(len(self.contents))

    def copy(self) -> "Memory":
        result = Memory(len(self))
        result.contents[:] = self.contents
        return result

    def _check(self, pos: int, size: int) -> None:
        if pos < 0 or pos + size > len(self.contents):
            raise IndexError(f"invalid address 0x{pos & WORD_MASK:x}")

    def get_byte(self, pos: int) -> int:
        self._check(pos, 1)
        return self.contents[pos]

    def set_byte(self, pos: int, value: int) -> None:
        self._check(pos, 1)
        self.contents[pos] = value & 0xFF

    def get_word(self, pos: int) -> int:
        """Read an 8-byte little-endian signed word."""
        self._check(pos, 8)
        return int.from_bytes(self.contents[pos:pos + 8], "little", signed=True)

    def set_word(self, pos: int, value: int) -> None:
        """Write an 8-byte little-endian word."""
        self._check(pos, 8)
        self.contents[pos:pos + 8] = (value & WORD_MASK).to_bytes(8, "little")

    def _word_or(self, pos: int, default: int) -> int:
        try:
            return self.get_word(pos)
        except IndexError:
            return default

    def diff(self, other: "Memory", out: Optional[TextIO] = None) -> bool:
        """Report words that differ from self to other; True if any differ."""
        length = min(len(self), len(other))
        differs = False
        for pos in range(0, length, 8):
            if differs and out is None:
                break
            old = self._word_or(pos, 0)
            new = other._word_or(pos, 0)
            if old != new:
                differs = True
                if out is not None:
                    out.write(
                        f"0x{pos:04x}:\t0x{old & WORD_MASK:016x}\t0x{new & WORD_MASK:016x}\n"
                    )
        return differs

    def dump(self, out: TextIO, pos: int, length: int) -> None:
        """Print whole lines of memory covering [pos, pos + length)."""
        start = pos - pos % BPL
        length += pos - start
        length = ((length + BPL - 1) // BPL) * BPL
        if start + length > len(self):
            length = len(self) - start
        val = 0
        for line in range(start, start + length, BPL):
            out.write(f"0x{line & WORD_MASK:04x}:")
            for addr in range(line, line + BPL, 8):
                val = self._word_or(addr, val)
                out.write(f" {val & WORD_MASK:016x}")

    def load(
        self,
        lines: Union[str, Iterable[str]],
        report_errors: bool = True,
    ) -> int:
        """Load the contents of a .yo file; return the number of bytes read."""
        if isinstance(lines, str):
            lines = lines.splitlines(True)
        byte_count = 0
        for lineno, line in enumerate(lines, 1):
            match = _ADDR_RE.match(line)
            if not match:
                continue
            bytepos = int(match.group(1) or "0", 16)
            rest = line[match.end():]
            if not rest.startswith(":"):
                found = rest[:1] or "end of line"
                self._fail(
                    "Error reading file. Expected colon\n"
                    f"Line {lineno}:{line}\nReading '{found}'",
                    lineno,
                    report_errors,
                )
            code = _CODE_RE.match(rest[1:].lstrip(_SPACE)).group()
            for byte in bytes.fromhex(code):
                if bytepos >= len(self):
                    self._fail(
                        f"Error reading file. Invalid address. 0x{bytepos:x}\n"
                        f"Line {lineno}:{line}",
                        lineno,
                        report_errors,
                    )
                self.contents[bytepos] = byte
                bytepos += 1
                byte_count += 1
        return byte_count

    @staticmethod
    def _fail(message: str, lineno: int, report_errors: bool) -> None:
        if report_errors:
            print(message, file=sys.stderr)
        raise LoadError(message, lineno)


_SLOTS = 16  # register file slots, including the unused one for Register.NONE


class RegisterFile:
    """The fifteen program registers, each holding a signed 64-bit word."""

    def __init__(self):
        self._values = [0] * Register.NONE

    def get(self, reg: int) -> int:
        """Value of a register; 0 for anything that is not a register."""
        return self._values[reg] if reg_valid(reg) else 0

    def set(self, reg: int, value: int) -> None:
        """Set a register; writes to non-registers are ignored."""
        if reg_valid(reg):
            self._values[reg] = to_signed(value)

    def clear(self) -> None:
        self._values = [0] * Register.NONE

    def copy(self) -> "RegisterFile":
        result = RegisterFile()
        result._values = list(self._values)
        return result

    def diff(self, other: "RegisterFile", out: Optional[TextIO] = None) -> bool:
        """Report registers that differ from self to other; True if any differ."""
        differs = False
        for reg in range(_SLOTS):
            if differs and out is None:
                break
            old, new = self.get(reg), other.get(reg)
            if old != new:
                differs = True
                if out is not None:
                    out.write(
                        f"{reg_name(reg)}:\t0x{old & WORD_MASK:016x}\t0x{new & WORD_MASK:016x}\n"
                    )
        return differs

    def dump(self, out: TextIO) -> None:
        regs = range(Register.NONE)
        out.write("".join(f"   {reg_name(r)}  " for r in regs) + "\n")
        out.write("".join(f" {self.get(r) & WORD_MASK:x}" for r in regs) + "\n")