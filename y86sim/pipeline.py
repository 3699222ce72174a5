"""Pipeline registers with load/stall/bubble control, and word formatting helpers."""

from __future__ import annotations

import copy
import dataclasses
from enum import IntEnum
from typing import Any, Callable, Optional, TextIO

from .isa import WORD_MASK

_DIGITS = "0123456789ABCDEF"


class PipeOp(IntEnum):
    """How a pipeline register is updated at the next clock edge."""

    LOAD = 0    # copy next state to current
    STALL = 1   # keep current state unchanged
    BUBBLE = 2  # set current state to a nop
    ERROR = 3   # both stall and bubble were requested


def _assign(dest: Any, src: Any) -> None:
    """Copy every field of src into dest, keeping dest's identity."""
    for field in dataclasses.fields(dest):
        setattr(dest, field.name, getattr(src, field.name))


class PipeRegister:
    """A pipeline register holding a current and a next state.

    ``current`` and ``next`` keep their identity across updates, so callers
    may hold on to them.
    """

    def __init__(self, bubble: Any):
        self.bubble = copy.copy(bubble)
        self.current = copy.copy(bubble)
        self.next = copy.copy(bubble)
        self.op = PipeOp.LOAD

    def update(self) -> None:
        """Apply the pending operation; afterwards the operation returns to LOAD
        unless an error was signalled."""
        if self.op in (PipeOp.BUBBLE, PipeOp.ERROR):
            _assign(self.current, self.bubble)
        elif self.op == PipeOp.LOAD:
            _assign(self.current, self.next)
        if self.op != PipeOp.ERROR:
            self.op = PipeOp.LOAD

    def clear(self) -> None:
        """Set both states to the bubble value."""
        _assign(self.current, self.bubble)
        _assign(self.next, self.bubble)
        self.op = PipeOp.LOAD


def wstring(x: int, bpd: int, bpw: int) -> str:
    """Format x with leading zeros using bpd bits per digit and bpw bits per word."""
    x &= WORD_MASK
    mask = (1 << bpd) - 1
    return "".join(
        _DIGITS[(x >> (digit * bpd)) & mask]
        for digit in range((bpw - 1) // bpd, -1, -1)
    )


def wprint(x: int, bpd: int, bpw: int, out: TextIO) -> None:
    """Write x to out in the format produced by wstring."""
    out.write(wstring(x, bpd, bpw))


def pipe_cntl(
    name: str,
    stall: int,
    bubble: int,
    log: Optional[Callable[[str], Any]] = None,
) -> PipeOp:
    """Choose the register operation from its stall and bubble signals."""
    if stall:
        if bubble:
            if log is not None:
                log(f"{name}: Conflicting control signals for pipe register\n")
            return PipeOp.ERROR
        return PipeOp.STALL
    return PipeOp.BUBBLE if bubble else PipeOp.LOAD