"""Instruction set simulator command: run a .yo file and report changes."""

from __future__ import annotations

import re
import sys
from typing import Iterable, Optional, Sequence, TextIO, Union

from .isa import MEM_SIZE, WORD_MASK, cc_name, stat_name
from .machine import DEFAULT_MAX_STEPS, MachineState, run
from .memory import LoadError

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group()) if match else 0


def simulate(
    lines: Union[str, Iterable[str]],
    max_steps: int = DEFAULT_MAX_STEPS,
    out: Optional[TextIO] = None,
) -> MachineState:
    """Load object code, run it and print the resulting state changes.

    Raises LoadError if the code cannot be loaded or holds no bytes.
    """
    out = sys.stdout if out is None else out
    state = MachineState(MEM_SIZE)
    saved_regs = state.regs.copy()
    if not state.mem.load(lines, report_errors=True):
        raise LoadError("No bytes of code found", 0)
    saved_mem = state.mem.copy()

    steps, status = run(state, max_steps, out)

    out.write(
        f"Stopped in {steps} steps at PC = 0x{state.pc & WORD_MASK:x}.  "
        f"Status '{stat_name(status)}', CC {cc_name(state.cc)}\n"
    )
    out.write("Changes to registers:\n")
    saved_regs.diff(state.regs, out)
    out.write("\nChanges to memory:\n")
    saved_mem.diff(state.mem, out)
    return state


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not 1 <= len(args) <= 2:
        print("Usage: yis code_file [max_steps]")
        return 0
    try:
        code_file = open(args[0], "r")
    except OSError:
        print(f"Can't open code file '{args[0]}'", file=sys.stderr)
        return 1
    with code_file:
        lines = code_file.readlines()
    max_steps = _atoi(args[1]) if len(args) > 1 else DEFAULT_MAX_STEPS
    try:
        simulate(lines, max_steps)
    except LoadError:
        print("Exiting")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())