"""Instruction-level model of the Y86-64 machine."""

from __future__ import annotations

from typing import Optional, TextIO

from .isa import (
    DEFAULT_CC,
    MEM_SIZE,
    WORD_MASK,
    AluOp,
    InstrType,
    Register,
    Status,
    compute_alu,
    compute_cc,
    cond_holds,
    hi4,
    lo4,
    reg_valid,
    to_signed,
)
from .memory import Memory, RegisterFile

DEFAULT_MAX_STEPS = 10000

_NEEDS_REGIDS = frozenset({
    InstrType.RRMOVQ, InstrType.ALU, InstrType.PUSHQ, InstrType.POPQ,
    InstrType.IRMOVQ, InstrType.RMMOVQ, InstrType.MRMOVQ, InstrType.IADDQ,
})
_NEEDS_IMM = frozenset({
    InstrType.IRMOVQ, InstrType.RMMOVQ, InstrType.MRMOVQ,
    InstrType.JMP, InstrType.CALL, InstrType.IADDQ,
})
# Registers that must be valid, per instruction: (check rA, check rB)
_REG_CHECKS = {
    InstrType.RRMOVQ: (True, True),
    InstrType.IRMOVQ: (False, True),
    InstrType.RMMOVQ: (True, False),
    InstrType.MRMOVQ: (True, False),
    InstrType.PUSHQ: (True, False),
    InstrType.POPQ: (True, False),
    InstrType.IADDQ: (False, True),
}


class MachineState:
    """Program counter, registers, memory and condition codes."""

    def __init__(self, memlen: int = MEM_SIZE):
        self.pc = 0
        self.regs = RegisterFile()
        self.mem = Memory(memlen)
        self.cc = DEFAULT_CC

    def copy(self) -> "MachineState":
        result = MachineState(0)
        result.pc = self.pc
        result.regs = self.regs.copy()
        result.mem = self.mem.copy()
        result.cc = self.cc
        return result

    def diff(self, other: "MachineState", out: Optional[TextIO] = None) -> bool:
        """Report differences from self to other; True if any."""
        from .isa import cc_name

        differs = False
        if self.pc != other.pc:
            differs = True
            if out is not None:
                out.write(
                    f"pc:\t0x{self.pc & WORD_MASK:016x}\t0x{other.pc & WORD_MASK:016x}\n"
                )
        if self.cc != other.cc:
            differs = True
            if out is not None:
                out.write(f"cc:\t{cc_name(self.cc)}\t{cc_name(other.cc)}\n")
        if self.regs.diff(other.regs, out):
            differs = True
        if self.mem.diff(other.mem, out):
            differs = True
        return differs

    def _report(self, error_file: Optional[TextIO], message: str) -> None:
        if error_file is not None:
            error_file.write(f"PC = 0x{self.pc & WORD_MASK:x}, {message}\n")

    def step(self, error_file: Optional[TextIO] = None) -> Status:
        """Execute one instruction and return the resulting status."""
        regs, mem = self.regs, self.mem
        try:
            byte0 = mem.get_byte(self.pc)
        except IndexError:
            self._report(error_file, "Invalid instruction address")
            return Status.ADR
        ftpc = self.pc + 1
        hi0, lo0 = hi4(byte0), lo4(byte0)

        ok1 = True
        hi1 = lo1 = int(Register.NONE)
        if hi0 in _NEEDS_REGIDS:
            try:
                byte1 = mem.get_byte(ftpc)
            except IndexError:
                ok1, byte1 = False, 0
            ftpc += 1
            hi1, lo1 = hi4(byte1), lo4(byte1)

        okc = True
        cval = 0
        if hi0 in _NEEDS_IMM:
            try:
                cval = mem.get_word(ftpc)
            except IndexError:
                okc = False
            ftpc += 8

        if not ok1:
            self._report(error_file, "Invalid instruction address")
            return Status.ADR
        if not okc:
            self._report(error_file, "Invalid instruction address")
            return Status.ADR if hi0 in (InstrType.JMP, InstrType.CALL) else Status.INS
        checks = _REG_CHECKS.get(hi0)
        if checks is not None:
            for wanted, reg in zip(checks, (hi1, lo1)):
                if wanted and not reg_valid(reg):
                    self._report(error_file, f"Invalid register ID 0x{reg:x}")
                    return Status.INS

        if hi0 == InstrType.NOP:
            pass
        elif hi0 == InstrType.HALT:
            return Status.HLT
        elif hi0 == InstrType.RRMOVQ:
            val = regs.get(hi1)
            if cond_holds(self.cc, lo0):
                regs.set(lo1, val)
        elif hi0 == InstrType.IRMOVQ:
            regs.set(lo1, cval)
        elif hi0 == InstrType.RMMOVQ:
            if reg_valid(lo1):
                cval = to_signed(cval + regs.get(lo1))
            try:
                mem.set_word(cval, regs.get(hi1))
            except IndexError:
                self._report(error_file, f"Invalid data address 0x{cval & WORD_MASK:x}")
                return Status.ADR
        elif hi0 == InstrType.MRMOVQ:
            if reg_valid(lo1):
                cval = to_signed(cval + regs.get(lo1))
            try:
                val = mem.get_word(cval)
            except IndexError:
                return Status.ADR
            regs.set(hi1, val)
        elif hi0 == InstrType.ALU:
            arg_a, arg_b = regs.get(hi1), regs.get(lo1)
            regs.set(lo1, compute_alu(lo0, arg_a, arg_b))
            self.cc = compute_cc(lo0, arg_a, arg_b)
        elif hi0 == InstrType.JMP:
            self.pc = cval if cond_holds(self.cc, lo0) else ftpc
            return Status.AOK
        elif hi0 == InstrType.CALL:
            val = to_signed(regs.get(Register.RSP) - 8)
            regs.set(Register.RSP, val)
            try:
                mem.set_word(val, ftpc)
            except IndexError:
                self._report(error_file, f"Invalid stack address 0x{val & WORD_MASK:x}")
                return Status.ADR
            self.pc = cval
            return Status.AOK
        elif hi0 == InstrType.RET:
            dval = regs.get(Register.RSP)
            try:
                val = mem.get_word(dval)
            except IndexError:
                self._report(error_file, f"Invalid stack address 0x{dval & WORD_MASK:x}")
                return Status.ADR
            regs.set(Register.RSP, dval + 8)
            self.pc = val
            return Status.AOK
        elif hi0 == InstrType.PUSHQ:
            val = regs.get(hi1)
            dval = to_signed(regs.get(Register.RSP) - 8)
            regs.set(Register.RSP, dval)
            try:
                mem.set_word(dval, val)
            except IndexError:
                self._report(error_file, f"Invalid stack address 0x{dval & WORD_MASK:x}")
                return Status.ADR
        elif hi0 == InstrType.POPQ:
            dval = regs.get(Register.RSP)
            regs.set(Register.RSP, dval + 8)
            try:
                val = mem.get_word(dval)
            except IndexError:
                self._report(error_file, f"Invalid stack address 0x{dval & WORD_MASK:x}")
                return Status.ADR
            regs.set(hi1, val)
        elif hi0 == InstrType.IADDQ:
            arg_b = regs.get(lo1)
            regs.set(lo1, arg_b + cval)
            self.cc = compute_cc(AluOp.ADD, cval, arg_b)
        else:
            self._report(error_file, f"Invalid instruction {byte0:02x}")
            return Status.INS
        self.pc = ftpc
        return Status.AOK


def run(
    state: MachineState,
    max_steps: int = DEFAULT_MAX_STEPS,
    error_file: Optional[TextIO] = None,
) -> tuple[int, Status]:
    """Step until the status leaves AOK or max_steps is reached.

    Returns the number of steps taken and the final status.
    """
    status = Status.AOK
    steps = 0
    while steps < max_steps and status == Status.AOK:
        status = state.step(error_file)
        steps += 1
    return steps, status