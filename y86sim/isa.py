"""Y86-64 instruction set: registers, encodings, ALU operations and condition codes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

WORD_MASK = (1 << 64) - 1
MEM_SIZE = 1 << 13
BIG_MEM_SIZE = 1 << 16


class Register(IntEnum):
    """Program register identifiers; NONE marks "no register"."""

    RAX = 0
    RCX = 1
    RDX = 2
    RBX = 3
    RSP = 4
    RBP = 5
    RSI = 6
    RDI = 7
    R8 = 8
    R9 = 9
    R10 = 10
    R11 = 11
    R12 = 12
    R13 = 13
    R14 = 14
    NONE = 0xF
    ERR = 0x10


_REGISTER_NAMES = (
    "%rax", "%rcx", "%rdx", "%rbx", "%rsp", "%rbp", "%rsi", "%rdi",
    "%r8", "%r9", "%r10", "%r11", "%r12", "%r13", "%r14",
)
_NO_REGISTER_NAME = "----"
_REGISTER_BY_NAME = {name: Register(i) for i, name in enumerate(_REGISTER_NAMES)}


class ArgType(IntEnum):
    R_ARG = 0
    M_ARG = 1
    I_ARG = 2
    NO_ARG = 3


class InstrType(IntEnum):
    HALT = 0
    NOP = 1
    RRMOVQ = 2
    IRMOVQ = 3
    RMMOVQ = 4
    MRMOVQ = 5
    ALU = 6
    JMP = 7
    CALL = 8
    RET = 9
    PUSHQ = 10
    POPQ = 11
    IADDQ = 12
    POP2 = 13


class AluOp(IntEnum):
    ADD = 0
    SUB = 1
    AND = 2
    XOR = 3
    NONE = 4


class Cond(IntEnum):
    YES = 0
    LE = 1
    L = 2
    E = 3
    NE = 4
    GE = 5
    G = 6


class Status(IntEnum):
    BUB = 0
    AOK = 1
    HLT = 2
    ADR = 3
    INS = 4
    PIP = 5


F_NONE = 0


def find_register(name: str) -> Register:
    """Return the register with the given name, or Register.ERR."""
    return _REGISTER_BY_NAME.get(name, Register.ERR)


def reg_valid(reg_id: int) -> bool:
    """True if reg_id names a program register."""
    return 0 <= reg_id < Register.NONE


def reg_name(reg_id: int) -> str:
    """Return the name of a register, or "----" if it is not one."""
    return _REGISTER_NAMES[reg_id] if reg_valid(reg_id) else _NO_REGISTER_NAME


def hpack(hi: int, lo: int) -> int:
    """Pack two 4-bit fields into one byte."""
    return ((hi & 0xF) << 4) | (lo & 0xF)


def hi4(byte: int) -> int:
    return (byte >> 4) & 0xF


def lo4(byte: int) -> int:
    return byte & 0xF


@dataclass(frozen=True)
class Instruction:
    """Encoding information about one instruction or data directive.

    For immediate arguments, ``arg1hi``/``arg2hi`` give the number of bytes;
    for register arguments they say whether the register goes in the high nibble.
    """

    name: str
    code: int
    size: int
    arg1: ArgType
    arg1pos: int
    arg1hi: int
    arg2: ArgType
    arg2pos: int
    arg2hi: int


_R, _M, _I, _N = ArgType.R_ARG, ArgType.M_ARG, ArgType.I_ARG, ArgType.NO_ARG

INSTRUCTION_SET: tuple[Instruction, ...] = (
    Instruction("nop", hpack(InstrType.NOP, F_NONE), 1, _N, 0, 0, _N, 0, 0),
    Instruction("halt", hpack(InstrType.HALT, F_NONE), 1, _N, 0, 0, _N, 0, 0),
    Instruction("rrmovq", hpack(InstrType.RRMOVQ, F_NONE), 2, _R, 1, 1, _R, 1, 0),
    Instruction("cmovle", hpack(InstrType.RRMOVQ, Cond.LE), 2, _R, 1, 1, _R, 1, 0),
    Instruction("cmovl", hpack(InstrType.RRMOVQ, Cond.L), 2, _R, 1, 1, _R, 1, 0),
    Instruction("cmove", hpack(InstrType.RRMOVQ, Cond.E), 2, _R, 1, 1, _R, 1, 0),
    Instruction("cmovne", hpack(InstrType.RRMOVQ, Cond.NE), 2, _R, 1, 1, _R, 1, 0),
    Instruction("cmovge", hpack(InstrType.RRMOVQ, Cond.GE), 2, _R, 1, 1, _R, 1, 0),
    Instruction("cmovg", hpack(InstrType.RRMOVQ, Cond.G), 2, _R, 1, 1, _R, 1, 0),
    Instruction("irmovq", hpack(InstrType.IRMOVQ, F_NONE), 10, _I, 2, 8, _R, 1, 0),
    Instruction("rmmovq", hpack(InstrType.RMMOVQ, F_NONE), 10, _R, 1, 1, _M, 1, 0),
    Instruction("mrmovq", hpack(InstrType.MRMOVQ, F_NONE), 10, _M, 1, 0, _R, 1, 1),
    Instruction("addq", hpack(InstrType.ALU, AluOp.ADD), 2, _R, 1, 1, _R, 1, 0),
    Instruction("subq", hpack(InstrType.ALU, AluOp.SUB), 2, _R, 1, 1, _R, 1, 0),
    Instruction("andq", hpack(InstrType.ALU, AluOp.AND), 2, _R, 1, 1, _R, 1, 0),
    Instruction("xorq", hpack(InstrType.ALU, AluOp.XOR), 2, _R, 1, 1, _R, 1, 0),
    Instruction("jmp", hpack(InstrType.JMP, Cond.YES), 9, _I, 1, 8, _N, 0, 0),
    Instruction("jle", hpack(InstrType.JMP, Cond.LE), 9, _I, 1, 8, _N, 0, 0),
    Instruction("jl", hpack(InstrType.JMP, Cond.L), 9, _I, 1, 8, _N, 0, 0),
    Instruction("je", hpack(InstrType.JMP, Cond.E), 9, _I, 1, 8, _N, 0, 0),
    Instruction("jne", hpack(InstrType.JMP, Cond.NE), 9, _I, 1, 8, _N, 0, 0),
    Instruction("jge", hpack(InstrType.JMP, Cond.GE), 9, _I, 1, 8, _N, 0, 0),
    Instruction("jg", hpack(InstrType.JMP, Cond.G), 9, _I, 1, 8, _N, 0, 0),
    Instruction("call", hpack(InstrType.CALL, F_NONE), 9, _I, 1, 8, _N, 0, 0),
    Instruction("ret", hpack(InstrType.RET, F_NONE), 1, _N, 0, 0, _N, 0, 0),
    Instruction("pushq", hpack(InstrType.PUSHQ, F_NONE), 2, _R, 1, 1, _N, 0, 0),
    Instruction("popq", hpack(InstrType.POPQ, F_NONE), 2, _R, 1, 1, _N, 0, 0),
    Instruction("iaddq", hpack(InstrType.IADDQ, F_NONE), 10, _I, 2, 8, _R, 1, 0),
    # Gives the internal POP2 code a printable name.
    Instruction("pop2", hpack(InstrType.POP2, F_NONE), 0, _N, 0, 0, _N, 0, 0),
    Instruction(".byte", 0x00, 1, _I, 0, 1, _N, 0, 0),
    Instruction(".word", 0x00, 2, _I, 0, 2, _N, 0, 0),
    Instruction(".long", 0x00, 4, _I, 0, 4, _N, 0, 0),
    Instruction(".quad", 0x00, 8, _I, 0, 8, _N, 0, 0),
)

BAD_INSTRUCTION = Instruction("XXX", 0, 0, _N, 0, 0, _N, 0, 0)

_INSTR_BY_NAME: dict[str, Instruction] = {}
for _instr in INSTRUCTION_SET:
    _INSTR_BY_NAME.setdefault(_instr.name, _instr)


def find_instr(name: str) -> Optional[Instruction]:
    """Return the instruction with this mnemonic, or None."""
    return _INSTR_BY_NAME.get(name)


def iname(code: int) -> str:
    """Return the name of the instruction with this byte encoding."""
    return next((i.name for i in INSTRUCTION_SET if i.code == code), "<bad>")


def to_signed(value: int) -> int:
    """Interpret the low 64 bits of value as a two's complement word."""
    value &= WORD_MASK
    return value - (1 << 64) if value >> 63 else value


_ALU_SYMBOLS = "+-&^"


def op_name(op: int) -> str:
    """Return the symbol of an ALU operation, or '?'."""
    return _ALU_SYMBOLS[op] if 0 <= op < AluOp.NONE else "?"


def compute_alu(op: int, arg_a: int, arg_b: int) -> int:
    """Compute an ALU operation; subtraction gives arg_b - arg_a."""
    if op == AluOp.ADD:
        val = arg_a + arg_b
    elif op == AluOp.SUB:
        val = arg_b - arg_a
    elif op == AluOp.AND:
        val = arg_a & arg_b
    elif op == AluOp.XOR:
        val = arg_a ^ arg_b
    else:
        val = 0
    return to_signed(val)


def pack_cc(zero: bool, sign: bool, overflow: bool) -> int:
    return (int(bool(zero)) << 2) | (int(bool(sign)) << 1) | int(bool(overflow))


DEFAULT_CC = pack_cc(True, False, False)


def _flags(cc: int) -> tuple[int, int, int]:
    return (cc >> 2) & 1, (cc >> 1) & 1, cc & 1


def compute_cc(op: int, arg_a: int, arg_b: int) -> int:
    """Compute the condition codes an ALU operation produces."""
    val = compute_alu(op, arg_a, arg_b)
    a = to_signed(arg_a)
    b = to_signed(arg_b)
    zero = val == 0
    sign = val < 0
    if op == AluOp.ADD:
        ovf = ((a < 0) == (b < 0)) and ((val < 0) != (a < 0))
    elif op == AluOp.SUB:
        ovf = ((a > 0) == (b < 0)) and ((val < 0) != (b < 0))
    else:
        ovf = False
    return pack_cc(zero, sign, ovf)


_CC_NAMES = tuple(
    f"Z={(c >> 2) & 1} S={(c >> 1) & 1} O={c & 1}" for c in range(8)
)


def cc_name(cc: int) -> str:
    """Return the printed form of a condition code value."""
    return _CC_NAMES[cc] if 0 <= cc <= 7 else "???????????"


_STAT_NAMES = ("BUB", "AOK", "HLT", "ADR", "INS", "PIP")


def stat_name(status: int) -> str:
    """Return the short name of a status code."""
    if status < 0 or status > Status.PIP:
        return "Invalid Status"
    return _STAT_NAMES[status]


def cond_holds(cc: int, cond: int) -> bool:
    """True if the branch/move condition holds under these condition codes."""
    zf, sf, of = _flags(cc)
    if cond == Cond.YES:
        return True
    if cond == Cond.LE:
        return bool((sf ^ of) | zf)
    if cond == Cond.L:
        return bool(sf ^ of)
    if cond == Cond.E:
        return bool(zf)
    if cond == Cond.NE:
        return not zf
    if cond == Cond.GE:
        return not (sf ^ of)
    if cond == Cond.G:
        return not (sf ^ of) and not zf
    return False