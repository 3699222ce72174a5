import io

import pytest

from y86sim.isa import (
    DEFAULT_CC,
    WORD_MASK,
    AluOp,
    Cond,
    InstrType,
    Register,
    Status,
    compute_alu,
    hpack,
    pack_cc,
)
from y86sim.machine import MachineState, run


def _imm(value):
    return (value & WORD_MASK).to_bytes(8, "little")


def irmovq(value, reg):
    return bytes([hpack(InstrType.IRMOVQ, 0), hpack(Register.NONE, reg)]) + _imm(value)


def rr(icode, fun, ra, rb):
    return bytes([hpack(icode, fun), hpack(ra, rb)])


def mem_op(icode, ra, rb, disp):
    return bytes([hpack(icode, 0), hpack(ra, rb)]) + _imm(disp)


def jump(icode, fun, dest):
    return bytes([hpack(icode, fun)]) + _imm(dest)


HALT = bytes([hpack(InstrType.HALT, 0)])
RET = bytes([hpack(InstrType.RET, 0)])


def machine(code, memlen=1024, at=0):
    state = MachineState(memlen)
    state.mem.contents[at:at + len(code)] = code
    return state


def test_irmovq_then_halt():
    code = irmovq(5, Register.RAX) + HALT
    state = machine(code)
    assert state.step() == Status.AOK
    assert state.regs.get(Register.RAX) == 5
    assert state.pc == len(irmovq(5, Register.RAX))
    pc_before = state.pc
    assert state.step() == Status.HLT
    assert state.pc == pc_before


def test_addq_sets_register_and_cc():
    code = (irmovq(5, Register.RAX) + irmovq(7, Register.RBX)
            + rr(InstrType.ALU, AluOp.ADD, Register.RAX, Register.RBX))
    state = machine(code)
    for _ in range(3):
        assert state.step() == Status.AOK
    assert state.regs.get(Register.RBX) == compute_alu(AluOp.ADD, 5, 7)
    assert state.regs.get(Register.RAX) == 5
    assert state.cc == pack_cc(False, False, False)


def test_subq_to_zero_sets_zero_flag():
    code = (irmovq(9, Register.RAX) + irmovq(9, Register.RBX)
            + rr(InstrType.ALU, AluOp.SUB, Register.RAX, Register.RBX))
    state = machine(code)
    state.step()
    state.step()
    state.cc = pack_cc(False, True, False)
    assert state.step() == Status.AOK
    assert state.regs.get(Register.RBX) == 0
    assert state.cc == pack_cc(True, False, False)


def test_invalid_instruction_reports_ins():
    state = machine(bytes([0xF0]))
    err = io.StringIO()
    assert state.step(err) == Status.INS
    assert "Invalid instruction f0" in err.getvalue()


def test_pc_outside_memory_is_adr():
    state = machine(b"")
    state.pc = len(state.mem) + 100
    err = io.StringIO()
    assert state.step(err) == Status.ADR
    assert "Invalid instruction address" in err.getvalue()


def test_truncated_register_byte_is_adr():
    state = MachineState(32)
    state.mem.set_byte(31, hpack(InstrType.IRMOVQ, 0))
    state.pc = 31
    assert state.step() == Status.ADR


def test_invalid_register_is_ins():
    state = machine(rr(InstrType.RRMOVQ, 0, Register.NONE, Register.RAX))
    err = io.StringIO()
    assert state.step(err) == Status.INS
    assert "Invalid register ID" in err.getvalue()


def test_call_and_ret():
    stack = 0x100
    target = 0x40
    code = irmovq(stack, Register.RSP) + jump(InstrType.CALL, 0, target)
    state = machine(code)
    state.mem.contents[target:target + 1] = RET
    state.step()
    assert state.step() == Status.AOK
    return_addr = len(code)
    assert state.pc == target
    assert state.regs.get(Register.RSP) == stack - 8
    assert state.mem.get_word(stack - 8) == return_addr
    assert state.step() == Status.AOK
    assert state.pc == return_addr
    assert state.regs.get(Register.RSP) == stack


def test_push_pop_round_trip():
    code = (irmovq(0x200, Register.RSP) + irmovq(-3, Register.RAX)
            + rr(InstrType.PUSHQ, 0, Register.RAX, Register.NONE)
            + rr(InstrType.POPQ, 0, Register.RBX, Register.NONE))
    state = machine(code)
    status = [state.step() for _ in range(4)]
    assert status == [Status.AOK] * 4
    assert state.regs.get(Register.RBX) == -3
    assert state.regs.get(Register.RSP) == 0x200


def test_memory_store_and_load_with_displacement():
    code = (irmovq(0x100, Register.RBP) + irmovq(1234, Register.RAX)
            + mem_op(InstrType.RMMOVQ, Register.RAX, Register.RBP, 16)
            + mem_op(InstrType.MRMOVQ, Register.RCX, Register.RBP, 16))
    state = machine(code)
    for _ in range(4):
        assert state.step() == Status.AOK
    assert state.mem.get_word(0x110) == 1234
    assert state.regs.get(Register.RCX) == 1234


def test_store_to_invalid_address_is_adr():
    code = mem_op(InstrType.RMMOVQ, Register.RAX, Register.NONE, 0x100000)
    state = machine(code)
    err = io.StringIO()
    assert state.step(err) == Status.ADR
    assert "Invalid data address" in err.getvalue()


def test_conditional_jump_uses_condition_codes():
    state = machine(jump(InstrType.JMP, Cond.E, 0x80))
    assert state.cc == DEFAULT_CC
    state.step()
    assert state.pc == 0x80

    state = machine(jump(InstrType.JMP, Cond.NE, 0x80))
    state.step()
    assert state.pc == len(jump(InstrType.JMP, Cond.NE, 0x80))


def test_cmov_not_taken_keeps_destination():
    code = (irmovq(4, Register.RAX)
            + rr(InstrType.RRMOVQ, Cond.NE, Register.RAX, Register.RDX))
    state = machine(code)
    state.step()
    state.step()
    assert state.regs.get(Register.RDX) == 0


def test_iaddq():
    code = (irmovq(10, Register.RSI)
            + bytes([hpack(InstrType.IADDQ, 0), hpack(Register.NONE, Register.RSI)])
            + _imm(-10))
    state = machine(code)
    state.step()
    assert state.step() == Status.AOK
    assert state.regs.get(Register.RSI) == 0
    assert state.cc == pack_cc(True, False, False)


def test_run_stops_at_halt():
    state = machine(irmovq(1, Register.RAX) + HALT)
    steps, status = run(state)
    assert (steps, status) == (2, Status.HLT)


def test_run_respects_step_limit():
    state = machine(jump(InstrType.JMP, Cond.YES, 0))
    steps, status = run(state, 5)
    assert (steps, status) == (5, Status.AOK)


def test_copy_is_independent_and_diff_reports():
    state = machine(irmovq(7, Register.RAX))
    snapshot = state.copy()
    assert not snapshot.diff(state)
    state.step()
    assert snapshot.regs.get(Register.RAX) == 0
    out = io.StringIO()
    assert snapshot.diff(state, out)
    text = out.getvalue()
    assert "%rax:" in text
    assert text.startswith("pc:")


@pytest.mark.parametrize("cc", [0, 3, 7])
def test_diff_reports_condition_codes(cc):
    state = MachineState(64)
    other = state.copy()
    other.cc = cc
    assert state.diff(other) == (cc != DEFAULT_CC)