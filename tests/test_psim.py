import io

import pytest

from y86sim.assembler import assemble
from y86sim.control import CONTROL_SIGNALS, ControlLogic
from y86sim.isa import DEFAULT_CC, MEM_SIZE, AluOp, InstrType, Register, Status
from y86sim.machine import MachineState, run
from y86sim.memory import LoadError, Memory
from y86sim.pipeline import PipeOp
from y86sim.psim import PipelineSimulator, run_tty
from y86sim.report import format_cpi
from y86sim.stages import StageId, bubble_state

PROGRAM = """\
    irmovq $10, %rax
    irmovq $3, %rbx
    nop
    nop
    nop
    addq %rax, %rbx
    halt
"""

_SUPPORTED = {InstrType.NOP, InstrType.HALT, InstrType.RRMOVQ, InstrType.IRMOVQ, InstrType.ALU}
_NONE = int(Register.NONE)


def _f_stat(s):
    if s.imem_error:
        return Status.ADR
    if not s.instr_valid:
        return Status.INS
    if s.if_id_next.icode == InstrType.HALT:
        return Status.HLT
    return Status.AOK


def _alu_a(s):
    e = s.id_ex_curr
    if e.icode in (InstrType.RRMOVQ, InstrType.ALU):
        return e.vala
    if e.icode == InstrType.IRMOVQ:
        return e.valc
    return 0


def _functions(**overrides):
    """Control without forwarding or memory access, for nop-padded programs."""
    functions = {name: (lambda s: 0) for name in CONTROL_SIGNALS}
    functions.update(
        f_pc=lambda s: s.pc_curr.pc,
        f_icode=lambda s: InstrType.NOP if s.imem_error else s.imem_icode,
        f_ifun=lambda s: 0 if s.imem_error else s.imem_ifun,
        instr_valid=lambda s: s.if_id_next.icode in _SUPPORTED,
        f_stat=_f_stat,
        need_regids=lambda s: s.if_id_next.icode in (
            InstrType.RRMOVQ, InstrType.IRMOVQ, InstrType.ALU),
        need_valC=lambda s: s.if_id_next.icode == InstrType.IRMOVQ,
        f_predPC=lambda s: s.if_id_next.valp,
        d_srcA=lambda s: s.if_id_curr.ra
        if s.if_id_curr.icode in (InstrType.RRMOVQ, InstrType.ALU) else _NONE,
        d_srcB=lambda s: s.if_id_curr.rb if s.if_id_curr.icode == InstrType.ALU else _NONE,
        d_dstE=lambda s: s.if_id_curr.rb if s.if_id_curr.icode in (
            InstrType.RRMOVQ, InstrType.IRMOVQ, InstrType.ALU) else _NONE,
        d_dstM=lambda s: _NONE,
        d_valA=lambda s: s.d_regvala,
        d_valB=lambda s: s.d_regvalb,
        aluA=_alu_a,
        aluB=lambda s: s.id_ex_curr.valb if s.id_ex_curr.icode == InstrType.ALU else 0,
        alufun=lambda s: s.id_ex_curr.ifun
        if s.id_ex_curr.icode == InstrType.ALU else AluOp.ADD,
        set_cc=lambda s: s.id_ex_curr.icode == InstrType.ALU,
        e_valA=lambda s: s.id_ex_curr.vala,
        e_dstE=lambda s: s.id_ex_curr.deste,
        m_stat=lambda s: s.ex_mem_curr.status,
        w_dstE=lambda s: s.mem_wb_curr.deste,
        w_valE=lambda s: s.mem_wb_curr.vale,
        w_dstM=lambda s: s.mem_wb_curr.destm,
        w_valM=lambda s: s.mem_wb_curr.valm,
        Stat=lambda s: Status.AOK
        if s.mem_wb_curr.status == Status.BUB else s.mem_wb_curr.status,
    )
    functions.update(overrides)
    return functions


@pytest.fixture
def lines():
    return assemble(PROGRAM).splitlines(True)


@pytest.fixture
def sim():
    return PipelineSimulator(ControlLogic(_functions()))


def _isa_result(lines):
    machine = MachineState(MEM_SIZE)
    machine.mem.load(lines, True)
    run(machine)
    return machine


def test_run_matches_isa_model(sim, lines):
    sim.load(lines)
    icount, status, cc = sim.run(10000, 50000)
    machine = _isa_result(lines)
    assert status == Status.HLT
    assert sim.regs.get(Register.RBX) == machine.regs.get(Register.RBX) == 13
    assert sim.regs.get(Register.RAX) == machine.regs.get(Register.RAX)
    assert cc == machine.cc
    assert icount > 0


def test_load_counts_bytes(sim, lines):
    assert sim.load(lines) == Memory(MEM_SIZE).load(lines, True)


def test_cycle_limit_stops_early(sim, lines):
    sim.load(lines)
    icount, status, _ = sim.run(100, 3)
    assert icount <= 3
    assert status == Status.AOK
    assert sim.regs.get(Register.RAX) == 0


def test_cycles_cover_instructions(sim, lines):
    sim.load(lines)
    sim.run(10000, 50000)
    assert sim.instructions > 0
    assert sim.cycles >= sim.instructions


def test_bubble_and_stall_stage(sim):
    sim.bubble_stage(StageId.EX)
    sim.stall_stage(StageId.IF)
    assert sim.pipes[StageId.EX].op == PipeOp.BUBBLE
    assert sim.pipes[StageId.IF].op == PipeOp.STALL


def test_reset_restores_initial_state(sim, lines):
    sim.load(lines)
    sim.run(10000, 50000)
    sim.reset()
    assert (sim.cycles, sim.instructions) == (0, 0)
    assert sim.cc == DEFAULT_CC
    assert sim.regs.get(Register.RBX) == 0
    assert sim.signals.mem_wb_curr == bubble_state(StageId.WB)


def test_conflicting_signals_mark_pipe_error(lines):
    log = io.StringIO()
    sim = PipelineSimulator(
        ControlLogic(_functions(F_stall=lambda s: 1, F_bubble=lambda s: 1)), log
    )
    sim.load(lines)
    sim.step(10, 0)
    assert sim.pipes[StageId.IF].op == PipeOp.ERROR
    assert "PC: Conflicting control signals for pipe register" in log.getvalue()
    sim.step(10, 1)
    assert sim.signals.pc_curr.status == Status.PIP


def test_dumpfile_gets_cycle_reports(lines):
    log = io.StringIO()
    sim = PipelineSimulator(ControlLogic(_functions()), log)
    sim.load(lines)
    sim.run(10000, 50000)
    text = log.getvalue()
    assert "\nCycle 0. " in text
    assert f"Writeback: Wrote 0x{10:x} to register %rax" in text


def test_run_tty_check_succeeds(sim, lines):
    out = io.StringIO()
    _, status, _ = run_tty(sim, lines, check=True, out=out)
    text = out.getvalue()
    assert status == Status.HLT
    assert text.startswith(sim.name + "\n")
    assert "Status = HLT" in text
    assert "ISA Check Succeeds" in text
    assert text.endswith(format_cpi(sim.cycles, sim.instructions))


def test_run_tty_check_fails_without_writeback(lines):
    sim = PipelineSimulator(ControlLogic(_functions(w_dstE=lambda s: _NONE)))
    out = io.StringIO()
    run_tty(sim, lines, verbosity=1, check=True, out=out)
    text = out.getvalue()
    assert "ISA Register != Pipeline Register File" in text
    assert "ISA Check Fails" in text


def test_run_tty_quiet(sim, lines):
    out = io.StringIO()
    run_tty(sim, lines, verbosity=0, out=out)
    text = out.getvalue()
    assert "Changed Register State" not in text
    assert "Cycle" not in text
    assert text == format_cpi(sim.cycles, sim.instructions)


def test_run_tty_without_code_raises(sim):
    with pytest.raises(LoadError):
        run_tty(sim, [], verbosity=0, out=io.StringIO())