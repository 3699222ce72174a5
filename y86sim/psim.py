"""Pipelined Y86-64 simulator driven by a set of control functions."""

from __future__ import annotations

import sys
from typing import Iterable, Optional, TextIO, Union

from .control import ControlLogic, Signals
from .isa import (
    DEFAULT_CC,
    MEM_SIZE,
    WORD_MASK,
    InstrType,
    Register,
    Status,
    cc_name,
    compute_alu,
    compute_cc,
    cond_holds,
    hi4,
    hpack,
    iname,
    lo4,
    op_name,
    reg_name,
    reg_valid,
    stat_name,
    to_signed,
)
from .machine import MachineState, run
from .memory import LoadError, Memory, RegisterFile
from .pipeline import PipeOp, PipeRegister, pipe_cntl
from .report import format_cpi, format_cycle
from .stages import StageId, bubble_state

DEFAULT_INSTR_LIMIT = 10000

_STALL_CONTROL = (
    (StageId.IF, "PC", "F"),
    (StageId.ID, "ID", "D"),
    (StageId.EX, "EX", "E"),
    (StageId.MEM, "MEM", "M"),
    (StageId.WB, "WB", "W"),
)


def _hex(value: int) -> str:
    return f"0x{value & WORD_MASK:x}"


def _as_status(value: int) -> Union[Status, int]:
    try:
        return Status(value)
    except ValueError:
        return value


class PipelineSimulator:
    """Five-stage pipelined processor with memory, registers and condition codes."""

    name = "Y86-64 Processor"

    def __init__(self, control: ControlLogic, dumpfile: Optional[TextIO] = None):
        self.control = control
        self.dumpfile = dumpfile
        self.mem = Memory(MEM_SIZE)
        self.regs = RegisterFile()
        self.pipes = {stage: PipeRegister(bubble_state(stage)) for stage in StageId}
        self.signals = Signals(
            pc_curr=self.pipes[StageId.IF].current,
            if_id_curr=self.pipes[StageId.ID].current,
            id_ex_curr=self.pipes[StageId.EX].current,
            ex_mem_curr=self.pipes[StageId.MEM].current,
            mem_wb_curr=self.pipes[StageId.WB].current,
            pc_next=self.pipes[StageId.IF].next,
            if_id_next=self.pipes[StageId.ID].next,
            id_ex_next=self.pipes[StageId.EX].next,
            ex_mem_next=self.pipes[StageId.MEM].next,
            mem_wb_next=self.pipes[StageId.WB].next,
        )
        self.reset()

    def reset(self) -> None:
        """Clear pipeline registers, register file, counters and pending updates."""
        for pipe in self.pipes.values():
            pipe.clear()
        self.regs = RegisterFile()
        self.cycles = 0
        self.instructions = 0
        self.starting_up = True
        self.cc = DEFAULT_CC
        self.cc_in = DEFAULT_CC
        self.status: Union[Status, int] = Status.AOK
        self.wb_dst_e = int(Register.NONE)
        self.wb_val_e = 0
        self.wb_dst_m = int(Register.NONE)
        self.wb_val_m = 0
        self.mem_addr = 0
        self.mem_data = 0
        self.mem_write = False

    def load(self, lines: Union[str, Iterable[str]]) -> int:
        """Load object code into memory; return the number of bytes read."""
        return self.mem.load(lines, True)

    def bubble_stage(self, stage: StageId) -> None:
        """Insert a bubble into the stage at the next update."""
        self.pipes[StageId(stage)].op = PipeOp.BUBBLE

    def stall_stage(self, stage: StageId) -> None:
        """Keep the stage's register unchanged at the next update."""
        self.pipes[StageId(stage)].op = PipeOp.STALL

    def _log(self, text: str) -> None:
        if self.dumpfile is not None:
            self.dumpfile.write(text)

    def _eval(self, name: str) -> int:
        return self.control.evaluate(name, self.signals)

    def _reg(self, reg: int) -> int:
        return self.regs.get(reg) if reg_valid(reg) else 0

    def _update_state(self, update_mem: bool, update_cc: bool) -> None:
        # Write E before M so that popq %rsp leaves the popped value in %rsp.
        for dest, val in ((self.wb_dst_e, self.wb_val_e), (self.wb_dst_m, self.wb_val_m)):
            if dest != Register.NONE:
                self._log(f"\tWriteback: Wrote {_hex(val)} to register {reg_name(dest)}\n")
                if reg_valid(dest):
                    self.regs.set(dest, val)

        if self.mem_write and not update_mem:
            self._log(
                f"\tDisabled write of {_hex(self.mem_data)} to address {_hex(self.mem_addr)}\n"
            )
        if update_mem and self.mem_write:
            try:
                self.mem.set_word(self.mem_addr, self.mem_data)
            except IndexError:
                self._log(f"\tCouldn't write to address {_hex(self.mem_addr)}\n")
            else:
                self._log(f"\tWrote {_hex(self.mem_data)} to address {_hex(self.mem_addr)}\n")
        if update_cc:
            self.cc = self.cc_in

    def _fetch(self) -> None:
        s = self.signals
        instr = hpack(InstrType.NOP, 0)
        regids = hpack(Register.NONE, Register.NONE)
        valc = 0
        f_pc = self._eval("f_pc")
        s.f_pc = f_pc
        valp = f_pc

        try:
            instr = self.mem.get_byte(valp)
            imem_error = False
        except IndexError:
            imem_error = True
        s.imem_icode = hi4(instr)
        s.imem_ifun = lo4(instr)
        if not imem_error:
            # Make sure a maximum length instruction can be read.
            try:
                self.mem.get_byte(valp + 5)
            except IndexError:
                imem_error = True
        s.imem_error = imem_error

        nxt = s.if_id_next
        nxt.icode = self._eval("f_icode")
        nxt.ifun = self._eval("f_ifun")
        if not imem_error:
            self._log(
                f"\tFetch: f_pc = {_hex(f_pc)}, imem_instr = {iname(instr)}, "
                f"f_instr = {iname(hpack(nxt.icode, nxt.ifun))}\n"
            )

        s.instr_valid = bool(self._eval("instr_valid"))
        if not s.instr_valid:
            self._log(f"\tFetch: Instruction code 0x{instr:x} invalid\n")
        nxt.status = _as_status(self._eval("f_stat"))

        valp += 1
        if self._eval("need_regids"):
            try:
                regids = self.mem.get_byte(valp)
            except IndexError:
                pass
            valp += 1
        nxt.ra = hi4(regids)
        nxt.rb = lo4(regids)
        if self._eval("need_valC"):
            try:
                valc = self.mem.get_word(valp)
            except IndexError:
                pass
            valp += 8
        nxt.valp = valp
        nxt.valc = valc

        s.pc_next.pc = self._eval("f_predPC")
        s.pc_next.status = Status.AOK if nxt.status == Status.AOK else Status.BUB
        nxt.stage_pc = f_pc

    def _decode_writeback(self) -> None:
        s = self.signals
        self.wb_dst_e = self._eval("w_dstE")
        self.wb_val_e = self._eval("w_valE")
        self.wb_dst_m = self._eval("w_dstM")
        self.wb_val_m = self._eval("w_valM")
        self.status = _as_status(self._eval("Stat"))

        nxt, cur = s.id_ex_next, s.if_id_curr
        nxt.srca = self._eval("d_srcA")
        nxt.srcb = self._eval("d_srcB")
        nxt.deste = self._eval("d_dstE")
        nxt.destm = self._eval("d_dstM")

        s.d_regvala = self._reg(nxt.srca)
        s.d_regvalb = self._reg(nxt.srcb)

        nxt.vala = self._eval("d_valA")
        nxt.valb = self._eval("d_valB")
        nxt.icode = cur.icode
        nxt.ifun = cur.ifun
        nxt.valc = cur.valc
        nxt.stage_pc = cur.stage_pc
        nxt.status = cur.status

    def _execute(self) -> None:
        s = self.signals
        cur, nxt = s.id_ex_curr, s.ex_mem_next
        alufun = self._eval("alufun")
        setcc = self._eval("set_cc")
        alua = self._eval("aluA")
        alub = self._eval("aluB")

        s.e_bcond = cond_holds(self.cc, cur.ifun)
        nxt.takebranch = s.e_bcond
        if cur.icode == InstrType.JMP:
            self._log(
                f"\tExecute: instr = {iname(hpack(cur.icode, cur.ifun))}, "
                f"cc = {cc_name(self.cc)}, branch {'' if nxt.takebranch else 'not '}taken\n"
            )

        aluout = compute_alu(alufun, alua, alub)
        nxt.vale = aluout
        self._log(
            f"\tExecute: ALU: {op_name(alufun)} {_hex(alua)} {_hex(alub)} --> {_hex(aluout)}\n"
        )
        if setcc:
            self.cc_in = compute_cc(alufun, alua, alub)
            self._log(f"\tExecute: New cc = {cc_name(self.cc_in)}\n")

        nxt.icode = cur.icode
        nxt.ifun = cur.ifun
        nxt.vala = self._eval("e_valA")
        nxt.deste = self._eval("e_dstE")
        nxt.destm = cur.destm
        nxt.srca = cur.srca
        nxt.status = cur.status
        nxt.stage_pc = cur.stage_pc

    def _memory(self) -> None:
        s = self.signals
        cur, nxt = s.ex_mem_curr, s.mem_wb_next
        read = self._eval("mem_read")
        valm = 0
        self.mem_addr = self._eval("mem_addr")
        self.mem_data = cur.vala
        self.mem_write = bool(self._eval("mem_write"))
        dmem_error = False

        if read:
            try:
                valm = to_signed(self.mem.get_word(self.mem_addr))
            except IndexError:
                dmem_error = True
            else:
                self._log(f"\tMemory: Read {_hex(valm)} from {_hex(self.mem_addr)}\n")
        if self.mem_write:
            if not dmem_error:
                # Read the address only to check that it is valid.
                try:
                    self.mem.get_word(self.mem_addr)
                except IndexError:
                    dmem_error = True
            if dmem_error:
                self._log(f"\tMemory: Invalid address {_hex(self.mem_addr)}\n")
        s.dmem_error = dmem_error

        nxt.icode = cur.icode
        nxt.ifun = cur.ifun
        nxt.vale = cur.vale
        nxt.valm = valm
        nxt.deste = cur.deste
        nxt.destm = cur.destm
        nxt.status = _as_status(self._eval("m_stat"))
        nxt.stage_pc = cur.stage_pc

    def _stall_check(self) -> None:
        for stage, label, prefix in _STALL_CONTROL:
            self.pipes[stage].op = pipe_cntl(
                label,
                self._eval(f"{prefix}_stall"),
                self._eval(f"{prefix}_bubble"),
                self._log,
            )

    def step(self, max_instr: int, cycle: int) -> Union[Status, int]:
        """Run the pipeline for one cycle and return the processor status.

        max_instr is how many more instructions may complete; updates by
        instructions beyond that are suppressed.
        """
        s = self.signals
        ahead_mem = int(s.mem_wb_curr.status != Status.BUB)
        ahead_ex = ahead_mem + int(s.mem_wb_next.status != Status.BUB)
        self._update_state(ahead_mem < max_instr, ahead_ex < max_instr)

        for pipe in self.pipes.values():
            pipe.update()
        self._log(format_cycle(
            cycle, self.cc, self.status, s.pc_curr, s.if_id_curr,
            s.id_ex_curr, s.ex_mem_curr, s.mem_wb_curr,
        ))
        for pipe in self.pipes.values():
            if pipe.op == PipeOp.ERROR:
                pipe.current.status = Status.PIP

        # Memory runs before execute, and both before decode, so that
        # forwarded values are ready when decode needs them.
        self._fetch()
        self._memory()
        self._execute()
        self._decode_writeback()
        self._stall_check()

        wb = s.mem_wb_curr
        if wb.status != Status.BUB and wb.icode != InstrType.POP2:
            self.starting_up = False
            self.instructions += 1
            self.cycles += 1
        elif not self.starting_up:
            self.cycles += 1
        return self.status

    def run(self, max_instr: int, max_cycle: int) -> tuple[int, Union[Status, int], int]:
        """Run until an error status, max_instr instructions or max_cycle cycles.

        Returns the instruction count, the final status and the condition codes.
        """
        icount = 0
        ccount = 0
        run_status: Union[Status, int] = Status.AOK
        while icount < max_instr and ccount < max_cycle:
            run_status = self.step(max_instr - icount, ccount)
            if run_status != Status.BUB:
                icount += 1
            if run_status not in (Status.AOK, Status.BUB):
                break
            ccount += 1
        return icount, run_status, self.cc


def run_tty(
    simulator: PipelineSimulator,
    lines: Union[str, Iterable[str]],
    instr_limit: int = DEFAULT_INSTR_LIMIT,
    verbosity: int = 2,
    check: bool = False,
    out: Optional[TextIO] = None,
) -> tuple[int, Union[Status, int], int]:
    """Load and run a program, printing results; optionally check it against the ISA model.

    Raises LoadError when the object code holds no bytes.
    """
    out = sys.stdout if out is None else out
    if verbosity >= 2:
        simulator.dumpfile = out
    simulator.reset()
    simulator.mem.clear()

    if verbosity >= 2:
        out.write(f"{simulator.name}\n")

    byte_cnt = simulator.load(lines)
    if byte_cnt == 0:
        raise LoadError("No lines of code found", 0)
    if verbosity >= 2:
        out.write(f"{byte_cnt} bytes of code read\n")

    isa_state = None
    if check:
        isa_state = MachineState(0)
        isa_state.mem = simulator.mem.copy()
        isa_state.regs = simulator.regs.copy()
        isa_state.cc = simulator.cc

    mem0 = simulator.mem.copy()
    reg0 = simulator.regs.copy()

    icount, run_status, result_cc = simulator.run(instr_limit, 5 * instr_limit)
    if verbosity > 0:
        out.write(f"{icount} instructions executed\n")
        out.write(f"Status = {stat_name(run_status)}\n")
        out.write(f"Condition Codes: {cc_name(result_cc)}\n")
        out.write("Changed Register State:\n")
        reg0.diff(simulator.regs, out)
        out.write("Changed Memory State:\n")
        mem0.diff(simulator.mem, out)

    if isa_state is not None:
        run(isa_state, instr_limit, out)
        match = True
        if isa_state.regs.diff(simulator.regs, None):
            match = False
            if verbosity > 0:
                out.write("ISA Register != Pipeline Register File\n")
                isa_state.regs.diff(simulator.regs, out)
        if isa_state.mem.diff(simulator.mem, None):
            match = False
            if verbosity > 0:
                out.write("ISA Memory != Pipeline Memory\n")
                isa_state.mem.diff(simulator.mem, out)
        if isa_state.cc != result_cc:
            match = False
            if verbosity > 0:
                out.write(
                    f"ISA Cond. Codes ({cc_name(isa_state.cc)}) != "
                    f"Pipeline Cond. Codes ({cc_name(result_cc)})\n"
                )
        out.write("ISA Check Succeeds\n" if match else "ISA Check Fails\n")

    out.write(format_cpi(simulator.cycles, simulator.instructions))
    return icount, run_status, result_cc