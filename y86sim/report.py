"""Text reports of the pipeline state and performance."""

from __future__ import annotations

from .isa import WORD_MASK, cc_name, hpack, iname, reg_name, stat_name
from .stages import (
    DecodeExecuteState,
    ExecuteMemoryState,
    FetchDecodeState,
    MemoryWritebackState,
    PcState,
)


def _hex(value: int) -> str:
    return f"0x{value & WORD_MASK:x}"


def _instr(state) -> str:
    return iname(hpack(state.icode, state.ifun))


def format_cycle(
    cycle: int,
    cc: int,
    status: int,
    pc_state: PcState,
    fetch: FetchDecodeState,
    decode: DecodeExecuteState,
    execute: ExecuteMemoryState,
    memory: MemoryWritebackState,
) -> str:
    """Describe the current contents of every pipeline register for one cycle."""
    return "".join((
        f"\nCycle {cycle}. CC={cc_name(cc)}, Stat={stat_name(status)}\n",
        f"F: predPC = {_hex(pc_state.pc)}\n",
        f"D: instr = {_instr(fetch)}, rA = {reg_name(fetch.ra)}, "
        f"rB = {reg_name(fetch.rb)}, valC = {_hex(fetch.valc)}, "
        f"valP = {_hex(fetch.valp)}, Stat = {stat_name(fetch.status)}\n",
        f"E: instr = {_instr(decode)}, valC = {_hex(decode.valc)}, "
        f"valA = {_hex(decode.vala)}, valB = {_hex(decode.valb)}\n"
        f"   srcA = {reg_name(decode.srca)}, srcB = {reg_name(decode.srcb)}, "
        f"dstE = {reg_name(decode.deste)}, dstM = {reg_name(decode.destm)}, "
        f"Stat = {stat_name(decode.status)}\n",
        f"M: instr = {_instr(execute)}, Cnd = {int(execute.takebranch)}, "
        f"valE = {_hex(execute.vale)}, valA = {_hex(execute.vala)}\n"
        f"   dstE = {reg_name(execute.deste)}, dstM = {reg_name(execute.destm)}, "
        f"Stat = {stat_name(execute.status)}\n",
        f"W: instr = {_instr(memory)}, valE = {_hex(memory.vale)}, "
        f"valM = {_hex(memory.valm)}, dstE = {reg_name(memory.deste)}, "
        f"dstM = {reg_name(memory.destm)}, Stat = {stat_name(memory.status)}\n",
    ))


def format_cpi(cycles: int, instructions: int) -> str:
    """Cycles-per-instruction summary line; CPI is 1.0 when nothing completed."""
    cpi = cycles / instructions if instructions > 0 else 1.0
    return f"CPI: {cycles} cycles/{instructions} instructions = {cpi:.2f}\n"