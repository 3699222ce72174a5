"""Signals visible to the pipeline control logic, and the logic that computes from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping

from .isa import InstrType
from .stages import (
    DecodeExecuteState,
    ExecuteMemoryState,
    FetchDecodeState,
    MemoryWritebackState,
    PcState,
)

# Every control function the pipeline simulator evaluates during a cycle.
CONTROL_SIGNALS: tuple[str, ...] = (
    # Fetch
    "f_pc", "f_icode", "f_ifun", "instr_valid", "f_stat",
    "need_regids", "need_valC", "f_predPC",
    # Decode and write back
    "w_dstE", "w_valE", "w_dstM", "w_valM", "Stat",
    "d_srcA", "d_srcB", "d_dstE", "d_dstM", "d_valA", "d_valB",
    # Execute
    "alufun", "set_cc", "aluA", "aluB", "e_valA", "e_dstE",
    # Memory
    "mem_addr", "mem_read", "mem_write", "m_stat",
    # Pipeline register control
    "F_stall", "F_bubble", "D_stall", "D_bubble", "E_stall", "E_bubble",
    "M_stall", "M_bubble", "W_stall", "W_bubble",
)


@dataclass
class Signals:
    """Pipeline register states and intermediate values of the current cycle.

    ``*_curr`` hold the contents of the pipeline registers; ``*_next`` hold
    the values being computed for them during this cycle.
    """

    pc_curr: PcState = field(default_factory=PcState)
    if_id_curr: FetchDecodeState = field(default_factory=FetchDecodeState)
    id_ex_curr: DecodeExecuteState = field(default_factory=DecodeExecuteState)
    ex_mem_curr: ExecuteMemoryState = field(default_factory=ExecuteMemoryState)
    mem_wb_curr: MemoryWritebackState = field(default_factory=MemoryWritebackState)

    pc_next: PcState = field(default_factory=PcState)
    if_id_next: FetchDecodeState = field(default_factory=FetchDecodeState)
    id_ex_next: DecodeExecuteState = field(default_factory=DecodeExecuteState)
    ex_mem_next: ExecuteMemoryState = field(default_factory=ExecuteMemoryState)
    mem_wb_next: MemoryWritebackState = field(default_factory=MemoryWritebackState)

    f_pc: int = 0
    imem_icode: int = InstrType.NOP
    imem_ifun: int = 0
    imem_error: bool = False
    instr_valid: bool = False
    d_regvala: int = 0
    d_regvalb: int = 0
    e_vala: int = 0
    e_valb: int = 0
    e_bcond: bool = False
    dmem_error: bool = False


ControlFunction = Callable[[Signals], int]


class ControlLogic:
    """A complete set of named control functions for the pipeline."""

    def __init__(self, functions: Mapping[str, ControlFunction]):
        missing = [name for name in CONTROL_SIGNALS if name not in functions]
        if missing:
            raise ValueError("Missing control functions: " + ", ".join(missing))
        self._functions = dict(functions)

    def evaluate(self, name: str, signals: Signals) -> int:
        """Compute the named control value; raises KeyError for an unknown name."""
        return int(self._functions[name](signals))