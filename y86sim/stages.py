"""Contents of the pipeline registers and their bubble values."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Union

from .isa import InstrType, Register, Status


class StageId(IntEnum):
    IF = 0
    ID = 1
    EX = 2
    MEM = 3
    WB = 4


@dataclass
class PcState:
    """Fetch stage register: predicted program counter."""

    pc: int = 0
    status: int = Status.AOK


@dataclass
class FetchDecodeState:
    """IF/ID pipeline register."""

    icode: int = InstrType.NOP
    ifun: int = 0
    ra: int = Register.NONE
    rb: int = Register.NONE
    valc: int = 0
    valp: int = 0
    status: int = Status.BUB
    stage_pc: int = 0


@dataclass
class DecodeExecuteState:
    """ID/EX pipeline register."""

    icode: int = InstrType.NOP
    ifun: int = 0
    valc: int = 0
    vala: int = 0
    valb: int = 0
    srca: int = Register.NONE
    srcb: int = Register.NONE
    deste: int = Register.NONE
    destm: int = Register.NONE
    status: int = Status.BUB
    stage_pc: int = 0


@dataclass
class ExecuteMemoryState:
    """EX/MEM pipeline register."""

    icode: int = InstrType.NOP
    ifun: int = 0
    takebranch: bool = False
    vale: int = 0
    vala: int = 0
    deste: int = Register.NONE
    destm: int = Register.NONE
    srca: int = 0
    status: int = Status.BUB
    stage_pc: int = 0


@dataclass
class MemoryWritebackState:
    """MEM/WB pipeline register."""

    icode: int = InstrType.NOP
    ifun: int = 0
    vale: int = 0
    valm: int = 0
    deste: int = Register.NONE
    destm: int = Register.NONE
    status: int = Status.BUB
    stage_pc: int = 0


StageState = Union[
    PcState, FetchDecodeState, DecodeExecuteState,
    ExecuteMemoryState, MemoryWritebackState,
]

_STATE_CLASSES = {
    StageId.IF: PcState,
    StageId.ID: FetchDecodeState,
    StageId.EX: DecodeExecuteState,
    StageId.MEM: ExecuteMemoryState,
    StageId.WB: MemoryWritebackState,
}


def bubble_state(stage: StageId) -> StageState:
    """Return a fresh bubble value for the register that feeds the given stage."""
    return _STATE_CLASSES[StageId(stage)]()