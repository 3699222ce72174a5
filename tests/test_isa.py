import pytest

from y86sim.isa import (
    DEFAULT_CC,
    INSTRUCTION_SET,
    WORD_MASK,
    AluOp,
    ArgType,
    Cond,
    InstrType,
    Register,
    Status,
    cc_name,
    compute_alu,
    compute_cc,
    cond_holds,
    find_instr,
    find_register,
    hi4,
    hpack,
    iname,
    lo4,
    op_name,
    pack_cc,
    reg_name,
    reg_valid,
    stat_name,
    to_signed,
)

VALID_REGS = [r for r in Register if r < Register.NONE]
MAX_WORD = to_signed(1 << 63) - 1 + (1 << 64)
MIN_WORD = to_signed(1 << 63)


def test_find_register_known():
    assert find_register("%rsp") == Register.RSP


@pytest.mark.parametrize("name", ["%eax", "", "----", "rax"])
def test_find_register_unknown(name):
    assert find_register(name) == Register.ERR


@pytest.mark.parametrize("reg", VALID_REGS)
def test_register_name_round_trip(reg):
    assert find_register(reg_name(reg)) == reg


def test_reg_name_of_non_register():
    assert reg_name(Register.NONE) == "----"
    assert reg_name(Register.ERR) == "----"


def test_reg_valid():
    assert all(reg_valid(r) for r in VALID_REGS)
    assert not reg_valid(Register.NONE)
    assert not reg_valid(-1)


def test_hpack_round_trip():
    for hi in range(16):
        for lo in range(16):
            byte = hpack(hi, lo)
            assert 0 <= byte <= 0xFF
            assert (hi4(byte), lo4(byte)) == (hi, lo)


def test_find_instr():
    instr = find_instr("irmovq")
    assert instr.size == 10
    assert instr.arg1 == ArgType.I_ARG
    assert instr.arg2 == ArgType.R_ARG
    assert find_instr("nosuch") is None


def test_iname_round_trip():
    for instr in INSTRUCTION_SET:
        if not instr.name.startswith("."):
            assert iname(instr.code) == instr.name


def test_iname_halt_and_bad():
    assert iname(hpack(InstrType.HALT, 0)) == "halt"
    assert iname(0xFF) == "<bad>"


def test_to_signed():
    assert to_signed(WORD_MASK) == -1
    assert to_signed(-1) == -1
    assert to_signed(MAX_WORD) == MAX_WORD
    assert to_signed(MAX_WORD + 1) == MIN_WORD


def test_op_name():
    assert op_name(AluOp.ADD) == "+"
    assert op_name(AluOp.NONE) == "?"


@pytest.mark.parametrize("a,b", [(3, 10), (-7, 5), (MAX_WORD, 1), (0, MIN_WORD)])
def test_add_sub_inverse(a, b):
    total = compute_alu(AluOp.ADD, a, b)
    assert compute_alu(AluOp.SUB, a, total) == to_signed(b)


def test_add_wraps():
    assert compute_alu(AluOp.ADD, MAX_WORD, 1) == MIN_WORD


@pytest.mark.parametrize("value", [0, 1, -1, 12345, MIN_WORD])
def test_and_xor_identities(value):
    assert compute_alu(AluOp.AND, value, -1) == value
    assert compute_alu(AluOp.XOR, value, value) == 0
    assert compute_alu(AluOp.XOR, compute_alu(AluOp.XOR, value, 99), 99) == value
    assert compute_alu(AluOp.NONE, value, value) == 0


def test_cc_zero_result():
    assert compute_cc(AluOp.ADD, 0, 0) == DEFAULT_CC
    assert compute_cc(AluOp.SUB, 42, 42) == pack_cc(True, False, False)


def test_cc_overflow_on_add():
    assert compute_cc(AluOp.ADD, MAX_WORD, 1) == pack_cc(False, True, True)


def test_cc_negative_result():
    assert compute_cc(AluOp.SUB, 5, 1) == pack_cc(False, True, False)


def test_xor_never_overflows():
    assert compute_cc(AluOp.XOR, MAX_WORD, MIN_WORD) == pack_cc(False, True, False)


def test_cc_name():
    assert cc_name(DEFAULT_CC) == "Z=1 S=0 O=0"
    assert cc_name(8) == "???????????"
    assert cc_name(-1) == "???????????"


def test_stat_name():
    assert stat_name(Status.AOK) == "AOK"
    assert stat_name(Status.PIP) == "PIP"
    assert stat_name(6) == "Invalid Status"
    assert stat_name(-1) == "Invalid Status"


@pytest.mark.parametrize("cc", range(8))
def test_condition_relations(cc):
    assert cond_holds(cc, Cond.YES)
    assert cond_holds(cc, Cond.E) == bool(cc & 4)
    assert cond_holds(cc, Cond.NE) != cond_holds(cc, Cond.E)
    assert cond_holds(cc, Cond.GE) != cond_holds(cc, Cond.L)
    assert cond_holds(cc, Cond.G) != cond_holds(cc, Cond.LE)
    assert not cond_holds(cc, 7)


def test_conditions_after_compare():
    cc = compute_cc(AluOp.SUB, 3, 10)  # 10 - 3
    assert cond_holds(cc, Cond.G)
    assert not cond_holds(cc, Cond.L)