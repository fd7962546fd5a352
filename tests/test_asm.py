import pytest

from rv_asm import (
    assemble,
    assemble_text,
    encode_ins,
    first_pass,
    mem,
    num,
    read_program,
    reg,
    split_args,
    to_bytes,
    to_hex,
)
from rv_errors import (
    AsmError,
    ImmediateOutOfRange,
    InvalidImmediateToken,
    InvalidRegister,
    MisalignedTarget,
    OperandCountMismatch,
    SyntaxBoundaryError,
    UndefinedSymbol,
    UnknownMnemonic,
)


def one(src, pc=0):
    prog = read_program(src)
    assert len(prog) == 1
    return encode_ins(prog[0], pc, {})


# ---------------------------------------------------------------------------
# reading source
# ---------------------------------------------------------------------------

def test_read_program_lines():
    prog = read_program(
        "# header\n"
        "\n"
        "start: ADDI x1, x0, 5   // five\n"
        "a:\n"
        "b: c:\n"
        "  LW x5, 0( x10 )  # load\n"
    )
    assert prog == [
        {"labels": ["start"], "op": "ADDI", "args": ["x1", "x0", "5"], "line": 3},
        {"labels": ["a"], "op": None, "args": [], "line": 4},
        {"labels": ["b", "c"], "op": None, "args": [], "line": 5},
        {"labels": [], "op": "LW", "args": ["x5", "0( x10 )"], "line": 6},
    ]


def test_split_args_keeps_parens_together():
    assert split_args("x1, 4(x2)") == ["x1", "4(x2)"]
    assert split_args("x1,,x2") == ["x1", "", "x2"]
    assert split_args("") == []


def test_bad_label_name():
    with pytest.raises(SyntaxBoundaryError) as e:
        read_program("ADD x1, x1, x1\n1abc: ADD x1, x1, x1\n")
    assert e.value.line == 2


# ---------------------------------------------------------------------------
# operand tokens
# ---------------------------------------------------------------------------

def test_num():
    assert num("42") == 42
    assert num("-42") == -42
    assert num("+7") == 7
    assert num("0x1F") == 31
    assert num("-0x10") == -16
    for bad in ["", "0b101", "1.5", "abc", "0x", "--1"]:
        with pytest.raises(InvalidImmediateToken):
            num(bad)


def test_reg():
    assert reg("x0") == 0
    assert reg(" x31 ") == 31
    for bad in ["x32", "r1", "sp", "x", "x-1", ""]:
        with pytest.raises(InvalidRegister):
            reg(bad)


def test_mem():
    assert mem("0(x10)") == (0, 10)
    assert mem("-8 ( x2 )") == (-8, 2)
    assert mem("0x40(x3)") == (64, 3)
    with pytest.raises(InvalidImmediateToken):
        mem("4")
    with pytest.raises(InvalidImmediateToken):
        mem("(x2)")
    with pytest.raises(InvalidRegister):
        mem("4(x40)")


# ---------------------------------------------------------------------------
# encodings
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("src, word", [
    ("ADD x3, x1, x2", 0x002081B3),
    ("add x3,x1,x2", 0x002081B3),
    ("SUB x3, x1, x2", 0x402081B3),
    ("ADDI x1, x0, 2047", 0x7FF00093),
    ("ADDI x1, x0, -1", 0xFFF00093),
    ("LW x5, 0(x10)", 0x00052283),
    ("SW x5, -4(x2)", 0xFE512E23),
    ("LUI x5, 0x12345", 0x123452B7),
    ("LUI x5, 0x123456", 0x234562B7),
    ("AUIPC x5, 0x12345000", 0x12345297),
    ("AUIPC x5, -4096", 0xFFFFF297),
    ("JAL x1, 8", 0x008000EF),
    ("JALR x0, x1, 0", 0x00008067),
    ("BEQ x1, x2, -8", 0xFE208CE3),
])
def test_encodings(src, word):
    assert one(src) == word


def test_lw_fields():
    w = one("LW x5,0(x10)")
    assert w & 0x7F == 0x03
    assert (w >> 12) & 0x7 == 0x2
    assert (w >> 7) & 0x1F == 5
    assert (w >> 15) & 0x1F == 10
    assert w >> 20 == 0


def test_addi_range():
    assert one("ADDI x1,x0,2047") == 0x7FF00093
    assert one("ADDI x1,x0,-2048") == 0x80000093
    with pytest.raises(ImmediateOutOfRange):
        one("ADDI x1,x0,2048")
    with pytest.raises(ImmediateOutOfRange):
        one("ADDI x1,x0,-2049")


def test_branch_limits():
    one("BEQ x0, x0, 4094")
    one("BEQ x0, x0, -4096")
    with pytest.raises(ImmediateOutOfRange):
        one("BEQ x0, x0, 4096")
    with pytest.raises(MisalignedTarget):
        one("BEQ x0, x0, 3")
    with pytest.raises(MisalignedTarget):
        one("JAL x0, 1")
    with pytest.raises(ImmediateOutOfRange):
        one("JAL x0, 1048576")


@pytest.mark.parametrize("src, err", [
    ("FOO x1, x2", UnknownMnemonic),
    ("ADD x1, x2", OperandCountMismatch),
    ("JALR x1, 0(x2)", OperandCountMismatch),
    ("ADD x1, x2, x32", InvalidRegister),
    ("ADD x1, x2, 3", InvalidRegister),
    ("ADDI x1, x0, abc", InvalidImmediateToken),
    ("LW x1, 4", InvalidImmediateToken),
    ("LUI x1, label", InvalidImmediateToken),
    ("BEQ x0, x0, 1abc", InvalidImmediateToken),
    ("JAL x0, nowhere", UndefinedSymbol),
])
def test_errors(src, err):
    with pytest.raises(err):
        one(src)


def test_error_carries_line():
    src = "ADD x1, x1, x1\n\nADDI x1, x0, 5000\n"
    with pytest.raises(ImmediateOutOfRange) as e:
        assemble_text(src)
    assert e.value.line == 3
    assert str(e.value).startswith("line 3: ")

    with pytest.raises(UnknownMnemonic) as e:
        assemble_text("ADD x1, x1, x1\nNOP\n")
    assert e.value.line == 2
    assert isinstance(e.value, AsmError)
    assert isinstance(e.value, ValueError)


# ---------------------------------------------------------------------------
# labels and the two passes
# ---------------------------------------------------------------------------

def test_backward_branch():
    words = assemble_text(
        "start:\n"
        "  ADDI x1, x0, 1\n"
        "  ADDI x2, x0, 1\n"
        "  BEQ x1, x2, start\n"
    )
    assert words[2] == 0xFE208CE3


def test_forward_branch_to_end_label():
    src = (
        "  BEQ x0, x0, end\n"
        "  ADDI x1, x0, 1\n"
        "end:\n"
    )
    symbols, pcs = first_pass(read_program(src))
    assert symbols["end"] == 8
    assert pcs == [0, 4]
    words = assemble_text(src)
    # offset +8: imm[3] lands in word bit 10
    assert words[0] == 0x00000463


def test_jal_to_self():
    assert assemble_text("loop: JAL x0, loop\n") == [0x0000006F]


def test_label_binding():
    prog = read_program(
        "a: b: ADD x1, x1, x1\n"
        "c:\n"
        "d:\n"
        "ADD x1, x1, x1\n"
        "e: ADD x1, x1, x1\n"
        "f:\n"
        "g:\n"
    )
    symbols, pcs = first_pass(prog)
    assert dict(symbols) == {"a": 0, "b": 0, "c": 4, "d": 4, "e": 8, "f": 12, "g": 12}
    assert pcs == [0, 4, 8]


def test_eof_label_is_program_end():
    prog = read_program("ADD x1, x1, x1\n" * 5 + "tail:\n")
    symbols, _ = first_pass(prog)
    assert symbols["tail"] == 4 * 5


def test_first_definition_wins():
    src = (
        "dup: ADDI x1, x0, 1\n"
        "dup: ADDI x1, x0, 2\n"
        "JAL x0, dup\n"
    )
    symbols, _ = first_pass(read_program(src))
    assert symbols["dup"] == 0
    # jal at 8 back to 0
    assert assemble_text(src)[2] == 0xFF9FF06F


def test_base_address():
    src = "here: ADD x1, x1, x1\nJAL x0, here\n"
    symbols, pcs = first_pass(read_program(src), base=0x100)
    assert symbols["here"] == 0x100
    assert pcs == [0x100, 0x104]
    assert assemble(read_program(src), base=0x100) == assemble_text(src)


def test_base_wraps_at_32_bits():
    src = (
        "  BEQ x0, x0, there\n"
        "  ADD x1, x1, x1\n"
        "there: ADD x1, x1, x1\n"
        "  JAL x0, there\n"
    )
    symbols, pcs = first_pass(read_program(src), base=0xFFFFFFF8)
    assert pcs == [0xFFFFFFF8, 0xFFFFFFFC, 0x0, 0x4]
    assert symbols["there"] == 0
    assert assemble(read_program(src), base=0xFFFFFFF8) == assemble_text(src)


def test_backward_jump_across_wrap():
    src = "top: ADD x1, x1, x1\nADD x1, x1, x1\nADD x1, x1, x1\nJAL x0, top\n"
    words = assemble(read_program(src), base=0xFFFFFFFC)
    # jal at 0x8 back to 0xfffffffc is -12
    assert words[3] == assemble_text("JAL x0, -12\n")[0]


def test_label_map_is_read_only():
    symbols, _ = first_pass(read_program("a: ADD x1, x1, x1\n"))
    with pytest.raises(TypeError):
        symbols["a"] = 4


def test_no_partial_output():
    with pytest.raises(UndefinedSymbol):
        assemble_text("ADD x1, x1, x1\nBEQ x0, x0, missing\nADD x1, x1, x1\n")


def test_accepts_plain_dicts_without_labels():
    prog = [{"op": "ADD", "args": ["x3", "x1", "x2"], "line": 1}]
    assert assemble(prog) == [0x002081B3]


# ---------------------------------------------------------------------------
# output formats
# ---------------------------------------------------------------------------

def test_to_bytes_little_endian():
    assert to_bytes([0x002081B3, 0x00052283]) == bytes.fromhex("b381200083220500")
    assert to_bytes([]) == b""


def test_to_hex():
    assert to_hex([0x002081B3, 0x13]) == "002081b3\n00000013\n"
