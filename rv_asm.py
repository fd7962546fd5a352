import re

import click

from rv_errors import (
    AsmError,
    InvalidImmediateToken,
    InvalidRegister,
    OperandCountMismatch,
    SyntaxBoundaryError,
    UndefinedSymbol,
    UnknownMnemonic,
)
from rv_imm import pack_b, pack_i, pack_j, pack_s, pack_u, sign_extend, to_u32
from rv_isa import SYNTAX, lookup
from rv_symbols import OnRedefine, SymbolTable

NUM_RE = re.compile(r"[+-]?(0[xX][0-9a-fA-F]+|[0-9]+)")
REG_RE = re.compile(r"[xX]([0-9]+)")
MEM_RE = re.compile(r"(.*?)\s*\(\s*(.*?)\s*\)")
LABEL_RE = re.compile(r"[A-Za-z_.][A-Za-z0-9_.]*")
LABEL_DEF_RE = re.compile(r"\s*([^\s:,()]+)\s*:")


def clean(line: str) -> str:
    # Drop comments (# or //) and surrounding whitespace
    return line.split("#", 1)[0].split("//", 1)[0].strip()


def split_args(text: str) -> list[str]:
    # Split operands on commas that are not inside parentheses
    args, cur, depth = [], "", 0
    for ch in text:
        if ch == "," and depth == 0:
            args.append(cur.strip())
            cur = ""
            continue
        if ch == "(":
            depth += 1
        elif ch == ")" and depth > 0:
            depth -= 1
        cur += ch
    args.append(cur.strip())
    if args == [""]:
        return []
    return args


def parse_line(line: str, n: int):
    # One source line -> {"labels", "op", "args", "line"}, or None when it is empty.
    # op is None for a line that only carries labels.
    rest = clean(line)
    if not rest:
        return None

    labels = []
    while True:
        m = LABEL_DEF_RE.match(rest)
        if not m:
            break
        name = m.group(1)
        if not LABEL_RE.fullmatch(name):
            raise SyntaxBoundaryError(f"bad label name '{name}'", n)
        labels.append(name)
        rest = rest[m.end():].strip()

    if not rest:
        return {"labels": labels, "op": None, "args": [], "line": n}

    parts = rest.split(None, 1)
    args = split_args(parts[1]) if len(parts) > 1 else []
    return {"labels": labels, "op": parts[0], "args": args, "line": n}


def read_program(text: str) -> list:
    prog = []
    for i, line in enumerate(text.splitlines(), 1):
        ins = parse_line(line, i)
        if ins:
            prog.append(ins)
    return prog


def num(t: str) -> int:
    # 123, -5, +0x1F; nothing else (no octal, no binary)
    t = t.strip()
    m = NUM_RE.fullmatch(t)
    if not m:
        raise InvalidImmediateToken(f"expected immediate, got '{t}'")
    return int(t, 16 if m.group(1)[:2].lower() == "0x" else 10)


def reg(t: str) -> int:
    # x0..x31
    t = t.strip()
    m = REG_RE.fullmatch(t)
    if not m or int(m.group(1)) > 31:
        raise InvalidRegister(f"expected register x0..x31, got '{t}'")
    return int(m.group(1))


def mem(t: str) -> tuple[int, int]:
    # offset(reg) -> (offset, reg)
    m = MEM_RE.fullmatch(t.strip())
    if not m:
        raise InvalidImmediateToken(f"expected offset(register), got '{t.strip()}'")
    return num(m.group(1)), reg(m.group(2))


def target(t: str, pc: int, symbols) -> int:
    # Branch/jump operand: a literal offset, or a label turned into (label - pc).
    # Addresses wrap at 32 bits, so the distance does too.
    t = t.strip()
    if NUM_RE.fullmatch(t):
        return num(t)
    if not LABEL_RE.fullmatch(t):
        raise InvalidImmediateToken(f"expected label or immediate, got '{t}'")
    if t not in symbols:
        raise UndefinedSymbol(f"undefined symbol: {t}")
    return sign_extend(symbols[t] - pc, 32)


def encode_r(funct7, rs2, rs1, funct3, rd, opcode):
    return (funct7 << 25) | (rs2 << 20) | (rs1 << 15) | (funct3 << 12) | (rd << 7) | opcode


def encode_i(imm, rs1, funct3, rd, opcode):
    return pack_i(imm) | (rs1 << 15) | (funct3 << 12) | (rd << 7) | opcode


def encode_s(imm, rs2, rs1, funct3, opcode):
    return pack_s(imm) | (rs2 << 20) | (rs1 << 15) | (funct3 << 12) | opcode


def encode_b(imm, rs2, rs1, funct3, opcode):
    return pack_b(imm) | (rs2 << 20) | (rs1 << 15) | (funct3 << 12) | opcode


def encode_u(imm20, rd, opcode):
    return pack_u(imm20) | (rd << 7) | opcode


def encode_j(imm, rd, opcode):
    return pack_j(imm) | (rd << 7) | opcode


def first_pass(program, base: int = 0):
    # Give every instruction its pc and bind labels.
    # Labels bind to the next instruction; labels after the last one bind to the end
    # address. A label keeps its first binding.
    # Returns (read-only label map, list of pcs in instruction order).
    table = SymbolTable()
    pcs = []
    pending = []
    pc = to_u32(base)
    for ins in program:
        pending.extend(ins.get("labels", ()))
        if ins["op"] is None:
            continue
        for name in pending:
            table.define(name, pc, OnRedefine.KEEP_FIRST)
        pending = []
        pcs.append(pc)
        pc = to_u32(pc + 4)
    for name in pending:
        table.define(name, pc, OnRedefine.KEEP_FIRST)
    return table.freeze(), pcs


def operand(kind: str, t: str, pc: int, symbols):
    if kind == "reg":
        return reg(t)
    if kind == "imm":
        return num(t)
    if kind == "mem":
        return mem(t)
    return target(t, pc, symbols)


def encode_ins(ins: dict, pc: int, symbols) -> int:
    # One instruction line -> 32-bit word
    line = ins.get("line")
    found = lookup(ins["op"])
    if found is None:
        raise UnknownMnemonic(f"unknown mnemonic: {ins['op']}", line)
    name, spec = found

    args = ins["args"]
    if len(args) != len(spec.shape):
        raise OperandCountMismatch(
            f"{name} takes {len(spec.shape)} operands, got {len(args)} (usage: {SYNTAX[name]})", line
        )

    try:
        v = [operand(kind, a, pc, symbols) for kind, a in zip(spec.shape, args)]
        op, f3 = spec.opcode, spec.funct3

        if spec.fmt == "R":
            return encode_r(spec.funct7, v[2], v[1], f3, v[0], op)
        if spec.fmt == "I":
            if spec.shape[1] == "mem":
                off, rs1 = v[1]
                return encode_i(off, rs1, f3, v[0], op)
            return encode_i(v[2], v[1], f3, v[0], op)
        if spec.fmt == "S":
            off, rs1 = v[1]
            return encode_s(off, v[0], rs1, f3, op)
        if spec.fmt == "B":
            return encode_b(v[2], v[1], v[0], f3, op)
        if spec.fmt == "U":
            # LUI takes the low 20 bits of the literal as the field itself,
            # AUIPC takes a full 32-bit value and keeps its upper 20 bits.
            if name == "LUI":
                imm20 = v[1] & 0xFFFFF
            else:
                imm20 = to_u32(v[1]) >> 12
            return encode_u(imm20, v[0], op)
        return encode_j(v[1], v[0], op)
    except AsmError as e:
        if e.line is None:
            e.line = line
        raise


def assemble(program, base: int = 0) -> list[int]:
    # Whole program -> words. The first error aborts the run; no partial output.
    symbols, pcs = first_pass(program, base)
    instrs = [ins for ins in program if ins["op"] is not None]
    return [encode_ins(ins, pc, symbols) for ins, pc in zip(instrs, pcs)]


def assemble_text(text: str, base: int = 0) -> list[int]:
    return assemble(read_program(text), base)


def to_bytes(words) -> bytes:
    # 32-bit little-endian words back to back, no header
    return b"".join(to_u32(w).to_bytes(4, "little") for w in words)


def to_hex(words) -> str:
    # One word per line, 8 lowercase hex digits
    return "".join(f"{to_u32(w):08x}\n" for w in words)


def parse_address(ctx, param, value):
    # click callback: "16", "0x10" -> int
    try:
        v = int(value, 0) if isinstance(value, str) else int(value)
    except ValueError:
        raise click.BadParameter(f"not a number: {value}")
    if not (0 <= v <= 0xFFFFFFFF):
        raise click.BadParameter(f"address out of 32-bit range: {value}")
    return v


@click.command()
@click.argument("src", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", "out", required=True, type=click.Path(dir_okay=False),
              help="output file")
@click.option("--hex", "as_hex", is_flag=True, help="write a hex dump instead of binary")
@click.option("--base", default="0", callback=parse_address, help="address of the first instruction")
@click.option("--symbols", "show_symbols", is_flag=True, help="print the label table")
def main(src, out, as_hex, base, show_symbols):
    with open(src, "r", encoding="utf-8") as f:
        text = f.read()

    try:
        program = read_program(text)
        words = assemble(program, base)
    except AsmError as e:
        raise click.ClickException(f"{src}: {e}")

    if as_hex:
        with open(out, "w", encoding="utf-8") as f:
            f.write(to_hex(words))
    else:
        with open(out, "wb") as f:
            f.write(to_bytes(words))
    click.echo(f"Assembled {len(words)} instructions ({4 * len(words)} bytes) -> {out}")

    if show_symbols:
        labels, _ = first_pass(program, base)
        for name, addr in sorted(labels.items(), key=lambda x: x[1]):
            click.echo(f"  {name}: 0x{addr:08x}")


if __name__ == "__main__":
    main()
