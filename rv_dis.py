import click

from rv_errors import UnknownEncoding
from rv_imm import bits, to_u32, unpack_b, unpack_i, unpack_j, unpack_s, unpack_u
from rv_isa import BY_ENCODING, OPCODE_FIELDS, SPECS


def parse_address(ctx, param, value):
    # click callback: "16", "0x10" -> int
    try:
        v = int(value, 0) if isinstance(value, str) else int(value)
    except ValueError:
        raise click.BadParameter(f"not a number: {value}")
    if not (0 <= v <= 0xFFFFFFFF):
        raise click.BadParameter(f"address out of 32-bit range: {value}")
    return v


def hex32(x: int) -> str:
    return f"0x{to_u32(x):08x}"


def xreg(n: int) -> str:
    return f"x{n}"


def decode(word: int, addr: int) -> dict:
    # One word at address addr -> {"addr", "word", "op", "args"}.
    # Operands come back in the same surface syntax the assembler reads,
    # except branch/jump targets, which are absolute addresses.
    word = to_u32(word)
    opcode = bits(word, 6, 0)
    rd = bits(word, 11, 7)
    funct3 = bits(word, 14, 12)
    rs1 = bits(word, 19, 15)
    rs2 = bits(word, 24, 20)
    funct7 = bits(word, 31, 25)

    if opcode not in OPCODE_FIELDS:
        raise UnknownEncoding(word, opcode)
    uses_f3, uses_f7 = OPCODE_FIELDS[opcode]
    key = (opcode, funct3 if uses_f3 else None, funct7 if uses_f7 else None)
    op = BY_ENCODING.get(key)
    if op is None:
        raise UnknownEncoding(word, opcode, key[1], key[2])

    fmt = SPECS[op].fmt
    if fmt == "R":
        args = [xreg(rd), xreg(rs1), xreg(rs2)]
    elif fmt == "I" and SPECS[op].shape[1] == "mem":
        args = [xreg(rd), f"{unpack_i(word)}({xreg(rs1)})"]
    elif fmt == "I":
        args = [xreg(rd), xreg(rs1), str(unpack_i(word))]
    elif fmt == "S":
        args = [xreg(rs2), f"{unpack_s(word)}({xreg(rs1)})"]
    elif fmt == "B":
        args = [xreg(rs1), xreg(rs2), hex32(addr + unpack_b(word))]
    elif fmt == "U":
        args = [xreg(rd), hex32(unpack_u(word) << 12)]
    else:
        args = [xreg(rd), hex32(addr + unpack_j(word))]

    return {"addr": to_u32(addr), "word": word, "op": op, "args": args}


def from_bytes(data: bytes) -> tuple[list[int], int]:
    # Little-endian byte stream -> (words, number of trailing bytes that were ignored)
    n = len(data) - len(data) % 4
    words = [int.from_bytes(data[i:i + 4], "little") for i in range(0, n, 4)]
    return words, len(data) - n


def format_decoded(d: dict, show_pc: bool = True, show_raw: bool = False) -> str:
    # "00000010: 0x002081b3  ADD x3, x1, x2"
    s = ""
    if show_pc:
        s += f"{d['addr']:08x}: "
    if show_raw:
        s += hex32(d["word"]) + "  "
    s += d["op"]
    if d["args"]:
        s += " " + ", ".join(d["args"])
    return s


def disassemble(data: bytes, base: int = 0):
    # Decode every whole word. A word that does not decode yields its UnknownEncoding
    # in place of a record and the stream goes on.
    # Returns (entries, trailing byte count).
    words, trailing = from_bytes(data)
    entries = []
    for i, w in enumerate(words):
        try:
            entries.append(decode(w, base + 4 * i))
        except UnknownEncoding as e:
            entries.append(e)
    return entries, trailing


@click.command()
@click.argument("program_bin", type=click.Path(exists=True, dir_okay=False))
@click.option("--base", default="0", callback=parse_address, help="address of the first word")
@click.option("--pc/--no-pc", "show_pc", default=True, help="prefix lines with the address")
@click.option("--raw", "show_raw", is_flag=True, help="show the raw word")
def main(program_bin, base, show_pc, show_raw):
    with open(program_bin, "rb") as f:
        data = f.read()

    entries, trailing = disassemble(data, base)
    for i, entry in enumerate(entries):
        if isinstance(entry, dict):
            click.echo(format_decoded(entry, show_pc, show_raw))
            continue
        prefix = ""
        if show_pc:
            prefix += f"{to_u32(base + 4 * i):08x}: "
        if show_raw:
            prefix += hex32(entry.word) + "  "
        click.echo(f"{prefix}??  ; {entry}", err=True)

    if trailing:
        click.echo(f"warning: trailing {trailing} byte(s) ignored (binary not word-aligned)", err=True)


if __name__ == "__main__":
    main()
