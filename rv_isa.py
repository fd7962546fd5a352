from typing import NamedTuple


class Spec(NamedTuple):
    # fmt    one of R, I, S, B, U, J
    # opcode bits 6..0
    # funct3 bits 14..12, None when the format has no funct3
    # funct7 bits 31..25, None when the format has no funct7
    # shape  operand kinds in source order:
    #        "reg", "imm", "mem" (imm(reg)) or "target" (label or pc-relative imm)
    fmt: str
    opcode: int
    funct3: int | None
    funct7: int | None
    shape: tuple


# SPECS describes every mnemonic the assembler accepts.
# Keys are upper case; source mnemonics are matched case-insensitively.
SPECS = {
    "ADD":   Spec("R", 0x33, 0x0, 0x00, ("reg", "reg", "reg")),
    "SUB":   Spec("R", 0x33, 0x0, 0x20, ("reg", "reg", "reg")),
    "ADDI":  Spec("I", 0x13, 0x0, None, ("reg", "reg", "imm")),
    "LW":    Spec("I", 0x03, 0x2, None, ("reg", "mem")),
    "SW":    Spec("S", 0x23, 0x2, None, ("reg", "mem")),
    "BEQ":   Spec("B", 0x63, 0x0, None, ("reg", "reg", "target")),
    "LUI":   Spec("U", 0x37, None, None, ("reg", "imm")),
    "AUIPC": Spec("U", 0x17, None, None, ("reg", "imm")),
    "JAL":   Spec("J", 0x6F, None, None, ("reg", "target")),
    "JALR":  Spec("I", 0x67, 0x0, None, ("reg", "reg", "imm")),
}

# Usage hints for error messages
SYNTAX = {
    "ADD": "ADD rd, rs1, rs2",
    "SUB": "SUB rd, rs1, rs2",
    "ADDI": "ADDI rd, rs1, imm",
    "LW": "LW rd, offset(rs1)",
    "SW": "SW rs2, offset(rs1)",
    "BEQ": "BEQ rs1, rs2, label",
    "LUI": "LUI rd, imm20",
    "AUIPC": "AUIPC rd, imm",
    "JAL": "JAL rd, label",
    "JALR": "JALR rd, rs1, imm",
}


def lookup(mnem: str) -> tuple[str, Spec] | None:
    # Returns (canonical name, Spec) or None for an unknown mnemonic
    name = mnem.strip().upper()
    spec = SPECS.get(name)
    if spec is None:
        return None
    return name, spec


def _decode_key(spec: Spec):
    return (spec.opcode, spec.funct3, spec.funct7)


# Decoder side: (opcode, funct3, funct7) -> mnemonic.
# funct3/funct7 are None in the key when the format does not use them.
BY_ENCODING = {_decode_key(spec): name for name, spec in SPECS.items()}

# opcode -> (uses funct3, uses funct7), so the decoder knows which fields to compare
OPCODE_FIELDS = {}
for _spec in SPECS.values():
    OPCODE_FIELDS[_spec.opcode] = (_spec.funct3 is not None, _spec.funct7 is not None)
del _spec
