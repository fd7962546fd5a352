# Packing and unpacking of the I, S, B, U and J immediates.
# pack_* returns only the immediate bits of the word (OR them into the rest),
# unpack_* takes a whole word and returns the value of the field.

from rv_errors import ImmediateOutOfRange, MisalignedTarget

# Word bits owned by each immediate field
I_MASK = 0xFFF00000
S_MASK = 0xFE000F80
B_MASK = 0xFE000F80
U_MASK = 0xFFFFF000
J_MASK = 0xFFFFF000

I_RANGE = (-2048, 2047)
S_RANGE = (-2048, 2047)
B_RANGE = (-4096, 4094)
U_RANGE = (0, 0xFFFFF)
J_RANGE = (-1048576, 1048574)


def to_u32(x: int) -> int:
    return x & 0xFFFFFFFF


def bits(word: int, hi: int, lo: int) -> int:
    # word[hi:lo], both ends inclusive
    return (word >> lo) & ((1 << (hi - lo + 1)) - 1)


def sign_extend(x: int, width: int) -> int:
    # Treat the low `width` bits of x as a two's complement number
    x &= (1 << width) - 1
    if x >= (1 << (width - 1)):
        x -= (1 << width)
    return x


def _check(x: int, lo: int, hi: int, kind: str) -> None:
    if not (lo <= x <= hi):
        raise ImmediateOutOfRange(f"{kind}-immediate {x} out of range [{lo}, {hi}]")


def _check_even(x: int, kind: str) -> None:
    if x & 1:
        raise MisalignedTarget(f"{kind}-immediate {x} is not a multiple of 2")


def pack_i(x: int) -> int:
    _check(x, *I_RANGE, "I")
    return (x & 0xFFF) << 20


def unpack_i(word: int) -> int:
    # arithmetic shift of the whole word: the sign comes along with bit 31
    return sign_extend(word, 32) >> 20


def pack_s(x: int) -> int:
    _check(x, *S_RANGE, "S")
    v = x & 0xFFF
    return ((v >> 5) << 25) | ((v & 0x1F) << 7)


def unpack_s(word: int) -> int:
    return sign_extend((bits(word, 31, 25) << 5) | bits(word, 11, 7), 12)


def pack_b(x: int) -> int:
    _check_even(x, "B")
    _check(x, *B_RANGE, "B")
    v = x & 0x1FFF
    return (
        (bits(v, 12, 12) << 31)
        | (bits(v, 10, 5) << 25)
        | (bits(v, 4, 1) << 8)
        | (bits(v, 11, 11) << 7)
    )


def unpack_b(word: int) -> int:
    v = (
        (bits(word, 31, 31) << 12)
        | (bits(word, 7, 7) << 11)
        | (bits(word, 30, 25) << 5)
        | (bits(word, 11, 8) << 1)
    )
    return sign_extend(v, 13)


def pack_u(field: int) -> int:
    # field is the 20-bit value that lands in word[31:12] as is
    _check(field, *U_RANGE, "U")
    return field << 12


def unpack_u(word: int) -> int:
    return bits(word, 31, 12)


def pack_j(x: int) -> int:
    _check_even(x, "J")
    _check(x, *J_RANGE, "J")
    v = x & 0x1FFFFF
    return (
        (bits(v, 20, 20) << 31)
        | (bits(v, 10, 1) << 21)
        | (bits(v, 11, 11) << 20)
        | (bits(v, 19, 12) << 12)
    )


def unpack_j(word: int) -> int:
    v = (
        (bits(word, 31, 31) << 20)
        | (bits(word, 19, 12) << 12)
        | (bits(word, 20, 20) << 11)
        | (bits(word, 30, 21) << 1)
    )
    return sign_extend(v, 21)


# Format tag -> (pack, unpack, field mask, valid range)
CODECS = {
    "I": (pack_i, unpack_i, I_MASK, I_RANGE),
    "S": (pack_s, unpack_s, S_MASK, S_RANGE),
    "B": (pack_b, unpack_b, B_MASK, B_RANGE),
    "U": (pack_u, unpack_u, U_MASK, U_RANGE),
    "J": (pack_j, unpack_j, J_MASK, J_RANGE),
}
