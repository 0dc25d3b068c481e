"""
Opcode ROM: byte value to operation index.

Every one of the 256 byte values has an entry; anything not listed in
OPCODE_CHARS decodes to OP_NOP. The machine indexes its handler table
with the ROM output, so dispatch is total by construction.
"""

from __future__ import annotations

OP_NOP      = 0
OP_UP       = 1
OP_DOWN     = 2
OP_LEFT     = 3
OP_RIGHT    = 4
OP_ADD      = 5
OP_SUB      = 6
OP_MUL      = 7
OP_DIV      = 8
OP_MOD      = 9
OP_NOT      = 10
OP_GT       = 11
OP_HIF      = 12   # horizontal if `_`
OP_VIF      = 13   # vertical if `|`
OP_RAND     = 14
OP_DUP      = 15
OP_SWAP     = 16
OP_POP      = 17
OP_BRIDGE   = 18
OP_PUT      = 19
OP_GET      = 20
OP_OUT_INT  = 21
OP_OUT_CHAR = 22
OP_IN_INT   = 23
OP_IN_CHAR  = 24
OP_STRING   = 25
OP_HALT     = 26
OP_DIGIT    = 27

NUM_OPS = 28

OPCODE_CHARS = {
    "^": OP_UP, "v": OP_DOWN, "<": OP_LEFT, ">": OP_RIGHT,
    "+": OP_ADD, "-": OP_SUB, "*": OP_MUL, "/": OP_DIV, "%": OP_MOD,
    "!": OP_NOT, "`": OP_GT,
    "_": OP_HIF, "|": OP_VIF, "?": OP_RAND,
    ":": OP_DUP, "\\": OP_SWAP, "$": OP_POP,
    "#": OP_BRIDGE,
    "p": OP_PUT, "g": OP_GET,
    ".": OP_OUT_INT, ",": OP_OUT_CHAR,
    "&": OP_IN_INT, "~": OP_IN_CHAR,
    '"': OP_STRING,
    "@": OP_HALT,
}
for _d in "0123456789":
    OPCODE_CHARS[_d] = OP_DIGIT
del _d

OP_NAMES = {
    OP_NOP: "nop", OP_UP: "up", OP_DOWN: "down", OP_LEFT: "left",
    OP_RIGHT: "right", OP_ADD: "add", OP_SUB: "sub", OP_MUL: "mul",
    OP_DIV: "div", OP_MOD: "mod", OP_NOT: "not", OP_GT: "gt",
    OP_HIF: "hif", OP_VIF: "vif", OP_RAND: "rand", OP_DUP: "dup",
    OP_SWAP: "swap", OP_POP: "pop", OP_BRIDGE: "bridge", OP_PUT: "put",
    OP_GET: "get", OP_OUT_INT: "out_int", OP_OUT_CHAR: "out_char",
    OP_IN_INT: "in_int", OP_IN_CHAR: "in_char", OP_STRING: "string",
    OP_HALT: "halt", OP_DIGIT: "digit",
}


def build_opcode_rom() -> bytes:
    """256-entry ROM: rom[byte] is the operation for that byte."""
    rom = bytearray(256)
    for ch, op in OPCODE_CHARS.items():
        rom[ord(ch)] = op
    return bytes(rom)


OPCODE_ROM = build_opcode_rom()


def decode(value: int) -> int:
    """Operation index for a cell value. Only the low byte counts."""
    return OPCODE_ROM[value & 0xFF]
