"""
Fungespace: the toroidal grid that is both program text and memory.

Two sparse layers keyed by (x, y):
  base:    the loaded program text, plus editor writes
  overlay: runtime writes from the `p` instruction

Reads consult overlay, then base, then fall back to a space.
Restart discards the overlay and leaves the base alone.
"""

from __future__ import annotations


GRID_BITS = 16
GRID_SIZE = 1 << GRID_BITS        # 65536 cells per axis
GRID_MASK = GRID_SIZE - 1

SPACE = 0x20
REPLACEMENT_CHAR = "�"

# Largest rectangle serialize_base will build
MAX_SAVE_CELLS = 1 << 24


def wrap(v: int) -> int:
    """Reduce a coordinate onto the torus."""
    return v & GRID_MASK


def clamp(v: int) -> int:
    """Pin a stack value into coordinate range (used by `p` and `g`)."""
    if v < 0:
        return 0
    if v > GRID_MASK:
        return GRID_MASK
    return v


def to_char(value: int) -> str:
    """Cell value as text. Non code points become U+FFFD."""
    if 0 <= value <= 0x10FFFF and not 0xD800 <= value <= 0xDFFF:
        return chr(value)
    return REPLACEMENT_CHAR


class Fungespace:
    """Sparse two-layer grid. Unset cells read as space."""

    def __init__(self):
        self.base: dict[tuple[int, int], int] = {}
        self.overlay: dict[tuple[int, int], int] = {}
        self.reads = 0
        self.writes = 0

    @classmethod
    def from_text(cls, text: str) -> Fungespace:
        space = cls()
        space.load_from_text(text)
        return space

    # -------------------------------------------------------------------
    # Cell access
    # -------------------------------------------------------------------

    def get(self, x: int, y: int) -> int:
        self.reads += 1
        key = (wrap(x), wrap(y))
        value = self.overlay.get(key)
        if value is not None:
            return value
        return self.base.get(key, SPACE)

    def set_base(self, x: int, y: int, value: int):
        self.writes += 1
        self.base[(wrap(x), wrap(y))] = value

    def set_overlay(self, x: int, y: int, value: int):
        self.writes += 1
        self.overlay[(wrap(x), wrap(y))] = value

    def clear_overlay(self):
        self.overlay = {}

    # -------------------------------------------------------------------
    # Text conversion
    # -------------------------------------------------------------------

    def load_from_text(self, text: str):
        """Fill the base layer: line index is the row, char index the column."""
        # Only \n ends a row; form feeds and the like are ordinary cells.
        for y, line in enumerate(text.split("\n")):
            if line.endswith("\r"):
                line = line[:-1]
            for x, ch in enumerate(line):
                self.set_base(x, y, ord(ch))

    def extent(self) -> tuple[int, int]:
        """(width, height) of the base layer, anchored at the origin."""
        if not self.base:
            return (0, 0)
        width = max(x for x, _ in self.base) + 1
        height = max(y for _, y in self.base) + 1
        return (width, height)

    def serialize_base(self) -> str:
        """
        Inverse of load_from_text. Only the base layer is written out.

        The rectangle always starts at the origin, so a cell written near
        the far edge of the torus makes it huge. Raises ValueError when it
        holds more than MAX_SAVE_CELLS cells.
        """
        width, height = self.extent()
        if width * height > MAX_SAVE_CELLS:
            raise ValueError(
                f"grid extent {width}x{height} is too large to serialize"
            )
        rows = []
        for y in range(height):
            rows.append("".join(
                to_char(self.base.get((x, y), SPACE)) for x in range(width)
            ))
        return "\n".join(rows)

    def render(self, x0: int, y0: int, width: int, height: int) -> str:
        """Viewport over the effective grid (overlay shadowing base)."""
        rows = []
        for dy in range(height):
            row = []
            for dx in range(width):
                ch = to_char(self.get(x0 + dx, y0 + dy))
                if ch != " " and not ch.isprintable():
                    ch = REPLACEMENT_CHAR
                row.append(ch)
            rows.append("".join(row))
        return "\n".join(rows)

    def __len__(self) -> int:
        return len(self.base.keys() | self.overlay.keys())
