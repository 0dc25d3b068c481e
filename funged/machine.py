"""
Funge machine: step-driven execution engine for Befunge-93 programs.

Holds the instruction pointer (position + direction), the operand stack,
the string-mode and running flags, and the output/input buffers. Each
step() reads one cell of Fungespace and either interprets it through the
opcode ROM or, in string mode, pushes it verbatim.

`&` and `~` never block: with an empty input buffer they return a
suspension code and leave the pointer where it is, so the host can supply
a line and step the same cell again.
"""

from __future__ import annotations

import re

from .opcodes import (
    OP_NOP, OP_UP, OP_DOWN, OP_LEFT, OP_RIGHT,
    OP_ADD, OP_SUB, OP_MUL, OP_DIV, OP_MOD, OP_NOT, OP_GT,
    OP_HIF, OP_VIF, OP_RAND, OP_DUP, OP_SWAP, OP_POP, OP_BRIDGE,
    OP_PUT, OP_GET, OP_OUT_INT, OP_OUT_CHAR, OP_IN_INT, OP_IN_CHAR,
    OP_STRING, OP_HALT, OP_DIGIT, NUM_OPS, OP_NAMES, decode,
)
from .rng import UP, DOWN, LEFT, RIGHT, DIRECTION_NAMES, RandomDirections
from .space import Fungespace, wrap, clamp, to_char


# ---------------------------------------------------------------------------
# Step results
# ---------------------------------------------------------------------------

STEP_CONTINUE       = 0
STEP_NEED_DECIMAL   = 1
STEP_NEED_CHARACTER = 2

STEP_NAMES = {
    STEP_CONTINUE: "continue",
    STEP_NEED_DECIMAL: "need_decimal",
    STEP_NEED_CHARACTER: "need_character",
}

# Stack cells are signed 64-bit
I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1

QUOTE = ord('"')

_DECIMAL_RE = re.compile(r"[+-]?[0-9]+")

# (dx, dy) per direction; y grows downwards
_DELTAS = {
    UP: (0, -1),
    DOWN: (0, 1),
    LEFT: (-1, 0),
    RIGHT: (1, 0),
}


def to_i64(v: int) -> int:
    """Wrap an integer into two's-complement 64-bit range."""
    return ((v - I64_MIN) & 0xFFFFFFFFFFFFFFFF) + I64_MIN


def trunc_div(b: int, a: int) -> int:
    """b / a rounded toward zero. Caller handles a == 0."""
    q = abs(b) // abs(a)
    return q if (b < 0) == (a < 0) else -q


def parse_decimal(text: str) -> int:
    """Integer for `&`. Anything that is not a plain i64 literal gives 0."""
    if not _DECIMAL_RE.fullmatch(text):
        return 0
    v = int(text)
    if v < I64_MIN or v > I64_MAX:
        return 0
    return v


# ---------------------------------------------------------------------------
# Machine
# ---------------------------------------------------------------------------

class FungeMachine:
    """Instruction pointer, stack and I/O buffers over a Fungespace."""

    def __init__(self, space: Fungespace | None = None, directions=None):
        self.space = space if space is not None else Fungespace()
        self.directions = directions if directions is not None else RandomDirections()

        # --- Handler table, indexed by opcode ROM output ---
        handlers = [None] * NUM_OPS
        handlers[OP_NOP] = self._op_nop
        handlers[OP_UP] = self._op_up
        handlers[OP_DOWN] = self._op_down
        handlers[OP_LEFT] = self._op_left
        handlers[OP_RIGHT] = self._op_right
        handlers[OP_ADD] = self._op_add
        handlers[OP_SUB] = self._op_sub
        handlers[OP_MUL] = self._op_mul
        handlers[OP_DIV] = self._op_div
        handlers[OP_MOD] = self._op_mod
        handlers[OP_NOT] = self._op_not
        handlers[OP_GT] = self._op_gt
        handlers[OP_HIF] = self._op_hif
        handlers[OP_VIF] = self._op_vif
        handlers[OP_RAND] = self._op_rand
        handlers[OP_DUP] = self._op_dup
        handlers[OP_SWAP] = self._op_swap
        handlers[OP_POP] = self._op_pop
        handlers[OP_BRIDGE] = self._op_bridge
        handlers[OP_PUT] = self._op_put
        handlers[OP_GET] = self._op_get
        handlers[OP_OUT_INT] = self._op_out_int
        handlers[OP_OUT_CHAR] = self._op_out_char
        handlers[OP_IN_INT] = self._op_in_int
        handlers[OP_IN_CHAR] = self._op_in_char
        handlers[OP_STRING] = self._op_string
        handlers[OP_HALT] = self._op_halt
        handlers[OP_DIGIT] = self._op_digit
        self._handlers = tuple(handlers)

        self.restart()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    def restart(self):
        """Back to the origin with empty buffers. The base layer is kept."""
        self.x = 0
        self.y = 0
        self.direction = RIGHT
        self.stack: list[int] = []
        self.string_mode = False
        self.running = False
        self.output = ""
        self.input = ""
        self.space.clear_overlay()
        self.last_op = OP_NOP
        self.reset_counters()

    def start(self):
        self.running = True

    def supply_input(self, line: str):
        """Fill the input buffer with one line (terminator dropped)."""
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        self.input = line

    @property
    def position(self) -> tuple[int, int]:
        return (self.x, self.y)

    # -------------------------------------------------------------------
    # Stack helpers
    # -------------------------------------------------------------------

    def push(self, v: int):
        self.stack.append(to_i64(v))
        if len(self.stack) > self.stack_peak:
            self.stack_peak = len(self.stack)

    def pop(self) -> int:
        return self.stack.pop() if self.stack else 0

    # -------------------------------------------------------------------
    # Stepping
    # -------------------------------------------------------------------

    def advance(self):
        dx, dy = _DELTAS[self.direction]
        self.x = wrap(self.x + dx)
        self.y = wrap(self.y + dy)

    def step(self) -> int:
        """Execute one cell. Returns STEP_CONTINUE or a STEP_NEED_* code."""
        self.steps += 1
        value = self.space.get(self.x, self.y)

        if self.string_mode:
            if value == QUOTE:
                self.string_mode = False
            else:
                self.push(value)
        else:
            op = decode(value)
            self.last_op = op
            need = self._handlers[op](value)
            if need is not None:
                self.suspensions += 1
                return need

        self.advance()
        return STEP_CONTINUE

    # -------------------------------------------------------------------
    # Handlers. Each takes the raw cell value; a non-None return
    # suspends the step without advancing.
    # -------------------------------------------------------------------

    def _op_nop(self, value):
        pass

    def _op_up(self, value):
        self.direction = UP

    def _op_down(self, value):
        self.direction = DOWN

    def _op_left(self, value):
        self.direction = LEFT

    def _op_right(self, value):
        self.direction = RIGHT

    def _op_add(self, value):
        a = self.pop()
        b = self.pop()
        self.push(b + a)

    def _op_sub(self, value):
        a = self.pop()
        b = self.pop()
        self.push(b - a)

    def _op_mul(self, value):
        a = self.pop()
        b = self.pop()
        self.push(b * a)

    def _op_div(self, value):
        a = self.pop()
        b = self.pop()
        self.push(trunc_div(b, a) if a != 0 else 0)

    def _op_mod(self, value):
        a = self.pop()
        b = self.pop()
        # remainder takes the dividend's sign
        self.push(b - a * trunc_div(b, a) if a != 0 else 0)

    def _op_not(self, value):
        self.push(1 if self.pop() == 0 else 0)

    def _op_gt(self, value):
        a = self.pop()
        b = self.pop()
        self.push(1 if b > a else 0)

    def _op_hif(self, value):
        self.direction = RIGHT if self.pop() == 0 else LEFT

    def _op_vif(self, value):
        self.direction = DOWN if self.pop() == 0 else UP

    def _op_rand(self, value):
        self.direction = self.directions.choose()

    def _op_dup(self, value):
        a = self.pop()
        self.push(a)
        self.push(a)

    def _op_swap(self, value):
        a = self.pop()
        b = self.pop()
        self.push(a)
        self.push(b)

    def _op_pop(self, value):
        self.pop()

    def _op_bridge(self, value):
        self.advance()

    def _op_put(self, value):
        y = self.pop()
        x = self.pop()
        v = self.pop()
        self.space.set_overlay(clamp(x), clamp(y), v)

    def _op_get(self, value):
        y = self.pop()
        x = self.pop()
        self.push(self.space.get(clamp(x), clamp(y)))

    def _op_out_int(self, value):
        self.output += f"{self.pop()} "

    def _op_out_char(self, value):
        self.output += to_char(self.pop())

    def _op_in_int(self, value):
        if not self.input:
            return STEP_NEED_DECIMAL
        self.push(parse_decimal(self.input))
        self.input = ""
        self.io_reads += 1

    def _op_in_char(self, value):
        if not self.input:
            return STEP_NEED_CHARACTER
        self.push(ord(self.input[0]))
        # the rest of the line is dropped too
        self.input = ""
        self.io_reads += 1

    def _op_string(self, value):
        self.string_mode = True

    def _op_halt(self, value):
        self.running = False

    def _op_digit(self, value):
        self.push((value & 0xFF) - ord("0"))

    # -------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------

    def snapshot(self) -> dict:
        return {
            "position": self.position,
            "direction": self.direction,
            "stack": list(self.stack),
            "output": self.output,
            "input": self.input,
            "string_mode": self.string_mode,
            "running": self.running,
            "steps": self.steps,
        }

    def reset_counters(self):
        self.steps = 0
        self.suspensions = 0
        self.io_reads = 0
        self.stack_peak = 0
        self.space.reads = 0
        self.space.writes = 0

    def stats(self) -> dict:
        return {
            "steps": self.steps,
            "suspensions": self.suspensions,
            "io_reads": self.io_reads,
            "stack_peak": self.stack_peak,
            "overlay_cells": len(self.space.overlay),
            "space_reads": self.space.reads,
            "space_writes": self.space.writes,
        }

    def stats_summary(self) -> str:
        s = self.stats()
        return (
            f"Steps: {s['steps']}\n"
            f"Suspensions: {s['suspensions']} ({s['io_reads']} inputs read)\n"
            f"Stack peak: {s['stack_peak']}\n"
            f"Overlay: {s['overlay_cells']} cells written\n"
            f"Space: {s['space_reads']} reads, {s['space_writes']} writes"
        )

    def describe(self) -> str:
        """One-line pointer description for traces."""
        top = self.stack[-1] if self.stack else None
        mode = "string" if self.string_mode else OP_NAMES[self.last_op]
        return (
            f"({self.x},{self.y}) {DIRECTION_NAMES[self.direction]} "
            f"{mode} depth={len(self.stack)} top={top}"
        )
