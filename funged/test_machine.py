"""
Verification suite for the Funge machine.

Covers the opcode ROM exhaustively, pointer movement and wraparound, every
instruction's stack effect, the input suspension protocol, the overlay's
interaction with restart, and whole programs run to halt.
"""

from __future__ import annotations

from collections import Counter

import pytest

from funged.machine import (
    FungeMachine, STEP_CONTINUE, STEP_NEED_DECIMAL, STEP_NEED_CHARACTER,
    I64_MIN, I64_MAX, parse_decimal, to_i64, trunc_div,
)
from funged.opcodes import (
    OPCODE_ROM, OPCODE_CHARS, NUM_OPS, OP_NOP, decode, build_opcode_rom,
)
from funged.rng import (
    UP, DOWN, LEFT, RIGHT, DIRECTIONS, RandomDirections, ScriptedDirections,
)
from funged.space import Fungespace, GRID_MASK, SPACE, REPLACEMENT_CHAR


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make(text: str = "", directions=None) -> FungeMachine:
    return FungeMachine(Fungespace.from_text(text), directions)


def run(m: FungeMachine, limit: int = 10_000) -> FungeMachine:
    """Step until `@`, the way a host drives the machine."""
    m.start()
    for _ in range(limit):
        if not m.running:
            return m
        m.step()
    raise AssertionError(f"no halt after {limit} steps at {m.position}")


def run_text(text: str) -> FungeMachine:
    return run(make(text))


# ---------------------------------------------------------------------------
# Opcode ROM
# ---------------------------------------------------------------------------

def test_opcode_rom_is_total():
    rom = build_opcode_rom()
    assert len(rom) == 256
    assert rom == OPCODE_ROM
    assert all(op < NUM_OPS for op in rom)
    for ch, op in OPCODE_CHARS.items():
        assert rom[ord(ch)] == op
    listed = {ord(ch) for ch in OPCODE_CHARS}
    for byte in range(256):
        if byte not in listed:
            assert rom[byte] == OP_NOP


def test_decode_uses_low_byte():
    assert decode(ord("@")) == decode(ord("@") + 256)
    assert decode(-1) == decode(0xFF)


def test_unlisted_bytes_only_move_the_pointer():
    listed = {ord(ch) for ch in OPCODE_CHARS}
    for byte in range(256):
        if byte in listed:
            continue
        m = make()
        m.space.set_base(0, 0, byte)
        m.stack = [7, 8]
        m.start()
        assert m.step() == STEP_CONTINUE
        assert m.position == (1, 0), byte
        assert m.direction == RIGHT
        assert m.stack == [7, 8]
        assert m.output == ""
        assert m.string_mode is False
        assert m.running is True


def test_high_values_dispatch_on_low_byte():
    m = make()
    m.space.set_base(0, 0, ord("@") + 0x100)
    m.start()
    m.step()
    assert m.running is False


# ---------------------------------------------------------------------------
# Movement
# ---------------------------------------------------------------------------

def test_push_and_move():
    m = make("v \n>0123456789")
    m.start()
    for _ in range(12):
        m.step()
    assert m.stack == [0, 1, 2, 3, 4, 5, 6, 7, 8, 9]
    assert m.position == (11, 1)


@pytest.mark.parametrize("direction, start, end", [
    (LEFT, (0, 0), (GRID_MASK, 0)),
    (RIGHT, (GRID_MASK, 0), (0, 0)),
    (UP, (0, 0), (0, GRID_MASK)),
    (DOWN, (0, GRID_MASK), (0, 0)),
])
def test_wraparound(direction, start, end):
    m = make()
    m.x, m.y = start
    m.direction = direction
    m.step()
    assert m.position == end


def test_four_corner_wraparound():
    m = make()
    m.space.set_base(0, 0, ord("^"))
    m.space.set_base(0, GRID_MASK, ord("<"))
    m.space.set_base(GRID_MASK, GRID_MASK, ord("v"))
    m.space.set_base(GRID_MASK, 0, ord(">"))

    m.step()
    assert m.position == (0, GRID_MASK)
    m.step()
    assert m.position == (GRID_MASK, GRID_MASK)
    m.step()
    assert m.position == (GRID_MASK, 0)
    m.step()
    assert m.position == (0, 0)


def test_bridge():
    assert run_text("0#@1#2# @").stack == [0, 1]


def test_halt_still_advances():
    m = make("@")
    m.start()
    assert m.step() == STEP_CONTINUE
    assert m.running is False
    assert m.position == (1, 0)


def test_if_statements():
    m = make(
        "  v  \n"
        "@   @\n"
        "2 1 4\n"
        "|0_0|\n"
        "1   3\n"
        "@   @"
    )
    assert run(m).stack == [1]

    def rerun():
        m.x, m.y = 0, 0
        m.direction = RIGHT
        m.stack.clear()
        return run(m).stack

    m.space.set_base(1, 3, ord("1"))
    assert rerun() == [2]
    m.space.set_base(2, 2, ord("0"))
    assert rerun() == [3]
    m.space.set_base(3, 3, ord("1"))
    assert rerun() == [4]


# ---------------------------------------------------------------------------
# Arithmetic and logic
# ---------------------------------------------------------------------------

def test_subtraction_pop_order():
    assert run_text("72-@").stack == [5]


def test_arithmetic():
    assert run_text("27*3+2-62/95%@").stack == [15, 3, 4]


def test_comparison_and_not():
    assert run_text("21`12`!0!!@").stack == [1, 1, 0]


@pytest.mark.parametrize("program", ["50/@", "50%@", "/@", "%@"])
def test_zero_divisor_pushes_zero(program):
    assert run_text(program).stack == [0]


@pytest.mark.parametrize("op, b, a, expected", [
    ("/", -7, 2, -3),
    ("/", 7, -2, -3),
    ("/", -7, -2, 3),
    ("%", -7, 2, -1),
    ("%", 7, -2, 1),
    ("%", 7, 3, 1),
])
def test_division_truncates_toward_zero(op, b, a, expected):
    m = make(op)
    m.stack = [b, a]
    m.step()
    assert m.stack == [expected]


def test_arithmetic_wraps_to_64_bits():
    m = make("+")
    m.stack = [I64_MAX, 1]
    m.step()
    assert m.stack == [I64_MIN]

    m = make("/")
    m.stack = [I64_MIN, -1]
    m.step()
    assert m.stack == [I64_MIN]

    assert to_i64(1 << 64) == 0
    assert trunc_div(9, 4) == 2


def test_underflow_reads_zero():
    assert run_text("+@").stack == [0]
    assert run_text("$@").stack == []
    assert run_text("!@").stack == [1]


# ---------------------------------------------------------------------------
# Stack manipulation
# ---------------------------------------------------------------------------

def test_stack_manipulation():
    assert run_text(":1\\$:@").stack == [0, 1, 1]


def test_swap():
    assert run_text("12\\@").stack == [2, 1]


# ---------------------------------------------------------------------------
# String mode and output
# ---------------------------------------------------------------------------

def test_string_mode_pushes_in_traversal_order():
    m = run_text('"abc"@')
    assert m.stack == [ord("a"), ord("b"), ord("c")]
    assert m.string_mode is False


def test_string_mode_pushes_opcodes_verbatim():
    m = make('"@1"')
    m.start()
    for _ in range(4):
        m.step()
    assert m.stack == [ord("@"), ord("1")]
    assert m.running is True


def test_print_string():
    m = run_text('"v,8g\\",,,,,@')
    assert m.stack == []
    assert m.output == "\\g8,v"


def test_print_integer():
    m = run_text('" "98....@')
    assert m.stack == []
    assert m.output == "8 9 32 0 "


@pytest.mark.parametrize("value", [-1, 0x110000, 0xD800])
def test_invalid_code_point_prints_replacement(value):
    m = make(",")
    m.stack = [value]
    m.step()
    assert m.output == REPLACEMENT_CHAR


def test_negative_decimal_output():
    m = make(".")
    m.stack = [-12]
    m.step()
    assert m.output == "-12 "


# ---------------------------------------------------------------------------
# Fungespace access
# ---------------------------------------------------------------------------

def test_space_manipulation():
    m = run_text('"r"97p97g96g@')
    assert m.stack == [ord("r"), SPACE]
    assert m.space.get(9, 7) == ord("r")


def test_put_then_get_over_base():
    m = run_text('"A"00p00g@')
    assert m.stack == [ord("A")]
    assert m.space.base[(0, 0)] == ord('"')


def test_put_clamps_coordinates():
    m = make("p")
    m.stack = [65, -5, 70000]
    m.step()
    assert m.space.overlay == {(0, GRID_MASK): 65}


def test_get_clamps_coordinates():
    m = make("g")
    m.space.set_base(GRID_MASK, 0, ord("z"))
    m.stack = [100000, -3]
    m.step()
    assert m.stack == [ord("z")]


def test_restart_clears_overlay_keeps_base():
    m = run_text('"A"00p"r"97p@')
    assert m.space.get(0, 0) == ord("A")
    assert m.space.get(9, 7) == ord("r")

    m.restart()
    assert m.space.get(0, 0) == ord('"')
    assert m.space.get(9, 7) == SPACE
    assert m.position == (0, 0)
    assert m.direction == RIGHT
    assert m.stack == []
    assert m.output == ""
    assert m.input == ""
    assert m.string_mode is False
    assert m.running is False


def test_restart_rerun_is_repeatable():
    m = run_text('"A"00p00g.@')
    assert m.output == "65 "
    m.restart()
    run(m)
    assert m.output == "65 "


# ---------------------------------------------------------------------------
# Input suspension
# ---------------------------------------------------------------------------

def test_decimal_suspends_then_resumes():
    m = make("&@")
    m.start()
    assert m.step() == STEP_NEED_DECIMAL
    assert m.position == (0, 0)
    assert m.direction == RIGHT
    assert m.stack == []

    # still suspended while nothing is supplied
    assert m.step() == STEP_NEED_DECIMAL
    assert m.position == (0, 0)

    m.supply_input("42\n")
    assert m.step() == STEP_CONTINUE
    assert m.position == (1, 0)
    assert m.stack == [42]
    assert m.input == ""


def test_character_suspends_then_resumes():
    m = make("v\n~")
    m.start()
    m.step()
    assert m.step() == STEP_NEED_CHARACTER
    assert m.position == (0, 1)
    assert m.direction == DOWN

    m.supply_input("xyz")
    assert m.step() == STEP_CONTINUE
    assert m.position == (0, 2)
    assert m.stack == [ord("x")]
    assert m.input == ""


def test_read_input():
    m = make("~&@")
    m.input = "aa"
    m.step()
    assert m.input == ""
    assert m.stack == [ord("a")]
    m.input = "571"
    run(m)
    assert m.stack == [ord("a"), 571]


@pytest.mark.parametrize("text, expected", [
    ("12", 12),
    ("-7", -7),
    ("+3", 3),
    ("abc", 0),
    (" 12", 0),
    ("1_000", 0),
    ("99999999999999999999", 0),
    (str(I64_MIN), I64_MIN),
])
def test_parse_decimal(text, expected):
    assert parse_decimal(text) == expected


def test_malformed_decimal_input_pushes_zero():
    m = make("&@")
    m.supply_input("twelve")
    run(m)
    assert m.stack == [0]


def test_string_mode_never_suspends():
    m = make('"&~"@')
    run(m)
    assert m.stack == [ord("&"), ord("~")]
    assert m.suspensions == 0


# ---------------------------------------------------------------------------
# Randomness
# ---------------------------------------------------------------------------

def test_scripted_random_direction():
    m = make("?", ScriptedDirections([UP, LEFT]))
    m.step()
    assert m.direction == UP
    assert m.position == (0, GRID_MASK)

    m.x, m.y = 0, 0
    m.step()
    assert m.direction == LEFT
    assert m.position == (GRID_MASK, 0)


def test_seeded_directions_replay():
    a = RandomDirections(seed=1234)
    b = RandomDirections(seed=1234)
    assert [a.choose() for _ in range(50)] == [b.choose() for _ in range(50)]


def test_random_directions_are_uniform():
    source = RandomDirections(seed=7)
    counts = Counter(source.choose() for _ in range(4000))
    assert set(counts) == set(DIRECTIONS)
    for d in DIRECTIONS:
        assert 800 < counts[d] < 1200


def test_scripted_directions_validate():
    with pytest.raises(ValueError):
        ScriptedDirections([])
    with pytest.raises(ValueError):
        ScriptedDirections([9])


# ---------------------------------------------------------------------------
# Inspection
# ---------------------------------------------------------------------------

def test_snapshot_and_stats():
    m = run_text('"A"00p1.@')
    snap = m.snapshot()
    assert snap["stack"] == []
    assert snap["output"] == "1 "
    assert snap["running"] is False
    assert snap["position"] == (9, 0)
    stats = m.stats()
    assert stats["steps"] == 9
    assert stats["overlay_cells"] == 1
    assert "Steps: 9" in m.stats_summary()


def test_space_access_counters():
    # 10 cells fetched plus the cell `g` reads; loading is not counted
    m = run_text('"A"00p00g@')
    stats = m.stats()
    assert stats["space_reads"] == 11
    assert stats["space_writes"] == 1
    assert "Space: 11 reads, 1 writes" in m.stats_summary()

    m.restart()
    stats = m.stats()
    assert stats["steps"] == 0
    assert stats["space_reads"] == 0
    assert stats["space_writes"] == 0
