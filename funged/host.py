"""
FungeHost: high-level interface to the Funge machine.

This is the fixed surface an editor or viewer drives: load a grid from
text or a file, read and write cells, step, feed input lines when the
machine suspends, restart, and take snapshots for display. run() drives a
program to halt for batch use and tests.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .machine import (
    FungeMachine, STEP_NEED_DECIMAL, STEP_NEED_CHARACTER,
    STEP_NAMES,
)
from .rng import RandomDirections
from .space import Fungespace

logger = logging.getLogger(__name__)

MAX_STEPS = 1_000_000


class FungeError(Exception):
    """Base class for host-level failures."""


class InputExhausted(FungeError):
    """The program asked for input and none was left."""

    def __init__(self, need: int, position: tuple[int, int]):
        self.need = need
        self.position = position
        super().__init__(
            f"{STEP_NAMES[need]} at {position} with no input left"
        )


class StepLimitExceeded(FungeError):
    """The program did not halt within the step budget."""

    def __init__(self, max_steps: int, position: tuple[int, int]):
        self.max_steps = max_steps
        self.position = position
        super().__init__(f"no halt after {max_steps} steps (at {position})")


class FungeHost:
    """One editing/execution session: a Fungespace plus its machine.

    Args:
        directions: Direction source for `?`. Any object with choose().
        seed: Seed for the default RandomDirections. Only valid when no
            direction source is given.
    """

    def __init__(self, directions=None, seed: int | None = None):
        if directions is not None and seed is not None:
            raise ValueError("pass either a direction source or a seed, not both")
        self.directions = directions if directions is not None else RandomDirections(seed)
        self.space = Fungespace()
        self.machine = FungeMachine(self.space, self.directions)

    # -------------------------------------------------------------------
    # Loading and saving
    # -------------------------------------------------------------------

    def load(self, text: str):
        """Start a fresh session on the given program text."""
        self.space = Fungespace.from_text(text)
        self.machine = FungeMachine(self.space, self.directions)
        width, height = self.space.extent()
        logger.info("Loaded %dx%d grid (%d cells)", width, height, len(self.space))

    def load_file(self, path: str | Path):
        path = Path(path)
        self.load(path.read_text(encoding="utf-8"))
        logger.info("Program file: %s", path)

    def save_file(self, path: str | Path):
        """
        Write the base layer. Runtime `p` writes are not saved.

        Raises ValueError, and writes nothing, when the grid is too large
        to serialize (see Fungespace.serialize_base).
        """
        path = Path(path)
        path.write_text(self.space.serialize_base(), encoding="utf-8")
        logger.info("Saved grid to %s", path)

    def dump(self) -> str:
        return self.space.serialize_base()

    # -------------------------------------------------------------------
    # Cells
    # -------------------------------------------------------------------

    def get_cell(self, x: int, y: int) -> int:
        return self.space.get(x, y)

    def set_cell(self, x: int, y: int, char):
        """Editor write to the base layer. Takes a 1-char str or an int."""
        if isinstance(char, str):
            if len(char) != 1:
                raise ValueError(f"set_cell needs a single character, got {char!r}")
            char = ord(char)
        self.space.set_base(x, y, char)

    def render(self, x0: int, y0: int, width: int, height: int) -> str:
        return self.space.render(x0, y0, width, height)

    # -------------------------------------------------------------------
    # Execution control
    # -------------------------------------------------------------------

    def step(self) -> int:
        result = self.machine.step()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("step %d: %s -> %s", self.machine.steps,
                         self.machine.describe(), STEP_NAMES[result])
        return result

    def supply_input(self, line: str):
        self.machine.supply_input(line)

    def start(self):
        self.machine.start()

    def restart(self):
        self.machine.restart()
        logger.info("Restarted (overlay cleared)")

    def run(self, inputs=(), max_steps: int = MAX_STEPS) -> dict:
        """
        Start the machine and step until `@`.

        Each suspension consumes the next line from `inputs`. Raises
        InputExhausted when a suspension finds no line left, and
        StepLimitExceeded when the program is still running after
        max_steps steps.
        """
        pending = iter(inputs)
        self.execute(lambda need: next(pending, None), max_steps)
        return {
            "position": self.machine.position,
            "stack": list(self.machine.stack),
            "output": self.machine.output,
            "stats": self.machine.stats(),
        }

    def execute(self, read_input, max_steps: int = MAX_STEPS, on_output=None):
        """
        Step loop shared by run() and the command-line runner.

        read_input(need) is called on every suspension with the STEP_NEED_*
        code and returns the next line, or None when there is none left.
        on_output, if given, receives each new piece of output after the
        step that produced it.
        """
        self.machine.start()
        steps = 0
        written = len(self.machine.output)
        while self.machine.running:
            if steps >= max_steps:
                logger.warning("Step limit %d reached at %s",
                               max_steps, self.machine.position)
                raise StepLimitExceeded(max_steps, self.machine.position)
            result = self.step()
            steps += 1
            if result in (STEP_NEED_DECIMAL, STEP_NEED_CHARACTER):
                line = read_input(result)
                if line is None:
                    raise InputExhausted(result, self.machine.position)
                self.machine.supply_input(line)
            elif on_output is not None and len(self.machine.output) > written:
                on_output(self.machine.output[written:])
                written = len(self.machine.output)

    # -------------------------------------------------------------------
    # Snapshot reads for display
    # -------------------------------------------------------------------

    @property
    def stack(self) -> list[int]:
        return list(self.machine.stack)

    @property
    def output(self) -> str:
        return self.machine.output

    @property
    def position(self) -> tuple[int, int]:
        return self.machine.position

    @property
    def direction(self) -> int:
        return self.machine.direction

    @property
    def running(self) -> bool:
        return self.machine.running

    def snapshot(self) -> dict:
        return self.machine.snapshot()
