"""
Direction sources for the `?` instruction.

The machine asks its source for one of UP, DOWN, LEFT, RIGHT per `?`.
Each session owns its own source so runs can be replayed from a seed.
"""

from __future__ import annotations

import random

UP = 0
DOWN = 1
LEFT = 2
RIGHT = 3

DIRECTIONS = (UP, DOWN, LEFT, RIGHT)
DIRECTION_NAMES = {UP: "up", DOWN: "down", LEFT: "left", RIGHT: "right"}


class RandomDirections:
    """Uniform, independent choice among the four directions."""

    def __init__(self, seed: int | None = None, rng: random.Random | None = None):
        self.rng = rng or random.Random(seed)
        self.draws = 0

    def choose(self) -> int:
        self.draws += 1
        return DIRECTIONS[self.rng.randrange(4)]


class ScriptedDirections:
    """Replays a fixed direction sequence, cycling when it runs out."""

    def __init__(self, sequence):
        self.sequence = tuple(sequence)
        if not self.sequence:
            raise ValueError("ScriptedDirections needs at least one direction")
        for d in self.sequence:
            if d not in DIRECTION_NAMES:
                raise ValueError(f"Not a direction: {d!r}")
        self.draws = 0

    def choose(self) -> int:
        d = self.sequence[self.draws % len(self.sequence)]
        self.draws += 1
        return d
