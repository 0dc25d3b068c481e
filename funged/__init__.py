"""Funge machine: a step-driven Befunge-93 interpreter."""

from .host import FungeHost, FungeError, InputExhausted, StepLimitExceeded
from .machine import (
    FungeMachine, STEP_CONTINUE, STEP_NEED_DECIMAL, STEP_NEED_CHARACTER,
)
from .rng import UP, DOWN, LEFT, RIGHT, RandomDirections, ScriptedDirections
from .space import Fungespace
