"""
Dice rolling for the grant engine.

The engine never rolls on its own: it asks a RandomSource. Two are
provided here:
- SeededRandomSource: real randomness from random.Random (optionally seeded)
- ScriptedRandomSource: replays fixed die faces, for tests and for UI flows
  that have already shown the player a roll
"""

import random
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Protocol, runtime_checkable


DICE_PATTERN = re.compile(r"^\s*(\d*)\s*[dD]\s*(\d+)\s*$")


@dataclass
class RollOutcome:
    """Result of a dice roll."""
    formula: str
    rolls: list[int] = field(default_factory=list)  # Every die face rolled
    total: int = 0


def parse_dice(formula: str) -> tuple[int, int]:
    """
    Split "NdM" into (count, sides). A bare "dM" means one die.

    Raises:
        ValueError: for anything that is not a single dice term
    """
    match = DICE_PATTERN.match(formula)
    if not match:
        raise ValueError(f"Not a dice term: {formula!r}")
    count = int(match.group(1)) if match.group(1) else 1
    sides = int(match.group(2))
    if count < 1 or sides < 1:
        raise ValueError(f"Dice term needs at least one die with one side: {formula!r}")
    return count, sides


@runtime_checkable
class RandomSource(Protocol):
    """
    Where dice results come from.

    Implementations:
    - SeededRandomSource: production and CLI
    - ScriptedRandomSource: deterministic tests
    """

    async def roll(self, formula: str) -> RollOutcome:
        """Roll a single "NdM" dice term."""
        ...

    async def roll_d10(self) -> int:
        """Roll one d10, used by lookup tables."""
        ...


class SeededRandomSource:
    """Dice backed by random.Random. Same seed, same rolls."""

    def __init__(self, seed: int | None = None):
        self._rng = random.Random(seed)

    async def roll(self, formula: str) -> RollOutcome:
        count, sides = parse_dice(formula)
        rolls = [self._rng.randint(1, sides) for _ in range(count)]
        return RollOutcome(formula=formula, rolls=rolls, total=sum(rolls))

    async def roll_d10(self) -> int:
        return self._rng.randint(1, 10)


class ScriptedRandomSource:
    """
    Replays preset die faces in order.

    d10 faces feed roll_d10(); dice faces feed every die of every roll().
    When the d10 queue is empty, roll_d10() draws from the dice queue.
    Running out of faces is a programming error in the caller.
    """

    def __init__(self, d10: Iterable[int] = (), dice: Iterable[int] = ()):
        self._d10: deque[int] = deque(d10)
        self._dice: deque[int] = deque(dice)
        self.history: list[RollOutcome] = []

    def _next_face(self, queue: deque[int], sides: int) -> int:
        if not queue:
            raise RuntimeError("ScriptedRandomSource ran out of scripted faces")
        face = queue.popleft()
        if not 1 <= face <= sides:
            raise ValueError(f"Scripted face {face} does not fit a d{sides}")
        return face

    async def roll(self, formula: str) -> RollOutcome:
        count, sides = parse_dice(formula)
        rolls = [self._next_face(self._dice, sides) for _ in range(count)]
        outcome = RollOutcome(formula=formula, rolls=rolls, total=sum(rolls))
        self.history.append(outcome)
        return outcome

    async def roll_d10(self) -> int:
        queue = self._d10 if self._d10 else self._dice
        face = self._next_face(queue, 10)
        self.history.append(RollOutcome(formula="1d10", rolls=[face], total=face))
        return face

    @property
    def remaining(self) -> int:
        """Faces not yet consumed."""
        return len(self._d10) + len(self._dice)
