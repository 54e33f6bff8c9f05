from __future__ import annotations

import re
from collections import deque
from random import Random
from typing import Iterable, List, Protocol, Tuple

from cpcombat.core.engine.events import Roll, RollMod

_DICE_RE = re.compile(r"^\s*(\d+)d(\d+)\s*([+-]\s*\d+)?\s*$")


def parse_dice(formula: str) -> Tuple[int, int, int]:
    m = _DICE_RE.match(formula)
    if not m:
        raise ValueError(f"Unsupported dice formula: {formula!r}")
    n = int(m.group(1))
    d = int(m.group(2))
    if n < 1 or d < 1:
        raise ValueError(f"Unsupported dice formula: {formula!r}")
    mod = m.group(3)
    k = int(mod.replace(" ", "")) if mod else 0
    return n, d, k


def _make_roll(formula: str, kind: str, rolls: List[int], k: int) -> Roll:
    mods = []
    if k != 0:
        mods.append(RollMod(name="flat_mod", value=k))
    return Roll(
        kind=kind,  # type: ignore[arg-type]
        formula=formula,
        dice=rolls,
        kept=rolls,
        mods=mods,
        total=sum(rolls) + k,
        nat=rolls[0] if len(rolls) == 1 else None,
    )


class DiceEngine(Protocol):
    """formula -> Roll. Всё, что движку нужно от кубов."""

    def roll(self, formula: str, *, kind: str = "other") -> Roll: ...


class RandomDiceEngine:
    def __init__(self, rng: Random):
        self.rng = rng

    def roll(self, formula: str, *, kind: str = "other") -> Roll:
        n, d, k = parse_dice(formula)
        rolls = [self.rng.randint(1, d) for _ in range(n)]
        return _make_roll(formula, kind, rolls, k)


class QueuedDiceEngine:
    """
    Выдаёт заранее заданные грани по очереди.
    Нужен для ручных бросков ГМа и для детерминированных тестов.
    """

    def __init__(self, faces: Iterable[int]):
        self.faces = deque(int(x) for x in faces)
        self.formulas: List[str] = []

    def roll(self, formula: str, *, kind: str = "other") -> Roll:
        n, d, k = parse_dice(formula)
        if len(self.faces) < n:
            raise ValueError(f"Dice queue exhausted while rolling {formula!r}")
        rolls = [self.faces.popleft() for _ in range(n)]
        for face in rolls:
            if face < 1 or face > d:
                raise ValueError(f"Face {face} is out of range for {formula!r}")
        self.formulas.append(formula)
        return _make_roll(formula, kind, rolls, k)


def apply_roll_mods(roll: Roll, mods: List[RollMod]) -> Roll:
    if not mods:
        return roll
    roll.mods.extend(mods)
    roll.total += sum(m.value for m in mods)
    return roll
