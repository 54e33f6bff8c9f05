from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Tuple

from cpcombat.core.engine.state import CombatantState

ConditionKind = Literal["wound", "timed", "toggle", "ladder"]
LadderGroup = Literal["wound", "fatigue", "stress"]


@dataclass(frozen=True)
class StatPenalty:
    stat: str  # "ref" | "int" | "cool" ...
    add: int = 0
    divide_by: int = 1  # деление с округлением вверх, применяется до add


@dataclass(frozen=True)
class ConditionDef:
    id: str
    kind: ConditionKind
    ladder: Optional[LadderGroup] = None
    tier: int = 0

    roll_penalty: int = 0  # ко всем броскам
    skill_penalties: Tuple[Tuple[str, int], ...] = ()
    initiative_bonus: int = 0
    stat_penalties: Tuple[StatPenalty, ...] = ()

    default_turns: Optional[int] = None


WOUND_CONDITION_IDS: Tuple[str, ...] = (
    "lightly-wounded",
    "seriously-wounded",
    "critically-wounded",
    "mortally-wounded-0",
    "mortally-wounded-1",
    "mortally-wounded-2",
    "mortally-wounded-3",
    "mortally-wounded-4",
    "mortally-wounded-5",
    "mortally-wounded-6",
)

# wound state 1..10 -> id
WOUND_STATE_TO_CONDITION: Dict[int, str] = {
    i + 1: cid for i, cid in enumerate(WOUND_CONDITION_IDS)
}

FATIGUE_TIERS: Tuple[str, ...] = ("tired", "fatigued", "exhausted")
STRESS_TIERS: Tuple[str, ...] = ("stressed", "strained", "breaking")

LADDER_FIELDS: Dict[str, str] = {
    "fatigue": "fatigue_tier",
    "stress": "stress_tier",
}

LADDER_VALUES: Dict[str, Tuple[str, ...]] = {
    "fatigue": FATIGUE_TIERS,
    "stress": STRESS_TIERS,
}

_MENTAL = ("ref", "int", "cool")


def _wound_def(tier: int, cid: str) -> ConditionDef:
    if tier == 2:
        stats: Tuple[StatPenalty, ...] = (StatPenalty("ref", add=-2),)
    elif tier == 3:
        stats = tuple(StatPenalty(s, divide_by=2) for s in _MENTAL)
    elif tier >= 4:
        stats = tuple(StatPenalty(s, divide_by=3) for s in _MENTAL)
    else:
        stats = ()
    return ConditionDef(id=cid, kind="wound", ladder="wound", tier=tier, stat_penalties=stats)


_CATALOG: List[ConditionDef] = [
    *(_wound_def(i + 1, cid) for i, cid in enumerate(WOUND_CONDITION_IDS)),
    ConditionDef(id="tired", kind="ladder", ladder="fatigue", tier=1, roll_penalty=-1),
    ConditionDef(id="fatigued", kind="ladder", ladder="fatigue", tier=2, roll_penalty=-2),
    ConditionDef(id="exhausted", kind="ladder", ladder="fatigue", tier=3, roll_penalty=-4),
    ConditionDef(id="stressed", kind="ladder", ladder="stress", tier=1, roll_penalty=-1),
    ConditionDef(id="strained", kind="ladder", ladder="stress", tier=2, roll_penalty=-2),
    ConditionDef(id="breaking", kind="ladder", ladder="stress", tier=3, roll_penalty=-3),
    ConditionDef(id="shocked", kind="toggle"),
    ConditionDef(id="dead", kind="toggle"),
    ConditionDef(id="stabilized", kind="toggle"),
    ConditionDef(id="lost-left-arm", kind="toggle"),
    ConditionDef(id="lost-right-arm", kind="toggle"),
    ConditionDef(id="lost-left-leg", kind="toggle"),
    ConditionDef(id="lost-right-leg", kind="toggle"),
    ConditionDef(id="fast-draw", kind="toggle", roll_penalty=-3, initiative_bonus=3),
    ConditionDef(id="action-surge", kind="toggle", roll_penalty=-3),
    ConditionDef(id="unconscious", kind="toggle", skill_penalties=(("awareness", -8),)),
    ConditionDef(id="poisoned", kind="toggle", stat_penalties=(StatPenalty("ref", add=-4),)),
    ConditionDef(id="confused", kind="toggle"),
    ConditionDef(id="tearing", kind="toggle"),
    ConditionDef(id="blinded", kind="timed", skill_penalties=(("awareness", -4),)),
    ConditionDef(id="deafened", kind="timed", skill_penalties=(("awareness", -2),)),
    ConditionDef(id="burning", kind="timed", default_turns=3),
    ConditionDef(id="acid", kind="timed", default_turns=3),
]

CONDITIONS: Dict[str, ConditionDef] = {c.id: c for c in _CATALOG}


def is_wound_condition(condition_id: str) -> bool:
    return condition_id in WOUND_STATE_TO_CONDITION.values()


def check_carried_condition(condition_id: str) -> None:
    """Флаги, которые персонаж может принести в бой с листа (lost-*, poisoned, ...)."""
    d = CONDITIONS.get(condition_id)
    if d is None:
        raise ValueError(f"Unknown condition: {condition_id}")
    if d.kind == "wound":
        raise ValueError(f"{condition_id} follows the damage track")
    if d.kind == "ladder":
        raise ValueError(f"{condition_id} is a {d.ladder} tier, set {d.ladder}_tier instead")
    if d.kind == "timed":
        raise ValueError(f"{condition_id} needs a turn count, apply it in combat")


def check_ladder_value(group: str, value: Optional[str]) -> None:
    if value is not None and value not in LADDER_VALUES[group]:
        raise ValueError(
            f"{value!r} is not a {group} tier (allowed: {', '.join(LADDER_VALUES[group])})"
        )


def wound_condition_for_state(wound_state: int) -> Optional[str]:
    return WOUND_STATE_TO_CONDITION.get(wound_state)


def ladder_value(c: CombatantState, group: str) -> Optional[str]:
    if group == "wound":
        return wound_condition_for_state(c.wound_state)
    return getattr(c, LADDER_FIELDS[group])


def active_conditions(c: CombatantState) -> List[str]:
    """Все активные id: флаги + по одному значению от каждой ladder-группы."""
    out = set(c.conditions)
    for group in ("wound", "fatigue", "stress"):
        v = ladder_value(c, group)
        if v is not None:
            out.add(v)
    return sorted(out)


def roll_penalty(c: CombatantState, skill: Optional[str] = None) -> int:
    total = 0
    for cid in active_conditions(c):
        d = CONDITIONS.get(cid)
        if d is None:
            continue
        total += d.roll_penalty
        if skill is not None:
            total += sum(v for s, v in d.skill_penalties if s == skill)
    return total


def initiative_modifier(c: CombatantState) -> int:
    return sum(
        CONDITIONS[cid].initiative_bonus for cid in active_conditions(c) if cid in CONDITIONS
    )


def effective_stat(c: CombatantState, stat: str, base: int) -> int:
    # сначала деления (ранение), потом плоские штрафы
    divisor = 1
    add = 0
    for cid in active_conditions(c):
        d = CONDITIONS.get(cid)
        if d is None:
            continue
        for p in d.stat_penalties:
            if p.stat != stat:
                continue
            divisor = max(divisor, p.divide_by)
            add += p.add
    value = math.ceil(base / divisor) if divisor > 1 else base
    return max(0, value + add)


def penalty_summary(c: CombatantState) -> Dict[str, Any]:
    """Сводка штрафов бойца для UI: броски, инициатива, статы с листа после ранений."""
    return {
        "active_conditions": active_conditions(c),
        "roll_penalty": roll_penalty(c),
        "awareness_roll_penalty": roll_penalty(c, skill="awareness"),
        "initiative_modifier": initiative_modifier(c),
        "stats": {stat: effective_stat(c, stat, base) for stat, base in sorted(c.stats.items())},
    }
