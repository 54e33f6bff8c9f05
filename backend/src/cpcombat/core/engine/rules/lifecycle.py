from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from cpcombat.core.engine.conditions import (
    LADDER_FIELDS,
    wound_condition_for_state,
)
from cpcombat.core.engine.events import (
    ev_condition_damage,
    ev_condition_timer_changed,
    ev_damage_applied,
    ev_armor_degraded,
    ev_initiative_reset,
    ev_ladder_changed,
    ev_round_started,
    ev_turn_ended,
    ev_turn_scratch_reset,
    ev_turn_started,
    ev_wound_state_changed,
)
from cpcombat.core.engine.rules.armor import degrade_location
from cpcombat.core.engine.rules.common import bump, remove_condition
from cpcombat.core.engine.rules.saves import death_save, shock_save
from cpcombat.core.engine.state import (
    MAX_DAMAGE,
    MORTAL_WOUND_STATE,
    CombatantState,
    CombatScratch,
    EncounterState,
)

log = logging.getLogger(__name__)

# условия с собственной механикой тика; остальные таймеры просто убывают
_SELF_TICKING = ("burning", "acid")

_BURNING_FORMULA = {3: "2d10", 2: "1d10"}


@dataclass(frozen=True)
class TurnContext:
    prior_combatant_id: Optional[str]
    current_combatant_id: Optional[str]
    round: int
    prior_round: int


TurnRule = Callable[[EncounterState, CombatantState, TurnContext], List[dict]]


# ---------- общие помощники ----------


def sync_wound_ladder(state: EncounterState, c: CombatantState, before: int) -> List[dict]:
    """Wound-ступень выводится из damage; событие только при смене ступени."""
    after = c.wound_state
    if after == before:
        return []
    seq, t = bump(state)
    return [
        ev_wound_state_changed(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            target_id=c.id,
            before=before,
            after=after,
            condition=wound_condition_for_state(after),
        ).model_dump(mode="json")
    ]


def add_damage(
    state: EncounterState,
    c: CombatantState,
    amount: int,
    *,
    source: str,
    attack_id: Optional[str] = None,
) -> List[dict]:
    """Урон в пул ран, clamp [0, 40], плюс пересинхронизация wound-ступени."""
    if amount <= 0:
        return []
    before_damage = c.damage
    before_ws = c.wound_state
    c.damage = max(0, min(MAX_DAMAGE, c.damage + amount))

    seq, t = bump(state)
    events = [
        ev_damage_applied(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            target_id=c.id,
            amount=amount,
            damage_before=before_damage,
            damage_after=c.damage,
            source=source,
            attack_id=attack_id,
        ).model_dump(mode="json")
    ]
    events += sync_wound_ladder(state, c, before_ws)
    return events


def set_ladder(
    state: EncounterState, c: CombatantState, group: str, value: Optional[str]
) -> List[dict]:
    """Ladder-группа single-select: новое значение вытесняет старое."""
    field_name = LADDER_FIELDS[group]
    before = getattr(c, field_name)
    if before == value:
        return []
    setattr(c, field_name, value)

    seq, t = bump(state)
    return [
        ev_ladder_changed(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            target_id=c.id,
            group=group,
            before=before,
            after=value,
        ).model_dump(mode="json")
    ]


def _tick_timer(state: EncounterState, c: CombatantState, condition: str) -> List[dict]:
    remaining = c.condition_timers.get(condition, 0) - 1
    if remaining <= 0:
        events = remove_condition(state, c, condition, reason="expired")
        c.condition_timers.pop(condition, None)
        if condition == "acid":
            c.scratch.acid_location = None
        return events

    c.condition_timers[condition] = remaining
    seq, t = bump(state)
    return [
        ev_condition_timer_changed(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            target_id=c.id,
            condition=condition,
            remaining_turns=remaining,
        ).model_dump(mode="json")
    ]


# ---------- turn start ----------


def rule_reset_action_counter(
    state: EncounterState, c: CombatantState, ctx: TurnContext
) -> List[dict]:
    c.scratch.action_count = 0
    return []


def rule_reset_movement(
    state: EncounterState, c: CombatantState, ctx: TurnContext
) -> List[dict]:
    c.scratch.movement_action_registered = False
    c.scratch.cumulative_distance = 0.0
    c.scratch.last_position = c.position

    seq, t = bump(state)
    return [
        ev_turn_scratch_reset(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            combatant_id=c.id,
            action_count=c.scratch.action_count,
            last_position=list(c.position),
        ).model_dump(mode="json")
    ]


def rule_shock_save(state: EncounterState, c: CombatantState, ctx: TurnContext) -> List[dict]:
    if "shocked" not in c.conditions or "dead" in c.conditions:
        return []
    _, events = shock_save(state, c, reason="turn_start")
    return events


def rule_death_save(state: EncounterState, c: CombatantState, ctx: TurnContext) -> List[dict]:
    if c.wound_state < MORTAL_WOUND_STATE:
        return []
    if "stabilized" in c.conditions or "dead" in c.conditions:
        return []
    _, events = death_save(state, c, reason="turn_start")
    return events


def rule_burning(state: EncounterState, c: CombatantState, ctx: TurnContext) -> List[dict]:
    remaining = c.condition_timers.get("burning", 0)
    if "burning" not in c.conditions or remaining <= 0:
        return []

    roll = state.roll(_BURNING_FORMULA.get(remaining, "1d6"), kind="damage")
    seq, t = bump(state)
    events = [
        ev_condition_damage(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            target_id=c.id,
            condition="burning",
            roll=roll,
            amount=roll.total,
            remaining_turns=remaining - 1,
        ).model_dump(mode="json")
    ]
    # огонь игнорирует броню
    events += add_damage(state, c, roll.total, source="burning")
    events += _tick_timer(state, c, "burning")
    return events


def rule_acid(state: EncounterState, c: CombatantState, ctx: TurnContext) -> List[dict]:
    remaining = c.condition_timers.get("acid", 0)
    if "acid" not in c.conditions or remaining <= 0:
        return []

    location = c.scratch.acid_location or "Torso"
    roll = state.roll("1d6", kind="damage")
    seq, t = bump(state)
    events = [
        ev_condition_damage(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            target_id=c.id,
            condition="acid",
            roll=roll,
            amount=roll.total,
            remaining_turns=remaining - 1,
        ).model_dump(mode="json")
    ]

    degraded = degrade_location(c, location, roll.total)
    if degraded:
        for armor_id, before, after in degraded:
            seq, t = bump(state)
            events.append(
                ev_armor_degraded(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    turn_owner_id=state.turn_owner_id,
                    target_id=c.id,
                    armor_id=armor_id,
                    location=location,
                    amount=roll.total,
                    stopping_power_before=before,
                    stopping_power_after=after,
                ).model_dump(mode="json")
            )
    else:
        # брони на локации нет: кислота жжёт тело
        events += add_damage(state, c, roll.total, source="acid")

    events += _tick_timer(state, c, "acid")
    return events


def rule_timed_conditions(
    state: EncounterState, c: CombatantState, ctx: TurnContext
) -> List[dict]:
    events: List[dict] = []
    for condition in sorted(c.condition_timers):
        if condition in _SELF_TICKING:
            continue
        if condition not in c.conditions:
            c.condition_timers.pop(condition, None)
            continue
        events += _tick_timer(state, c, condition)
    return events


TURN_START_RULES: List[TurnRule] = [
    rule_reset_action_counter,
    rule_reset_movement,
    rule_shock_save,
    rule_death_save,
    rule_burning,
    rule_acid,
    rule_timed_conditions,
]


# ---------- turn end ----------


def rule_clear_turn_toggles(
    state: EncounterState, c: CombatantState, ctx: TurnContext
) -> List[dict]:
    events: List[dict] = []
    for condition in ("fast-draw", "action-surge"):
        events += remove_condition(state, c, condition, reason="turn_end")
    return events


TURN_END_RULES: List[TurnRule] = [
    rule_clear_turn_toggles,
]


# ---------- turn change ----------


def reset_initiative(state: EncounterState) -> List[dict]:
    for c in state.combatants.values():
        c.initiative = None
    seq, t = bump(state)
    return [
        ev_initiative_reset(
            seq=seq, t=t, round_=state.round, combatant_ids=sorted(state.combatants)
        ).model_dump(mode="json")
    ]


def run_turn_end(state: EncounterState, c: CombatantState, ctx: TurnContext) -> List[dict]:
    events: List[dict] = []
    for rule in TURN_END_RULES:
        events += rule(state, c, ctx)
    seq, t = bump(state)
    events.append(
        ev_turn_ended(seq=seq, t=t, round_=state.round, turn_owner_id=c.id).model_dump(mode="json")
    )
    return events


def run_turn_start(state: EncounterState, c: CombatantState, ctx: TurnContext) -> List[dict]:
    seq, t = bump(state)
    events = [
        ev_turn_started(seq=seq, t=t, round_=state.round, turn_owner_id=c.id).model_dump(mode="json")
    ]
    for rule in TURN_START_RULES:
        events += rule(state, c, ctx)
    return events


def handle_turn_change(state: EncounterState, ctx: TurnContext) -> List[dict]:
    """
    Порядок: сброс инициативы на новом раунде -> конец хода prior -> начало хода current.
    Роль источника проверяется раньше (в apply).
    """
    events: List[dict] = []

    if ctx.round > ctx.prior_round and ctx.round > 1:
        state.round = ctx.round
        seq, t = bump(state)
        events.append(
            ev_round_started(
                seq=seq, t=t, round_=state.round, turn_owner_id=ctx.current_combatant_id
            ).model_dump(mode="json")
        )
        events += reset_initiative(state)
    else:
        state.round = ctx.round

    prior = state.combatants.get(ctx.prior_combatant_id or "")
    if prior is not None:
        events += run_turn_end(state, prior, ctx)
    elif ctx.prior_combatant_id:
        log.warning("turn change: unknown prior combatant %s", ctx.prior_combatant_id)

    state.turn_owner_id = ctx.current_combatant_id

    current = state.combatants.get(ctx.current_combatant_id or "")
    if current is not None:
        events += run_turn_start(state, current, ctx)
    elif ctx.current_combatant_id:
        log.warning("turn change: unknown current combatant %s", ctx.current_combatant_id)

    return events


def reset_scratch(state: EncounterState) -> None:
    for c in state.combatants.values():
        c.scratch = CombatScratch()
