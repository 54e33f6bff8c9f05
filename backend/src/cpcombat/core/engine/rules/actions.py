from __future__ import annotations

import logging
import math
from typing import List, Tuple

from cpcombat.core.engine.events import ev_action_registered, ev_moved
from cpcombat.core.engine.rules.common import add_condition, bump
from cpcombat.core.engine.state import EncounterState, Pos

log = logging.getLogger(__name__)

SURGE_ACTION_COUNT = 2


def register_action(
    state: EncounterState, actor_id: str, action_type: str = "action"
) -> Tuple[bool, List[dict]]:
    """
    Засчитать действие актору. Вне боя и не в свой ход ничего не делаем.
    Возвращает (стало ли это действие триггером action-surge, события).
    """
    if not state.combat_active or state.turn_owner_id != actor_id:
        log.debug("action %s of %s ignored: not the active combatant", action_type, actor_id)
        return False, []

    c = state.combatants.get(actor_id)
    if c is None:
        return False, []

    # счётчик сохраняем ДО проверки, само действие штрафом не задевается
    c.scratch.action_count += 1
    surge = c.scratch.action_count == SURGE_ACTION_COUNT

    seq, t = bump(state)
    events = [
        ev_action_registered(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            combatant_id=actor_id,
            action_type=action_type,
            action_count=c.scratch.action_count,
            surge=surge,
        ).model_dump(mode="json")
    ]
    if surge:
        events += add_condition(state, c, "action-surge", reason="second_action", actor_id=actor_id)
    return surge, events


def _distance(a: Pos, b: Pos) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def move(state: EncounterState, actor_id: str, to_pos: Pos) -> List[dict]:
    """
    Позиция обновляется всегда; дистанция копится только у активного бойца в бою.
    Выход за MA засчитывается одним действием, не больше раза за ход.
    """
    c = state.combatants[actor_id]
    from_pos = c.position
    c.position = to_pos

    if not state.combat_active or state.turn_owner_id != actor_id:
        return []

    last = c.scratch.last_position or from_pos
    step = _distance(last, to_pos)
    c.scratch.cumulative_distance += step
    c.scratch.last_position = to_pos

    seq, t = bump(state)
    events = [
        ev_moved(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            combatant_id=actor_id,
            from_pos=list(from_pos),
            to_pos=list(to_pos),
            distance=step,
            cumulative_distance=c.scratch.cumulative_distance,
            walk_allowance=c.movement_allowance,
        ).model_dump(mode="json")
    ]

    if (
        c.scratch.cumulative_distance > c.movement_allowance
        and not c.scratch.movement_action_registered
    ):
        c.scratch.movement_action_registered = True
        _, evs = register_action(state, actor_id, "movement")
        events += evs
    return events
