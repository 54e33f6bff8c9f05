from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from cpcombat.core.engine.events import (
    ev_condition_applied,
    ev_condition_removed,
    ev_condition_timer_changed,
)
from cpcombat.core.engine.state import CombatantState, EncounterState

log = logging.getLogger(__name__)


def bump(state: EncounterState) -> Tuple[int, int]:
    state.seq += 1
    state.t += 1
    return state.seq, state.t


def add_condition(
    state: EncounterState,
    c: CombatantState,
    condition: str,
    *,
    reason: str,
    remaining_turns: Optional[int] = None,
    actor_id: Optional[str] = None,
) -> List[dict]:
    """Включить флаг. Если уже есть, только обновляем таймер (если передан)."""
    events: List[dict] = []

    if condition in c.conditions:
        if remaining_turns is not None and c.condition_timers.get(condition) != remaining_turns:
            c.condition_timers[condition] = remaining_turns
            seq, t = bump(state)
            events.append(
                ev_condition_timer_changed(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    turn_owner_id=state.turn_owner_id,
                    target_id=c.id,
                    condition=condition,
                    remaining_turns=remaining_turns,
                ).model_dump(mode="json")
            )
        return events

    c.conditions.add(condition)
    if remaining_turns is not None:
        c.condition_timers[condition] = remaining_turns

    log.debug("condition %s applied to %s (%s)", condition, c.id, reason)
    seq, t = bump(state)
    events.append(
        ev_condition_applied(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            actor_id=actor_id,
            target_id=c.id,
            condition=condition,
            reason=reason,
            remaining_turns=remaining_turns,
        ).model_dump(mode="json")
    )
    return events


def remove_condition(
    state: EncounterState,
    c: CombatantState,
    condition: str,
    *,
    reason: str,
    actor_id: Optional[str] = None,
) -> List[dict]:
    c.condition_timers.pop(condition, None)
    if condition not in c.conditions:
        return []

    c.conditions.discard(condition)
    log.debug("condition %s removed from %s (%s)", condition, c.id, reason)

    seq, t = bump(state)
    return [
        ev_condition_removed(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            actor_id=actor_id,
            target_id=c.id,
            condition=condition,
            reason=reason,
        ).model_dump(mode="json")
    ]
