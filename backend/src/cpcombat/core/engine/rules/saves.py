from __future__ import annotations

import logging
from typing import List, Tuple

from cpcombat.core.engine.dice import apply_roll_mods
from cpcombat.core.engine.events import Roll, RollMod, SaveKind, ev_save_rolled
from cpcombat.core.engine.rules.common import add_condition, bump, remove_condition
from cpcombat.core.engine.state import CombatantState, EncounterState

log = logging.getLogger(__name__)


def _roll_save(state: EncounterState, mods: List[RollMod]) -> Roll:
    roll = state.roll("1d10", kind="save")
    return apply_roll_mods(roll, [m for m in mods if m.value != 0])


def _emit(
    state: EncounterState,
    c: CombatantState,
    *,
    save: SaveKind,
    roll: Roll,
    threshold: int,
    success: bool,
    reason: str,
) -> dict:
    log.info(
        "%s save for %s: %s vs %s -> %s (%s)",
        save,
        c.id,
        roll.total,
        threshold,
        "success" if success else "fail",
        reason,
    )
    seq, t = bump(state)
    return ev_save_rolled(
        seq=seq,
        t=t,
        round_=state.round,
        turn_owner_id=state.turn_owner_id,
        target_id=c.id,
        save=save,
        roll=roll,
        threshold=threshold,
        success=success,
        reason=reason,
    ).model_dump(mode="json")


def shock_save(
    state: EncounterState, c: CombatantState, *, reason: str, penalty: int = 0
) -> Tuple[bool, List[dict]]:
    """
    1d10 - stun_save_mod (+ penalty для эффектов "stun at -N"), успех если < порога.
    Провал вешает shocked, успех снимает.
    """
    roll = _roll_save(
        state,
        [
            RollMod(name="stun_save_mod", value=-c.stun_save_mod),
            RollMod(name="effect_penalty", value=penalty),
        ],
    )
    threshold = c.stun_threshold
    success = roll.total < threshold

    events = [
        _emit(state, c, save="shock", roll=roll, threshold=threshold, success=success, reason=reason)
    ]
    if success:
        events += remove_condition(state, c, "shocked", reason="shock_save")
    else:
        events += add_condition(state, c, "shocked", reason="shock_save")
    return success, events


def death_save(
    state: EncounterState, c: CombatantState, *, reason: str
) -> Tuple[bool, List[dict]]:
    roll = _roll_save(state, [RollMod(name="death_save_mod", value=c.death_save_mod)])
    threshold = c.death_threshold
    success = roll.total < threshold

    events = [
        _emit(state, c, save="death", roll=roll, threshold=threshold, success=success, reason=reason)
    ]
    if not success:
        events += add_condition(state, c, "dead", reason="death_save")
    return success, events


def poison_save(
    state: EncounterState, c: CombatantState, *, reason: str
) -> Tuple[bool, List[dict]]:
    # порог тот же, что у шока (от BT)
    roll = _roll_save(state, [RollMod(name="poison_save_mod", value=c.poison_save_mod)])
    threshold = c.stun_threshold
    success = roll.total < threshold

    events = [
        _emit(state, c, save="poison", roll=roll, threshold=threshold, success=success, reason=reason)
    ]
    if success:
        events += remove_condition(state, c, "poisoned", reason="poison_save")
    else:
        events += add_condition(state, c, "poisoned", reason="poison_save")
    return success, events
