from __future__ import annotations

import logging
from typing import List, Tuple

from cpcombat import config
from cpcombat.core.engine.commands import (
    ApplyCondition,
    Command,
    EndCombat,
    Move,
    RegisterAction,
    RemoveCondition,
    ResolveAttack,
    RollDeathSave,
    RollPoisonSave,
    RollShockSave,
    SetLadder,
    StartCombat,
    TurnChange,
)
from cpcombat.core.engine.conditions import CONDITIONS
from cpcombat.core.engine.events import (
    ev_combat_ended,
    ev_combat_started,
    ev_command_rejected,
)
from cpcombat.core.engine.rules.actions import move, register_action
from cpcombat.core.engine.rules.common import add_condition, bump, remove_condition
from cpcombat.core.engine.rules.damage import commit_attack
from cpcombat.core.engine.rules.lifecycle import (
    TurnContext,
    handle_turn_change,
    reset_scratch,
    set_ladder,
)
from cpcombat.core.engine.rules.saves import death_save, poison_save, shock_save
from cpcombat.core.engine.rules.validator import validate_command
from cpcombat.core.engine.state import EncounterState

log = logging.getLogger(__name__)


def apply_command(
    state: EncounterState, cmd: Command
) -> Tuple[EncounterState, List[dict]]:
    """
    Возвращаем (state, events_as_dicts).
    При ошибке валидации возвращаем CommandRejected и НЕ меняем state.
    """
    # смену хода применяет только авторитетная роль, остальные клиенты просто наблюдают
    if isinstance(cmd, TurnChange) and cmd.role != config.AUTHORITATIVE_ROLE:
        log.info(
            "turn change from role %r ignored (authoritative: %r)",
            cmd.role,
            config.AUTHORITATIVE_ROLE,
        )
        return state, []

    vr = validate_command(state, cmd)
    if not vr.ok:
        e = vr.errors[0]
        log.info("command %s rejected: %s %s", cmd.type, e.code, e.message)
        seq, t = bump(state)
        rej = ev_command_rejected(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            actor_id=getattr(cmd, "combatant_id", None)
            or getattr(cmd, "target_id", None)
            or getattr(cmd, "current_combatant_id", None),
            command=cmd.model_dump(mode="json"),
            code=e.code,
            message=e.message,
            meta=e.meta,
        ).model_dump(mode="json")
        return state, [rej]

    events: List[dict] = []

    if isinstance(cmd, StartCombat):
        state.combat_active = True
        state.round = 1
        state.turn_owner_id = None
        reset_scratch(state)

        seq, t = bump(state)
        events.append(ev_combat_started(seq=seq, t=t, round_=state.round).model_dump(mode="json"))
        return state, events

    if isinstance(cmd, EndCombat):
        state.combat_active = False
        state.turn_owner_id = None
        reset_scratch(state)

        seq, t = bump(state)
        events.append(ev_combat_ended(seq=seq, t=t, round_=state.round).model_dump(mode="json"))
        return state, events

    if isinstance(cmd, TurnChange):
        ctx = TurnContext(
            prior_combatant_id=cmd.prior_combatant_id,
            current_combatant_id=cmd.current_combatant_id,
            round=cmd.round,
            prior_round=cmd.prior_round if cmd.prior_round is not None else state.round,
        )
        events += handle_turn_change(state, ctx)
        return state, events

    if isinstance(cmd, ResolveAttack):
        events += commit_attack(state, cmd.attack)
        return state, events

    if isinstance(cmd, RegisterAction):
        _, evs = register_action(state, cmd.combatant_id, cmd.action_type)
        events += evs
        return state, events

    if isinstance(cmd, Move):
        events += move(state, cmd.combatant_id, (float(cmd.to[0]), float(cmd.to[1])))
        return state, events

    if isinstance(cmd, ApplyCondition):
        target = state.combatants[cmd.target_id]
        turns = cmd.remaining_turns
        if turns is None:
            turns = CONDITIONS[cmd.condition].default_turns
        events += add_condition(
            state, target, cmd.condition, reason="manual", remaining_turns=turns
        )
        return state, events

    if isinstance(cmd, RemoveCondition):
        target = state.combatants[cmd.target_id]
        if cmd.condition == "acid":
            target.scratch.acid_location = None
        events += remove_condition(state, target, cmd.condition, reason="manual")
        return state, events

    if isinstance(cmd, SetLadder):
        target = state.combatants[cmd.target_id]
        events += set_ladder(state, target, cmd.group, cmd.value)
        return state, events

    if isinstance(cmd, RollShockSave):
        c = state.combatants[cmd.combatant_id]
        _, evs = shock_save(state, c, reason="manual", penalty=cmd.penalty)
        events += evs
        return state, events

    if isinstance(cmd, RollDeathSave):
        c = state.combatants[cmd.combatant_id]
        _, evs = death_save(state, c, reason="manual")
        events += evs
        return state, events

    if isinstance(cmd, RollPoisonSave):
        c = state.combatants[cmd.combatant_id]
        _, evs = poison_save(state, c, reason="manual")
        events += evs
        return state, events

    return state, events
