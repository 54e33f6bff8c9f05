from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

from cpcombat.core.engine.commands import AttackData
from cpcombat.core.engine.events import ev_exotic_effect_applied
from cpcombat.core.engine.rules.common import add_condition, bump
from cpcombat.core.engine.rules.saves import poison_save, shock_save
from cpcombat.core.engine.state import CombatantState, EncounterState

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExoticEffectDef:
    mode: Literal["status", "save", "timed"]
    condition: str
    save: Optional[Literal["shock", "poison"]] = None
    save_penalty: int = 0
    default_turns: Optional[int] = None  # None -> ходы обязаны прийти в атаке


EXOTIC_EFFECTS: Dict[str, ExoticEffectDef] = {
    "confusion": ExoticEffectDef(mode="status", condition="confused"),
    "tearing": ExoticEffectDef(mode="status", condition="tearing"),
    "unconscious": ExoticEffectDef(mode="status", condition="unconscious"),
    "poisoned": ExoticEffectDef(mode="save", condition="poisoned", save="poison"),
    "stunAt2": ExoticEffectDef(mode="save", condition="shocked", save="shock", save_penalty=2),
    "stunAt4": ExoticEffectDef(mode="save", condition="shocked", save="shock", save_penalty=4),
    "burning": ExoticEffectDef(mode="timed", condition="burning", default_turns=3),
    "acid": ExoticEffectDef(mode="timed", condition="acid", default_turns=3),
    "microwave": ExoticEffectDef(mode="timed", condition="shocked", default_turns=1),
    "blinded": ExoticEffectDef(mode="timed", condition="blinded"),
    "deafened": ExoticEffectDef(mode="timed", condition="deafened"),
}


def effect_turns(attack: AttackData) -> Optional[int]:
    if attack.exotic_effect is None:
        return None
    d = EXOTIC_EFFECTS[attack.exotic_effect]
    if d.mode != "timed":
        return None
    return attack.effect_turns if attack.effect_turns is not None else d.default_turns


def apply_exotic_effect(
    state: EncounterState, c: CombatantState, attack: AttackData
) -> List[dict]:
    """Эффект вешается при попадании, независимо от того, прошёл ли урон."""
    if attack.exotic_effect is None:
        return []

    d = EXOTIC_EFFECTS[attack.exotic_effect]
    events: List[dict] = []
    turns: Optional[int] = None

    if d.mode == "status":
        outcome = "status"
        events += add_condition(state, c, d.condition, reason=attack.exotic_effect)
    elif d.mode == "save":
        if d.save == "poison":
            ok, evs = poison_save(state, c, reason=attack.exotic_effect)
        else:
            ok, evs = shock_save(
                state, c, reason=attack.exotic_effect, penalty=d.save_penalty
            )
        outcome = "save_passed" if ok else "save_failed"
        events += evs
    else:
        outcome = "timed"
        turns = effect_turns(attack)
        if turns is None or turns <= 0:
            log.warning(
                "exotic effect %s on %s skipped: no turn count", attack.exotic_effect, c.id
            )
            return []
        if d.condition == "acid":
            c.scratch.acid_location = attack.hit_location or "Torso"
        events += add_condition(
            state, c, d.condition, reason=attack.exotic_effect, remaining_turns=turns
        )

    seq, t = bump(state)
    events.append(
        ev_exotic_effect_applied(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            attack_id=attack.attack_id,
            target_id=c.id,
            effect=attack.exotic_effect,
            outcome=outcome,
            remaining_turns=turns,
        ).model_dump(mode="json")
    )
    return events
