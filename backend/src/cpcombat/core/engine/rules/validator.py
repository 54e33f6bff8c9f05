from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

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
from cpcombat.core.engine.conditions import (
    CONDITIONS,
    LADDER_VALUES,
    is_wound_condition,
)
from cpcombat.core.engine.rules.damage import MalformedAttackError, validate_hits
from cpcombat.core.engine.rules.effects import EXOTIC_EFFECTS
from cpcombat.core.engine.state import HIT_LOCATIONS, EncounterState


@dataclass
class ValidationError:
    code: str
    message: str
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ValidationResult:
    ok: bool
    errors: List[ValidationError] = field(default_factory=list)


def _err(code: str, message: str, **meta: Any) -> ValidationResult:
    return ValidationResult(
        ok=False, errors=[ValidationError(code=code, message=message, meta=meta)]
    )


def _unknown(combatant_id: str) -> ValidationResult:
    return _err("UNKNOWN_COMBATANT", "Combatant not found", combatant_id=combatant_id)


def _validate_attack(state: EncounterState, cmd: ResolveAttack) -> ValidationResult:
    attack = cmd.attack
    if not attack.target_ids:
        return _err("NO_TARGETS", "Attack has no targets", attack_id=attack.attack_id)

    try:
        validate_hits(attack.per_location_hits)
    except MalformedAttackError as e:
        return _err("MALFORMED_DAMAGE", str(e), attack_id=attack.attack_id)

    if attack.hit_location is not None and attack.hit_location not in HIT_LOCATIONS:
        return _err(
            "MALFORMED_DAMAGE",
            f"Unknown hit location: {attack.hit_location!r}",
            attack_id=attack.attack_id,
        )

    if attack.effect_turns is not None and attack.effect_turns <= 0:
        return _err(
            "BAD_EFFECT_TURNS",
            "effect_turns must be positive",
            effect_turns=attack.effect_turns,
        )

    if attack.exotic_effect is not None:
        d = EXOTIC_EFFECTS[attack.exotic_effect]
        if d.mode == "timed" and d.default_turns is None and attack.effect_turns is None:
            return _err(
                "MISSING_EFFECT_TURNS",
                "This effect needs an explicit turn count",
                effect=attack.exotic_effect,
            )
    return ValidationResult(ok=True)


def _validate_condition_id(condition: str) -> ValidationResult:
    if condition not in CONDITIONS:
        return _err("UNKNOWN_CONDITION", "Unknown condition", condition=condition)
    if is_wound_condition(condition):
        return _err(
            "DERIVED_CONDITION",
            "Wound conditions follow the damage track",
            condition=condition,
        )
    if CONDITIONS[condition].kind == "ladder":
        return _err(
            "LADDER_CONDITION",
            "Use SetLadder for fatigue/stress tiers",
            condition=condition,
        )
    return ValidationResult(ok=True)


def validate_command(state: EncounterState, cmd: Command) -> ValidationResult:
    if isinstance(cmd, StartCombat):
        if state.combat_active:
            return _err("COMBAT_ALREADY_STARTED", "Combat already started")
        if len(state.combatants) == 0:
            return _err("NO_COMBATANTS", "Cannot start combat with zero combatants")
        return ValidationResult(ok=True)

    if isinstance(cmd, EndCombat):
        if not state.combat_active:
            return _err("COMBAT_NOT_STARTED", "Call StartCombat first")
        return ValidationResult(ok=True)

    if isinstance(cmd, TurnChange):
        if not state.combat_active:
            return _err("COMBAT_NOT_STARTED", "Call StartCombat first")
        if cmd.round < 1:
            return _err("BAD_ROUND", "Round must be >= 1", round=cmd.round)
        if cmd.current_combatant_id is not None and cmd.current_combatant_id not in state.combatants:
            return _unknown(cmd.current_combatant_id)
        return ValidationResult(ok=True)

    if isinstance(cmd, ResolveAttack):
        return _validate_attack(state, cmd)

    if isinstance(cmd, (RegisterAction, Move, RollShockSave, RollDeathSave, RollPoisonSave)):
        if cmd.combatant_id not in state.combatants:
            return _unknown(cmd.combatant_id)
        return ValidationResult(ok=True)

    if isinstance(cmd, ApplyCondition):
        if cmd.target_id not in state.combatants:
            return _unknown(cmd.target_id)
        vr = _validate_condition_id(cmd.condition)
        if not vr.ok:
            return vr
        if cmd.remaining_turns is not None and cmd.remaining_turns <= 0:
            return _err(
                "BAD_REMAINING_TURNS",
                "remaining_turns must be positive",
                remaining_turns=cmd.remaining_turns,
            )
        d = CONDITIONS[cmd.condition]
        if d.kind == "timed" and cmd.remaining_turns is None and d.default_turns is None:
            return _err(
                "MISSING_REMAINING_TURNS",
                "Timed condition needs remaining_turns",
                condition=cmd.condition,
            )
        return ValidationResult(ok=True)

    if isinstance(cmd, RemoveCondition):
        if cmd.target_id not in state.combatants:
            return _unknown(cmd.target_id)
        return _validate_condition_id(cmd.condition)

    if isinstance(cmd, SetLadder):
        if cmd.target_id not in state.combatants:
            return _unknown(cmd.target_id)
        if cmd.value is not None and cmd.value not in LADDER_VALUES[cmd.group]:
            return _err(
                "BAD_LADDER_VALUE",
                "Value does not belong to this ladder",
                group=cmd.group,
                value=cmd.value,
                allowed=list(LADDER_VALUES[cmd.group]),
            )
        return ValidationResult(ok=True)

    return _err(
        "UNKNOWN_COMMAND",
        "Unhandled command type",
        type=getattr(cmd, "type", str(type(cmd))),
    )
