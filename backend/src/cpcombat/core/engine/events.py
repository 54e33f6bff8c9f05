from __future__ import annotations

from typing import Any, Literal, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, ConfigDict

SaveKind = Literal["shock", "death", "poison"]


class RollMod(BaseModel):
    name: str
    value: int


class Roll(BaseModel):
    roll_id: UUID = Field(default_factory=uuid4)
    kind: Literal["d10", "damage", "save", "other"]
    formula: str
    dice: list[int]
    kept: list[int]
    mods: list[RollMod] = Field(default_factory=list)
    total: int
    nat: Optional[int] = None


class EventEnvelope(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_id: UUID = Field(default_factory=uuid4)
    seq: int
    t: int
    type: str

    round: int
    turn_owner_id: Optional[str] = None
    actor_id: Optional[str] = None

    payload: dict[str, Any] = Field(default_factory=dict)


def ev_command_rejected(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[str],
    actor_id: Optional[str],
    command: dict,
    code: str,
    message: str,
    meta: dict,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CommandRejected",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=actor_id,
        payload={
            "command": command,
            "code": code,
            "message": message,
            "meta": meta,
        },
    )


def ev_combat_started(*, seq: int, t: int, round_: int) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatStarted",
        round=round_,
        turn_owner_id=None,
        actor_id=None,
        payload={},
    )


def ev_combat_ended(*, seq: int, t: int, round_: int) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatEnded",
        round=round_,
        turn_owner_id=None,
        actor_id=None,
        payload={},
    )


def ev_round_started(
    *, seq: int, t: int, round_: int, turn_owner_id: Optional[str]
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="RoundStarted",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={"round": round_},
    )


def ev_initiative_reset(
    *, seq: int, t: int, round_: int, combatant_ids: list[str]
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="InitiativeReset",
        round=round_,
        turn_owner_id=None,
        actor_id=None,
        payload={"combatant_ids": combatant_ids},
    )


def ev_turn_started(
    *, seq: int, t: int, round_: int, turn_owner_id: str
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="TurnStarted",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=turn_owner_id,
        payload={"combatant_id": turn_owner_id},
    )


def ev_turn_ended(
    *, seq: int, t: int, round_: int, turn_owner_id: str
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="TurnEnded",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=turn_owner_id,
        payload={"combatant_id": turn_owner_id},
    )


def ev_turn_scratch_reset(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[str],
    combatant_id: str,
    action_count: int,
    last_position,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="TurnScratchReset",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=combatant_id,
        payload={
            "combatant_id": combatant_id,
            "action_count": action_count,
            "cumulative_distance": 0.0,
            "last_position": last_position,
        },
    )


def ev_condition_applied(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    actor_id,
    target_id: str,
    condition: str,
    reason: str = "effect",
    remaining_turns: Optional[int] = None,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ConditionApplied",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=actor_id,
        payload={
            "target_id": target_id,
            "condition": condition,
            "reason": reason,
            "remaining_turns": remaining_turns,
        },
    )


def ev_condition_removed(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    actor_id,
    target_id: str,
    condition: str,
    reason: str = "effect",
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ConditionRemoved",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=actor_id,
        payload={"target_id": target_id, "condition": condition, "reason": reason},
    )


def ev_condition_timer_changed(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    condition: str,
    remaining_turns: int,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ConditionTimerChanged",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "target_id": target_id,
            "condition": condition,
            "remaining_turns": remaining_turns,
        },
    )


def ev_ladder_changed(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    group: str,
    before: Optional[str],
    after: Optional[str],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="LadderChanged",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "target_id": target_id,
            "group": group,
            "before": before,
            "after": after,
        },
    )


def ev_wound_state_changed(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    before: int,
    after: int,
    condition: Optional[str],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="WoundStateChanged",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "target_id": target_id,
            "before": before,
            "after": after,
            "condition": condition,
        },
    )


def ev_attack_resolution_started(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    attack_id: str,
    target_ids: list[str],
    ammo_type: str,
    melee_damage_type: str,
    exotic_effect: Optional[str],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="AttackResolutionStarted",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=turn_owner_id,
        payload={
            "attack_id": attack_id,
            "target_ids": target_ids,
            "ammo_type": ammo_type,
            "melee_damage_type": melee_damage_type,
            "exotic_effect": exotic_effect,
        },
    )


def ev_target_skipped(
    *, seq: int, t: int, round_: int, turn_owner_id, attack_id: str, target_id: str, reason: str
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="TargetSkipped",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={"attack_id": attack_id, "target_id": target_id, "reason": reason},
    )


def ev_location_damage_resolved(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    attack_id: str,
    target_id: str,
    location: str,
    base_sp: int,
    hardness: str,
    hits: list[dict],
    wound_damage: int,
    structural_damage: int,
) -> EventEnvelope:
    # hits: [{"raw": 12, "final": 5, "penetrating": True, ...}, ...]
    return EventEnvelope(
        seq=seq,
        t=t,
        type="LocationDamageResolved",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "attack_id": attack_id,
            "target_id": target_id,
            "location": location,
            "base_sp": base_sp,
            "hardness": hardness,
            "hits": hits,
            "wound_damage": wound_damage,
            "structural_damage": structural_damage,
        },
    )


def ev_damage_applied(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    amount: int,
    damage_before: int,
    damage_after: int,
    source: str,
    attack_id: Optional[str] = None,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="DamageApplied",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "attack_id": attack_id,
            "target_id": target_id,
            "amount": amount,
            "damage_before": damage_before,
            "damage_after": damage_after,
            "source": source,
        },
    )


def ev_structure_damaged(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    item_id: str,
    location: str,
    amount: int,
    structure_before: int,
    structure_after: int,
    disabled: bool,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="StructureDamaged",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "target_id": target_id,
            "item_id": item_id,
            "location": location,
            "amount": amount,
            "structure_before": structure_before,
            "structure_after": structure_after,
            "disabled": disabled,
        },
    )


def ev_cyberlimb_destroyed(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    item_id: str,
    location: str,
    removed_option_ids: list[str],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CyberlimbDestroyed",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "target_id": target_id,
            "item_id": item_id,
            "location": location,
            "removed_option_ids": removed_option_ids,
        },
    )


def ev_structural_damage_dropped(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    location: str,
    amount: int,
    reason: str,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="StructuralDamageDropped",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "target_id": target_id,
            "location": location,
            "amount": amount,
            "reason": reason,
        },
    )


def ev_armor_ablated(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    armor_id: str,
    location: str,
    amount: int,
    ablation: int,
    stopping_power: int,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ArmorAblated",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "target_id": target_id,
            "armor_id": armor_id,
            "location": location,
            "amount": amount,
            "ablation": ablation,
            "stopping_power": stopping_power,
        },
    )


def ev_armor_degraded(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    armor_id: str,
    location: str,
    amount: int,
    stopping_power_before: int,
    stopping_power_after: int,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ArmorDegraded",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "target_id": target_id,
            "armor_id": armor_id,
            "location": location,
            "amount": amount,
            "stopping_power_before": stopping_power_before,
            "stopping_power_after": stopping_power_after,
        },
    )


def ev_save_rolled(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    save: SaveKind,
    roll: Roll,
    threshold: int,
    success: bool,
    reason: str,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="SaveRolled",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=target_id,
        payload={
            "target_id": target_id,
            "save": save,
            "roll": roll.model_dump(mode="json"),
            "threshold": threshold,
            "success": success,
            "reason": reason,
        },
    )


def ev_condition_damage(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    target_id: str,
    condition: str,
    roll: Roll,
    amount: int,
    remaining_turns: int,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ConditionDamageRolled",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=target_id,
        payload={
            "target_id": target_id,
            "condition": condition,
            "roll": roll.model_dump(mode="json"),
            "amount": amount,
            "remaining_turns": remaining_turns,
        },
    )


def ev_action_registered(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    combatant_id: str,
    action_type: str,
    action_count: int,
    surge: bool,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ActionRegistered",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=combatant_id,
        payload={
            "combatant_id": combatant_id,
            "action_type": action_type,
            "action_count": action_count,
            "surge": surge,
        },
    )


def ev_moved(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    combatant_id: str,
    from_pos,
    to_pos,
    distance: float,
    cumulative_distance: float,
    walk_allowance: int,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="Moved",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=combatant_id,
        payload={
            "combatant_id": combatant_id,
            "from": from_pos,
            "to": to_pos,
            "distance": distance,
            "cumulative_distance": cumulative_distance,
            "walk_allowance": walk_allowance,
        },
    )


def ev_exotic_effect_applied(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id,
    attack_id: str,
    target_id: str,
    effect: str,
    outcome: str,
    remaining_turns: Optional[int] = None,
) -> EventEnvelope:
    # outcome: "status" | "timed" | "save_passed" | "save_failed"
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ExoticEffectApplied",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={
            "attack_id": attack_id,
            "target_id": target_id,
            "effect": effect,
            "outcome": outcome,
            "remaining_turns": remaining_turns,
        },
    )
