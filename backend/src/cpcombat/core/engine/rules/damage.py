from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from cpcombat.core.engine.commands import AttackData
from cpcombat.core.engine.events import (
    ev_armor_ablated,
    ev_attack_resolution_started,
    ev_cyberlimb_destroyed,
    ev_location_damage_resolved,
    ev_structural_damage_dropped,
    ev_structure_damaged,
    ev_target_skipped,
)
from cpcombat.core.engine.rules.armor import (
    ablate_location,
    location_hardness,
    location_sp,
    resolve_hit,
)
from cpcombat.core.engine.rules.common import add_condition, bump, remove_condition
from cpcombat.core.engine.rules.effects import apply_exotic_effect, effect_turns
from cpcombat.core.engine.rules.lifecycle import add_damage
from cpcombat.core.engine.rules.saves import death_save, shock_save
from cpcombat.core.engine.state import (
    HIT_LOCATIONS,
    LIMB_LOCATIONS,
    LOST_LIMB_CONDITION,
    MAX_DAMAGE,
    MORTAL_WOUND_STATE,
    AttackRecord,
    CombatantState,
    EncounterState,
    wound_state_for_damage,
)

log = logging.getLogger(__name__)

LIMB_LOSS_WOUND_DAMAGE = 8


class MalformedAttackError(ValueError):
    """Битые данные попаданий: атака отклоняется целиком."""


class LocationPreview(BaseModel):
    location: str
    base_sp: int
    hardness: str
    cyberlimb_item_id: Optional[str] = None
    hits: list[dict] = Field(default_factory=list)
    wound_damage: int = 0
    structural_damage: int = 0
    penetrating_hits: int = 0


class TargetPreview(BaseModel):
    target_id: str
    skipped: bool = False
    reason: Optional[str] = None
    locations: list[LocationPreview] = Field(default_factory=list)
    wound_damage: int = 0
    structural_damage: int = 0
    damage_before: int = 0
    damage_after: int = 0
    wound_state_before: int = 0
    wound_state_after: int = 0
    exotic_effect: Optional[str] = None
    effect_turns: Optional[int] = None


class AttackPreview(BaseModel):
    attack_id: str
    already_applied: bool = False
    targets: list[TargetPreview] = Field(default_factory=list)
    total_wound_damage: int = 0
    total_structural_damage: int = 0


def validate_hits(per_location_hits: Dict[str, list]) -> Dict[str, List[int]]:
    out: Dict[str, List[int]] = {}
    for location, hits in per_location_hits.items():
        if location not in HIT_LOCATIONS:
            raise MalformedAttackError(f"Unknown hit location: {location!r}")
        if not isinstance(hits, list):
            raise MalformedAttackError(f"Hits for {location} must be a list")
        clean: List[int] = []
        for raw in hits:
            # bool формально int, но как урон бессмыслен
            if isinstance(raw, bool) or not isinstance(raw, int):
                raise MalformedAttackError(f"Non-integer damage at {location}: {raw!r}")
            if raw < 0:
                raise MalformedAttackError(f"Negative damage at {location}: {raw}")
            clean.append(raw)
        if clean:
            out[location] = clean
    return out


def plan_target(
    c: CombatantState, hits: Dict[str, List[int]], attack: AttackData
) -> TargetPreview:
    """Чистый расчёт по одной цели: state не трогаем."""
    preview = TargetPreview(
        target_id=c.id,
        damage_before=c.damage,
        wound_state_before=c.wound_state,
        exotic_effect=attack.exotic_effect,
        effect_turns=effect_turns(attack),
    )

    for location in HIT_LOCATIONS:
        raws = hits.get(location)
        if not raws:
            continue

        base_sp = location_sp(c, location)
        hardness = location_hardness(c, location)
        limb = c.cyberlimb_at(location) if location in LIMB_LOCATIONS else None
        limb_active = limb is not None and limb.is_active

        lp = LocationPreview(
            location=location,
            base_sp=base_sp,
            hardness=hardness,
            cyberlimb_item_id=limb.item_id if limb_active and limb else None,
        )
        for raw in raws:
            hb = resolve_hit(
                c,
                raw=raw,
                location=location,
                base_sp=base_sp,
                hardness=hardness,
                melee=attack.melee_damage_type,
                ammo=attack.ammo_type,
                cyberlimb_active=limb_active,
            )
            lp.hits.append(hb.as_dict())
            lp.wound_damage += hb.wound_damage
            lp.structural_damage += hb.structural_damage
            if hb.penetrating:
                lp.penetrating_hits += 1

        preview.locations.append(lp)
        preview.wound_damage += lp.wound_damage
        preview.structural_damage += lp.structural_damage

    preview.damage_after = min(MAX_DAMAGE, c.damage + preview.wound_damage)
    preview.wound_state_after = wound_state_for_damage(preview.damage_after)
    return preview


def preview_attack(state: EncounterState, attack: AttackData) -> AttackPreview:
    hits = validate_hits(attack.per_location_hits)
    record = state.attack_records.get(attack.attack_id)

    out = AttackPreview(
        attack_id=attack.attack_id,
        already_applied=bool(record and record.applied),
    )
    for target_id in attack.target_ids:
        c = state.combatants.get(target_id)
        if c is None:
            out.targets.append(
                TargetPreview(target_id=target_id, skipped=True, reason="unknown_target")
            )
            continue
        tp = plan_target(c, hits, attack)
        out.targets.append(tp)
        out.total_wound_damage += tp.wound_damage
        out.total_structural_damage += tp.structural_damage
    return out


def _destroy_cyberlimb(
    state: EncounterState, c: CombatantState, item_id: str, location: str
) -> List[dict]:
    option_ids = sorted(
        oid
        for oid, opt in c.cyberware.items()
        if opt.kind == "option" and opt.attached_to == item_id
    )
    for oid in option_ids:
        del c.cyberware[oid]
    del c.cyberware[item_id]

    log.info("cyberlimb %s of %s destroyed (options: %s)", item_id, c.id, option_ids)
    seq, t = bump(state)
    return [
        ev_cyberlimb_destroyed(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            target_id=c.id,
            item_id=item_id,
            location=location,
            removed_option_ids=option_ids,
        ).model_dump(mode="json")
    ]


def apply_target_plan(
    state: EncounterState, c: CombatantState, plan: TargetPreview, attack: AttackData
) -> List[dict]:
    """
    Применить расчёт к цели. Шаги идут по очереди без отката,
    каждый шаг отдаёт свои события.
    """
    events: List[dict] = []
    death_save_reasons: List[str] = []
    any_damage = False
    ws_before = c.wound_state

    for lp in plan.locations:
        seq, t = bump(state)
        events.append(
            ev_location_damage_resolved(
                seq=seq,
                t=t,
                round_=state.round,
                turn_owner_id=state.turn_owner_id,
                attack_id=attack.attack_id,
                target_id=c.id,
                location=lp.location,
                base_sp=lp.base_sp,
                hardness=lp.hardness,
                hits=lp.hits,
                wound_damage=lp.wound_damage,
                structural_damage=lp.structural_damage,
            ).model_dump(mode="json")
        )

        # 1) структура киберконечности
        if lp.structural_damage > 0:
            item = c.cyberware.get(lp.cyberlimb_item_id or "")
            if item is None:
                log.warning(
                    "structural damage %s at %s of %s dropped: cyberlimb %r not found",
                    lp.structural_damage,
                    lp.location,
                    c.id,
                    lp.cyberlimb_item_id,
                )
                seq, t = bump(state)
                events.append(
                    ev_structural_damage_dropped(
                        seq=seq,
                        t=t,
                        round_=state.round,
                        turn_owner_id=state.turn_owner_id,
                        target_id=c.id,
                        location=lp.location,
                        amount=lp.structural_damage,
                        reason="cyberlimb_not_found",
                    ).model_dump(mode="json")
                )
            else:
                any_damage = True
                before = item.structure_current
                item.structure_current = max(0, before - lp.structural_damage)
                view = c.cyberlimb_at(lp.location)
                disabled = bool(view and view.item_id == item.id and view.is_disabled)

                seq, t = bump(state)
                events.append(
                    ev_structure_damaged(
                        seq=seq,
                        t=t,
                        round_=state.round,
                        turn_owner_id=state.turn_owner_id,
                        target_id=c.id,
                        item_id=item.id,
                        location=lp.location,
                        amount=lp.structural_damage,
                        structure_before=before,
                        structure_after=item.structure_current,
                        disabled=disabled,
                    ).model_dump(mode="json")
                )

                if item.structure_current <= 0:
                    events += _destroy_cyberlimb(state, c, item.id, lp.location)
                    events += add_condition(
                        state, c, LOST_LIMB_CONDITION[lp.location], reason="cyberlimb_destroyed"
                    )
                    death_save_reasons.append("cyberlimb_destroyed")

        # 2) раны
        if lp.wound_damage > 0:
            any_damage = True
            events += add_damage(
                state, c, lp.wound_damage, source="attack", attack_id=attack.attack_id
            )

        # 3) абляция: по числу пробитий, а не по урону
        for armor_id, amount, ablation, stopping_power in ablate_location(
            c, lp.location, lp.penetrating_hits
        ):
            seq, t = bump(state)
            events.append(
                ev_armor_ablated(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    turn_owner_id=state.turn_owner_id,
                    target_id=c.id,
                    armor_id=armor_id,
                    location=lp.location,
                    amount=amount,
                    ablation=ablation,
                    stopping_power=stopping_power,
                ).model_dump(mode="json")
            )

    log.debug("attack %s on %s: any_damage=%s", attack.attack_id, c.id, any_damage)

    if any_damage:
        events += remove_condition(state, c, "stabilized", reason="damaged")

        if "shocked" not in c.conditions:
            _, evs = shock_save(state, c, reason="damage")
            events += evs

    # отрыв живой конечности
    for lp in plan.locations:
        if lp.location not in LIMB_LOCATIONS or lp.cyberlimb_item_id is not None:
            continue
        if lp.wound_damage >= LIMB_LOSS_WOUND_DAMAGE:
            events += add_condition(
                state, c, LOST_LIMB_CONDITION[lp.location], reason="limb_severed"
            )
            death_save_reasons.append("limb_severed")

    if ws_before < MORTAL_WOUND_STATE <= c.wound_state:
        death_save_reasons.append("mortal_wound")

    # не больше одного death save за транзакцию
    if death_save_reasons:
        _, evs = death_save(state, c, reason=",".join(death_save_reasons))
        events += evs

    events += apply_exotic_effect(state, c, attack)
    return events


def commit_attack(state: EncounterState, attack: AttackData) -> List[dict]:
    """
    Применить атаку ко всем целям по порядку. Повторный commit того же attack_id ничего не делает.
    MalformedAttackError пробрасывается до любых изменений.
    """
    record = state.attack_records.get(attack.attack_id)
    if record is not None and record.applied:
        log.info("attack %s already applied, skipping", attack.attack_id)
        return []

    hits = validate_hits(attack.per_location_hits)

    seq, t = bump(state)
    events: List[dict] = [
        ev_attack_resolution_started(
            seq=seq,
            t=t,
            round_=state.round,
            turn_owner_id=state.turn_owner_id,
            attack_id=attack.attack_id,
            target_ids=list(attack.target_ids),
            ammo_type=attack.ammo_type,
            melee_damage_type=attack.melee_damage_type,
            exotic_effect=attack.exotic_effect,
        ).model_dump(mode="json")
    ]

    for target_id in attack.target_ids:
        c = state.combatants.get(target_id)
        if c is None:
            log.warning("attack %s: target %s not found, skipped", attack.attack_id, target_id)
            seq, t = bump(state)
            events.append(
                ev_target_skipped(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    turn_owner_id=state.turn_owner_id,
                    attack_id=attack.attack_id,
                    target_id=target_id,
                    reason="unknown_target",
                ).model_dump(mode="json")
            )
            continue

        plan = plan_target(c, hits, attack)
        events += apply_target_plan(state, c, plan, attack)

    state.attack_records[attack.attack_id] = AttackRecord(
        attack_id=attack.attack_id,
        applied=True,
        target_ids=list(attack.target_ids),
        round=state.round,
    )
    return events
