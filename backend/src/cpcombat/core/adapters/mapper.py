from __future__ import annotations

from collections.abc import Mapping as ABCMapping
from dataclasses import dataclass
from typing import Any, Optional, cast

from cpcombat.api.schemas import CharacterData
from cpcombat.core.engine.conditions import check_carried_condition, check_ladder_value
from cpcombat.core.engine.state import (
    MAX_DAMAGE,
    ArmorCoverage,
    ArmorPiece,
    CombatantState,
    CyberwareItem,
    Pos,
)


@dataclass(frozen=True)
class CombatantOverrides:
    # текущий урон на момент входа в бой (например, ранен в прошлой сцене)
    damage: Optional[int] = None
    conditions: Optional[list[str]] = None
    movement_allowance: Optional[int] = None

    fatigue_tier: Optional[str] = None
    stress_tier: Optional[str] = None

    def __post_init__(self) -> None:
        for cid in self.conditions or ():
            check_carried_condition(cid)
        check_ladder_value("fatigue", self.fatigue_tier)
        check_ladder_value("stress", self.stress_tier)


def _as_character_data(obj: Any) -> CharacterData:
    if isinstance(obj, CharacterData):
        return obj
    if isinstance(obj, ABCMapping):
        return CharacterData.model_validate(dict(cast(ABCMapping[str, Any], obj)))
    raise TypeError(f"Unsupported character payload: {type(obj).__name__}")


def overrides_from_dict(d: Optional[dict[str, Any]]) -> Optional[CombatantOverrides]:
    if not d:
        return None
    allowed = set(CombatantOverrides.__dataclass_fields__)
    unknown = sorted(set(d) - allowed)
    if unknown:
        raise ValueError(f"Unknown overrides: {', '.join(unknown)}")
    return CombatantOverrides(**d)


def combatant_from_character(
    character: CharacterData | ABCMapping[str, Any],
    *,
    combatant_id: str,
    name: str,
    position: Pos = (0.0, 0.0),
    overrides: CombatantOverrides | None = None,
) -> CombatantState:
    data = _as_character_data(character)
    ov = overrides or CombatantOverrides()

    damage = data.damage if ov.damage is None else int(ov.damage)
    damage = max(0, min(MAX_DAMAGE, damage))

    movement_allowance = data.movement_allowance
    if ov.movement_allowance is not None:
        movement_allowance = int(ov.movement_allowance)

    conditions = set(data.conditions)
    if ov.conditions is not None:
        conditions = set(ov.conditions)

    armor = [
        ArmorPiece(
            id=a.id,
            name=a.name,
            hardness=a.hardness,
            equipped=a.equipped,
            coverage={
                str(loc): ArmorCoverage(stopping_power=cov.stopping_power, ablation=cov.ablation)
                for loc, cov in a.coverage.items()
            },
        )
        for a in data.armor
    ]

    cyberware = {
        cw.id: CyberwareItem(
            id=cw.id,
            name=cw.name,
            kind=cw.kind,
            location=cw.location,
            equipped=cw.equipped,
            structure_current=cw.structure_current,
            structure_max=cw.structure_max,
            disables_at=cw.disables_at,
            attached_to=cw.attached_to,
            sdp_bonus=cw.sdp_bonus,
        )
        for cw in data.cyberware
    }

    return CombatantState(
        id=combatant_id,
        name=name,
        body=data.body,
        movement_allowance=movement_allowance,
        damage=damage,
        armor=armor,
        cyberware=cyberware,
        conditions=conditions,
        fatigue_tier=ov.fatigue_tier if ov.fatigue_tier is not None else data.fatigue_tier,
        stress_tier=ov.stress_tier if ov.stress_tier is not None else data.stress_tier,
        stun_save_mod=data.stun_save_mod,
        death_save_mod=data.death_save_mod,
        poison_save_mod=data.poison_save_mod,
        stats=dict(data.stats),
        position=(float(position[0]), float(position[1])),
    )


def character_data_from_combatant(combatant: CombatantState) -> dict[str, Any]:
    """
    Обратное преобразование: боец -> payload листа персонажа.
    Пригодится, чтобы записать урон/износ брони обратно в Character после боя.
    """
    data = CharacterData(
        body=combatant.body,
        movement_allowance=combatant.movement_allowance,
        damage=combatant.damage,
        stun_save_mod=combatant.stun_save_mod,
        death_save_mod=combatant.death_save_mod,
        poison_save_mod=combatant.poison_save_mod,
        stats=dict(combatant.stats),
        armor=[
            {
                "id": a.id,
                "name": a.name,
                "hardness": a.hardness,
                "equipped": a.equipped,
                "coverage": {
                    loc: {"stopping_power": cov.stopping_power, "ablation": cov.ablation}
                    for loc, cov in a.coverage.items()
                },
            }
            for a in combatant.armor
        ],
        cyberware=[
            {
                "id": cw.id,
                "name": cw.name,
                "kind": cw.kind,
                "location": cw.location,
                "equipped": cw.equipped,
                "structure_current": cw.structure_current,
                "structure_max": cw.structure_max,
                "disables_at": cw.disables_at,
                "attached_to": cw.attached_to,
                "sdp_bonus": cw.sdp_bonus,
            }
            for cw in combatant.cyberware.values()
        ],
        # боевые флаги (shocked, action-surge, ...) в лист не пишем
        conditions=sorted(c for c in combatant.conditions if c.startswith("lost-")),
        fatigue_tier=combatant.fatigue_tier,
        stress_tier=combatant.stress_tier,
    )
    return data.model_dump(mode="json")
