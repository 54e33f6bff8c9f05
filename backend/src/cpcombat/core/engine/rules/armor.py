from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from cpcombat.core.engine.state import CombatantState

# (минимальная разница SP, бонус к большему слою)
LAYER_BONUS: Tuple[Tuple[int, int], ...] = (
    (27, 0),
    (21, 2),
    (15, 3),
    (9, 3),
    (5, 4),
    (0, 5),
)


def stack_armor_sp(existing: int, incoming: int) -> int:
    if existing == 0 or incoming == 0:
        return existing + incoming
    diff = abs(existing - incoming)
    bonus = next((b for threshold, b in LAYER_BONUS if diff >= threshold), 5)
    return max(existing, incoming) + bonus


def location_sp(c: CombatantState, location: str) -> int:
    """Итоговый SP локации: слои в порядке надевания."""
    sp = 0
    for piece in c.armor_at(location):
        sp = stack_armor_sp(sp, piece.coverage[location].current_sp)
    return sp


def location_hardness(c: CombatantState, location: str) -> str:
    if any(piece.hardness == "hard" for piece in c.armor_at(location)):
        return "hard"
    return "soft"


def effective_sp(sp: int, *, melee: str, ammo: str, hardness: str) -> int:
    """SP после поправок на тип клинка и патрона (до вычитания из урона)."""
    sp = max(0, sp)

    if melee == "edged":
        if hardness == "soft":
            sp = sp // 2
    elif melee == "spike":
        sp = sp // 2
    elif melee == "monoblade":
        # S/1.5 == 2S/3
        sp = sp // 3 if hardness == "soft" else (sp * 2) // 3

    if ammo == "armorPiercing":
        sp = sp // 2
    elif ammo == "hollowPoint":
        sp = sp * 2

    return max(0, sp)


@dataclass(frozen=True)
class HitBreakdown:
    raw: int
    effective_sp: int
    penetrating: bool
    after_armor: int
    after_head: int
    wound_damage: int
    structural_damage: int

    def as_dict(self) -> dict:
        return {
            "raw": self.raw,
            "effective_sp": self.effective_sp,
            "penetrating": self.penetrating,
            "after_armor": self.after_armor,
            "after_head": self.after_head,
            "wound_damage": self.wound_damage,
            "structural_damage": self.structural_damage,
        }


def penetrate(
    raw: int, *, base_sp: int, location: str, melee: str, ammo: str, hardness: str
) -> Tuple[int, int, bool, int]:
    """
    Возвращает (effective_sp, после брони, пробил ли броню, после удвоения в голову).
    Body modifier здесь не учитывается, это делает route_damage.
    """
    if ammo == "rubberSlug":
        # резина: по жёсткой броне 0, иначе максимум 1, без удвоения в голову
        if hardness == "hard":
            return base_sp, 0, False, 0
        through = raw - base_sp
        value = 1 if through > 0 else 0
        return base_sp, value, through > 0, value

    sp = effective_sp(base_sp, melee=melee, ammo=ammo, hardness=hardness)
    through = max(0, raw - sp)
    value = through

    if ammo == "armorPiercing":
        value = value // 2
    elif ammo == "hollowPoint":
        value = (value * 3) // 2

    if melee == "spike":
        value = value // 2

    after_head = value * 2 if location == "Head" else value
    return sp, value, through > 0, after_head


def route_damage(value: int, *, btm: int, cyberlimb_active: bool) -> Tuple[int, int]:
    """(wound_damage, structural_damage) для одного попадания."""
    if cyberlimb_active:
        # по структуре: без BTM и без минимума в 1
        return 0, max(0, value)
    if value <= 0:
        return 0, 0
    return max(1, value - btm), 0


def resolve_hit(
    c: CombatantState,
    *,
    raw: int,
    location: str,
    base_sp: int,
    hardness: str,
    melee: str,
    ammo: str,
    cyberlimb_active: bool,
) -> HitBreakdown:
    sp, after_armor, penetrating, after_head = penetrate(
        raw, base_sp=base_sp, location=location, melee=melee, ammo=ammo, hardness=hardness
    )
    wound, structural = route_damage(
        after_head, btm=c.body_modifier, cyberlimb_active=cyberlimb_active
    )
    return HitBreakdown(
        raw=raw,
        effective_sp=sp,
        penetrating=penetrating,
        after_armor=after_armor,
        after_head=after_head,
        wound_damage=wound,
        structural_damage=structural,
    )


def ablate_location(
    c: CombatantState, location: str, penetrating_hits: int
) -> List[Tuple[str, int, int, int]]:
    """
    +1 абляции за каждое пробитие на всех надетых слоях локации (не выше максимума SP).
    Возвращает [(armor_id, прирост, новая абляция, максимум SP), ...] только для изменившихся.
    """
    if penetrating_hits <= 0:
        return []

    changed: List[Tuple[str, int, int, int]] = []
    for piece in c.armor_at(location):
        cov = piece.coverage[location]
        before = cov.ablation
        cov.ablation = min(cov.stopping_power, before + penetrating_hits)
        if cov.ablation != before:
            changed.append((piece.id, cov.ablation - before, cov.ablation, cov.stopping_power))
    return changed


def degrade_location(c: CombatantState, location: str, amount: int) -> List[Tuple[str, int, int]]:
    """
    Кислота: режет максимум SP всех слоёв локации, абляция пересчитывается под новый максимум.
    Возвращает [(armor_id, SP до, SP после), ...].
    """
    changed: List[Tuple[str, int, int]] = []
    for piece in list(c.armor_at(location)):
        cov = piece.coverage[location]
        before = cov.stopping_power
        cov.stopping_power = max(0, before - amount)
        cov.ablation = min(cov.ablation, cov.stopping_power)
        changed.append((piece.id, before, cov.stopping_power))
    return changed
