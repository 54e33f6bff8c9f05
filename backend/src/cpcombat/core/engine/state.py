from __future__ import annotations

import math
from dataclasses import dataclass, field
from random import Random
from typing import Dict, List, Literal, Optional, Tuple


from cpcombat.core.engine.dice import DiceEngine, RandomDiceEngine
from cpcombat.core.engine.events import Roll

Pos = Tuple[float, float]

Location = Literal["Head", "Torso", "lArm", "rArm", "lLeg", "rLeg"]
HIT_LOCATIONS: tuple[str, ...] = ("Head", "Torso", "lArm", "rArm", "lLeg", "rLeg")
LIMB_LOCATIONS: tuple[str, ...] = ("lArm", "rArm", "lLeg", "rLeg")

LOST_LIMB_CONDITION: Dict[str, str] = {
    "lArm": "lost-left-arm",
    "rArm": "lost-right-arm",
    "lLeg": "lost-left-leg",
    "rLeg": "lost-right-leg",
}

ArmorHardness = Literal["soft", "hard"]
MeleeDamageType = Literal["none", "blunt", "edged", "spike", "monoblade"]
AmmoType = Literal["standard", "armorPiercing", "hollowPoint", "rubberSlug"]

MAX_DAMAGE = 40
MORTAL_WOUND_STATE = 4


def body_type_modifier(body: int) -> int:
    """BTM по таблице CP2020 (ширина диапазонов неравномерная, формулой не выражается)."""
    if body <= 2:
        return 0
    if body <= 4:
        return 1
    if body <= 7:
        return 2
    if body <= 9:
        return 3
    if body == 10:
        return 4
    return 5


def wound_state_for_damage(damage: int) -> int:
    # 4 клетки на уровень, 1 = Light ... 10 = Mortal 6
    if damage <= 0:
        return 0
    return min(math.ceil(damage / 4), 10)


@dataclass
class ArmorCoverage:
    stopping_power: int  # максимум SP по локации
    ablation: int = 0

    @property
    def current_sp(self) -> int:
        return max(0, self.stopping_power - self.ablation)


@dataclass
class ArmorPiece:
    id: str
    name: str
    hardness: ArmorHardness = "soft"
    equipped: bool = True
    coverage: Dict[str, ArmorCoverage] = field(default_factory=dict)

    def covers(self, location: str) -> bool:
        cov = self.coverage.get(location)
        return self.equipped and cov is not None and cov.stopping_power > 0


@dataclass
class CyberwareItem:
    id: str
    name: str
    kind: Literal["cyberlimb", "option"] = "cyberlimb"
    location: Optional[str] = None  # только для kind == "cyberlimb"
    equipped: bool = True

    structure_current: int = 0
    structure_max: int = 0
    disables_at: int = 0

    # для опций: к какой конечности прикреплено и сколько SDP добавляет
    attached_to: Optional[str] = None
    sdp_bonus: int = 0


@dataclass(frozen=True)
class CyberlimbView:
    """Сводка по конечности с учётом прикреплённых опций."""

    item_id: str
    location: str
    structure_current: int
    structure_max: int
    disables_at: int

    @property
    def is_active(self) -> bool:
        return self.structure_current > 0

    @property
    def is_disabled(self) -> bool:
        return 0 < self.structure_current <= self.disables_at


@dataclass
class CombatScratch:
    action_count: int = 0
    movement_action_registered: bool = False
    last_position: Optional[Pos] = None
    cumulative_distance: float = 0.0
    acid_location: Optional[str] = None


@dataclass
class CombatantState:
    id: str
    name: str

    body: int = 5  # BT
    movement_allowance: int = 5  # MA, метров шагом

    damage: int = 0  # 0..40

    armor: List[ArmorPiece] = field(default_factory=list)
    cyberware: Dict[str, CyberwareItem] = field(default_factory=dict)

    conditions: set[str] = field(default_factory=set)

    # ladder-группы: не больше одного активного значения на группу
    fatigue_tier: Optional[str] = None
    stress_tier: Optional[str] = None

    condition_timers: Dict[str, int] = field(default_factory=dict)

    scratch: CombatScratch = field(default_factory=CombatScratch)

    stun_save_mod: int = 0
    death_save_mod: int = 0
    poison_save_mod: int = 0

    # REF/INT/COOL с листа, штрафы от условий считаются поверх
    stats: Dict[str, int] = field(default_factory=dict)

    initiative: Optional[int] = None
    position: Pos = (0.0, 0.0)

    @property
    def body_modifier(self) -> int:
        return body_type_modifier(self.body)

    @property
    def wound_state(self) -> int:
        return wound_state_for_damage(self.damage)

    @property
    def stun_threshold(self) -> int:
        # +1, т.к. Light не даёт штрафа, но уже = 1 по wound_state
        return self.body - self.wound_state + 1

    @property
    def death_threshold(self) -> int:
        # первый штрафующий уровень для death save: Mortal 1, а не Serious
        return self.stun_threshold + 3

    def cyberlimb_at(self, location: str) -> Optional[CyberlimbView]:
        for item in self.cyberware.values():
            if item.kind != "cyberlimb" or not item.equipped:
                continue
            if item.location != location:
                continue
            bonus = sum(
                opt.sdp_bonus
                for opt in self.cyberware.values()
                if opt.kind == "option" and opt.attached_to == item.id
            )
            # берём только первую конечность на локацию
            return CyberlimbView(
                item_id=item.id,
                location=location,
                structure_current=item.structure_current,
                structure_max=item.structure_max + bonus,
                disables_at=item.disables_at + bonus,
            )
        return None

    def armor_at(self, location: str) -> List[ArmorPiece]:
        return [a for a in self.armor if a.covers(location)]


@dataclass
class AttackRecord:
    attack_id: str
    applied: bool = False
    target_ids: List[str] = field(default_factory=list)
    round: int = 0


@dataclass
class EncounterState:
    round: int = 1
    turn_owner_id: Optional[str] = None
    combat_active: bool = False

    seq: int = 0
    t: int = 0

    combatants: Dict[str, CombatantState] = field(default_factory=dict)

    attack_records: Dict[str, AttackRecord] = field(default_factory=dict)

    rng_seed: int = 0
    rng: Random = field(default_factory=Random)

    # внешний движок костей; None -> RandomDiceEngine поверх self.rng
    dice: Optional[DiceEngine] = None

    def with_seed(self, seed: int) -> "EncounterState":
        self.rng_seed = seed
        self.rng = Random(seed)
        return self

    def roll(self, formula: str, *, kind: str = "other") -> Roll:
        engine = self.dice or RandomDiceEngine(self.rng)
        return engine.roll(formula, kind=kind)
