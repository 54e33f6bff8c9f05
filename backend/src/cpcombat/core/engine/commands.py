# backend/src/cpcombat/core/engine/commands.py

from typing import Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

ExoticEffect = Literal[
    "confusion",
    "poisoned",
    "tearing",
    "unconscious",
    "stunAt2",
    "stunAt4",
    "burning",
    "microwave",
    "acid",
    "blinded",
    "deafened",
]


class CommandBase(BaseModel):
    model_config = ConfigDict(extra="forbid")
    type: str


class AttackData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    attack_id: str
    target_ids: list[str]
    # {location: [raw, ...]}; значения проверяет damage.py, чтобы отклонить атаку целиком
    per_location_hits: dict[str, list[Any]] = Field(default_factory=dict)
    ammo_type: Literal["standard", "armorPiercing", "hollowPoint", "rubberSlug"] = "standard"
    melee_damage_type: Literal["none", "blunt", "edged", "spike", "monoblade"] = "none"
    exotic_effect: Optional[ExoticEffect] = None
    effect_turns: Optional[int] = None
    hit_location: Optional[str] = None


class StartCombat(CommandBase):
    type: Literal["StartCombat"] = "StartCombat"


class EndCombat(CommandBase):
    type: Literal["EndCombat"] = "EndCombat"


class TurnChange(CommandBase):
    type: Literal["TurnChange"] = "TurnChange"
    prior_combatant_id: Optional[str] = None
    current_combatant_id: Optional[str] = None
    round: int = 1
    prior_round: Optional[int] = None  # None -> текущий state.round
    role: str = "gm"  # кто прислал событие смены хода


class ResolveAttack(CommandBase):
    type: Literal["ResolveAttack"] = "ResolveAttack"
    attack: AttackData


class RegisterAction(CommandBase):
    type: Literal["RegisterAction"] = "RegisterAction"
    combatant_id: str
    action_type: str = "action"


class Move(CommandBase):
    type: Literal["Move"] = "Move"
    combatant_id: str
    to: tuple[float, float]


class ApplyCondition(CommandBase):
    type: Literal["ApplyCondition"] = "ApplyCondition"
    target_id: str
    condition: str
    remaining_turns: Optional[int] = None


class RemoveCondition(CommandBase):
    type: Literal["RemoveCondition"] = "RemoveCondition"
    target_id: str
    condition: str


class SetLadder(CommandBase):
    type: Literal["SetLadder"] = "SetLadder"
    target_id: str
    group: Literal["fatigue", "stress"]
    value: Optional[str] = None  # None = снять


class RollShockSave(CommandBase):
    type: Literal["RollShockSave"] = "RollShockSave"
    combatant_id: str
    penalty: int = 0


class RollDeathSave(CommandBase):
    type: Literal["RollDeathSave"] = "RollDeathSave"
    combatant_id: str


class RollPoisonSave(CommandBase):
    type: Literal["RollPoisonSave"] = "RollPoisonSave"
    combatant_id: str


Command = Union[
    StartCombat,
    EndCombat,
    TurnChange,
    ResolveAttack,
    RegisterAction,
    Move,
    ApplyCondition,
    RemoveCondition,
    SetLadder,
    RollShockSave,
    RollDeathSave,
    RollPoisonSave,
]
