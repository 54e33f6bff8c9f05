from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cpcombat.core.engine.commands import AttackData
from cpcombat.core.engine.conditions import check_carried_condition, check_ladder_value

HitLocation = Literal["Head", "Torso", "lArm", "rArm", "lLeg", "rLeg"]
LimbLocation = Literal["lArm", "rArm", "lLeg", "rLeg"]
StatName = Literal["ref", "int", "cool"]


class PosDTO(BaseModel):
    x: float = 0.0
    y: float = 0.0


class EncounterInitRequest(BaseModel):
    label: str = "init"
    reset_existing: bool = False
    seed: Optional[int] = None


class EncounterRuntimeResponse(BaseModel):
    encounter_id: str
    save_id: int
    state: Dict[str, Any]
    events_delta: List[Dict[str, Any]] = Field(default_factory=list)


class AddCombatantRequest(BaseModel):
    character_id: str
    position: PosDTO = Field(default_factory=PosDTO)
    combatant_id: Optional[str] = None
    # overrides передаём как dict, mapper сам разложит по CombatantOverrides
    overrides: Optional[Dict[str, Any]] = None
    label: str = "add"


class ApplyCommandRequest(BaseModel):
    command: Dict[str, Any]
    label: str = "cmd"


class AttackPreviewRequest(BaseModel):
    attack: AttackData


class GetEncounterStateResponse(BaseModel):
    encounter_id: str
    save_id: int
    state: Dict[str, Any]
    # combatant_id -> текущие штрафы от условий и ранений
    penalties: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


# ---- Character sheet (то, что храним в data_json) ----


class ArmorCoverageSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stopping_power: int = Field(ge=0)
    ablation: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _ablation_within_sp(self) -> "ArmorCoverageSpec":
        if self.ablation > self.stopping_power:
            raise ValueError("ablation cannot exceed stopping_power")
        return self


class ArmorSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    hardness: Literal["soft", "hard"] = "soft"
    equipped: bool = True
    coverage: Dict[HitLocation, ArmorCoverageSpec] = Field(default_factory=dict)


class CyberwareSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    kind: Literal["cyberlimb", "option"] = "cyberlimb"
    location: Optional[LimbLocation] = None
    equipped: bool = True

    structure_current: int = Field(default=0, ge=0)
    structure_max: int = Field(default=0, ge=0)
    disables_at: int = Field(default=0, ge=0)

    attached_to: Optional[str] = None
    sdp_bonus: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_kind(self) -> "CyberwareSpec":
        if self.kind == "cyberlimb" and self.location is None:
            raise ValueError("cyberlimb needs a location")
        if self.kind == "option" and self.attached_to is None:
            raise ValueError("option needs attached_to")
        if self.structure_current > self.structure_max:
            raise ValueError("structure_current cannot exceed structure_max")
        return self


class CharacterData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int = Field(default=1, ge=1)

    body: int = Field(default=5, ge=1, le=20)  # BT
    movement_allowance: int = Field(default=5, ge=0, le=30)  # MA
    damage: int = Field(default=0, ge=0, le=40)

    stun_save_mod: int = 0
    death_save_mod: int = 0
    poison_save_mod: int = 0

    stats: Dict[StatName, int] = Field(default_factory=dict)

    armor: List[ArmorSpec] = Field(default_factory=list)
    cyberware: List[CyberwareSpec] = Field(default_factory=list)

    # стартовые флаги (например, lost-left-arm из прошлой сессии)
    conditions: List[str] = Field(default_factory=list)
    fatigue_tier: Optional[str] = None
    stress_tier: Optional[str] = None

    @field_validator("stats")
    @classmethod
    def _stats_non_negative(cls, v: Dict[str, int]) -> Dict[str, int]:
        bad = sorted(k for k, x in v.items() if x < 0)
        if bad:
            raise ValueError(f"stats cannot be negative: {', '.join(bad)}")
        return v

    @field_validator("conditions")
    @classmethod
    def _carried_conditions(cls, v: List[str]) -> List[str]:
        for cid in v:
            check_carried_condition(cid)
        return v

    @field_validator("fatigue_tier")
    @classmethod
    def _fatigue_tier(cls, v: Optional[str]) -> Optional[str]:
        check_ladder_value("fatigue", v)
        return v

    @field_validator("stress_tier")
    @classmethod
    def _stress_tier(cls, v: Optional[str]) -> Optional[str]:
        check_ladder_value("stress", v)
        return v


# ---- API DTOs ----


class CharacterCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    data: CharacterData


class CharacterUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    data: Optional[CharacterData] = None


class CharacterOut(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    data: CharacterData
    created_at: datetime
    updated_at: datetime


class EncounterCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str


class EncounterOut(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


class EncounterSaveCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    label: Optional[str] = None
    schema_version: int = Field(default=1, ge=1)

    state: Dict[str, Any]  # сериализованный EncounterState (JSON)
    events: List[Dict[str, Any]] = Field(default_factory=list)  # лог событий для UI


class EncounterSaveOut(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    encounter_id: str
    label: Optional[str] = None
    schema_version: int = Field(default=1, ge=1)
    created_at: datetime


class EncounterSaveWithStateOut(EncounterSaveOut):
    state: Dict[str, Any]
    events: List[Dict[str, Any]] = Field(default_factory=list)
