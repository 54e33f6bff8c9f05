from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from cpcombat.api.schemas import (
    AddCombatantRequest,
    ApplyCommandRequest,
    AttackPreviewRequest,
    EncounterInitRequest,
    EncounterRuntimeResponse,
    GetEncounterStateResponse,
)
from cpcombat.core.adapters import combatant_from_character, overrides_from_dict
from cpcombat.core.engine.commands import Command
from cpcombat.core.engine.conditions import penalty_summary
from cpcombat.core.engine.rules.apply import apply_command as engine_apply
from cpcombat.core.engine.rules.damage import AttackPreview, MalformedAttackError, preview_attack
from cpcombat.core.engine.state import EncounterState
from cpcombat.core.persistence.runtime_store import load_latest_snapshot, save_snapshot
from cpcombat.core.persistence.state_codec import encounter_state_to_dict
from cpcombat.db.deps import get_db
from cpcombat.db.models import Character, Encounter

log = logging.getLogger(__name__)

router = APIRouter(prefix="/encounters", tags=["encounter-runtime"])

_command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def _require_encounter(db: Session, encounter_id: str) -> Encounter:
    enc = db.get(Encounter, encounter_id)
    if not enc:
        raise HTTPException(status_code=404, detail="Encounter not found")
    return enc


def _require_state(db: Session, encounter_id: str) -> tuple[int, EncounterState]:
    save_id, state_obj, _events = load_latest_snapshot(db, encounter_id)
    if save_id is None or state_obj is None:
        raise HTTPException(
            status_code=409,
            detail="Encounter is not initialized. Call state:init first.",
        )
    return save_id, state_obj


@router.post("/{encounter_id}/state:init", response_model=EncounterRuntimeResponse)
def init_state(
    encounter_id: str, req: EncounterInitRequest, db: Session = Depends(get_db)
):
    _require_encounter(db, encounter_id)

    latest_id, latest_state, _latest_events = load_latest_snapshot(db, encounter_id)
    if latest_id is not None and latest_state is not None and not req.reset_existing:
        return EncounterRuntimeResponse(
            encounter_id=encounter_id,
            save_id=latest_id,
            state=encounter_state_to_dict(latest_state),
            events_delta=[],
        )

    state_obj = EncounterState()
    if req.seed is not None:
        state_obj.with_seed(req.seed)

    row = save_snapshot(
        db,
        encounter_id=encounter_id,
        label=req.label,
        state=state_obj,
        events_delta=[],
    )
    log.info("encounter %s initialized (save %s)", encounter_id, row.id)

    return EncounterRuntimeResponse(
        encounter_id=encounter_id,
        save_id=row.id,
        state=encounter_state_to_dict(state_obj),
        events_delta=[],
    )


@router.post("/{encounter_id}/combatants:add", response_model=EncounterRuntimeResponse)
def add_combatant(
    encounter_id: str, req: AddCombatantRequest, db: Session = Depends(get_db)
):
    _require_encounter(db, encounter_id)
    _save_id, state_obj = _require_state(db, encounter_id)

    character = db.get(Character, req.character_id)
    if not character:
        raise HTTPException(status_code=404, detail="Character not found")

    combatant_id = req.combatant_id or f"{req.character_id}-{uuid.uuid4().hex[:8]}"
    if combatant_id in state_obj.combatants:
        raise HTTPException(
            status_code=409, detail="combatant_id already exists in encounter"
        )

    try:
        overrides = overrides_from_dict(req.overrides)
        combatant = combatant_from_character(
            character.data_json,
            combatant_id=combatant_id,
            name=character.name,
            position=(req.position.x, req.position.y),
            overrides=overrides,
        )
    except (ValueError, TypeError) as e:
        # pydantic.ValidationError тоже ValueError
        raise HTTPException(status_code=422, detail=f"Cannot build combatant: {e}")

    state_obj.combatants[combatant_id] = combatant

    events_delta = [
        {
            "type": "CombatantAdded",
            "combatant_id": combatant_id,
            "character_id": req.character_id,
        }
    ]

    row = save_snapshot(
        db,
        encounter_id=encounter_id,
        label=req.label,
        state=state_obj,
        events_delta=events_delta,
    )

    return EncounterRuntimeResponse(
        encounter_id=encounter_id,
        save_id=row.id,
        state=encounter_state_to_dict(state_obj),
        events_delta=events_delta,
    )


@router.post("/{encounter_id}/commands:apply", response_model=EncounterRuntimeResponse)
def apply_command(
    encounter_id: str, req: ApplyCommandRequest, db: Session = Depends(get_db)
):
    _require_encounter(db, encounter_id)
    save_id, state_obj = _require_state(db, encounter_id)

    try:
        cmd_obj = _command_adapter.validate_python(req.command)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Invalid command payload",
                "errors": e.errors(include_url=False, include_context=False),
            },
        )

    new_state, events_delta = engine_apply(state_obj, cmd_obj)

    if len(events_delta) == 1 and events_delta[0]["type"] == "CommandRejected":
        # отклонённая команда не пишет снапшот
        raise HTTPException(status_code=422, detail=events_delta[0]["payload"])

    if not events_delta:
        # no-op (повторный commit, смена хода от не-GM): новый снапшот не нужен
        return EncounterRuntimeResponse(
            encounter_id=encounter_id,
            save_id=save_id,
            state=encounter_state_to_dict(new_state),
            events_delta=[],
        )

    row = save_snapshot(
        db,
        encounter_id=encounter_id,
        label=req.label,
        state=new_state,
        events_delta=events_delta,
    )

    return EncounterRuntimeResponse(
        encounter_id=encounter_id,
        save_id=row.id,
        state=encounter_state_to_dict(new_state),
        events_delta=events_delta,
    )


@router.post("/{encounter_id}/attacks:preview", response_model=AttackPreview)
def preview(
    encounter_id: str, req: AttackPreviewRequest, db: Session = Depends(get_db)
):
    _require_encounter(db, encounter_id)
    _save_id, state_obj = _require_state(db, encounter_id)

    try:
        return preview_attack(state_obj, req.attack)
    except MalformedAttackError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{encounter_id}/state", response_model=GetEncounterStateResponse)
def get_state(encounter_id: str, db: Session = Depends(get_db)):
    _require_encounter(db, encounter_id)

    save_id, state_obj, _events = load_latest_snapshot(db, encounter_id)
    if save_id is None or state_obj is None:
        raise HTTPException(status_code=404, detail="No saved state for encounter")

    return GetEncounterStateResponse(
        encounter_id=encounter_id,
        save_id=save_id,
        state=encounter_state_to_dict(state_obj),
        penalties={cid: penalty_summary(c) for cid, c in state_obj.combatants.items()},
    )
