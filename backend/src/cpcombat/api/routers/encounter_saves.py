from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cpcombat.api.schemas import (
    EncounterSaveCreate,
    EncounterSaveOut,
    EncounterSaveWithStateOut,
)
from cpcombat.core.persistence.runtime_store import (
    SCHEMA_VERSION,
    SnapshotDecodeError,
    decode_state,
    save_snapshot,
    unpack_save_payload,
)
from cpcombat.db.deps import get_db
from cpcombat.db.models import Encounter, EncounterSave

log = logging.getLogger(__name__)

router = APIRouter(prefix="/encounters", tags=["encounter_saves"])


def _save_out(row: EncounterSave) -> EncounterSaveOut:
    schema_version, _state, _events = unpack_save_payload(row.state_json)
    return EncounterSaveOut(
        id=row.id,
        encounter_id=row.encounter_id,
        label=row.label,
        schema_version=schema_version,
        created_at=row.created_at,
    )


@router.post("/{encounter_id}/saves", response_model=EncounterSaveOut)
def create_save(
    encounter_id: str, payload: EncounterSaveCreate, db: Session = Depends(get_db)
):
    """Ручной снапшот (импорт боя из файла). Становится текущим состоянием runtime."""
    if not db.get(Encounter, encounter_id):
        raise HTTPException(status_code=404, detail="Encounter not found")

    if payload.schema_version != SCHEMA_VERSION:
        raise HTTPException(
            status_code=422,
            detail=f"Unsupported schema_version {payload.schema_version}, expected {SCHEMA_VERSION}",
        )

    try:
        state_obj = decode_state(payload.state)
    except SnapshotDecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))

    row = save_snapshot(
        db,
        encounter_id=encounter_id,
        label=payload.label,
        state=state_obj,
        events_delta=payload.events,
    )
    log.info("manual snapshot %s stored for encounter %s", row.id, encounter_id)
    return _save_out(row)


@router.get("/{encounter_id}/saves", response_model=list[EncounterSaveOut])
def list_saves(encounter_id: str, db: Session = Depends(get_db)):
    if not db.get(Encounter, encounter_id):
        raise HTTPException(status_code=404, detail="Encounter not found")

    rows = (
        db.query(EncounterSave)
        .filter(EncounterSave.encounter_id == encounter_id)
        .order_by(EncounterSave.id.desc())
        .all()
    )
    return [_save_out(r) for r in rows]


@router.get("/{encounter_id}/saves/{save_id}", response_model=EncounterSaveWithStateOut)
def load_save(encounter_id: str, save_id: int, db: Session = Depends(get_db)):
    row = db.get(EncounterSave, save_id)
    if not row or row.encounter_id != encounter_id:
        raise HTTPException(status_code=404, detail="Save not found")

    _schema_version, state, events = unpack_save_payload(row.state_json)
    return EncounterSaveWithStateOut(
        **_save_out(row).model_dump(),
        state=state,
        events=events,
    )
