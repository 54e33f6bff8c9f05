from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cpcombat.api.schemas import EncounterCreate, EncounterOut
from cpcombat.db.deps import get_db
from cpcombat.db.models import Encounter

router = APIRouter(prefix="/encounters", tags=["encounters"])


def _to_out(e: Encounter) -> EncounterOut:
    return EncounterOut(
        id=e.id,
        name=e.name,
        created_at=e.created_at,
        updated_at=e.updated_at,
    )


@router.get("", response_model=list[EncounterOut])
def list_encounters(db: Session = Depends(get_db)):
    items = db.query(Encounter).order_by(Encounter.created_at.desc()).all()
    return [_to_out(e) for e in items]


@router.get("/{encounter_id}", response_model=EncounterOut)
def get_encounter(encounter_id: str, db: Session = Depends(get_db)):
    obj = db.get(Encounter, encounter_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Encounter not found")
    return _to_out(obj)


@router.post("", response_model=EncounterOut)
def create_encounter(payload: EncounterCreate, db: Session = Depends(get_db)):
    obj = Encounter(name=payload.name)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return _to_out(obj)


@router.delete("/{encounter_id}", status_code=204)
def delete_encounter(encounter_id: str, db: Session = Depends(get_db)):
    obj = db.get(Encounter, encounter_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Encounter not found")
    # снапшоты уходят каскадом
    db.delete(obj)
    db.commit()
