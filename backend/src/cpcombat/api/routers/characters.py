from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cpcombat.api.schemas import CharacterCreate, CharacterData, CharacterOut, CharacterUpdate
from cpcombat.db.deps import get_db
from cpcombat.db.models import Character

router = APIRouter(prefix="/characters", tags=["characters"])


def _to_out(obj: Character) -> CharacterOut:
    return CharacterOut(
        id=obj.id,
        name=obj.name,
        data=CharacterData.model_validate(obj.data_json),
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


def _get_or_404(db: Session, character_id: str) -> Character:
    obj = db.get(Character, character_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Character not found")
    return obj


@router.get("", response_model=list[CharacterOut])
def list_characters(db: Session = Depends(get_db)):
    items = db.query(Character).order_by(Character.created_at.desc()).all()
    return [_to_out(c) for c in items]


@router.post("", response_model=CharacterOut)
def create_character(payload: CharacterCreate, db: Session = Depends(get_db)):
    obj = Character(
        name=payload.name,
        data_json=payload.data.model_dump(mode="json"),
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return _to_out(obj)


@router.get("/{character_id}", response_model=CharacterOut)
def get_character(character_id: str, db: Session = Depends(get_db)):
    return _to_out(_get_or_404(db, character_id))


@router.patch("/{character_id}", response_model=CharacterOut)
def patch_character(
    character_id: str, payload: CharacterUpdate, db: Session = Depends(get_db)
):
    obj = _get_or_404(db, character_id)

    if payload.name is not None:
        obj.name = payload.name
    if payload.data is not None:
        obj.data_json = payload.data.model_dump(mode="json")

    db.add(obj)
    db.commit()
    db.refresh(obj)
    return _to_out(obj)


@router.delete("/{character_id}", status_code=204)
def delete_character(character_id: str, db: Session = Depends(get_db)):
    obj = _get_or_404(db, character_id)
    db.delete(obj)
    db.commit()
