from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from cpcombat.core.engine.state import EncounterState
from cpcombat.core.persistence.state_codec import (
    encounter_state_from_dict,
    encounter_state_to_dict,
)
from cpcombat.db.models import EncounterSave

log = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class SnapshotDecodeError(ValueError):
    pass


def decode_state(state: dict) -> EncounterState:
    try:
        return encounter_state_from_dict(state)
    except (TypeError, ValueError, AttributeError) as e:
        raise SnapshotDecodeError(f"Cannot restore encounter state: {e}") from e


def pack_save_payload(*, schema_version: int, state: dict, events: list[dict]) -> dict:
    return {
        "schema_version": int(schema_version),
        "state": state,
        "events": events,
    }


def unpack_save_payload(state_json: dict) -> Tuple[int, dict, list[dict]]:
    return (
        int(state_json["schema_version"]),
        state_json["state"],
        list(state_json.get("events") or []),
    )


def save_snapshot(
    db: Session,
    *,
    encounter_id: str,
    label: Optional[str],
    state: EncounterState,
    events_delta: List[dict],
) -> EncounterSave:
    row = EncounterSave(
        encounter_id=encounter_id,
        label=label,
        state_json=pack_save_payload(
            schema_version=SCHEMA_VERSION,
            state=encounter_state_to_dict(state),
            events=events_delta,
        ),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    log.debug(
        "snapshot %s saved for encounter %s (%d events)", row.id, encounter_id, len(events_delta)
    )
    return row


def load_latest_snapshot(
    db: Session, encounter_id: str
) -> Tuple[Optional[int], Optional[EncounterState], List[dict]]:
    row = (
        db.query(EncounterSave)
        .filter(EncounterSave.encounter_id == encounter_id)
        .order_by(EncounterSave.id.desc())
        .first()
    )
    if row is None:
        return None, None, []

    _, state_dict, events = unpack_save_payload(row.state_json)
    return row.id, decode_state(state_dict), events
