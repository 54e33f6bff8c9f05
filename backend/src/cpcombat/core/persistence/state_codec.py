from __future__ import annotations

import inspect
from dataclasses import asdict, fields, is_dataclass
from random import Random
from typing import Any, Optional, Type, TypeVar, cast

from cpcombat.core.engine.state import (
    ArmorCoverage,
    ArmorPiece,
    AttackRecord,
    CombatantState,
    CombatScratch,
    CyberwareItem,
    EncounterState,
    Pos,
)

TModel = TypeVar("TModel")

# не сериализуем: rng уходит отдельно как rng_state, dice подставляется снаружи
_RUNTIME_FIELDS = ("rng", "dice")


# ---------- универсальные helpers ----------


def _build_model(model_cls: Type[TModel], data: dict[str, Any]) -> TModel:
    """Создать dataclass, фильтруя kwargs по сигнатуре (старые снапшоты могут нести лишние ключи)."""
    params = inspect.signature(model_cls).parameters
    allowed = {
        name
        for name, p in params.items()
        if p.kind
        in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    }
    filtered = {k: v for k, v in data.items() if k in allowed}
    return cast(TModel, model_cls(**filtered))


def _jsonable(v: Any) -> Any:
    """Привести значение к JSON-дружелюбному виду (set->list, tuple->list, dataclass/pydantic->dict)."""
    if v is None:
        return None
    if isinstance(v, (str, int, float, bool)):
        return v
    if isinstance(v, set):
        return sorted(_jsonable(x) for x in v)
    if isinstance(v, (tuple, list)):
        return [_jsonable(x) for x in v]
    if isinstance(v, dict):
        return {str(k): _jsonable(val) for k, val in v.items()}

    md = getattr(v, "model_dump", None)
    if callable(md):
        return _jsonable(md(mode="json"))

    if is_dataclass(v) and not isinstance(v, type):
        # asdict принимает только ИНСТАНС dataclass, не класс
        return _jsonable(asdict(cast(Any, v)))

    raise TypeError(f"Cannot serialize {type(v).__name__}")


def _as_set(v: Any) -> set[str]:
    if v is None:
        return set()
    if isinstance(v, (set, list, tuple)):
        return set(str(x) for x in v)
    return {str(v)}


def _as_pos(v: Any) -> Pos:
    if isinstance(v, (tuple, list)) and len(v) == 2:
        return (float(v[0]), float(v[1]))
    if isinstance(v, dict) and "x" in v and "y" in v:
        return (float(v["x"]), float(v["y"]))
    return (0.0, 0.0)


def _as_opt_pos(v: Any) -> Optional[Pos]:
    return None if v is None else _as_pos(v)


# ---------- Combatant codec ----------


def combatant_to_dict(c: CombatantState) -> dict[str, Any]:
    return cast(dict[str, Any], _jsonable(c))


def _armor_from_dict(d: dict[str, Any]) -> ArmorPiece:
    dd = dict(d)
    coverage = dd.get("coverage") or {}
    dd["coverage"] = {
        str(loc): _build_model(ArmorCoverage, cov)
        for loc, cov in coverage.items()
        if isinstance(cov, dict)
    }
    return _build_model(ArmorPiece, dd)


def combatant_from_dict(d: dict[str, Any]) -> CombatantState:
    dd = dict(d)

    dd["conditions"] = _as_set(dd.get("conditions"))
    dd["position"] = _as_pos(dd.get("position"))
    dd["condition_timers"] = {
        str(k): int(v) for k, v in (dd.get("condition_timers") or {}).items()
    }
    dd["stats"] = {str(k): int(v) for k, v in (dd.get("stats") or {}).items()}

    dd["armor"] = [_armor_from_dict(a) for a in (dd.get("armor") or []) if isinstance(a, dict)]
    dd["cyberware"] = {
        str(iid): _build_model(CyberwareItem, item)
        for iid, item in (dd.get("cyberware") or {}).items()
        if isinstance(item, dict)
    }

    scratch = dict(dd.get("scratch") or {})
    scratch["last_position"] = _as_opt_pos(scratch.get("last_position"))
    dd["scratch"] = _build_model(CombatScratch, scratch)

    return _build_model(CombatantState, dd)


# ---------- EncounterState codec ----------


def encounter_state_to_dict(state: EncounterState) -> dict[str, Any]:
    """
    Сериализуем EncounterState так, чтобы можно было восстановить объект и продолжить бой.
    Важно: сохраняем rng_state.
    """
    base: dict[str, Any] = {
        f.name: _jsonable(getattr(state, f.name))
        for f in fields(state)
        if f.name not in _RUNTIME_FIELDS
    }
    # rng state (чтобы броски продолжались корректно)
    base["rng_state"] = _jsonable(state.rng.getstate())
    return base


def _rng_state_from_json(v: Any) -> tuple:
    # getstate() -> (version, tuple[int, ...], gauss_next)
    version, internal, gauss_next = v
    return (int(version), tuple(int(x) for x in internal), gauss_next)


def encounter_state_from_dict(d: dict[str, Any]) -> EncounterState:
    """
    Восстанавливаем EncounterState объект из dict снапшота.
    """
    dd = dict(d)
    rng_state = dd.pop("rng_state", None)
    for name in _RUNTIME_FIELDS:
        dd.pop(name, None)

    dd["combatants"] = {
        str(cid): combatant_from_dict(cdict)
        for cid, cdict in (dd.get("combatants") or {}).items()
        if isinstance(cdict, dict)
    }
    dd["attack_records"] = {
        str(aid): _build_model(AttackRecord, rec)
        for aid, rec in (dd.get("attack_records") or {}).items()
        if isinstance(rec, dict)
    }

    st = _build_model(EncounterState, dd)
    st.rng = Random(st.rng_seed)
    if rng_state is not None:
        st.rng.setstate(_rng_state_from_json(rng_state))
    return st
