from cpcombat.core.engine.commands import RollDeathSave, RollPoisonSave, RollShockSave
from cpcombat.core.engine.dice import QueuedDiceEngine
from cpcombat.core.engine.rules.apply import apply_command
from cpcombat.core.engine.state import CombatantState, EncounterState


def _state(c, dice):
    state = EncounterState()
    state.combatants[c.id] = c
    state.dice = QueuedDiceEngine(dice)
    return state


def _save_payload(events):
    return [e for e in events if e["type"] == "SaveRolled"][0]["payload"]


def test_thresholds_follow_body_and_wound_state():
    c = CombatantState(id="A", name="A", body=6, damage=13)
    assert c.wound_state == 4
    assert c.stun_threshold == 3
    assert c.death_threshold == 6


def test_shock_save_success_and_failure():
    c = CombatantState(id="A", name="A", body=6)
    state = _state(c, [6, 7])

    state, events = apply_command(state, RollShockSave(combatant_id="A"))
    assert _save_payload(events)["success"] is True
    assert "shocked" not in c.conditions

    state, events = apply_command(state, RollShockSave(combatant_id="A"))
    assert _save_payload(events)["success"] is False
    assert "shocked" in c.conditions


def test_shock_save_modifiers():
    c = CombatantState(id="A", name="A", body=6, stun_save_mod=2)
    state = _state(c, [8, 3])

    state, events = apply_command(state, RollShockSave(combatant_id="A"))
    roll = _save_payload(events)["roll"]
    assert roll["total"] == 6
    assert "shocked" not in c.conditions

    # stun at -2: к броску +2
    state, events = apply_command(state, RollShockSave(combatant_id="A", penalty=2))
    assert _save_payload(events)["roll"]["total"] == 3
    assert "shocked" not in c.conditions


def test_successful_shock_save_clears_shocked():
    c = CombatantState(id="A", name="A", body=6, conditions={"shocked"})
    state = _state(c, [1])

    state, events = apply_command(state, RollShockSave(combatant_id="A"))

    assert "shocked" not in c.conditions
    assert [e["type"] for e in events] == ["SaveRolled", "ConditionRemoved"]


def test_death_save_failure_kills():
    c = CombatantState(id="A", name="A", body=6, damage=13, death_save_mod=1)
    state = _state(c, [5])

    state, events = apply_command(state, RollDeathSave(combatant_id="A"))

    payload = _save_payload(events)
    assert payload["roll"]["total"] == 6
    assert payload["threshold"] == 6
    assert "dead" in c.conditions


def test_poison_save_sets_and_clears_poisoned():
    c = CombatantState(id="A", name="A", body=6)
    state = _state(c, [9, 2])

    state, _ = apply_command(state, RollPoisonSave(combatant_id="A"))
    assert "poisoned" in c.conditions

    state, _ = apply_command(state, RollPoisonSave(combatant_id="A"))
    assert "poisoned" not in c.conditions
