from cpcombat import config
from cpcombat.core.engine.commands import StartCombat, TurnChange
from cpcombat.core.engine.dice import QueuedDiceEngine
from cpcombat.core.engine.rules.apply import apply_command
from cpcombat.core.engine.state import (
    ArmorCoverage,
    ArmorPiece,
    CombatantState,
    EncounterState,
)


def _state(*combatants, dice=()):
    state = EncounterState()
    for c in combatants:
        state.combatants[c.id] = c
    state.dice = QueuedDiceEngine(dice)
    state, _ = apply_command(state, StartCombat())
    return state


def _types(events):
    return [e["type"] for e in events]


def _start_turn(state, current, prior=None, **kwargs):
    return apply_command(
        state, TurnChange(prior_combatant_id=prior, current_combatant_id=current, **kwargs)
    )


def test_burning_three_turns_left_rolls_2d10():
    a = CombatantState(
        id="A", name="Torch", body=10, conditions={"burning"}, condition_timers={"burning": 3}
    )
    state = _state(a, dice=[4, 5])

    state, events = _start_turn(state, "A")

    assert state.dice.formulas == ["2d10"]
    assert a.damage == 9
    assert a.condition_timers["burning"] == 2
    assert "burning" in a.conditions
    assert _types(events) == [
        "TurnStarted",
        "TurnScratchReset",
        "ConditionDamageRolled",
        "DamageApplied",
        "WoundStateChanged",
        "ConditionTimerChanged",
    ]


def test_burning_two_turns_left_rolls_1d10():
    a = CombatantState(
        id="A", name="Torch", body=10, conditions={"burning"}, condition_timers={"burning": 2}
    )
    state = _state(a, dice=[7])

    state, _ = _start_turn(state, "A")

    assert state.dice.formulas == ["1d10"]
    assert a.damage == 7
    assert a.condition_timers["burning"] == 1


def test_burning_last_turn_rolls_1d6_and_expires():
    a = CombatantState(
        id="A", name="Torch", body=10, conditions={"burning"}, condition_timers={"burning": 1}
    )
    state = _state(a, dice=[3])

    state, events = _start_turn(state, "A")

    assert state.dice.formulas == ["1d6"]
    assert a.damage == 3
    assert "burning" not in a.conditions
    assert "burning" not in a.condition_timers
    assert _types(events)[-1] == "ConditionRemoved"


def test_acid_eats_armor_at_stored_location():
    sleeve = ArmorPiece(
        id="sleeve", name="Sleeve", coverage={"lArm": ArmorCoverage(stopping_power=10, ablation=8)}
    )
    a = CombatantState(
        id="A",
        name="Target",
        body=10,
        armor=[sleeve],
        conditions={"acid"},
        condition_timers={"acid": 3},
    )
    state = _state(a, dice=[4])
    # StartCombat сбрасывает scratch, поэтому локацию ставим после
    a.scratch.acid_location = "lArm"

    state, events = _start_turn(state, "A")

    cov = sleeve.coverage["lArm"]
    assert cov.stopping_power == 6
    assert cov.ablation == 6
    assert a.damage == 0
    assert a.condition_timers["acid"] == 2
    degraded = [e for e in events if e["type"] == "ArmorDegraded"][0]["payload"]
    assert degraded["stopping_power_before"] == 10
    assert degraded["stopping_power_after"] == 6


def test_acid_without_armor_burns_flesh_and_expires():
    a = CombatantState(
        id="A", name="Target", body=10, conditions={"acid"}, condition_timers={"acid": 1}
    )
    state = _state(a, dice=[4])

    state, _ = _start_turn(state, "A")

    # локация не задана -> Torso, брони нет
    assert a.damage == 4
    assert "acid" not in a.conditions
    assert a.scratch.acid_location is None


def test_timed_conditions_count_down():
    a = CombatantState(
        id="A", name="Target", conditions={"blinded"}, condition_timers={"blinded": 2}
    )
    state = _state(a)

    state, _ = _start_turn(state, "A")
    assert a.condition_timers["blinded"] == 1

    state, events = _start_turn(state, "A", prior="A")
    assert "blinded" not in a.conditions
    assert "ConditionRemoved" in _types(events)


def test_microwave_shock_expires_even_if_save_fails():
    a = CombatantState(
        id="A", name="Target", body=5, conditions={"shocked"}, condition_timers={"shocked": 1}
    )
    state = _state(a, dice=[10])

    state, events = _start_turn(state, "A")

    save = [e for e in events if e["type"] == "SaveRolled"][0]["payload"]
    assert save["success"] is False
    assert "shocked" not in a.conditions


def test_shocked_combatant_rolls_at_turn_start():
    a = CombatantState(id="A", name="Target", body=8, conditions={"shocked"})
    state = _state(a, dice=[2])

    state, events = _start_turn(state, "A")

    assert "shocked" not in a.conditions
    assert "SaveRolled" in _types(events)


def test_mortally_wounded_rolls_death_save_unless_stabilized():
    a = CombatantState(id="A", name="Dying", body=6, damage=16)
    state = _state(a, dice=[9])

    state, events = _start_turn(state, "A")

    # death threshold: 6 - 4 + 1 + 3 = 6
    save = [e for e in events if e["type"] == "SaveRolled"][0]["payload"]
    assert save["save"] == "death"
    assert save["threshold"] == 6
    assert "dead" in a.conditions

    b = CombatantState(id="B", name="Patched", body=6, damage=16, conditions={"stabilized"})
    state = _state(b)
    state, events = _start_turn(state, "B")
    assert "SaveRolled" not in _types(events)


def test_turn_end_clears_fast_draw_and_action_surge():
    a = CombatantState(id="A", name="Gunslinger", conditions={"fast-draw", "action-surge", "confused"})
    b = CombatantState(id="B", name="Next")
    state = _state(a, b)
    state.turn_owner_id = "A"

    state, events = _start_turn(state, "B", prior="A")

    assert a.conditions == {"confused"}
    assert state.turn_owner_id == "B"
    types = _types(events)
    assert types.index("TurnEnded") < types.index("TurnStarted")


def test_new_round_resets_initiative():
    a = CombatantState(id="A", name="A", initiative=14)
    b = CombatantState(id="B", name="B", initiative=9)
    state = _state(a, b)

    state, events = _start_turn(state, "A", prior="B", round=2, prior_round=1)

    assert state.round == 2
    assert a.initiative is None
    assert b.initiative is None
    assert _types(events)[:2] == ["RoundStarted", "InitiativeReset"]

    # тот же раунд -> инициатива не трогается
    a.initiative = 12
    state, events = _start_turn(state, "B", prior="A", round=2)
    assert a.initiative == 12
    assert "InitiativeReset" not in _types(events)


def test_turn_start_resets_scratch():
    a = CombatantState(id="A", name="A", position=(4.0, 2.0))
    state = _state(a)
    a.scratch.action_count = 2
    a.scratch.cumulative_distance = 12.0
    a.scratch.movement_action_registered = True

    state, _ = _start_turn(state, "A")

    assert a.scratch.action_count == 0
    assert a.scratch.cumulative_distance == 0.0
    assert a.scratch.movement_action_registered is False
    assert a.scratch.last_position == (4.0, 2.0)


def test_turn_change_from_non_gm_is_ignored():
    a = CombatantState(id="A", name="A", conditions={"burning"}, condition_timers={"burning": 3})
    state = _state(a)

    state, events = _start_turn(state, "A", role="player")

    assert events == []
    assert state.turn_owner_id is None
    assert a.condition_timers["burning"] == 3


def test_authoritative_role_is_configurable(monkeypatch):
    monkeypatch.setattr(config, "AUTHORITATIVE_ROLE", "host")
    a = CombatantState(id="A", name="A")
    state = _state(a)

    state, events = _start_turn(state, "A")
    assert events == []

    state, events = _start_turn(state, "A", role="host")
    assert state.turn_owner_id == "A"


def test_turn_change_requires_active_combat():
    state = EncounterState()
    state.combatants["A"] = CombatantState(id="A", name="A")

    state, events = _start_turn(state, "A")

    assert events[0]["type"] == "CommandRejected"
    assert events[0]["payload"]["code"] == "COMBAT_NOT_STARTED"
