import pytest

from cpcombat.core.engine.commands import AttackData, ResolveAttack
from cpcombat.core.engine.dice import QueuedDiceEngine
from cpcombat.core.engine.rules.apply import apply_command
from cpcombat.core.engine.rules.damage import apply_target_plan, plan_target, validate_hits
from cpcombat.core.engine.state import (
    ArmorCoverage,
    ArmorPiece,
    CombatantState,
    CyberwareItem,
    EncounterState,
)


def _state(*combatants, dice=()):
    state = EncounterState()
    for c in combatants:
        state.combatants[c.id] = c
    state.dice = QueuedDiceEngine(dice)
    return state


def _attack(attack_id="atk-1", target_ids=("B",), **kwargs):
    return ResolveAttack(
        attack=AttackData(attack_id=attack_id, target_ids=list(target_ids), **kwargs)
    )


def _types(events):
    return [e["type"] for e in events]


def _saves(events, kind):
    return [e for e in events if e["type"] == "SaveRolled" and e["payload"]["save"] == kind]


def test_ablation_counts_penetrating_hits_and_caps_at_max():
    vest = ArmorPiece(
        id="vest", name="Kevlar Vest", coverage={"Torso": ArmorCoverage(stopping_power=5, ablation=4)}
    )
    target = CombatantState(id="B", name="Target", body=10, armor=[vest])
    state = _state(target, dice=[1])

    state, events = apply_command(state, _attack(per_location_hits={"Torso": [6, 6, 6]}))

    assert vest.coverage["Torso"].ablation == 5
    assert vest.coverage["Torso"].current_sp == 0
    ablated = [e for e in events if e["type"] == "ArmorAblated"]
    assert len(ablated) == 1
    assert ablated[0]["payload"]["amount"] == 1
    # 3 попадания по (6 - 1 - 4) = 1
    assert target.damage == 3


def test_double_commit_applies_once():
    target = CombatantState(id="B", name="Target", body=10)
    state = _state(target, dice=[1])
    cmd = _attack(per_location_hits={"Torso": [10]})

    state, ev1 = apply_command(state, cmd)
    assert target.damage == 6
    assert state.attack_records["atk-1"].applied is True

    state, ev2 = apply_command(state, cmd)
    assert ev2 == []
    assert target.damage == 6
    assert state.dice.formulas == ["1d10"]


def test_limb_loss_and_mortal_crossing_roll_one_death_save():
    target = CombatantState(id="B", name="Target", body=5, damage=4)
    state = _state(target, dice=[1, 1])

    state, events = apply_command(state, _attack(per_location_hits={"lArm": [14]}))

    # 14 - BTM 2 = 12 по руке: отрыв; 4 + 12 = 16 -> Mortal 0
    assert target.damage == 16
    assert target.wound_state == 4
    assert "lost-left-arm" in target.conditions

    deaths = _saves(events, "death")
    assert len(deaths) == 1
    assert deaths[0]["payload"]["reason"] == "limb_severed,mortal_wound"
    assert len(_saves(events, "shock")) == 1
    assert "dead" not in target.conditions


def test_event_order_within_target():
    target = CombatantState(id="B", name="Target", body=5)
    state = _state(target, dice=[1])

    state, events = apply_command(state, _attack(per_location_hits={"Torso": [10]}))

    assert _types(events) == [
        "AttackResolutionStarted",
        "LocationDamageResolved",
        "DamageApplied",
        "WoundStateChanged",
        "SaveRolled",
    ]
    seqs = [e["seq"] for e in events]
    assert seqs == sorted(seqs)
    wound = events[3]["payload"]
    assert wound["before"] == 0
    assert wound["after"] == 2
    assert wound["condition"] == "seriously-wounded"


def test_cyberlimb_destroyed_with_options():
    limb = CyberwareItem(
        id="limb",
        name="Cyberarm",
        location="rArm",
        structure_current=5,
        structure_max=20,
        disables_at=10,
    )
    option = CyberwareItem(id="opt-1", name="Popup Gun", kind="option", attached_to="limb")
    target = CombatantState(id="B", name="Target", body=5, cyberware={"limb": limb, "opt-1": option})
    state = _state(target, dice=[1, 1])

    state, events = apply_command(state, _attack(per_location_hits={"rArm": [8]}))

    assert target.cyberware == {}
    assert target.damage == 0
    assert "lost-right-arm" in target.conditions

    destroyed = [e for e in events if e["type"] == "CyberlimbDestroyed"]
    assert destroyed[0]["payload"]["removed_option_ids"] == ["opt-1"]

    deaths = _saves(events, "death")
    assert len(deaths) == 1
    assert deaths[0]["payload"]["reason"] == "cyberlimb_destroyed"


def test_cyberlimb_reports_disabled():
    limb = CyberwareItem(
        id="limb",
        name="Cyberleg",
        location="lLeg",
        structure_current=20,
        structure_max=20,
        disables_at=10,
    )
    target = CombatantState(id="B", name="Target", body=5, cyberware={"limb": limb})
    state = _state(target, dice=[1])

    state, events = apply_command(state, _attack(per_location_hits={"lLeg": [12]}))

    assert limb.structure_current == 8
    hit = [e for e in events if e["type"] == "StructureDamaged"][0]
    assert hit["payload"]["disabled"] is True
    assert "lost-left-leg" not in target.conditions


def test_cyberlimb_blocked_hit_is_not_damage():
    limb = CyberwareItem(
        id="limb",
        name="Cyberarm",
        location="lArm",
        structure_current=20,
        structure_max=20,
        disables_at=10,
    )
    sleeve = ArmorPiece(id="sleeve", name="Sleeve", coverage={"lArm": ArmorCoverage(stopping_power=5)})
    target = CombatantState(id="B", name="Target", body=10, cyberware={"limb": limb}, armor=[sleeve])
    state = _state(target)

    state, events = apply_command(state, _attack(per_location_hits={"lArm": [3]}))

    assert limb.structure_current == 20
    assert sleeve.coverage["lArm"].ablation == 0
    assert _types(events) == ["AttackResolutionStarted", "LocationDamageResolved"]


def test_missing_cyberlimb_drops_structural_damage():
    limb = CyberwareItem(
        id="limb",
        name="Cyberarm",
        location="lArm",
        structure_current=20,
        structure_max=20,
        disables_at=10,
    )
    target = CombatantState(id="B", name="Target", body=10, cyberware={"limb": limb})
    state = _state(target)
    attack = AttackData(attack_id="atk-1", target_ids=["B"], per_location_hits={"lArm": [10]})

    plan = plan_target(target, validate_hits(attack.per_location_hits), attack)
    assert plan.structural_damage == 10

    # конечность пропала между расчётом и применением
    del target.cyberware["limb"]
    events = apply_target_plan(state, target, plan, attack)

    dropped = [e for e in events if e["type"] == "StructuralDamageDropped"]
    assert dropped[0]["payload"]["amount"] == 10
    assert target.damage == 0
    assert not _saves(events, "shock")


def test_unknown_target_is_skipped():
    target = CombatantState(id="B", name="Target", body=10)
    state = _state(target, dice=[1])

    state, events = apply_command(
        state, _attack(target_ids=("ghost", "B"), per_location_hits={"Torso": [10]})
    )

    skipped = [e for e in events if e["type"] == "TargetSkipped"]
    assert skipped[0]["payload"]["target_id"] == "ghost"
    assert target.damage == 6


def test_damage_removes_stabilized_and_skips_shock_when_already_shocked():
    target = CombatantState(id="B", name="Target", body=10, conditions={"stabilized", "shocked"})
    state = _state(target)

    state, events = apply_command(state, _attack(per_location_hits={"Torso": [10]}))

    assert "stabilized" not in target.conditions
    assert not _saves(events, "shock")


def test_failed_shock_save_applies_shocked():
    target = CombatantState(id="B", name="Target", body=5)
    state = _state(target, dice=[9])

    state, events = apply_command(state, _attack(per_location_hits={"Torso": [10]}))

    # порог 5 - 2 + 1 = 4
    shock = _saves(events, "shock")[0]["payload"]
    assert shock["threshold"] == 4
    assert shock["success"] is False
    assert "shocked" in target.conditions


def test_damage_is_clamped_at_forty():
    target = CombatantState(id="B", name="Target", body=2, damage=38)
    state = _state(target, dice=[1])

    state, _ = apply_command(state, _attack(per_location_hits={"Torso": [20]}))

    assert target.damage == 40


def test_malformed_hits_reject_the_whole_attack():
    target = CombatantState(id="B", name="Target", body=10)
    state = _state(target)

    for hits in ({"Chest": [5]}, {"Torso": [-1]}, {"Torso": ["5"]}, {"Torso": [2.5]}):
        state, events = apply_command(state, _attack(per_location_hits=hits))
        assert _types(events) == ["CommandRejected"]
        assert events[0]["payload"]["code"] == "MALFORMED_DAMAGE"

    assert target.damage == 0
    assert state.attack_records == {}


def test_exotic_effect_applies_without_damage():
    target = CombatantState(id="B", name="Target", body=10)
    state = _state(target)

    state, events = apply_command(
        state, _attack(per_location_hits={"Torso": [0]}, exotic_effect="confusion")
    )

    assert "confused" in target.conditions
    assert _types(events)[-1] == "ExoticEffectApplied"


@pytest.mark.parametrize("raw,severed", [(11, False), (12, True)])
def test_limb_severs_from_eight_wound_damage(raw, severed):
    # BT 10 -> BTM 4: 11 -> 7, 12 -> 8 по руке
    target = CombatantState(id="B", name="Target", body=10)
    state = _state(target, dice=[1, 1])

    state, events = apply_command(state, _attack(per_location_hits={"lArm": [raw]}))

    assert target.damage == raw - 4
    assert ("lost-left-arm" in target.conditions) is severed

    deaths = _saves(events, "death")
    if severed:
        assert len(deaths) == 1
        assert deaths[0]["payload"]["reason"] == "limb_severed"
        assert state.dice.formulas == ["1d10", "1d10"]
    else:
        assert deaths == []
        assert state.dice.formulas == ["1d10"]


@pytest.mark.parametrize("location,raw", [("Torso", 12), ("Head", 6)])
def test_head_and_torso_are_never_severed(location, raw):
    target = CombatantState(id="B", name="Target", body=10)
    state = _state(target, dice=[1])

    state, events = apply_command(state, _attack(per_location_hits={location: [raw]}))

    assert target.damage == 8
    assert not any(c.startswith("lost-") for c in target.conditions)
    assert _saves(events, "death") == []
    assert len(_saves(events, "shock")) == 1


def test_already_mortal_target_does_not_cross_again():
    target = CombatantState(id="B", name="Target", body=10, damage=16)
    assert target.wound_state == 4
    state = _state(target, dice=[1])

    state, events = apply_command(state, _attack(per_location_hits={"Torso": [10]}))

    assert target.damage == 22
    assert target.wound_state == 6
    assert _saves(events, "death") == []
    assert state.dice.formulas == ["1d10"]
