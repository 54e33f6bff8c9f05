from cpcombat.core.engine.rules.armor import (
    effective_sp,
    location_hardness,
    location_sp,
    penetrate,
    resolve_hit,
    route_damage,
    stack_armor_sp,
)
from cpcombat.core.engine.state import ArmorCoverage, ArmorPiece, CombatantState


def _hit(
    c,
    raw,
    *,
    location="Torso",
    base_sp=0,
    hardness="soft",
    melee="none",
    ammo="standard",
    cyberlimb_active=False,
):
    return resolve_hit(
        c,
        raw=raw,
        location=location,
        base_sp=base_sp,
        hardness=hardness,
        melee=melee,
        ammo=ammo,
        cyberlimb_active=cyberlimb_active,
    )


def test_plain_hit():
    c = CombatantState(id="A", name="Solo", body=5)  # BTM 2
    hb = _hit(c, 10, base_sp=3)
    assert hb.effective_sp == 3
    assert hb.penetrating is True
    assert hb.wound_damage == 5
    assert hb.structural_damage == 0


def test_edged_halves_soft_armor_only():
    c = CombatantState(id="A", name="Solo", body=5)
    soft = _hit(c, 10, base_sp=6, melee="edged")
    assert soft.effective_sp == 3
    assert soft.wound_damage == 5  # 10 - 3 - 2

    hard = _hit(c, 10, base_sp=6, hardness="hard", melee="edged")
    assert hard.effective_sp == 6
    assert hard.wound_damage == 2


def test_rubber_slug_vs_hard_armor_is_always_zero():
    c = CombatantState(id="A", name="Solo", body=2)
    for raw in (1, 10, 50):
        hb = _hit(c, raw, base_sp=4, hardness="hard", ammo="rubberSlug")
        assert hb.wound_damage == 0
        assert hb.penetrating is False


def test_rubber_slug_vs_soft_caps_at_one():
    c = CombatantState(id="A", name="Solo", body=5)
    assert _hit(c, 20, base_sp=2, ammo="rubberSlug").wound_damage == 1
    assert _hit(c, 20, base_sp=0, ammo="rubberSlug").wound_damage == 1
    # урон не прошёл броню
    assert _hit(c, 2, base_sp=2, ammo="rubberSlug").wound_damage == 0


def test_rubber_slug_is_not_doubled_on_head():
    c = CombatantState(id="A", name="Solo", body=2)
    hb = _hit(c, 20, location="Head", base_sp=2, ammo="rubberSlug")
    assert hb.after_head == 1
    assert hb.wound_damage == 1


def test_head_hit_doubles_before_body_modifier():
    c = CombatantState(id="A", name="Solo", body=2)  # BTM 0
    hb = _hit(c, 10, location="Head")
    assert hb.after_armor == 10
    assert hb.after_head == 20
    assert hb.wound_damage == 20

    tough = CombatantState(id="B", name="Borg", body=10)  # BTM 4
    assert _hit(tough, 10, location="Head").wound_damage == 16


def test_cyberlimb_gets_structure_damage_without_btm_or_minimum():
    c = CombatantState(id="A", name="Solo", body=10)
    blocked = _hit(c, 3, location="lArm", base_sp=5, cyberlimb_active=True)
    assert blocked.structural_damage == 0
    assert blocked.wound_damage == 0

    through = _hit(c, 8, location="lArm", base_sp=5, cyberlimb_active=True)
    assert through.structural_damage == 3
    assert through.wound_damage == 0


def test_route_damage_floor_to_one():
    assert route_damage(0, btm=3, cyberlimb_active=False) == (0, 0)
    assert route_damage(2, btm=4, cyberlimb_active=False) == (1, 0)
    assert route_damage(9, btm=4, cyberlimb_active=False) == (5, 0)
    assert route_damage(2, btm=4, cyberlimb_active=True) == (0, 2)


def test_melee_sp_scaling():
    assert effective_sp(9, melee="monoblade", ammo="standard", hardness="soft") == 3
    assert effective_sp(9, melee="monoblade", ammo="standard", hardness="hard") == 6
    assert effective_sp(9, melee="spike", ammo="standard", hardness="hard") == 4
    assert effective_sp(9, melee="blunt", ammo="standard", hardness="soft") == 9


def test_spike_halves_damage_after_armor():
    sp, after_armor, penetrating, _ = penetrate(
        14, base_sp=9, location="Torso", melee="spike", ammo="standard", hardness="soft"
    )
    assert sp == 4
    assert penetrating is True
    assert after_armor == 5  # (14 - 4) // 2


def test_armor_piercing_halves_sp_and_damage():
    sp, after_armor, _, _ = penetrate(
        15, base_sp=10, location="Torso", melee="none", ammo="armorPiercing", hardness="soft"
    )
    assert sp == 5
    assert after_armor == 5


def test_hollow_point_doubles_sp_then_amplifies_damage():
    sp, after_armor, penetrating, _ = penetrate(
        30, base_sp=10, location="Torso", melee="none", ammo="hollowPoint", hardness="soft"
    )
    assert sp == 20
    assert penetrating is True
    assert after_armor == 15

    _, stopped, penetrating, _ = penetrate(
        15, base_sp=10, location="Torso", melee="none", ammo="hollowPoint", hardness="soft"
    )
    assert stopped == 0
    assert penetrating is False


def test_layer_stacking():
    assert stack_armor_sp(0, 10) == 10
    assert stack_armor_sp(10, 10) == 15
    assert stack_armor_sp(20, 10) == 23
    assert stack_armor_sp(14, 20) == 24
    assert stack_armor_sp(30, 2) == 30


def test_location_sp_uses_current_sp_of_equipped_layers():
    jacket = ArmorPiece(
        id="jacket",
        name="Armor Jacket",
        coverage={"Torso": ArmorCoverage(stopping_power=14), "lArm": ArmorCoverage(14)},
    )
    vest = ArmorPiece(
        id="vest",
        name="Metalgear Vest",
        hardness="hard",
        coverage={"Torso": ArmorCoverage(stopping_power=20, ablation=2)},
    )
    spare = ArmorPiece(
        id="spare",
        name="Spare Vest",
        equipped=False,
        coverage={"Torso": ArmorCoverage(stopping_power=30)},
    )
    c = CombatantState(id="A", name="Solo", armor=[jacket, vest, spare])

    assert location_sp(c, "Torso") == 23  # 14 и 18 -> разница 4 -> +5
    assert location_sp(c, "lArm") == 14
    assert location_sp(c, "Head") == 0

    assert location_hardness(c, "Torso") == "hard"
    assert location_hardness(c, "lArm") == "soft"
