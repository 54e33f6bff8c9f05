from random import Random

import pytest

from cpcombat.core.engine.dice import QueuedDiceEngine, RandomDiceEngine, parse_dice


def test_parse_dice():
    assert parse_dice("2d10") == (2, 10, 0)
    assert parse_dice("1d6 + 2") == (1, 6, 2)
    assert parse_dice("3d6-1") == (3, 6, -1)

    for bad in ("d6", "2x10", "0d6", ""):
        with pytest.raises(ValueError):
            parse_dice(bad)


def test_random_engine_is_seeded():
    a = RandomDiceEngine(Random(7))
    b = RandomDiceEngine(Random(7))
    assert [a.roll("2d10").dice for _ in range(3)] == [b.roll("2d10").dice for _ in range(3)]

    roll = a.roll("1d10+3", kind="save")
    assert roll.kind == "save"
    assert roll.total == roll.nat + 3
    assert roll.mods[0].name == "flat_mod"


def test_queued_engine():
    dice = QueuedDiceEngine([4, 5, 6])

    roll = dice.roll("2d10")
    assert roll.dice == [4, 5]
    assert roll.total == 9
    assert roll.nat is None

    with pytest.raises(ValueError):
        dice.roll("1d4")  # 6 не влезает в d4

    with pytest.raises(ValueError):
        dice.roll("1d10")
    assert dice.formulas == ["2d10"]
