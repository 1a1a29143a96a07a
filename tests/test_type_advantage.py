import pytest

from app.core.enums import BeastType
from app.core.type_advantage import (
    TYPE_ADVANTAGE_MULTIPLIER,
    TYPE_ADVANTAGES,
    get_type_multiplier,
    has_type_advantage,
)
from app.services.battle import BattleService


def test_every_type_beats_exactly_two_others() -> None:
    assert set(TYPE_ADVANTAGES) == set(BeastType)
    for attacker, beats in TYPE_ADVANTAGES.items():
        assert len(beats) == 2
        assert attacker not in beats


@pytest.mark.parametrize(
    ("attacker", "defender"),
    [
        (BeastType.IGNEOUS, BeastType.SEDIMENTARY),
        (BeastType.IGNEOUS, BeastType.FOSSIL),
        (BeastType.METAMORPHIC, BeastType.JEWEL),
        (BeastType.ORE, BeastType.METAMORPHIC),
        (BeastType.METAL, BeastType.CRYSTAL),
        (BeastType.CRYSTAL, BeastType.IGNEOUS),
        (BeastType.FOSSIL, BeastType.ORE),
    ],
)
def test_advantage_edges(attacker: BeastType, defender: BeastType) -> None:
    assert has_type_advantage(attacker, defender)
    assert get_type_multiplier(attacker, defender) == TYPE_ADVANTAGE_MULTIPLIER


def test_relation_is_directed_and_not_transitive() -> None:
    assert has_type_advantage(BeastType.IGNEOUS, BeastType.FOSSIL)
    assert has_type_advantage(BeastType.FOSSIL, BeastType.ORE)
    assert not has_type_advantage(BeastType.IGNEOUS, BeastType.ORE)
    assert not has_type_advantage(BeastType.FOSSIL, BeastType.IGNEOUS)


@pytest.mark.parametrize(("attacker", "defender"), [(1, 1), (9, 1), (1, 0), (None, 3), (3, None)])
def test_unknown_or_neutral_types(attacker: int | None, defender: int | None) -> None:
    assert not has_type_advantage(attacker, defender)
    assert get_type_multiplier(attacker, defender) == 1.0


def test_type_advantage_chart() -> None:
    chart = BattleService.get_type_advantages()

    assert len(chart.advantages) == 8
    assert chart.damage_multiplier == 1.5
    assert chart.applied_to_damage is False
    igneous = next(entry for entry in chart.advantages if entry.attacker_id == BeastType.IGNEOUS)
    assert igneous.attacker == "Igneous"
    assert igneous.strong_against_ids == [BeastType.SEDIMENTARY, BeastType.FOSSIL]
