"""Fixed type chart: each beast type beats exactly two others.

The relation is directed and not transitive, e.g. Igneous beats Fossil and
Fossil beats Ore, but Igneous has no edge to Ore.
"""

from types import MappingProxyType

from app.core.enums import BeastType

TYPE_ADVANTAGE_MULTIPLIER = 1.5

TYPE_ADVANTAGES: MappingProxyType[BeastType, frozenset[BeastType]] = MappingProxyType(
    {
        BeastType.IGNEOUS: frozenset({BeastType.SEDIMENTARY, BeastType.FOSSIL}),
        BeastType.METAMORPHIC: frozenset({BeastType.IGNEOUS, BeastType.JEWEL}),
        BeastType.SEDIMENTARY: frozenset({BeastType.CRYSTAL, BeastType.METAL}),
        BeastType.ORE: frozenset({BeastType.METAMORPHIC, BeastType.SEDIMENTARY}),
        BeastType.METAL: frozenset({BeastType.ORE, BeastType.CRYSTAL}),
        BeastType.JEWEL: frozenset({BeastType.METAL, BeastType.FOSSIL}),
        BeastType.CRYSTAL: frozenset({BeastType.JEWEL, BeastType.IGNEOUS}),
        BeastType.FOSSIL: frozenset({BeastType.METAMORPHIC, BeastType.ORE}),
    }
)


def _as_beast_type(type_id: int | None) -> BeastType | None:
    if type_id is None:
        return None
    try:
        return BeastType(type_id)
    except ValueError:
        return None


def has_type_advantage(attacker_type: int | None, defender_type: int | None) -> bool:
    """Whether `attacker_type` beats `defender_type`. Unknown ids never match."""
    attacker = _as_beast_type(attacker_type)
    defender = _as_beast_type(defender_type)
    if attacker is None or defender is None:
        return False
    return defender in TYPE_ADVANTAGES[attacker]


def get_type_multiplier(attacker_type: int | None, defender_type: int | None) -> float:
    if has_type_advantage(attacker_type, defender_type):
        return TYPE_ADVANTAGE_MULTIPLIER
    return 1.0
