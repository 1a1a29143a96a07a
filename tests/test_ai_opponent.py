import random

import pytest
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.enums import BeastType
from app.models import BattleDeckCard, Card, Player, UserCard
from app.schemas.battle_session import BattleSessionState, CombatCard
from app.services.ai_opponent import AIOpponentService, select_ai_card
from tests.conftest import TRAINER_TYPE_ID, Factory


def _state() -> BattleSessionState:
    return BattleSessionState(battle_id=1, player1_id=1, player2_id=2, player1_deck_id=1)


def _deck(*types: BeastType) -> list[tuple[UserCard, Card]]:
    return [
        (
            UserCard(id=idx, owner_id=2, card_id=idx),
            Card(id=idx, name=f"AI {idx}", card_type_id=t, speed=50, attack=50, defense=50),
        )
        for idx, t in enumerate(types, start=1)
    ]


def _opponent(card_type: BeastType) -> CombatCard:
    return CombatCard(
        user_card_id=99,
        name="Human",
        card_type_id=card_type,
        speed=50,
        attack=50,
        defense=50,
        original_speed=50,
        original_attack=50,
        original_defense=50,
    )


def test_prefers_first_card_with_type_advantage() -> None:
    state = _state()
    deck = _deck(BeastType.IGNEOUS, BeastType.METAMORPHIC, BeastType.CRYSTAL)
    opponent = _opponent(BeastType.IGNEOUS)

    first = select_ai_card(state, 1, opponent, deck, random.Random(0))
    second = select_ai_card(state, 2, opponent, deck, random.Random(0))
    third = select_ai_card(state, 3, opponent, deck, random.Random(0))

    assert first is not None
    assert second is not None
    assert third is not None
    assert [first[0].id, second[0].id, third[0].id] == [2, 3, 1]
    assert state.ai_used_cards == [2, 3, 1]
    assert select_ai_card(state, 4, opponent, deck, random.Random(0)) is None


def test_falls_back_to_random_unused_card() -> None:
    state = _state()
    state.ai_used_cards.append(1)
    deck = _deck(BeastType.ORE, BeastType.ORE, BeastType.ORE)

    picks = set()
    for seed in range(30):
        choice = select_ai_card(state.model_copy(deep=True), 1, None, deck, random.Random(seed))
        assert choice is not None
        picks.add(choice[0].id)

    assert picks == {2, 3}


@pytest.mark.anyio
async def test_bootstrap_is_idempotent(db: AsyncSession, factory: Factory) -> None:
    service = AIOpponentService(db)

    first = await service.ensure_ai_player()
    second = await service.ensure_ai_player()

    assert first.id == second.id
    assert first.is_system
    assert (await service.get_ai_player()).id == first.id
    players = (await db.exec(select(Player).where(col(Player.is_system)))).all()
    assert len(players) == 1


@pytest.mark.anyio
async def test_ai_deck_matches_reference_strength(
    db: AsyncSession, factory: Factory, ai_player: Player
) -> None:
    balanced = [await factory.card(speed=50, attack=50, defense=50) for _ in range(12)]
    for _ in range(10):
        await factory.card(speed=300, attack=300, defense=300)
    await factory.card(TRAINER_TYPE_ID, speed=50, attack=50, defense=50)

    deck, user_card_ids = await AIOpponentService(db).build_ai_deck(
        ai_player.id, balanced[:5], random.Random(7)
    )
    await db.commit()

    assert deck.owner_id == ai_player.id
    assert len(user_card_ids) == 5
    rows = (
        await db.exec(
            select(BattleDeckCard, UserCard, Card)
            .join(UserCard, col(BattleDeckCard.user_card_id) == UserCard.id)
            .join(Card, col(UserCard.card_id) == Card.id)
            .where(BattleDeckCard.deck_id == deck.id)
            .order_by(col(BattleDeckCard.position))
        )
    ).all()
    assert [row[0].position for row in rows] == [1, 2, 3, 4, 5]
    assert all(user_card.owner_id == ai_player.id for _, user_card, _ in rows)
    assert all(card.speed + card.attack + card.defense == 150 for _, _, card in rows)
    assert all(card.card_type_id != TRAINER_TYPE_ID for _, _, card in rows)
