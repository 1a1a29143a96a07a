import pytest

from app.core.enums import AccountType, BattleMode, DeckValidationOutcome
from app.services.deck_validation import DeckValidationService
from tests.conftest import TRAINER_TYPE_ID, Factory

pytestmark = pytest.mark.anyio


async def test_valid_deck(factory: Factory, deck_service: DeckValidationService) -> None:
    player = await factory.player("alice")
    deck, _ = await factory.deck(player)

    result = await deck_service.validate_deck(player.id, deck.id, BattleMode.ULTIMATE)

    assert result.valid
    assert result.outcome is DeckValidationOutcome.VALID
    assert result.issues == []


async def test_foreign_or_missing_deck_is_not_found(
    factory: Factory, deck_service: DeckValidationService
) -> None:
    alice = await factory.player("alice")
    bob = await factory.player("bob")
    deck, _ = await factory.deck(alice)

    foreign = await deck_service.validate_deck(bob.id, deck.id, BattleMode.FRIENDLY)
    missing = await deck_service.validate_deck(alice.id, 999, BattleMode.FRIENDLY)

    assert foreign.outcome is DeckValidationOutcome.NOT_FOUND
    assert missing.outcome is DeckValidationOutcome.NOT_FOUND
    assert foreign.message == missing.message


async def test_wrong_size(factory: Factory, deck_service: DeckValidationService) -> None:
    player = await factory.player("alice")
    cards = [await factory.card() for _ in range(4)]
    deck, _ = await factory.deck(player, cards)

    result = await deck_service.validate_deck(player.id, deck.id, BattleMode.FRIENDLY)

    assert result.outcome is DeckValidationOutcome.INVALID
    assert "exactly 5" in (result.message or "")


async def test_marketplace_card_is_the_only_issue(
    factory: Factory, deck_service: DeckValidationService
) -> None:
    player = await factory.player("alice")
    cards = [await factory.card(name=f"Rock {i}") for i in range(5)]
    deck, user_cards = await factory.deck(player, cards)
    user_cards[2].is_in_marketplace = True
    factory.db.add(user_cards[2])
    await factory.db.commit()

    result = await deck_service.validate_deck(player.id, deck.id, BattleMode.FRIENDLY)

    assert result.outcome is DeckValidationOutcome.INVALID
    assert result.issues == ["Rock 2 is currently listed in marketplace"]


async def test_itemizes_every_problem(factory: Factory, deck_service: DeckValidationService) -> None:
    alice = await factory.player("alice")
    bob = await factory.player("bob")
    cards = [await factory.card(name=f"Rock {i}") for i in range(4)]
    cards.append(await factory.card(TRAINER_TYPE_ID, name="Coach"))
    deck, user_cards = await factory.deck(alice, cards)

    user_cards[0].is_in_trade = True
    user_cards[1].owner_id = bob.id
    factory.db.add_all(user_cards[:2])
    await factory.db.commit()

    result = await deck_service.validate_deck(alice.id, deck.id, BattleMode.FRIENDLY)

    assert result.outcome is DeckValidationOutcome.INVALID
    assert sorted(result.issues) == sorted(
        [
            "Rock 0 is currently in a trade",
            "Rock 1 is no longer in your collection",
            "Coach is not a battle card",
        ]
    )


async def test_child_without_permissions_is_restricted(
    factory: Factory, deck_service: DeckValidationService
) -> None:
    child = await factory.player("kid", account_type=AccountType.CHILD)
    deck, _ = await factory.deck(child)

    friendly = await deck_service.validate_deck(child.id, deck.id, BattleMode.FRIENDLY)
    competitive = await deck_service.validate_deck(child.id, deck.id, BattleMode.COMPETITIVE)

    assert friendly.valid
    assert competitive.outcome is DeckValidationOutcome.RESTRICTED


async def test_child_permissions_are_per_mode(
    factory: Factory, deck_service: DeckValidationService
) -> None:
    child = await factory.player("kid", account_type=AccountType.CHILD)
    await factory.parent_control(child, allow_competitive=True)
    deck, _ = await factory.deck(child)

    competitive = await deck_service.validate_deck(child.id, deck.id, BattleMode.COMPETITIVE)
    ultimate = await deck_service.validate_deck(child.id, deck.id, BattleMode.ULTIMATE)

    assert competitive.valid
    assert ultimate.outcome is DeckValidationOutcome.RESTRICTED
    assert ultimate.message == "Parent approval required for ultimate battles"
