from collections.abc import Sequence
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import get_db
from app.core.enums import AccountType, BattleMode, DeckValidationOutcome
from app.models.battle_deck import BattleDeck, BattleDeckCard
from app.models.card import Card, CardType
from app.models.player import Player
from app.models.social import ParentControl
from app.models.user_card import UserCard
from app.schemas.deck import DeckValidationResult

DECK_SIZE = 5

type DeckCardRow = tuple[BattleDeckCard, UserCard, Card, CardType]


class DeckValidationService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def get_owned_deck(self, player_id: int, deck_id: int) -> BattleDeck | None:
        result = await self.db.exec(
            select(BattleDeck).where(BattleDeck.id == deck_id, BattleDeck.owner_id == player_id)
        )
        return result.first()

    async def get_deck_cards(self, deck_id: int) -> Sequence[DeckCardRow]:
        """Get the cards of a battle deck with template and type info, in deck order."""
        result = await self.db.exec(
            select(BattleDeckCard, UserCard, Card, CardType)
            .join(UserCard, col(BattleDeckCard.user_card_id) == UserCard.id)
            .join(Card, col(UserCard.card_id) == Card.id)
            .join(CardType, col(Card.card_type_id) == CardType.id)
            .where(BattleDeckCard.deck_id == deck_id)
            .order_by(col(BattleDeckCard.position))
        )
        return result.all()

    async def _check_parental_permission(self, player_id: int, mode: BattleMode) -> str | None:
        """Return a rejection message if a child account may not play `mode`."""
        if mode == BattleMode.FRIENDLY:
            return None

        player = await self.db.get(Player, player_id)
        if player is None or player.account_type != AccountType.CHILD:
            return None

        result = await self.db.exec(
            select(ParentControl).where(ParentControl.child_id == player_id)
        )
        permissions = result.first()
        # Without a parent control row nothing beyond friendly is allowed
        if mode == BattleMode.COMPETITIVE and not (permissions and permissions.allow_competitive):
            return "Parent approval required for competitive battles"
        if mode == BattleMode.ULTIMATE and not (permissions and permissions.allow_ultimate):
            return "Parent approval required for ultimate battles"
        return None

    async def validate_deck(
        self, player_id: int, deck_id: int, mode: BattleMode
    ) -> DeckValidationResult:
        """Check that a deck can be taken into a battle of the given mode.

        The result tells apart a missing or foreign deck, a parental
        restriction, itemized card problems, and success.
        """
        deck = await self.get_owned_deck(player_id, deck_id)
        if deck is None:
            return DeckValidationResult(
                outcome=DeckValidationOutcome.NOT_FOUND, message="Deck not found or access denied"
            )

        rows = await self.get_deck_cards(deck_id)
        if len(rows) != DECK_SIZE:
            return DeckValidationResult(
                outcome=DeckValidationOutcome.INVALID,
                message=f"Deck must contain exactly {DECK_SIZE} cards",
                issues=[f"Deck contains {len(rows)} cards"],
            )

        issues: list[str] = []
        for _, user_card, card, card_type in rows:
            if user_card.owner_id != player_id:
                issues.append(f"{card.name} is no longer in your collection")
            if not card_type.is_battle_card:
                issues.append(f"{card.name} is not a battle card")
            if user_card.is_in_marketplace:
                issues.append(f"{card.name} is currently listed in marketplace")
            if user_card.is_in_trade:
                issues.append(f"{card.name} is currently in a trade")

        restriction = await self._check_parental_permission(player_id, mode)
        if restriction is not None:
            logger.info(f"Player {player_id} blocked from {mode} battle by parental controls")
            return DeckValidationResult(outcome=DeckValidationOutcome.RESTRICTED, message=restriction)

        if issues:
            return DeckValidationResult(
                outcome=DeckValidationOutcome.INVALID,
                message="Deck validation failed",
                issues=issues,
            )

        return DeckValidationResult(outcome=DeckValidationOutcome.VALID)
