import random
from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Annotated

from fastapi import Depends, HTTPException, status
from loguru import logger
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.type_advantage import has_type_advantage
from app.models.battle_deck import BattleDeck, BattleDeckCard
from app.models.card import Card, CardType
from app.models.player import Player
from app.models.user_card import UserCard
from app.schemas.battle_session import BattleSessionState, CombatCard
from app.services.deck_validation import DECK_SIZE

# Number of closest-matching templates the AI deck is drawn from
AI_TEMPLATE_POOL_SIZE = 10


def select_ai_card(
    state: BattleSessionState,
    phase_number: int,
    opponent_card: CombatCard | None,
    deck: Sequence[tuple[UserCard, Card]],
    rng: random.Random | None = None,
) -> tuple[UserCard, Card] | None:
    """Pick the AI's card for a phase and mark it used in `state`.

    Prefers the first unused card (deck order) whose type beats the opponent's
    type, otherwise picks uniformly among the unused cards. Returns None when
    the AI has nothing left to play.
    """
    rng = rng or random.Random()
    used = set(state.ai_used_cards)
    candidates = [(user_card, card) for user_card, card in deck if user_card.id not in used]
    if not candidates:
        logger.warning(f"AI has no cards left in battle {state.battle_id} phase {phase_number}")
        return None

    selected: tuple[UserCard, Card] | None = None
    if opponent_card is not None and opponent_card.card_type_id is not None:
        selected = next(
            (
                (user_card, card)
                for user_card, card in candidates
                if has_type_advantage(card.card_type_id, opponent_card.card_type_id)
            ),
            None,
        )

    if selected is None:
        selected = rng.choice(candidates)

    state.ai_used_cards.append(selected[0].id)
    return selected


class AIOpponentService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def _find_ai_player(self) -> Player | None:
        result = await self.db.exec(
            select(Player).where(Player.username == settings.ai_username, col(Player.is_system))
        )
        return result.first()

    async def ensure_ai_player(self) -> Player:
        """Provision the reserved AI identity. Run once at startup."""
        player = await self._find_ai_player()
        if player is not None:
            return player

        player = Player(username=settings.ai_username, is_system=True)
        self.db.add(player)
        await self.db.commit()
        await self.db.refresh(player)
        logger.info(f"Provisioned AI opponent identity #{player.id}")
        return player

    async def get_ai_player(self) -> Player:
        player = await self._find_ai_player()
        if player is None:
            logger.error("AI opponent identity missing; was the bootstrap skipped?")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="AI opponent is not available",
            )
        return player

    async def _get_battle_templates(self) -> Sequence[Card]:
        result = await self.db.exec(
            select(Card)
            .join(CardType, col(Card.card_type_id) == CardType.id)
            .where(col(CardType.is_battle_card))
            .order_by(col(Card.id))
        )
        return result.all()

    async def _get_idle_deck(self, ai_player_id: int) -> BattleDeck | None:
        """An AI deck no running battle is using, i.e. one without cards."""
        result = await self.db.exec(
            select(BattleDeck)
            .where(
                BattleDeck.owner_id == ai_player_id,
                col(BattleDeck.id).not_in(select(BattleDeckCard.deck_id)),
            )
            .order_by(col(BattleDeck.id))
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        return result.first()

    async def _get_idle_cards(
        self, ai_player_id: int, card_ids: Iterable[int]
    ) -> dict[int, list[UserCard]]:
        """AI-owned collection cards outside every deck, grouped by template."""
        result = await self.db.exec(
            select(UserCard)
            .where(
                UserCard.owner_id == ai_player_id,
                col(UserCard.card_id).in_(set(card_ids)),
                col(UserCard.id).not_in(select(BattleDeckCard.user_card_id)),
            )
            .order_by(col(UserCard.id))
            .with_for_update(skip_locked=True)
        )
        idle: dict[int, list[UserCard]] = defaultdict(list)
        for user_card in result.all():
            idle[user_card.card_id].append(user_card)
        return idle

    async def build_ai_deck(
        self, ai_player_id: int, reference_cards: Sequence[Card], rng: random.Random | None = None
    ) -> tuple[BattleDeck, list[int]]:
        """Fill a five-card deck for the AI, matched to the challenger's deck.

        Templates are ranked by how close their stat total is to the average of
        `reference_cards`, and the deck is drawn from the closest few. Decks and
        collection cards released by finished AI battles are reused; new ones
        are minted only when none is idle. Changes are flushed, not committed.
        """
        rng = rng or random.Random()
        templates = await self._get_battle_templates()
        if not templates:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="No battle cards available for the AI opponent",
            )

        target = sum(c.speed + c.attack + c.defense for c in reference_cards) / max(
            len(reference_cards), 1
        )
        ranked = sorted(templates, key=lambda c: abs(c.speed + c.attack + c.defense - target))
        pool = ranked[: max(AI_TEMPLATE_POOL_SIZE, DECK_SIZE)]
        if len(pool) >= DECK_SIZE:
            chosen = rng.sample(pool, DECK_SIZE)
        else:
            chosen = rng.choices(pool, k=DECK_SIZE)

        deck = await self._get_idle_deck(ai_player_id)
        if deck is None:
            deck = BattleDeck(owner_id=ai_player_id, name="AI deck")
            self.db.add(deck)

        idle = await self._get_idle_cards(ai_player_id, (card.id for card in chosen))
        user_cards = [
            idle[card.id].pop(0)
            if idle[card.id]
            else UserCard(owner_id=ai_player_id, card_id=card.id)
            for card in chosen
        ]
        self.db.add_all(user_cards)
        await self.db.flush()

        self.db.add_all(
            BattleDeckCard(deck_id=deck.id, user_card_id=user_card.id, position=position)
            for position, user_card in enumerate(user_cards, start=1)
        )
        await self.db.flush()
        logger.debug(f"AI deck {deck.id} filled with collection cards {[c.id for c in user_cards]}")
        return deck, [user_card.id for user_card in user_cards]
