import random
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlmodel import col, delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import get_db
from app.core.enums import BattleMode, BattleStatus, EventType
from app.core.exceptions import NotFoundError, ValidationFailedError
from app.models.battle import Battle
from app.models.battle_deck import BattleDeckCard
from app.models.event_log import EventLog
from app.models.user_card import UserCard
from app.schemas.battle import CompletionSummary
from app.schemas.battle_session import TOTAL_PHASES, BattleSessionState
from app.services.battle_session import BattleSessionStore, battle_locks
from app.services.battle_stats import BattleStatsService
from app.utils.misc import get_utc_now
from app.utils.push import push_event


class BattleCompletionService:
    """Finalizes battles: winner, statistics and mode-gated card transfer.

    Nothing here commits except `forfeit_battle`; `complete_battle` stages its
    writes so the caller can commit them together with the final phase.
    """

    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db)],
        stats_service: Annotated[BattleStatsService, Depends()],
        session_store: Annotated[BattleSessionStore, Depends()],
    ) -> None:
        self.db = db
        self.stats_service = stats_service
        self.session_store = session_store
        self.rng = random.Random()

    def _log_event(self, player_id: int, event_type: EventType, context: dict) -> None:
        self.db.add(EventLog(player_id=player_id, event_type=event_type, context=context))

    async def _release_ai_deck(self, battle: Battle) -> None:
        """Empty the AI deck of a finished battle so later AI battles reuse it and its cards."""
        if not battle.is_ai_battle or battle.player2_deck_id is None:
            return
        # Card transfers stage deck-card deletes of their own
        await self.db.flush()
        await self.db.exec(
            delete(BattleDeckCard).where(col(BattleDeckCard.deck_id) == battle.player2_deck_id)
        )

    async def complete_battle(self, battle: Battle, state: BattleSessionState) -> CompletionSummary:
        """Finalize a battle whose phases have all been played."""
        p1_score, p2_score = state.player1_score, state.player2_score
        if p1_score + p2_score != TOTAL_PHASES:
            logger.warning(
                f"Battle {battle.id} score mismatch: {p1_score}-{p2_score}, expected {TOTAL_PHASES} phases"
            )

        now = get_utc_now()
        battle.status = BattleStatus.COMPLETED
        battle.completed_at = now

        if p1_score == p2_score:
            # Five phases cannot split evenly; record the anomaly and finalize without a winner
            logger.error(f"Impossible draw detected in battle {battle.id}: {p1_score}-{p2_score}")
            battle.winner_id = None
            self.db.add(battle)
            for player_id in (battle.player1_id, battle.player2_id):
                await self.stats_service.record_result(player_id, battle.mode, won=None)
                self._log_event(player_id, EventType.BATTLE_DRAW, {"battle_id": battle.id})
            await self._release_ai_deck(battle)
            return CompletionSummary(
                battle_id=battle.id,
                status=battle.status,
                winner_id=None,
                loser_id=None,
                player1_score=p1_score,
                player2_score=p2_score,
                is_draw=True,
            )

        if p1_score > p2_score:
            winner_id, loser_id = battle.player1_id, battle.player2_id
        else:
            winner_id, loser_id = battle.player2_id, battle.player1_id

        battle.winner_id = winner_id
        self.db.add(battle)

        await self.stats_service.record_result(winner_id, battle.mode, won=True)
        await self.stats_service.record_result(loser_id, battle.mode, won=False)
        context = {"battle_id": battle.id, "mode": battle.mode, "score": f"{p1_score}-{p2_score}"}
        self._log_event(winner_id, EventType.BATTLE_WON, context)
        self._log_event(loser_id, EventType.BATTLE_LOST, context)

        transferred = await self.transfer_battle_rewards(battle, winner_id, loser_id)
        await self._release_ai_deck(battle)

        logger.info(
            f"Battle {battle.id} completed: winner {winner_id}, score {p1_score}-{p2_score}"
        )
        return CompletionSummary(
            battle_id=battle.id,
            status=battle.status,
            winner_id=winner_id,
            loser_id=loser_id,
            player1_score=p1_score,
            player2_score=p2_score,
            transferred_card_ids=transferred,
        )

    async def transfer_battle_rewards(
        self, battle: Battle, winner_id: int, loser_id: int
    ) -> list[int]:
        """Move cards from the loser's deck of record to the winner.

        Friendly: nothing. Competitive: one random card. Ultimate: the whole
        deck. Returns the transferred collection card ids; the caller commits.
        """
        if battle.mode == BattleMode.FRIENDLY:
            return []

        loser_deck_id = battle.deck_of(loser_id)
        if loser_deck_id is None:
            logger.error(f"Battle {battle.id} has no deck of record for loser {loser_id}")
            return []

        result = await self.db.exec(
            select(BattleDeckCard, UserCard)
            .join(UserCard, col(BattleDeckCard.user_card_id) == UserCard.id)
            .where(BattleDeckCard.deck_id == loser_deck_id, UserCard.owner_id == loser_id)
            .order_by(col(BattleDeckCard.position))
        )
        deck_cards = list(result.all())
        if not deck_cards:
            logger.warning(f"Loser {loser_id} has no cards left in deck {loser_deck_id}")
            return []

        if battle.mode == BattleMode.COMPETITIVE:
            deck_cards = [self.rng.choice(deck_cards)]

        transferred: list[int] = []
        for deck_card, user_card in deck_cards:
            user_card.owner_id = winner_id
            self.db.add(user_card)
            # The card leaves the loser's deck along with their collection
            await self.db.delete(deck_card)

            self._log_event(
                loser_id,
                EventType.BATTLE_CARD_LOST,
                {"battle_id": battle.id, "user_card_id": user_card.id, "to_player_id": winner_id},
            )
            self._log_event(
                winner_id,
                EventType.BATTLE_CARD_WON,
                {"battle_id": battle.id, "user_card_id": user_card.id, "from_player_id": loser_id},
            )
            transferred.append(user_card.id)

        logger.info(
            f"Battle {battle.id} ({battle.mode}): transferred cards {transferred} "
            f"from {loser_id} to {winner_id}"
        )
        return transferred

    async def forfeit_battle(self, battle_id: int, player_id: int) -> CompletionSummary:
        """Concede an in-progress battle; the opponent wins.

        Statistics are updated like a regular completion but no cards change
        hands, and the battle ends `abandoned`.
        """
        async with battle_locks.hold(battle_id):
            battle = await self.db.get(Battle, battle_id)
            if battle is None or not battle.is_participant(player_id):
                raise NotFoundError
            if battle.status != BattleStatus.IN_PROGRESS:
                msg = f"Only battles in progress can be forfeited. Current status: {battle.status}"
                raise ValidationFailedError(msg)

            winner_id = battle.opponent_of(player_id)
            battle.winner_id = winner_id
            battle.status = BattleStatus.ABANDONED
            battle.completed_at = get_utc_now()
            self.db.add(battle)

            await self.stats_service.record_result(winner_id, battle.mode, won=True)
            await self.stats_service.record_result(player_id, battle.mode, won=False)
            self._log_event(player_id, EventType.BATTLE_FORFEITED, {"battle_id": battle_id})
            self._log_event(winner_id, EventType.BATTLE_WON, {"battle_id": battle_id, "forfeit": True})
            await self._release_ai_deck(battle)

            state = await self.session_store.load(battle_id)
            summary = CompletionSummary(
                battle_id=battle_id,
                status=BattleStatus.ABANDONED,
                winner_id=winner_id,
                loser_id=player_id,
                player1_score=state.player1_score if state else 0,
                player2_score=state.player2_score if state else 0,
            )
            await self.db.commit()

        battle_locks.discard(battle_id)
        logger.info(f"Battle {battle_id} forfeited by {player_id}, winner {winner_id}")
        push_event(
            (battle.player1_id, battle.player2_id),
            "battle_ended",
            {"battle_id": battle_id, "winner_user_id": winner_id, "forfeit": True},
        )
        return summary
