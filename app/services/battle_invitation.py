from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlmodel import col, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.enums import (
    BattleMode,
    BattleStatus,
    DeckValidationOutcome,
    FriendshipStatus,
    NotificationType,
)
from app.core.exceptions import (
    BattleBusyError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from app.models.battle import Battle
from app.models.player import Player
from app.models.social import Friendship
from app.schemas.battle import BattleSummary, InvitationResult, PendingInvitation
from app.schemas.battle_session import BattleSessionState
from app.schemas.deck import DeckValidationResult
from app.services.ai_opponent import AIOpponentService
from app.services.battle_session import BattleSessionStore, battle_locks
from app.services.deck_validation import DeckValidationService
from app.services.notification import NotificationService
from app.utils.misc import as_utc, get_utc_now
from app.utils.push import push_event

INVITATION_NOT_FOUND = "Battle invitation not found"


def invitation_deadline(battle: Battle) -> datetime:
    return as_utc(battle.created_at) + timedelta(hours=settings.invitation_ttl_hours)


def is_invitation_expired(battle: Battle, now: datetime | None = None) -> bool:
    """Whether a pending invitation has outlived its window.

    The deadline is soft: nothing cancels an invitation on time, so every read
    of a pending invitation must ask this again.
    """
    return (now or get_utc_now()) > invitation_deadline(battle)


class BattleInvitationService:
    """Battle creation and the pending → in_progress / expired handshake."""

    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db)],
        deck_service: Annotated[DeckValidationService, Depends()],
        ai_service: Annotated[AIOpponentService, Depends()],
        session_store: Annotated[BattleSessionStore, Depends()],
        notification_service: Annotated[NotificationService, Depends()],
    ) -> None:
        self.db = db
        self.deck_service = deck_service
        self.ai_service = ai_service
        self.session_store = session_store
        self.notification_service = notification_service

    @staticmethod
    def _raise_for_validation(validation: DeckValidationResult) -> None:
        if validation.outcome == DeckValidationOutcome.NOT_FOUND:
            raise NotFoundError(validation.message or "Deck not found")
        if not validation.valid:
            raise ValidationFailedError(validation.message or "Deck validation failed", validation.issues)

    async def _get_deck_card_ids(self, deck_id: int) -> list[int]:
        rows = await self.deck_service.get_deck_cards(deck_id)
        return [user_card.id for _, user_card, _, _ in rows]

    async def create_ai_battle(self, player_id: int, deck_id: int, mode: BattleMode) -> BattleSummary:
        """Start a battle against the AI. There is no invitation step."""
        validation = await self.deck_service.validate_deck(player_id, deck_id, mode)
        self._raise_for_validation(validation)

        ai_player = await self.ai_service.get_ai_player()
        rows = await self.deck_service.get_deck_cards(deck_id)
        ai_deck, ai_card_ids = await self.ai_service.build_ai_deck(
            ai_player.id, [card for _, _, card, _ in rows]
        )

        now = get_utc_now()
        battle = Battle(
            player1_id=player_id,
            player2_id=ai_player.id,
            player1_deck_id=deck_id,
            player2_deck_id=ai_deck.id,
            mode=mode,
            is_ai_battle=True,
            status=BattleStatus.IN_PROGRESS,
            created_at=now,
            started_at=now,
        )
        self.db.add(battle)
        await self.db.flush()

        await self.session_store.create(
            BattleSessionState(
                battle_id=battle.id,
                player1_id=player_id,
                player2_id=ai_player.id,
                player1_deck_id=deck_id,
                player2_deck_id=ai_deck.id,
                player1_card_ids=[user_card.id for _, user_card, _, _ in rows],
                player2_card_ids=ai_card_ids,
                is_ai_battle=True,
            )
        )
        await self.db.commit()

        logger.info(f"AI battle {battle.id} ({mode}) started for player {player_id}")
        return BattleSummary(
            battle_id=battle.id,
            status=BattleStatus.IN_PROGRESS,
            mode=mode,
            opponent_id=ai_player.id,
            is_ai_battle=True,
            current_phase=1,
            message="AI battle started. Select your card for phase 1.",
        )

    async def _are_friends(self, player_id: int, other_id: int) -> bool:
        result = await self.db.exec(
            select(Friendship).where(
                or_(
                    (col(Friendship.requester_id) == player_id)
                    & (col(Friendship.recipient_id) == other_id),
                    (col(Friendship.requester_id) == other_id)
                    & (col(Friendship.recipient_id) == player_id),
                ),
                Friendship.status == FriendshipStatus.APPROVED,
            )
        )
        return result.first() is not None

    async def create_friend_battle(
        self, player_id: int, opponent_id: int, deck_id: int, mode: BattleMode
    ) -> BattleSummary:
        """Challenge a friend. The battle waits in `pending` until they respond."""
        if opponent_id == player_id:
            msg = "You cannot challenge yourself"
            raise ValidationFailedError(msg)

        challenger = await self.db.get(Player, player_id)
        opponent = await self.db.get(Player, opponent_id)
        if challenger is None or opponent is None or opponent.is_system:
            raise NotFoundError("Player not found")

        if not await self._are_friends(player_id, opponent_id):
            msg = "You can only battle approved friends"
            raise ForbiddenError(msg)

        validation = await self.deck_service.validate_deck(player_id, deck_id, mode)
        self._raise_for_validation(validation)

        battle = Battle(
            player1_id=player_id,
            player2_id=opponent_id,
            player1_deck_id=deck_id,
            mode=mode,
            status=BattleStatus.PENDING,
            created_at=get_utc_now(),
        )
        self.db.add(battle)
        await self.db.commit()

        summary = BattleSummary(
            battle_id=battle.id,
            status=BattleStatus.PENDING,
            mode=mode,
            opponent_id=opponent_id,
            is_ai_battle=False,
            message="Battle invitation sent. Waiting for opponent to accept.",
        )
        logger.info(f"Battle invitation {battle.id} ({mode}) sent from {player_id} to {opponent_id}")

        # A failed notify rolls the session back and expires loaded players
        challenger_name = challenger.username
        opponent_name = opponent.username
        opponent_email = opponent.email

        await self.notification_service.notify(
            opponent_id,
            NotificationType.BATTLE_CHALLENGE,
            "Battle Challenge!",
            f"{challenger_name} has challenged you to a {mode} battle",
            related_player_id=player_id,
            battle_id=summary.battle_id,
        )
        await self.notification_service.send_battle_challenge_email(
            opponent_email, opponent_name=opponent_name, challenger_name=challenger_name, mode=mode
        )
        push_event(
            (opponent_id,),
            "battle_invitation",
            {"battle_id": summary.battle_id, "challenger_id": player_id, "mode": mode},
        )
        return summary

    async def _get_invitation(self, battle_id: int, player_id: int) -> Battle:
        battle = await self.db.get(Battle, battle_id)
        if battle is None or not battle.is_participant(player_id) or battle.is_ai_battle:
            raise NotFoundError(INVITATION_NOT_FOUND)
        return battle

    async def _check_respondable(self, battle: Battle) -> InvitationResult | None:
        """Return a failure result if the invitation can no longer be answered.

        Finding an invitation past its window moves it to `expired` on the spot.
        """
        if battle.status != BattleStatus.PENDING:
            return InvitationResult(
                success=False,
                message="Battle invitation has already been responded to",
                battle_id=battle.id,
            )

        if is_invitation_expired(battle, get_utc_now()):
            battle.status = BattleStatus.EXPIRED
            self.db.add(battle)
            await self.db.commit()
            logger.info(f"Battle invitation {battle.id} expired on response")
            return InvitationResult(
                success=False, message="Battle invitation has expired", battle_id=battle.id
            )
        return None

    async def accept_invitation(self, battle_id: int, player_id: int, deck_id: int) -> InvitationResult:
        async with battle_locks.hold(battle_id):
            battle = await self._get_invitation(battle_id, player_id)
            if battle.player2_id != player_id:
                msg = "Only the invited player can respond to this invitation"
                raise ForbiddenError(msg)

            failure = await self._check_respondable(battle)
            if failure is not None:
                return failure

            validation = await self.deck_service.validate_deck(player_id, deck_id, battle.mode)
            if not validation.valid:
                return InvitationResult(
                    success=False,
                    message=validation.message or "Deck validation failed",
                    battle_id=battle_id,
                    issues=validation.issues,
                )

            battle.status = BattleStatus.IN_PROGRESS
            battle.player2_deck_id = deck_id
            battle.started_at = get_utc_now()
            self.db.add(battle)

            await self.session_store.create(
                BattleSessionState(
                    battle_id=battle_id,
                    player1_id=battle.player1_id,
                    player2_id=player_id,
                    player1_deck_id=battle.player1_deck_id,
                    player2_deck_id=deck_id,
                    player1_card_ids=await self._get_deck_card_ids(battle.player1_deck_id),
                    player2_card_ids=await self._get_deck_card_ids(deck_id),
                )
            )
            challenger_id = battle.player1_id
            mode = battle.mode
            await self.db.commit()

        logger.info(f"Battle invitation {battle_id} accepted by {player_id}")
        await self.notification_service.notify(
            challenger_id,
            NotificationType.BATTLE_ACCEPTED,
            "Battle Accepted!",
            "Your battle challenge has been accepted. The battle is starting!",
            related_player_id=player_id,
            battle_id=battle_id,
        )
        push_event(
            (challenger_id,),
            "battle_invitation_response",
            {"battle_id": battle_id, "response": "accepted", "responder_user_id": player_id},
        )
        push_event(
            (challenger_id, player_id),
            "battle_started",
            {"battle_id": battle_id, "battle_mode": mode},
        )
        return InvitationResult(
            success=True, message="Battle started! Select your card for phase 1.", battle_id=battle_id
        )

    async def decline_invitation(self, battle_id: int, player_id: int) -> InvitationResult:
        async with battle_locks.hold(battle_id):
            battle = await self._get_invitation(battle_id, player_id)
            if battle.player2_id != player_id:
                msg = "Only the invited player can respond to this invitation"
                raise ForbiddenError(msg)

            failure = await self._check_respondable(battle)
            if failure is not None:
                return failure

            battle.status = BattleStatus.EXPIRED
            self.db.add(battle)
            challenger_id = battle.player1_id
            await self.db.commit()

        battle_locks.discard(battle_id)
        decliner = await self.db.get(Player, player_id)
        decliner_name = decliner.username if decliner else "Unknown"
        logger.info(f"Battle invitation {battle_id} declined by {player_id}")

        await self.notification_service.notify(
            challenger_id,
            NotificationType.BATTLE_DECLINED,
            "Battle Declined",
            f"{decliner_name} has declined your battle challenge.",
            related_player_id=player_id,
            battle_id=battle_id,
        )
        push_event(
            (challenger_id,),
            "battle_invitation_response",
            {"battle_id": battle_id, "response": "declined", "responder_user_id": player_id},
        )
        return InvitationResult(success=True, message="Battle invitation declined", battle_id=battle_id)

    async def cancel_invitation(self, battle_id: int, player_id: int) -> InvitationResult:
        """Withdraw a pending challenge (challenger only)."""
        async with battle_locks.hold(battle_id):
            battle = await self._get_invitation(battle_id, player_id)
            if battle.player1_id != player_id:
                msg = "Only the challenger can cancel this invitation"
                raise ForbiddenError(msg)

            failure = await self._check_respondable(battle)
            if failure is not None:
                return failure

            battle.status = BattleStatus.EXPIRED
            self.db.add(battle)
            opponent_id = battle.player2_id
            await self.db.commit()

        battle_locks.discard(battle_id)
        logger.info(f"Battle invitation {battle_id} cancelled by {player_id}")
        await self.notification_service.notify(
            opponent_id,
            NotificationType.BATTLE_CANCELLED,
            "Battle Cancelled",
            "A battle challenge you received has been withdrawn.",
            related_player_id=player_id,
            battle_id=battle_id,
        )
        push_event(
            (opponent_id,),
            "battle_invitation_cancelled",
            {"battle_id": battle_id, "cancelled_by_user_id": player_id},
        )
        return InvitationResult(success=True, message="Battle invitation cancelled", battle_id=battle_id)

    async def get_pending_invitations(self, player_id: int) -> list[PendingInvitation]:
        """Invitations awaiting the player's answer, newest first.

        Filtered by age here as well, whether or not the sweep has run.
        """
        result = await self.db.exec(
            select(Battle, Player)
            .join(Player, col(Battle.player1_id) == Player.id)
            .where(Battle.player2_id == player_id, Battle.status == BattleStatus.PENDING)
            .order_by(col(Battle.created_at).desc())
        )
        now = get_utc_now()
        return [
            PendingInvitation(
                battle_id=battle.id,
                mode=battle.mode,
                challenger_id=challenger.id,
                challenger_username=challenger.username,
                created_at=as_utc(battle.created_at),
                expires_at=invitation_deadline(battle),
            )
            for battle, challenger in result.all()
            if not is_invitation_expired(battle, now)
        ]

    async def _get_stale_invitations(self) -> Sequence[Battle]:
        cutoff = get_utc_now() - timedelta(hours=settings.invitation_ttl_hours)
        result = await self.db.exec(
            select(Battle).where(
                Battle.status == BattleStatus.PENDING, col(Battle.created_at) < cutoff
            )
        )
        return result.all()

    async def _expire_if_still_pending(self, battle: Battle) -> bool:
        battle_id = battle.id
        async with battle_locks.hold(battle_id):
            # A response may have committed since the scan
            await self.db.refresh(battle, with_for_update=True)
            if battle.status != BattleStatus.PENDING:
                return False
            battle.status = BattleStatus.EXPIRED
            self.db.add(battle)
            await self.db.commit()

        battle_locks.discard(battle_id)
        return True

    async def expire_stale_invitations(self) -> int:
        """Move every pending invitation older than the window to `expired`.

        Each invitation is re-read under its battle lock, so one answered while
        the sweep runs keeps its answer. Busy battles are left for the next run.
        """
        expired = 0
        for battle in await self._get_stale_invitations():
            try:
                if await self._expire_if_still_pending(battle):
                    expired += 1
            except BattleBusyError:
                logger.warning(f"Battle invitation {battle.id} is busy, skipping it this sweep")

        if expired:
            logger.info(f"Expired {expired} stale battle invitations")
        return expired
