import anyio
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from app.core.db import get_session
from app.services.ai_opponent import AIOpponentService
from app.services.battle_invitation import BattleInvitationService
from app.services.battle_session import BattleSessionStore
from app.services.deck_validation import DeckValidationService
from app.services.notification import NotificationService


async def sweep_expired_invitations() -> int:
    async with get_session() as db:
        service = BattleInvitationService(
            db,
            DeckValidationService(db),
            AIOpponentService(db),
            BattleSessionStore(db),
            NotificationService(db),
        )
        return await service.expire_stale_invitations()


async def run_invitation_sweeper(interval: float) -> None:
    """Expire stale invitations every `interval` seconds until cancelled."""
    logger.info(f"Invitation sweeper started, interval {interval}s")
    while True:
        try:
            await sweep_expired_invitations()
        except SQLAlchemyError:
            logger.exception("Invitation sweep failed")
        await anyio.sleep(interval)
