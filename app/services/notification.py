from typing import Annotated

import httpx
from fastapi import Depends
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.enums import BattleMode, NotificationType
from app.models.notification import Notification


class NotificationService:
    """In-app notifications and outbound email.

    Everything here is best effort: failures are logged and swallowed so they
    never undo or fail the battle operation that triggered them. Call only after
    the primary change has been committed.
    """

    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def notify(
        self,
        player_id: int,
        notification_type: NotificationType,
        title: str,
        message: str,
        *,
        related_player_id: int | None = None,
        battle_id: int | None = None,
    ) -> bool:
        notification = Notification(
            player_id=player_id,
            notification_type=notification_type,
            title=title,
            message=message,
            related_player_id=related_player_id,
            battle_id=battle_id,
        )
        try:
            self.db.add(notification)
            await self.db.commit()
        except SQLAlchemyError:
            logger.exception(f"Failed to store {notification_type} notification for {player_id}")
            await self.db.rollback()
            return False
        return True

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        if not settings.email_api_url:
            logger.debug(f"Email API not configured, skipping email to {to}")
            return False

        headers = {"Authorization": f"Bearer {settings.email_api_key}"} if settings.email_api_key else {}
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    settings.email_api_url,
                    headers=headers,
                    json={"from": settings.email_sender, "to": to, "subject": subject, "text": body},
                    timeout=10.0,
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to send email to {to}: {e}")
            return False
        return True

    async def send_battle_challenge_email(
        self, to: str | None, *, opponent_name: str, challenger_name: str, mode: BattleMode
    ) -> bool:
        if not to:
            return False
        return await self.send_email(
            to,
            f"{challenger_name} challenged you to a battle!",
            (
                f"Hi {opponent_name},\n\n"
                f"{challenger_name} has challenged you to a {mode} battle. "
                f"The invitation expires in {settings.invitation_ttl_hours} hours."
            ),
        )
