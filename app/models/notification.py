import sqlmodel

from app.core.enums import NotificationType

from ._base import BaseModel


class Notification(BaseModel, table=True):
    __tablename__: str = "notifications"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    notification_type: NotificationType
    title: str = sqlmodel.Field(max_length=100)
    message: str
    related_player_id: int | None = sqlmodel.Field(
        foreign_key="players.id", nullable=True, default=None
    )
    battle_id: int | None = sqlmodel.Field(foreign_key="battles.id", nullable=True, default=None)
    is_read: bool = False
