import sqlmodel

from app.core.enums import FriendshipStatus

from ._base import BaseModel


class Friendship(BaseModel, table=True):
    __tablename__: str = "friendships"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    requester_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    recipient_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    status: FriendshipStatus = FriendshipStatus.PENDING


class ParentControl(BaseModel, table=True):
    """Battle permissions a parent grants to a child account."""

    __tablename__: str = "parent_controls"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    child_id: int = sqlmodel.Field(foreign_key="players.id", index=True, unique=True)
    allow_competitive: bool = False
    allow_ultimate: bool = False
