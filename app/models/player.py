import sqlmodel

from app.core.enums import AccountType

from ._base import BaseModel


class Player(BaseModel, table=True):
    __tablename__: str = "players"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    username: str = sqlmodel.Field(max_length=50, index=True, unique=True)
    email: str | None = sqlmodel.Field(default=None, nullable=True)
    account_type: AccountType = AccountType.STANDARD
    is_admin: bool = False
    is_system: bool = sqlmodel.Field(default=False, index=True)
    """Reserved identities such as the AI opponent; hidden from leaderboards."""
