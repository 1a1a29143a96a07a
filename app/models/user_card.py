import sqlmodel

from ._base import BaseModel


class UserCard(BaseModel, table=True):
    """A collection card: one owned copy of a card template."""

    __tablename__: str = "user_cards"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    owner_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    card_id: int = sqlmodel.Field(foreign_key="cards.id", index=True)
    is_in_marketplace: bool = False
    is_in_trade: bool = False
