import sqlmodel

from ._base import BaseModel


class CardType(BaseModel, table=True):
    __tablename__: str = "card_types"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    name: str = sqlmodel.Field(max_length=50, unique=True)
    is_battle_card: bool = True


class Card(BaseModel, table=True):
    """A card template. Players own `UserCard` instances of it."""

    __tablename__: str = "cards"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    name: str = sqlmodel.Field(max_length=100, index=True)
    card_type_id: int = sqlmodel.Field(foreign_key="card_types.id", index=True)
    speed: int = sqlmodel.Field(ge=0)
    attack: int = sqlmodel.Field(ge=0)
    defense: int = sqlmodel.Field(ge=0)

    def __str__(self) -> str:
        return f"{self.name} (#{self.id})"
