import sqlmodel

from ._base import BaseModel


class BattleDeck(BaseModel, table=True):
    __tablename__: str = "battle_decks"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    owner_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    name: str = sqlmodel.Field(max_length=100)


class BattleDeckCard(BaseModel, table=True):
    __tablename__: str = "battle_deck_cards"
    __table_args__ = (
        sqlmodel.UniqueConstraint("deck_id", "position", name="uq_deck_position"),
    )

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    deck_id: int = sqlmodel.Field(foreign_key="battle_decks.id", index=True)
    user_card_id: int = sqlmodel.Field(foreign_key="user_cards.id", index=True)
    position: int = sqlmodel.Field(ge=1, le=5)
