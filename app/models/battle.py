from datetime import datetime

import sqlmodel

from app.core.enums import BattleMode, BattleStatus

from ._base import BaseModel


class Battle(BaseModel, table=True):
    __tablename__: str = "battles"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player1_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    """Challenger"""
    player2_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    """Opponent, or the AI identity"""
    player1_deck_id: int = sqlmodel.Field(foreign_key="battle_decks.id")
    player2_deck_id: int | None = sqlmodel.Field(
        foreign_key="battle_decks.id", nullable=True, default=None
    )
    """Set when the opponent accepts (or at creation for AI battles)"""
    mode: BattleMode = BattleMode.FRIENDLY
    is_ai_battle: bool = False
    status: BattleStatus = sqlmodel.Field(default=BattleStatus.PENDING, index=True)
    winner_id: int | None = sqlmodel.Field(
        foreign_key="players.id", index=True, nullable=True, default=None
    )
    started_at: datetime | None = sqlmodel.Field(
        default=None, nullable=True, sa_type=sqlmodel.DateTime(timezone=True)
    )
    completed_at: datetime | None = sqlmodel.Field(
        default=None, nullable=True, sa_type=sqlmodel.DateTime(timezone=True)
    )

    def is_participant(self, player_id: int) -> bool:
        return player_id in {self.player1_id, self.player2_id}

    def opponent_of(self, player_id: int) -> int:
        return self.player2_id if player_id == self.player1_id else self.player1_id

    def deck_of(self, player_id: int) -> int | None:
        return self.player1_deck_id if player_id == self.player1_id else self.player2_deck_id


class BattleSessionRecord(BaseModel, table=True):
    """Serialized `BattleSessionState` for an in-progress battle."""

    __tablename__: str = "battle_sessions"

    battle_id: int = sqlmodel.Field(foreign_key="battles.id", primary_key=True)
    state: dict = sqlmodel.Field(sa_column=sqlmodel.Column(sqlmodel.JSON))


class BattlePhaseLog(BaseModel, table=True):
    __tablename__: str = "battle_phase_logs"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    battle_id: int = sqlmodel.Field(foreign_key="battles.id", index=True)
    mode: BattleMode
    phase_number: int = sqlmodel.Field(ge=1, le=5)

    winner_card_id: int = sqlmodel.Field(foreign_key="user_cards.id")
    winner_start_speed: int
    winner_start_attack: int
    winner_start_defense: int
    winner_end_speed: int
    winner_end_attack: int
    winner_end_defense: int

    loser_card_id: int = sqlmodel.Field(foreign_key="user_cards.id")
    loser_start_speed: int
    loser_start_attack: int
    loser_start_defense: int
    loser_end_speed: int
    loser_end_attack: int
    loser_end_defense: int


class BattleStats(BaseModel, table=True):
    __tablename__: str = "battle_stats"

    player_id: int = sqlmodel.Field(foreign_key="players.id", primary_key=True)
    total_battles: int = sqlmodel.Field(default=0, ge=0)
    wins: int = sqlmodel.Field(default=0, ge=0)
    losses: int = sqlmodel.Field(default=0, ge=0)
    win_rate: float = 0.0
    friendly_battles: int = sqlmodel.Field(default=0, ge=0)
    competitive_battles: int = sqlmodel.Field(default=0, ge=0)
    ultimate_battles: int = sqlmodel.Field(default=0, ge=0)
    last_battle_at: datetime | None = sqlmodel.Field(
        default=None, nullable=True, sa_type=sqlmodel.DateTime(timezone=True)
    )
