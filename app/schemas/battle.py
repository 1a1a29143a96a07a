from datetime import datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from app.core.enums import (
    AttackOutcome,
    BattleMode,
    BattleResultType,
    BattleSide,
    BattleStatus,
    OpponentType,
)
from app.schemas.battle_session import CombatCard


class BattleCreate(BaseModel):
    deck_id: int
    mode: BattleMode = BattleMode.FRIENDLY
    opponent_type: OpponentType = OpponentType.AI
    opponent_id: int | None = None

    @model_validator(mode="after")
    def validate_opponent(self) -> Self:
        if self.opponent_type is OpponentType.FRIEND and self.opponent_id is None:
            msg = "opponent_id is required for friend battles"
            raise ValueError(msg)
        return self


class InvitationAccept(BaseModel):
    deck_id: int


class CardSelect(BaseModel):
    user_card_id: int


class BattleSummary(BaseModel):
    battle_id: int
    status: BattleStatus
    mode: BattleMode
    opponent_id: int
    is_ai_battle: bool
    current_phase: int | None = None
    message: str


class InvitationResult(BaseModel):
    success: bool
    message: str
    battle_id: int | None = None
    issues: list[str] = Field(default_factory=list)


class PendingInvitation(BaseModel):
    battle_id: int
    mode: BattleMode
    challenger_id: int
    challenger_username: str
    created_at: datetime
    expires_at: datetime


class BattleStatusResponse(BaseModel):
    battle_id: int
    mode: BattleMode
    status: BattleStatus
    is_ai_battle: bool
    player1_id: int
    player2_id: int
    your_side: BattleSide
    current_phase: int
    player1_score: int
    player2_score: int
    player1_card: CombatCard | None = None
    player2_card: CombatCard | None = None
    attacker: BattleSide | None = None
    winner_id: int | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class CardSelectionResult(BaseModel):
    phase: int
    card_name: str
    ready_for_battle: bool
    opponent_card_name: str | None = None
    """Set when the AI picked its card in response."""


class AttackResult(BaseModel):
    attack_result: AttackOutcome
    message: str
    attacker: BattleSide
    damage: int | None = None
    attacker_card: CombatCard
    defender_card: CombatCard
    phase_complete: bool = False
    phase_winner: BattleSide | None = None
    battle_complete: bool = False
    current_phase: int
    player1_score: int
    player2_score: int
    winner_id: int | None = None


class CompletionSummary(BaseModel):
    battle_id: int
    status: BattleStatus
    winner_id: int | None
    loser_id: int | None
    player1_score: int
    player2_score: int
    is_draw: bool = False
    transferred_card_ids: list[int] = Field(default_factory=list)


class BattleHistoryEntry(BaseModel):
    battle_id: int
    mode: BattleMode
    status: BattleStatus
    is_ai_battle: bool
    opponent_id: int
    your_side: BattleSide
    result: BattleResultType | None = None
    winner_id: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class TypeAdvantageEntry(BaseModel):
    attacker: str
    attacker_id: int
    strong_against: list[str]
    strong_against_ids: list[int]


class TypeAdvantageChart(BaseModel):
    description: str
    advantages: list[TypeAdvantageEntry]
    damage_multiplier: float
    applied_to_damage: bool
