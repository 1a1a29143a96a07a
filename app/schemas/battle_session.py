from pydantic import BaseModel, Field

from app.core.enums import BattleSide

TOTAL_PHASES = 5


class CombatCard(BaseModel):
    """A collection card projected into a phase, with live stats."""

    user_card_id: int
    name: str
    card_type_id: int | None = None
    speed: int
    attack: int
    defense: int
    original_speed: int
    original_attack: int
    original_defense: int


class PhaseState(BaseModel):
    phase_number: int = Field(ge=1, le=TOTAL_PHASES)
    player1_card: CombatCard | None = None
    player2_card: CombatCard | None = None
    attacker: BattleSide | None = None

    @property
    def is_ready(self) -> bool:
        return self.player1_card is not None and self.player2_card is not None

    def card_for(self, side: BattleSide) -> CombatCard | None:
        return self.player1_card if side is BattleSide.PLAYER1 else self.player2_card

    def set_card(self, side: BattleSide, card: CombatCard) -> None:
        if side is BattleSide.PLAYER1:
            self.player1_card = card
        else:
            self.player2_card = card


class BattleSessionState(BaseModel):
    """Mutable working state of one in-progress battle."""

    battle_id: int
    player1_id: int
    player2_id: int
    player1_deck_id: int
    player2_deck_id: int | None = None
    player1_card_ids: list[int] = Field(default_factory=list)
    player2_card_ids: list[int] = Field(default_factory=list)
    is_ai_battle: bool = False
    current_phase: int = Field(default=1, ge=1, le=TOTAL_PHASES)
    player1_score: int = 0
    player2_score: int = 0
    current_phase_state: PhaseState | None = None
    ai_used_cards: list[int] = Field(default_factory=list)

    @property
    def phases_resolved(self) -> int:
        return self.player1_score + self.player2_score

    def side_of(self, player_id: int) -> BattleSide | None:
        if player_id == self.player1_id:
            return BattleSide.PLAYER1
        if player_id == self.player2_id:
            return BattleSide.PLAYER2
        return None

    def player_id(self, side: BattleSide) -> int:
        return self.player1_id if side is BattleSide.PLAYER1 else self.player2_id

    def card_ids(self, side: BattleSide) -> list[int]:
        return self.player1_card_ids if side is BattleSide.PLAYER1 else self.player2_card_ids

    def score(self, side: BattleSide) -> int:
        return self.player1_score if side is BattleSide.PLAYER1 else self.player2_score

    def award_phase(self, side: BattleSide) -> None:
        if side is BattleSide.PLAYER1:
            self.player1_score += 1
        else:
            self.player2_score += 1
