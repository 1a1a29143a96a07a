from enum import IntEnum, StrEnum


class BattleMode(StrEnum):
    FRIENDLY = "friendly"
    COMPETITIVE = "competitive"
    ULTIMATE = "ultimate"


class BattleStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    EXPIRED = "expired"


class BattleSide(StrEnum):
    PLAYER1 = "player1"
    PLAYER2 = "player2"

    @property
    def opponent(self) -> "BattleSide":
        return BattleSide.PLAYER2 if self is BattleSide.PLAYER1 else BattleSide.PLAYER1


class AttackOutcome(StrEnum):
    HIT = "hit"
    MISSED = "missed"


class OpponentType(StrEnum):
    AI = "ai"
    FRIEND = "friend"


class BeastType(IntEnum):
    """Battle-eligible card types. Values match `card_types.id`."""

    IGNEOUS = 1
    METAMORPHIC = 2
    SEDIMENTARY = 3
    ORE = 4
    METAL = 5
    JEWEL = 6
    CRYSTAL = 7
    FOSSIL = 8


class AccountType(StrEnum):
    STANDARD = "standard"
    PARENT = "parent"
    CHILD = "child"


class FriendshipStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LeaderboardType(StrEnum):
    OVERALL = "overall"
    COMPETITIVE = "competitive"
    ULTIMATE = "ultimate"
    WIN_RATE = "win_rate"


class BattleResultType(StrEnum):
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"


class NotificationType(StrEnum):
    BATTLE_CHALLENGE = "battle_challenge"
    BATTLE_ACCEPTED = "battle_accepted"
    BATTLE_DECLINED = "battle_declined"
    BATTLE_CANCELLED = "battle_cancelled"


class EventType(StrEnum):
    BATTLE_WON = "battle_won"
    BATTLE_LOST = "battle_lost"
    BATTLE_DRAW = "battle_draw"
    BATTLE_FORFEITED = "battle_forfeited"
    BATTLE_CARD_WON = "battle_card_won"
    BATTLE_CARD_LOST = "battle_card_lost"


class DeckValidationOutcome(StrEnum):
    VALID = "valid"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    RESTRICTED = "restricted"
