from .battle import Battle, BattlePhaseLog, BattleSessionRecord, BattleStats
from .battle_deck import BattleDeck, BattleDeckCard
from .card import Card, CardType
from .event_log import EventLog
from .notification import Notification
from .player import Player
from .social import Friendship, ParentControl
from .user_card import UserCard

__all__ = (
    "Battle",
    "BattleDeck",
    "BattleDeckCard",
    "BattlePhaseLog",
    "BattleSessionRecord",
    "BattleStats",
    "Card",
    "CardType",
    "EventLog",
    "Friendship",
    "Notification",
    "ParentControl",
    "Player",
    "UserCard",
)
