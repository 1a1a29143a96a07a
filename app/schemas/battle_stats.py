from datetime import datetime

from pydantic import BaseModel


class BattleStatsResponse(BaseModel):
    player_id: int
    total_battles: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    friendly_battles: int = 0
    competitive_battles: int = 0
    ultimate_battles: int = 0
    last_battle_at: datetime | None = None


class LeaderboardEntry(BattleStatsResponse):
    """Leaderboard entry with rank and player info."""

    rank: int
    username: str
