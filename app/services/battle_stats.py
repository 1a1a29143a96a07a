from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import col, desc, select, update
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import get_db
from app.core.enums import BattleMode, LeaderboardType
from app.models.battle import BattleStats
from app.models.player import Player
from app.schemas.battle_stats import BattleStatsResponse, LeaderboardEntry
from app.utils.misc import get_utc_now

# Minimum battles to appear on the win rate leaderboard
WIN_RATE_MIN_BATTLES = 10

MODE_COUNTERS = {
    BattleMode.FRIENDLY: col(BattleStats.friendly_battles),
    BattleMode.COMPETITIVE: col(BattleStats.competitive_battles),
    BattleMode.ULTIMATE: col(BattleStats.ultimate_battles),
}


def calculate_win_rate(wins: int, total: int) -> float:
    return round(wins / max(total, 1) * 100, 2)


class BattleStatsService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def _ensure_stats_row(self, player_id: int) -> None:
        """Insert an empty stats row for the player unless one already exists."""
        connection = await self.db.connection()
        match connection.dialect.name:
            case "postgresql":
                insert = postgresql.insert
            case "sqlite":
                insert = sqlite.insert
            case name:
                msg = f"Unsupported database dialect: {name}"
                raise RuntimeError(msg)

        await self.db.exec(
            insert(BattleStats)
            .values(player_id=player_id)
            .on_conflict_do_nothing(index_elements=["player_id"])
        )

    async def record_result(self, player_id: int, mode: BattleMode, *, won: bool | None) -> None:
        """Stage a finished battle into a player's aggregate stats.

        `won` is None for a draw, which counts the battle but neither a win nor
        a loss. Counters are incremented in SQL, so battles of the same player
        finishing at once all land. The caller commits.
        """
        await self._ensure_stats_row(player_id)

        counter = MODE_COUNTERS[mode]
        await self.db.exec(
            update(BattleStats)
            .where(col(BattleStats.player_id) == player_id)
            .values(
                {
                    BattleStats.total_battles: col(BattleStats.total_battles) + 1,
                    BattleStats.wins: col(BattleStats.wins) + (1 if won is True else 0),
                    BattleStats.losses: col(BattleStats.losses) + (1 if won is False else 0),
                    counter: counter + 1,
                    BattleStats.last_battle_at: get_utc_now(),
                }
            )
        )

        # The update above holds the row lock until commit, so this read is current
        result = await self.db.exec(
            select(BattleStats.wins, BattleStats.total_battles).where(
                col(BattleStats.player_id) == player_id
            )
        )
        wins, total = result.one()
        await self.db.exec(
            update(BattleStats)
            .where(col(BattleStats.player_id) == player_id)
            .values(win_rate=calculate_win_rate(wins, total))
        )
        logger.debug(f"Battle stats staged for player {player_id}: won={won}")

    async def get_user_battle_stats(self, player_id: int) -> BattleStatsResponse:
        stats = await self.db.get(BattleStats, player_id)
        if stats is None:
            return BattleStatsResponse(player_id=player_id)
        return BattleStatsResponse.model_validate(stats, from_attributes=True)

    async def get_leaderboard(
        self, leaderboard_type: LeaderboardType = LeaderboardType.OVERALL, limit: int = 100
    ) -> list[LeaderboardEntry]:
        """Rank players by wins (or win rate), hiding system identities."""
        query = (
            select(BattleStats, Player)
            .join(Player, col(BattleStats.player_id) == Player.id)
            .where(col(BattleStats.total_battles) > 0, Player.is_system == False)  # noqa: E712
        )

        order_by = (desc(col(BattleStats.wins)), desc(col(BattleStats.win_rate)))
        match leaderboard_type:
            case LeaderboardType.COMPETITIVE:
                query = query.where(col(BattleStats.competitive_battles) > 0)
            case LeaderboardType.ULTIMATE:
                query = query.where(col(BattleStats.ultimate_battles) > 0)
            case LeaderboardType.WIN_RATE:
                query = query.where(col(BattleStats.total_battles) >= WIN_RATE_MIN_BATTLES)
                order_by = (desc(col(BattleStats.win_rate)), desc(col(BattleStats.wins)))
            case LeaderboardType.OVERALL:
                pass

        result = await self.db.exec(query.order_by(*order_by, col(BattleStats.player_id)).limit(limit))
        return [
            LeaderboardEntry(
                rank=idx + 1,
                username=player.username,
                **BattleStatsResponse.model_validate(stats, from_attributes=True).model_dump(),
            )
            for idx, (stats, player) in enumerate(result.all())
        ]
