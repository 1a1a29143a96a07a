import pytest
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.enums import BattleMode, LeaderboardType
from app.models import Player
from app.services.battle_stats import BattleStatsService, calculate_win_rate
from tests.conftest import Factory


@pytest.mark.parametrize(
    ("wins", "total", "expected"),
    [(0, 0, 0.0), (1, 3, 33.33), (2, 3, 66.67), (5, 5, 100.0), (1, 8, 12.5)],
)
def test_calculate_win_rate(wins: int, total: int, expected: float) -> None:
    assert calculate_win_rate(wins, total) == expected


async def _record(
    service: BattleStatsService, player: Player, mode: BattleMode, wins: int, losses: int
) -> None:
    for _ in range(wins):
        await service.record_result(player.id, mode, won=True)
    for _ in range(losses):
        await service.record_result(player.id, mode, won=False)


@pytest.mark.anyio
async def test_unknown_player_has_zero_stats(stats_service: BattleStatsService) -> None:
    stats = await stats_service.get_user_battle_stats(42)

    assert stats.player_id == 42
    assert (stats.total_battles, stats.wins, stats.losses, stats.win_rate) == (0, 0, 0, 0.0)


@pytest.mark.anyio
async def test_record_result_counts_per_mode(
    db: AsyncSession, factory: Factory, stats_service: BattleStatsService
) -> None:
    alice = await factory.player("alice")
    await _record(stats_service, alice, BattleMode.FRIENDLY, wins=1, losses=0)
    await _record(stats_service, alice, BattleMode.COMPETITIVE, wins=0, losses=1)
    await stats_service.record_result(alice.id, BattleMode.ULTIMATE, won=None)
    await db.commit()

    stats = await stats_service.get_user_battle_stats(alice.id)

    assert (stats.total_battles, stats.wins, stats.losses) == (3, 1, 1)
    assert (stats.friendly_battles, stats.competitive_battles, stats.ultimate_battles) == (1, 1, 1)
    assert stats.win_rate == 33.33
    assert stats.last_battle_at is not None


@pytest.mark.anyio
async def test_leaderboards(
    db: AsyncSession, factory: Factory, ai_player: Player, stats_service: BattleStatsService
) -> None:
    alice = await factory.player("alice")
    bob = await factory.player("bob")
    carol = await factory.player("carol")
    await _record(stats_service, alice, BattleMode.FRIENDLY, wins=3, losses=9)
    await _record(stats_service, bob, BattleMode.COMPETITIVE, wins=5, losses=0)
    await _record(stats_service, carol, BattleMode.ULTIMATE, wins=6, losses=6)
    await _record(stats_service, ai_player, BattleMode.FRIENDLY, wins=50, losses=0)
    await db.commit()

    overall = await stats_service.get_leaderboard()
    assert [(e.rank, e.username) for e in overall] == [(1, "carol"), (2, "bob"), (3, "alice")]

    competitive = await stats_service.get_leaderboard(LeaderboardType.COMPETITIVE)
    assert [e.username for e in competitive] == ["bob"]

    ultimate = await stats_service.get_leaderboard(LeaderboardType.ULTIMATE)
    assert [e.username for e in ultimate] == ["carol"]

    # bob has too few battles to qualify
    win_rate = await stats_service.get_leaderboard(LeaderboardType.WIN_RATE)
    assert [(e.username, e.win_rate) for e in win_rate] == [("carol", 50.0), ("alice", 25.0)]

    assert len(await stats_service.get_leaderboard(limit=1)) == 1


@pytest.mark.anyio
async def test_results_from_separate_sessions_all_count(
    engine: AsyncEngine, db: AsyncSession, factory: Factory, stats_service: BattleStatsService
) -> None:
    alice = await factory.player("alice")
    await stats_service.record_result(alice.id, BattleMode.FRIENDLY, won=False)
    await db.commit()

    async with AsyncSession(engine, autoflush=False, expire_on_commit=False) as other_db:
        other_service = BattleStatsService(other_db)
        await stats_service.record_result(alice.id, BattleMode.COMPETITIVE, won=True)
        await other_service.record_result(alice.id, BattleMode.COMPETITIVE, won=True)
        await db.commit()
        await other_db.commit()

    async with AsyncSession(engine) as fresh_db:
        stats = await BattleStatsService(fresh_db).get_user_battle_stats(alice.id)

    assert (stats.total_battles, stats.wins, stats.losses) == (3, 2, 1)
    assert stats.competitive_battles == 2
    assert stats.win_rate == 66.67
