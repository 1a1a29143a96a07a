from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.core.enums import LeaderboardType
from app.core.security import get_current_player
from app.models.player import Player
from app.schemas.battle_stats import BattleStatsResponse, LeaderboardEntry
from app.schemas.common import APIResponse
from app.services.battle_stats import BattleStatsService

router = APIRouter(prefix="/battle-stats", tags=["battle-stats"])


@router.get("/leaderboard")
async def get_leaderboard(
    service: Annotated[BattleStatsService, Depends()],
    leaderboard_type: Annotated[LeaderboardType, Query(alias="type")] = LeaderboardType.OVERALL,
    limit: Annotated[int, Query(ge=1, le=100)] = 100,
) -> APIResponse[list[LeaderboardEntry]]:
    return APIResponse(data=await service.get_leaderboard(leaderboard_type, limit))


@router.get("/me")
async def get_my_stats(
    service: Annotated[BattleStatsService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[BattleStatsResponse]:
    return APIResponse(data=await service.get_user_battle_stats(player.id))


@router.get("/{player_id}")
async def get_player_stats(
    player_id: int, service: Annotated[BattleStatsService, Depends()]
) -> APIResponse[BattleStatsResponse]:
    return APIResponse(data=await service.get_user_battle_stats(player_id))
