from collections.abc import Sequence
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.core.enums import BattleMode, OpponentType
from app.core.exceptions import NotFoundError, ValidationFailedError
from app.core.security import get_current_player
from app.models.battle import Battle
from app.models.player import Player
from app.schemas.battle import (
    AttackResult,
    BattleCreate,
    BattleHistoryEntry,
    BattleStatusResponse,
    BattleSummary,
    CardSelect,
    CardSelectionResult,
    CompletionSummary,
    TypeAdvantageChart,
)
from app.schemas.common import APIResponse, PaginatedResponse
from app.schemas.deck import DeckValidationResult
from app.services.battle import BattleService
from app.services.battle_completion import BattleCompletionService
from app.services.battle_invitation import BattleInvitationService
from app.services.battle_phase import BattlePhaseService
from app.services.deck_validation import DeckValidationService

router = APIRouter(prefix="/battles", tags=["battles"])


@router.post("/")
async def create_battle(
    battle: BattleCreate,
    service: Annotated[BattleInvitationService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[BattleSummary]:
    if battle.opponent_type is OpponentType.AI:
        summary = await service.create_ai_battle(player.id, battle.deck_id, battle.mode)
    elif battle.opponent_id is not None:
        summary = await service.create_friend_battle(
            player.id, battle.opponent_id, battle.deck_id, battle.mode
        )
    else:
        msg = "opponent_id is required for friend battles"
        raise ValidationFailedError(msg)
    return APIResponse(data=summary, message=summary.message)


@router.get("/validate-deck/{deck_id}")
async def validate_deck(
    deck_id: int,
    service: Annotated[DeckValidationService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
    mode: Annotated[BattleMode, Query()] = BattleMode.FRIENDLY,
) -> APIResponse[DeckValidationResult]:
    result = await service.validate_deck(player.id, deck_id, mode)
    return APIResponse(data=result, message=result.message)


@router.get("/type-advantages")
async def get_type_advantages() -> APIResponse[TypeAdvantageChart]:
    return APIResponse(data=BattleService.get_type_advantages())


@router.get("/history")
async def get_battle_history(
    service: Annotated[BattleService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> PaginatedResponse[list[BattleHistoryEntry]]:
    entries, pagination = await service.get_battle_history(
        player.id, page=page, page_size=page_size
    )
    return PaginatedResponse(data=entries, pagination=pagination)


@router.get("/active")
async def get_active_battles(
    service: Annotated[BattleService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[Sequence[Battle]]:
    return APIResponse(data=await service.get_active_battles(player.id))


@router.get("/{battle_id}")
async def get_battle_status(
    battle_id: int,
    service: Annotated[BattleService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[BattleStatusResponse]:
    status = await service.get_battle_status(battle_id, player.id)
    if status is None:
        raise NotFoundError
    return APIResponse(data=status)


@router.post("/{battle_id}/select-card")
async def select_card(
    battle_id: int,
    selection: CardSelect,
    service: Annotated[BattlePhaseService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[CardSelectionResult]:
    result = await service.select_card_for_phase(battle_id, player.id, selection.user_card_id)
    return APIResponse(data=result, message=f"{result.card_name} selected for phase {result.phase}")


@router.post("/{battle_id}/attack")
async def execute_attack(
    battle_id: int,
    service: Annotated[BattlePhaseService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[AttackResult]:
    result = await service.execute_attack(battle_id, player.id)
    return APIResponse(data=result, message=result.message)


@router.post("/{battle_id}/forfeit")
async def forfeit_battle(
    battle_id: int,
    service: Annotated[BattleCompletionService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[CompletionSummary]:
    summary = await service.forfeit_battle(battle_id, player.id)
    return APIResponse(data=summary, message="Battle forfeited")
