from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.exceptions import ValidationFailedError
from app.core.security import get_current_player, require_admin
from app.models.player import Player
from app.schemas.battle import InvitationAccept, InvitationResult, PendingInvitation
from app.schemas.common import APIResponse
from app.services.battle_invitation import BattleInvitationService

router = APIRouter(prefix="/battle-invitations", tags=["battle-invitations"])


def _unwrap(result: InvitationResult) -> APIResponse[InvitationResult]:
    if not result.success:
        raise ValidationFailedError(result.message, result.issues)
    return APIResponse(data=result, message=result.message)


@router.get("/")
async def get_pending_invitations(
    service: Annotated[BattleInvitationService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[list[PendingInvitation]]:
    return APIResponse(data=await service.get_pending_invitations(player.id))


@router.post("/{battle_id}/accept")
async def accept_invitation(
    battle_id: int,
    body: InvitationAccept,
    service: Annotated[BattleInvitationService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[InvitationResult]:
    return _unwrap(await service.accept_invitation(battle_id, player.id, body.deck_id))


@router.post("/{battle_id}/decline")
async def decline_invitation(
    battle_id: int,
    service: Annotated[BattleInvitationService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[InvitationResult]:
    return _unwrap(await service.decline_invitation(battle_id, player.id))


@router.post("/{battle_id}/cancel")
async def cancel_invitation(
    battle_id: int,
    service: Annotated[BattleInvitationService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[InvitationResult]:
    return _unwrap(await service.cancel_invitation(battle_id, player.id))


@router.post("/expire")
async def expire_stale_invitations(
    service: Annotated[BattleInvitationService, Depends()],
    _admin: Annotated[Player, Depends(require_admin)],
) -> APIResponse[int]:
    expired = await service.expire_stale_invitations()
    return APIResponse(data=expired, message=f"Expired {expired} invitations")
