import pytest

from app.core.enums import BattleResultType, BattleSide, BattleStatus
from app.services.battle import BattleService
from app.services.battle_completion import BattleCompletionService
from app.services.battle_invitation import BattleInvitationService
from app.services.battle_phase import BattlePhaseService
from tests.conftest import Factory, start_friend_battle

pytestmark = pytest.mark.anyio


async def test_status_is_visible_to_participants_only(
    factory: Factory,
    invitation_service: BattleInvitationService,
    phase_service: BattlePhaseService,
    battle_service: BattleService,
) -> None:
    battle = await start_friend_battle(factory, invitation_service)
    outsider = await factory.player("mallory")
    await phase_service.select_card_for_phase(
        battle.battle_id, battle.opponent.id, battle.opponent_cards[0].id
    )

    status = await battle_service.get_battle_status(battle.battle_id, battle.opponent.id)

    assert status is not None
    assert status.status is BattleStatus.IN_PROGRESS
    assert status.your_side is BattleSide.PLAYER2
    assert status.current_phase == 1
    assert status.player1_card is None
    assert status.player2_card is not None
    assert status.attacker is None
    assert await battle_service.get_battle_status(battle.battle_id, outsider.id) is None
    assert await battle_service.get_battle_status(999, battle.opponent.id) is None

    # Reading does not change anything
    again = await battle_service.get_battle_status(battle.battle_id, battle.opponent.id)
    assert again == status


async def test_history_and_active_battles(
    factory: Factory,
    invitation_service: BattleInvitationService,
    completion_service: BattleCompletionService,
    battle_service: BattleService,
) -> None:
    battle = await start_friend_battle(factory, invitation_service)

    active = await battle_service.get_active_battles(battle.challenger.id)
    assert [b.id for b in active] == [battle.battle_id]
    history, pagination = await battle_service.get_battle_history(
        battle.challenger.id, page=1, page_size=10
    )
    assert history == []
    assert pagination.total_items == 0

    await completion_service.forfeit_battle(battle.battle_id, battle.challenger.id)

    assert await battle_service.get_active_battles(battle.challenger.id) == []
    loser_view, pagination = await battle_service.get_battle_history(
        battle.challenger.id, page=1, page_size=10
    )
    winner_view, _ = await battle_service.get_battle_history(
        battle.opponent.id, page=1, page_size=10
    )
    assert (pagination.total_items, pagination.total_pages) == (1, 1)
    assert loser_view[0].result is BattleResultType.LOSS
    assert loser_view[0].status is BattleStatus.ABANDONED
    assert loser_view[0].opponent_id == battle.opponent.id
    assert winner_view[0].result is BattleResultType.WIN
    assert winner_view[0].your_side is BattleSide.PLAYER2

    empty_page, pagination = await battle_service.get_battle_history(
        battle.challenger.id, page=2, page_size=10
    )
    assert empty_page == []
    assert pagination.page == 2
