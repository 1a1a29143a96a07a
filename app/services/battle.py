from collections.abc import Sequence
from typing import Annotated

from fastapi import Depends
from sqlalchemy import ColumnElement
from sqlmodel import col, func, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.enums import BattleResultType, BattleSide, BattleStatus, BeastType
from app.core.type_advantage import TYPE_ADVANTAGE_MULTIPLIER, TYPE_ADVANTAGES
from app.models.battle import Battle
from app.schemas.battle import (
    BattleHistoryEntry,
    BattleStatusResponse,
    TypeAdvantageChart,
    TypeAdvantageEntry,
)
from app.schemas.common import PaginationData
from app.services.battle_invitation import is_invitation_expired
from app.services.battle_session import BattleSessionStore
from app.utils.misc import as_utc

FINISHED_STATUSES = (BattleStatus.COMPLETED, BattleStatus.ABANDONED, BattleStatus.EXPIRED)


def _battle_result(battle: Battle, player_id: int) -> BattleResultType | None:
    if battle.status == BattleStatus.EXPIRED:
        return None
    if battle.winner_id is None:
        return BattleResultType.DRAW if battle.status == BattleStatus.COMPLETED else None
    return BattleResultType.WIN if battle.winner_id == player_id else BattleResultType.LOSS


class BattleService:
    """Read-only views of battles for their participants."""

    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db)],
        session_store: Annotated[BattleSessionStore, Depends()],
    ) -> None:
        self.db = db
        self.session_store = session_store

    async def get_battle_status(self, battle_id: int, player_id: int) -> BattleStatusResponse | None:
        """Snapshot of a battle as seen by one participant.

        Returns None both for a missing battle and for a caller who is not in
        it. A pending invitation past its window reads as expired even if the
        sweep has not caught it yet; nothing is written here.
        """
        battle = await self.db.get(Battle, battle_id)
        if battle is None or not battle.is_participant(player_id):
            return None

        status = battle.status
        if status == BattleStatus.PENDING and is_invitation_expired(battle):
            status = BattleStatus.EXPIRED

        state = await self.session_store.load(battle_id)
        phase = state.current_phase_state if state else None
        your_side = BattleSide.PLAYER1 if player_id == battle.player1_id else BattleSide.PLAYER2

        return BattleStatusResponse(
            battle_id=battle.id,
            mode=battle.mode,
            status=status,
            is_ai_battle=battle.is_ai_battle,
            player1_id=battle.player1_id,
            player2_id=battle.player2_id,
            your_side=your_side,
            current_phase=state.current_phase if state else 1,
            player1_score=state.player1_score if state else 0,
            player2_score=state.player2_score if state else 0,
            player1_card=phase.player1_card if phase else None,
            player2_card=phase.player2_card if phase else None,
            attacker=phase.attacker if phase else None,
            winner_id=battle.winner_id,
            created_at=as_utc(battle.created_at),
            started_at=as_utc(battle.started_at) if battle.started_at else None,
            completed_at=as_utc(battle.completed_at) if battle.completed_at else None,
        )

    @staticmethod
    def _involving(player_id: int) -> ColumnElement[bool]:
        return or_(col(Battle.player1_id) == player_id, col(Battle.player2_id) == player_id)

    def _to_history_entry(self, battle: Battle, player_id: int) -> BattleHistoryEntry:
        return BattleHistoryEntry(
            battle_id=battle.id,
            mode=battle.mode,
            status=battle.status,
            is_ai_battle=battle.is_ai_battle,
            opponent_id=battle.opponent_of(player_id),
            your_side=BattleSide.PLAYER1 if player_id == battle.player1_id else BattleSide.PLAYER2,
            result=_battle_result(battle, player_id),
            winner_id=battle.winner_id,
            started_at=battle.started_at,
            completed_at=battle.completed_at,
        )

    async def get_battle_history(
        self, player_id: int, *, page: int, page_size: int
    ) -> tuple[list[BattleHistoryEntry], PaginationData]:
        offset = (page - 1) * page_size
        query = select(Battle).where(
            self._involving(player_id), col(Battle.status).in_(FINISHED_STATUSES)
        )

        total_items_result = await self.db.exec(
            select(func.count()).select_from(query.subquery())
        )
        total_items = total_items_result.one()

        result = await self.db.exec(
            query.order_by(col(Battle.created_at).desc(), col(Battle.id).desc())
            .offset(offset)
            .limit(page_size)
        )
        entries = [self._to_history_entry(battle, player_id) for battle in result.all()]

        return entries, PaginationData.for_page(
            page=page, page_size=page_size, total_items=total_items
        )

    async def get_active_battles(self, player_id: int) -> Sequence[Battle]:
        result = await self.db.exec(
            select(Battle)
            .where(self._involving(player_id), Battle.status == BattleStatus.IN_PROGRESS)
            .order_by(col(Battle.started_at).desc())
        )
        return result.all()

    @staticmethod
    def get_type_advantages() -> TypeAdvantageChart:
        def _name(beast_type: BeastType) -> str:
            return beast_type.name.title()

        return TypeAdvantageChart(
            description="Each type is strong against two other types",
            advantages=[
                TypeAdvantageEntry(
                    attacker=_name(attacker),
                    attacker_id=attacker.value,
                    strong_against=[_name(t) for t in sorted(beats)],
                    strong_against_ids=sorted(t.value for t in beats),
                )
                for attacker, beats in TYPE_ADVANTAGES.items()
            ],
            damage_multiplier=TYPE_ADVANTAGE_MULTIPLIER,
            applied_to_damage=settings.apply_type_advantage,
        )
