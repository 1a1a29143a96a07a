from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

import anyio
from fastapi import Depends
from loguru import logger
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.exceptions import BattleBusyError
from app.models.battle import BattleSessionRecord
from app.schemas.battle_session import BattleSessionState


class BattleLockRegistry:
    """One lock per battle id; different battles never contend.

    Locks are process-local. Multi-process deployments additionally rely on the
    row lock taken by `BattleSessionStore.load(for_update=True)`.
    """

    def __init__(self) -> None:
        self._locks: dict[int, anyio.Lock] = {}

    def _get_lock(self, battle_id: int) -> anyio.Lock:
        lock = self._locks.get(battle_id)
        if lock is None:
            lock = self._locks[battle_id] = anyio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, battle_id: int, timeout: float | None = None) -> AsyncIterator[None]:
        lock = self._get_lock(battle_id)
        try:
            with anyio.fail_after(timeout or settings.battle_lock_timeout_seconds):
                await lock.acquire()
        except TimeoutError:
            logger.warning(f"Timed out waiting for lock on battle {battle_id}")
            raise BattleBusyError(battle_id) from None

        try:
            yield
        finally:
            lock.release()

    def is_locked(self, battle_id: int) -> bool:
        lock = self._locks.get(battle_id)
        return lock is not None and lock.locked()

    def discard(self, battle_id: int) -> None:
        """Drop the lock of a finished battle, unless someone is still waiting on it."""
        lock = self._locks.get(battle_id)
        if lock is not None and not lock.locked():
            del self._locks[battle_id]

    def __len__(self) -> int:
        return len(self._locks)


battle_locks = BattleLockRegistry()


class BattleSessionStore:
    """Keyed persistence of `BattleSessionState`, one row per battle.

    Writes are staged on the caller's session; the caller commits so that a
    session update lands together with the rest of its unit of work.
    """

    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def _get_record(self, battle_id: int, *, for_update: bool) -> BattleSessionRecord | None:
        query = select(BattleSessionRecord).where(BattleSessionRecord.battle_id == battle_id)
        if for_update:
            # Rows cached by this session may predate the lock
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.exec(query)
        return result.first()

    async def load(self, battle_id: int, *, for_update: bool = False) -> BattleSessionState | None:
        record = await self._get_record(battle_id, for_update=for_update)
        if record is None:
            return None
        return BattleSessionState.model_validate(record.state)

    async def create(self, state: BattleSessionState) -> None:
        self.db.add(BattleSessionRecord(battle_id=state.battle_id, state=state.model_dump(mode="json")))

    async def save(self, state: BattleSessionState) -> None:
        record = await self._get_record(state.battle_id, for_update=False)
        if record is None:
            record = BattleSessionRecord(battle_id=state.battle_id, state={})
        # Assign a fresh dict so the JSON column is flagged dirty
        record.state = state.model_dump(mode="json")
        self.db.add(record)
