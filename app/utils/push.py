import asyncio
from collections.abc import Iterable
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings

# Keep references so pending deliveries are not garbage collected mid-flight
_pending: set[asyncio.Task[None]] = set()


async def _deliver(payload: dict[str, Any]) -> None:
    if not settings.push_url:
        return
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(settings.push_url, json=payload, timeout=5.0)
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.debug(f"Push delivery of {payload['type']} failed: {e}")


def push_event(player_ids: Iterable[int], event_type: str, data: dict[str, Any]) -> None:
    """Fire-and-forget a real-time event to each player. Never raises, never waits."""
    if not settings.push_url:
        return

    for player_id in player_ids:
        payload = {"type": event_type, "user_id": player_id, **data}
        task = asyncio.create_task(_deliver(payload))
        _pending.add(task)
        task.add_done_callback(_pending.discard)
