from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api import battle, battle_invitation, battle_stats
from app.core.config import settings
from app.core.db import engine, get_session
from app.services.ai_opponent import AIOpponentService
from app.utils.exception_handlers import (
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.utils.scheduler import run_invitation_sweeper


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncGenerator[None, FastAPI]:
    async with get_session() as db:
        await AIOpponentService(db).ensure_ai_player()

    async with anyio.create_task_group() as tg:
        tg.start_soon(run_invitation_sweeper, settings.invitation_sweep_interval_seconds)
        yield
        tg.cancel_scope.cancel()

    await engine.dispose()


app = FastAPI(
    title="Beast Battle API",
    lifespan=app_lifespan,
    servers=[{"url": "http://localhost:3011", "description": "Local server"}],
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(battle.router)
app.include_router(battle_invitation.router)
app.include_router(battle_stats.router)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def healthz() -> str:
    return "OK"
