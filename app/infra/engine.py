"""Engine wiring — builds the session-scoped EngineContext over the database services."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.domain.character import SqlCharacterService, SqlCombatantService
from app.domain.dispatcher import EngineContext
from app.domain.history import RollHistoryLog
from app.domain.state_store import CharacterStateStore
from app.infra.config import settings
from app.infra.db import async_session_factory

_context: EngineContext | None = None


def build_engine_context(
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
) -> EngineContext:
    return EngineContext(
        store=CharacterStateStore(SqlCharacterService(session_factory)),
        combatants=SqlCombatantService(session_factory),
        history=RollHistoryLog(settings.history_capacity),
    )


def get_engine() -> EngineContext:
    """FastAPI dependency returning the process-wide engine context."""
    global _context
    if _context is None:
        _context = build_engine_context()
    return _context


def reset_engine() -> None:
    global _context
    _context = None
