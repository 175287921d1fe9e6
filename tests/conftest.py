"""Shared test fixtures."""

import asyncio
import random

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.domain.character import SqlCharacterService, SqlCombatantService
from app.domain.dispatcher import EngineContext
from app.domain.history import RollHistoryLog
from app.domain.state_store import CharacterStateStore
from app.infra.db import get_db
from app.infra.engine import get_engine
from app.main import app
from app.models.character import CharacterAggregate, CharacterVitals
from app.models.db_models import Base

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


class ScriptedRng(random.Random):
    """Random source whose randint returns queued values, in order."""

    values: list[int]

    def randint(self, a: int, b: int) -> int:
        if not self.values:
            raise AssertionError("ScriptedRng ran out of values")
        value = self.values.pop(0)
        assert a <= value <= b, f"scripted value {value} outside [{a}, {b}]"
        return value


def scripted(*values: int) -> ScriptedRng:
    rng = ScriptedRng()
    rng.values = list(values)
    return rng


class FakeCharacterService:
    """In-memory character service.

    Set ``fail_saves`` to make saves raise, and ``fetch_delay`` to make each
    fetch yield to the event loop before returning what was stored when it began.
    """

    def __init__(self, *aggregates: CharacterAggregate) -> None:
        self.aggregates = {a.id: a for a in aggregates}
        self.saves: list[tuple[str, dict]] = []
        self.fail_saves = False
        self.fetch_delay = 0.0

    async def fetch_character_aggregate(self, character_id: str) -> CharacterAggregate | None:
        aggregate = self.aggregates.get(character_id)
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        return aggregate

    async def save_partial(self, character_id: str, fields: dict) -> CharacterAggregate:
        if self.fail_saves:
            raise ConnectionError("character service unavailable")
        current = self.aggregates[character_id]
        sheet_fields = ("attributes", "skill_levels")
        vitals_update = {k: v for k, v in fields.items() if k not in sheet_fields}
        update = {k: dict(fields[k]) for k in sheet_fields if k in fields}
        update["vitals"] = current.vitals.model_copy(update=vitals_update)
        saved = current.model_copy(update=update)
        self.aggregates[character_id] = saved
        self.saves.append((character_id, fields))
        return saved


class FakeCombatantService:
    def __init__(self, *combatant_ids: str) -> None:
        self.initiative: dict[str, int | None] = {cid: None for cid in combatant_ids}

    async def record_initiative(self, combatant_id: str, value: int) -> None:
        if combatant_id not in self.initiative:
            raise LookupError(combatant_id)
        self.initiative[combatant_id] = value


def make_character(
    character_id: str = "c1",
    skill_levels: dict[str, int] | None = None,
    **vitals,
) -> CharacterAggregate:
    fields = {"current_hp": 10, "max_hp": 10, "current_wp": 10, "max_wp": 10}
    fields.update(vitals)
    return CharacterAggregate(
        id=character_id,
        name="Test Hero",
        attributes={"STR": 12, "AGL": 11, "INT": 10, "CHA": 9, "CON": fields["max_hp"], "WIL": fields["max_wp"]},
        skill_levels=skill_levels or {},
        vitals=CharacterVitals(**fields),
    )


def make_context(
    *characters: CharacterAggregate,
    rng: random.Random | None = None,
    combatants: tuple[str, ...] = (),
) -> tuple[EngineContext, FakeCharacterService]:
    service = FakeCharacterService(*characters)
    ctx = EngineContext(
        store=CharacterStateStore(service),
        combatants=FakeCombatantService(*combatants),
        history=RollHistoryLog(20),
        rng=rng,
    )
    return ctx, service


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def engine_context(session_factory):
    return EngineContext(
        store=CharacterStateStore(SqlCharacterService(session_factory)),
        combatants=SqlCombatantService(session_factory),
        history=RollHistoryLog(20),
    )


@pytest_asyncio.fixture
async def client(session_factory, engine_context):
    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_engine] = lambda: engine_context
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def create_character(client: AsyncClient, name: str = "Hero", **fields) -> dict:
    """Create a character through the API and return its sheet view."""
    resp = await client.post("/api/characters", json={"name": name, **fields})
    assert resp.status_code == 201
    return resp.json()
