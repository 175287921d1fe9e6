"""sheet-engine — FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from importlib.metadata import version, PackageNotFoundError

from fastapi import FastAPI

from app.api import characters, web
from app.infra.config import settings
from app.infra.db import dispose_db, init_db

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("sheet-engine")

try:
    __version__ = version("sheet-engine")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    # Production schema is managed by Alembic; create_all is a no-op once migrated.
    try:
        await init_db()
    except Exception:
        logger.warning(
            "Could not initialise the database schema. "
            "Run `alembic upgrade head` before starting.",
            exc_info=True,
        )
    yield
    await dispose_db()


app = FastAPI(
    title="sheet-engine",
    description="Dice roll and rules resolution engine for character sheets",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(characters.router)
app.include_router(web.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "engine": "sheet-engine", "version": __version__}
