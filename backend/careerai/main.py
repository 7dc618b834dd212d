import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .config import Settings, get_settings
from .db.monitoring import get_pool_snapshot
from .db.session import get_engine
from .logging_config import configure_logging
from .session_routes import assessment_router, router as session_router
from .sessions import get_session_registry


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    resolve_registry = app.dependency_overrides.get(get_session_registry, get_session_registry)
    registry = resolve_registry()
    logger.info("Draining %d open session(s) before shutdown", len(registry))
    await registry.drain()


app = FastAPI(title="CareerAI Backend", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(session_router)
app.include_router(assessment_router)

settings_snapshot = get_settings()
logger.info("Remote store configured: %s", bool(settings_snapshot.database_url))
logger.info("OpenAI API key configured: %s", bool(settings_snapshot.openai_api_key))


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "generation": bool(settings.generation_enabled and settings.openai_api_key),
        "remote_store": bool(settings.database_url),
    }


@app.get("/healthz/database")
def database_health() -> Dict[str, Any]:
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ok", "pool": get_pool_snapshot(engine)}
