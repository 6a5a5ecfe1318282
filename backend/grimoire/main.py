"""Esoteric Herb Grimoire API: application factory and wiring."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from grimoire import config
from grimoire.content_services import ContentService, OpenAIContentService
from grimoire.kv_store import JsonFileStore
from grimoire.log_redact import install_log_redaction
from grimoire.report import PaginationEngine, build_engine
from grimoire.routers.export import router as export_router
from grimoire.routers.grimoire import router as grimoire_router
from grimoire.store import GrimoireStore

# --- Logging ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
install_log_redaction()
logger = logging.getLogger("grimoire.api")


def _log_startup_env_warnings() -> None:
    if not config.LLM_API_KEY:
        logger.warning("LLM_API_KEY is not set; herb searches will likely fail.")
    if not config.IMAGE_API_KEY:
        logger.warning("IMAGE_API_KEY is not set; image generation will likely fail.")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    _log_startup_env_warnings()
    logger.info("Grimoire data directory: %s", app.state.store.kv.directory)
    yield


def create_app(
    store: Optional[GrimoireStore] = None,
    content: Optional[ContentService] = None,
    engine: Optional[PaginationEngine] = None,
) -> FastAPI:
    """Build the API with its collaborators; defaults come from the environment."""
    app = FastAPI(
        title="Esoteric Herb Grimoire",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=_lifespan,
    )
    app.state.store = store or GrimoireStore(JsonFileStore(config.DATA_DIR))
    app.state.content = content or OpenAIContentService()
    app.state.engine = engine or build_engine()

    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["Content-Type"],
            expose_headers=["Content-Disposition", "X-Report-Pages", "X-Report-Failed-Items"],
        )

    app.include_router(grimoire_router)
    app.include_router(export_router)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    return app


app = create_app()
