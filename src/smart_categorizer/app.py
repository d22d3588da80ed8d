from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from smart_categorizer.api.routes import suggestions, training
from smart_categorizer.core import settings
from smart_categorizer.logger import get_logger, setup_logging
from smart_categorizer.manager import SmartCategorizationService
from smart_categorizer.storage.base import RecordStore
from smart_categorizer.storage.memory import InMemoryRecordStore
from smart_categorizer.storage.supabase import SupabaseStore

logger = get_logger(__name__)


def build_store() -> RecordStore:
    store = SupabaseStore()
    if store.configured:
        logger.info("Using Supabase store at %s", store.base_url)
        return store
    logger.warning("SUPABASE_URL or SUPABASE_KEY not set. Using in-memory store; nothing will be persisted.")
    return InMemoryRecordStore()


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        store = build_store()
        service = SmartCategorizationService(store)
        await service.initialize()

        app.state.store = store
        app.state.service = service

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")
        await store.aclose()

    app = FastAPI(title="Smart Categorizer", lifespan=lifespan)

    app.include_router(suggestions.router)
    app.include_router(training.router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
