from __future__ import annotations

from complaints_service_libs.logging_utils import create_service_logger
from complaints_service_libs.quart_app import ComplaintsServiceApp
from sqlalchemy.ext.asyncio import AsyncEngine

from services.complaint_service.config import Settings
from services.complaint_service.models_db import Base
from services.complaint_service.protocols import ComplaintRepositoryProtocol

logger = create_service_logger("complaint_service.startup")


async def initialize_database_schema(app: ComplaintsServiceApp) -> AsyncEngine:
    """Initialize the database schema using the app's existing engine."""
    try:
        logger.info("Initializing database schema...")

        engine = app.database_engine

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database schema initialized successfully")
        return engine
    except Exception as e:
        logger.critical(f"Failed to initialize database schema: {e}", exc_info=True)
        raise


async def seed_public_entities(repository: ComplaintRepositoryProtocol, settings: Settings) -> None:
    """Insert configured public entities when the table is still empty."""
    if not settings.PUBLIC_ENTITY_SEED:
        return
    inserted = await repository.seed_entities(list(settings.PUBLIC_ENTITY_SEED))
    if inserted:
        logger.info(f"Seeded {inserted} public entities")
