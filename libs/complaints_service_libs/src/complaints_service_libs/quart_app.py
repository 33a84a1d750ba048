"""
Type-safe Quart application class for the complaint services.

Provides typed app-level infrastructure attributes instead of setattr()/getattr()
so health routes and lifecycle hooks can rely on them.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from dishka import AsyncContainer
from quart import Quart
from sqlalchemy.ext.asyncio import AsyncEngine


class ComplaintsServiceApp(Quart):
    """Quart application with guaranteed infrastructure attributes.

    GUARANTEED INFRASTRUCTURE (set in the create_app factory):
        database_engine: SQLAlchemy async engine for database operations
        container: Dishka async container for dependency injection
        extensions: Standard Quart extensions dictionary

    OPTIONAL INFRASTRUCTURE:
        consumer_task: Asyncio task for a background Kafka consumer
        kafka_consumer: Service-specific Kafka consumer instance
    """

    database_engine: AsyncEngine
    container: AsyncContainer
    extensions: dict[str, Any]

    consumer_task: Optional[asyncio.Task[None]] = None
    kafka_consumer: Optional[Any] = None

    def __init__(self, import_name: str, *args: Any, **kwargs: Any) -> None:
        super().__init__(import_name, *args, **kwargs)

        # database_engine and container MUST be set in create_app()
        self.extensions = {}

        self.consumer_task = None
        self.kafka_consumer = None
