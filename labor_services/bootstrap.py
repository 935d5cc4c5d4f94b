"""
Application start-up (``labor_services.bootstrap``).

One orchestration function for every entrypoint: load settings,
configure logging, initialize the engine, register every ORM model and
the immutability listeners, and create the schema.
"""

from __future__ import annotations

from labor_config import get_settings
from labor_config.schema import ReportingSettings
from labor_events.immutability import register_immutability_listeners
from labor_kernel.db.engine import create_tables, init_engine_from_url
from labor_kernel.logging_config import configure_logging, get_logger

logger = get_logger("services.bootstrap")


def import_all_models() -> None:
    """Import every ORM module so ``Base.metadata`` knows all tables (idempotent)."""
    import labor_batch.models  # noqa: F401
    import labor_events.orm  # noqa: F401
    import labor_kernel.services.sequence_service  # noqa: F401


def init_reporting(
    settings: ReportingSettings | None = None,
    database_url: str | None = None,
    create_schema: bool = True,
) -> ReportingSettings:
    """
    Bring the reporting engine up.

    ``database_url`` overrides the configured URL (tests, tooling).
    """
    settings = settings or get_settings()
    configure_logging(level=settings.logging.level)
    url = database_url or settings.database.url
    init_engine_from_url(url, echo=settings.database.echo)

    import_all_models()
    register_immutability_listeners()
    if create_schema:
        create_tables()

    logger.info(
        "reporting_initialized",
        extra={
            "settings_checksum": settings.checksum,
            "create_schema": create_schema,
        },
    )
    return settings
