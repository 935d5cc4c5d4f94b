"""
labor_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_settings()`` is the only way services obtain runtime settings
    (database URL, log level, document layout, generation defaults).
    Per-company reporting configuration is persisted data and lives in
    ``labor_events.config``, not here.
"""

from __future__ import annotations

from pathlib import Path

from labor_config.loader import compute_checksum, load_settings
from labor_config.schema import ReportingSettings
from labor_kernel.logging_config import get_logger

__all__ = ["ReportingSettings", "compute_checksum", "get_settings"]

logger = get_logger("config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "settings.yaml"


def get_settings(path: Path | str | None = None) -> ReportingSettings:
    """Load runtime settings from ``path`` or the packaged defaults."""
    settings_path = Path(path) if path is not None else _DEFAULT_SETTINGS_FILE
    settings = load_settings(settings_path)
    logger.info(
        "settings_loaded",
        extra={
            "path": str(settings_path),
            "checksum": settings.checksum,
            "process_version": settings.documents.process_version,
        },
    )
    return settings
