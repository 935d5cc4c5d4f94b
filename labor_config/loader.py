"""
Settings Loader (``labor_config.loader``).

Responsibility
--------------
Loads the settings YAML and parses it into the frozen dataclasses of
``labor_config.schema``.  Callers use ``labor_config.get_settings()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from labor_config.schema import (
    DatabaseSettings,
    DispatchSettings,
    DocumentSettings,
    GenerationSettings,
    LoggingSettings,
    ReportingSettings,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of the raw settings."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=data["url"],
        echo=bool(data.get("echo", False)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {level!r}; expected one of {_LOG_LEVELS}")
    return LoggingSettings(level=level)


def parse_documents(data: dict[str, Any]) -> DocumentSettings:
    process_version = str(data["process_version"])
    if not process_version or len(process_version) > 20:
        raise ValueError("documents.process_version must be 1..20 characters")
    return DocumentSettings(
        process_version=process_version,
        layout_version=data["layout_version"],
        namespace_base=data["namespace_base"].rstrip("/"),
    )


def parse_generation(data: dict[str, Any]) -> GenerationSettings:
    max_workers = int(data.get("max_workers", 1))
    if max_workers < 1:
        raise ValueError(f"generation.max_workers must be >= 1, got {max_workers}")
    return GenerationSettings(
        max_workers=max_workers,
        default_event_types=tuple(data.get("default_event_types", ())),
    )


def parse_dispatch(data: dict[str, Any]) -> DispatchSettings:
    limit = int(data.get("max_batches_per_cycle", 20))
    if limit < 1:
        raise ValueError(f"dispatch.max_batches_per_cycle must be >= 1, got {limit}")
    return DispatchSettings(max_batches_per_cycle=limit)


def parse_settings(data: dict[str, Any]) -> ReportingSettings:
    """Parse a raw settings dict into ``ReportingSettings``."""
    return ReportingSettings(
        database=parse_database(data["database"]),
        documents=parse_documents(data["documents"]),
        logging=parse_logging(data.get("logging") or {}),
        generation=parse_generation(data.get("generation") or {}),
        dispatch=parse_dispatch(data.get("dispatch") or {}),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> ReportingSettings:
    """Load and parse a settings YAML file."""
    return parse_settings(load_yaml_file(path))
