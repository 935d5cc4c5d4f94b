"""
Runtime settings schema (``labor_config.schema``).

Frozen dataclasses parsed from the settings YAML.  Pure data; the loader
is the only producer.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class DocumentSettings:
    """Layout parameters stamped into every generated document."""

    process_version: str
    layout_version: str
    namespace_base: str


@dataclass(frozen=True)
class GenerationSettings:
    # Validation fan-out; 1 keeps generation single-threaded
    max_workers: int = 1
    default_event_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class DispatchSettings:
    max_batches_per_cycle: int = 20


@dataclass(frozen=True)
class ReportingSettings:
    """Complete runtime settings for the reporting engine."""

    database: DatabaseSettings
    documents: DocumentSettings
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    checksum: str = ""
