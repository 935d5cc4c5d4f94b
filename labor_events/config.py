"""
Company reporting configuration (``labor_events.config``).

Persisted per-company settings that govern submission: target
environment, employer classification, software identification, the
signing certificate reference and the automation flags read by the
dispatch cycle.

``require_active`` is the gate every generation and send goes through: a
missing or inactive configuration is a ``ConfigurationError`` and is
never retried.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from labor_events.models import Environment, ReportingConfig
from labor_events.orm import ReportingConfigModel
from labor_kernel.exceptions import ConfigurationNotFoundError, InvalidConfigurationError
from labor_kernel.logging_config import get_logger

logger = get_logger("events.config")

_UPDATABLE = (
    "environment",
    "employer_type",
    "software_id",
    "software_name",
    "certificate_ref",
    "certificate_expiry",
    "auto_generate",
    "auto_send",
    "is_active",
)


def _normalize(company_id: UUID, changes: dict[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - set(_UPDATABLE)
    if unknown:
        raise InvalidConfigurationError(str(company_id), f"unknown field(s) {sorted(unknown)}")
    values = dict(changes)
    if "environment" in values:
        try:
            values["environment"] = Environment(values["environment"]).value
        except ValueError:
            raise InvalidConfigurationError(
                str(company_id), f"unknown environment {values['environment']!r}",
            ) from None
    if "employer_type" in values:
        employer_type = values["employer_type"]
        if not isinstance(employer_type, int) or not 1 <= employer_type <= 9:
            raise InvalidConfigurationError(str(company_id), "employer type must be 1..9")
    for key in ("software_id", "software_name"):
        if key in values and values[key] is not None:
            values[key] = str(values[key]).strip() or None
    if "certificate_expiry" in values and values["certificate_expiry"] is not None:
        if not isinstance(values["certificate_expiry"], date):
            raise InvalidConfigurationError(str(company_id), "certificate expiry must be a date")
    return values


class ReportingConfigService:
    """CRUD for company reporting configuration. Does NOT commit."""

    def __init__(self, session: Session):
        self._session = session

    def _load(self, company_id: UUID) -> ReportingConfigModel | None:
        return self._session.execute(
            select(ReportingConfigModel).where(ReportingConfigModel.company_id == company_id)
        ).scalar_one_or_none()

    def get(self, company_id: UUID) -> ReportingConfig | None:
        model = self._load(company_id)
        return model.to_dto() if model is not None else None

    def upsert(self, company_id: UUID, actor_id: UUID, **changes: Any) -> ReportingConfig:
        """
        Create the configuration or apply ``changes`` to it.

        Creation requires ``employer_type``; ``environment`` defaults to
        RESTRICTED so a new company never submits to production by accident.
        """
        values = _normalize(company_id, changes)
        model = self._load(company_id)
        created = model is None
        if model is None:
            if "employer_type" not in values:
                raise InvalidConfigurationError(str(company_id), "employer type is required")
            values.setdefault("environment", Environment.RESTRICTED.value)
            model = ReportingConfigModel(company_id=company_id, created_by_id=actor_id, **values)
            self._session.add(model)
        else:
            for key, value in values.items():
                setattr(model, key, value)
            model.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "reporting_config_saved",
            extra={
                "company_id": str(company_id),
                "is_new": created,
                "fields": sorted(values),
                "environment": model.environment,
            },
        )
        return model.to_dto()

    def require_active(self, company_id: UUID) -> ReportingConfig:
        """
        Raises:
            ConfigurationNotFoundError: No configuration row.
            InvalidConfigurationError: Configuration inactive.
        """
        config = self.get(company_id)
        if config is None:
            raise ConfigurationNotFoundError(str(company_id))
        if not config.is_active:
            raise InvalidConfigurationError(str(company_id), "reporting is not active")
        return config
