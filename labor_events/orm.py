"""
Labor Events ORM Persistence Models (``labor_events.orm``).

Responsibility:
    SQLAlchemy ORM models persisting the frozen DTOs of
    ``labor_events.models``: reporting events, rubrics and company
    reporting configuration.  Each class provides ``to_dto()`` /
    ``from_dto()`` conversion.

Architecture position:
    **Events layer** -- persistence companions to the pure DTOs.  Inherits
    from ``TrackedBase`` (id, created_at, updated_at, created_by_id,
    updated_by_id).

Invariants enforced:
    - Enum fields stored as String containing the enum .value.
    - ``(business_key, revision)`` is unique: one row per obligation revision.
    - The event -> batch link is a single FK on the event row
      (``batch_id``); batches never hold a member list.
    - Built document fields never change once set (see
      ``labor_events.immutability``).
"""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from labor_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# ReportingEventModel
# ---------------------------------------------------------------------------


class ReportingEventModel(TrackedBase):
    """
    ORM model for ``ReportingEvent``.

    The primary key is assigned by the generator from the business key and
    revision, never by the uuid4 default.
    """

    __tablename__ = "reporting_events"

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    event_type: Mapped[str] = mapped_column(String(10), nullable=False)
    group_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    business_key: Mapped[str] = mapped_column(String(300), nullable=False)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    subject_type: Mapped[str] = mapped_column(String(30), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(100), nullable=False)
    employee_id: Mapped[UUID | None] = mapped_column(nullable=True)

    reference_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reference_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reference_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    validation_errors: Mapped[list[dict[str, str]] | None] = mapped_column(
        JSON, nullable=True,
    )

    batch_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("submission_batches.id"), nullable=True,
    )
    batch_position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Set once, when first queued
    sequence_number: Mapped[int | None] = mapped_column(nullable=True)
    document_id: Mapped[str | None] = mapped_column(String(40), nullable=True)
    document: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    receipt_number: Mapped[str | None] = mapped_column(String(60), nullable=True)
    submission_error: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)

    references_event_id: Mapped[UUID | None] = mapped_column(nullable=True)
    excluded_by_event_id: Mapped[UUID | None] = mapped_column(nullable=True)
    superseded_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    generated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    queued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("business_key", "revision", name="uq_reporting_event_key_revision"),
        UniqueConstraint("document_id", name="uq_reporting_event_document_id"),
        Index("idx_reporting_event_company_status", "company_id", "status"),
        Index("idx_reporting_event_company_type", "company_id", "event_type"),
        Index("idx_reporting_event_period", "company_id", "reference_year", "reference_month"),
        Index("idx_reporting_event_batch", "batch_id"),
        Index("idx_reporting_event_employee", "employee_id"),
    )

    def to_dto(self):
        from labor_events.catalog import EventType, GroupType
        from labor_events.models import EventStatus, FieldError, ReportingEvent

        return ReportingEvent(
            id=self.id,
            company_id=self.company_id,
            event_type=EventType(self.event_type),
            group=GroupType(self.group_type),
            status=EventStatus(self.status),
            business_key=self.business_key,
            revision=self.revision,
            subject_type=self.subject_type,
            subject_id=self.subject_id,
            payload=dict(self.payload or {}),
            payload_hash=self.payload_hash,
            employee_id=self.employee_id,
            reference_year=self.reference_year,
            reference_month=self.reference_month,
            reference_date=self.reference_date,
            due_date=self.due_date,
            validation_errors=tuple(
                FieldError.from_dict(e) for e in (self.validation_errors or ())
            ),
            batch_id=self.batch_id,
            batch_position=self.batch_position,
            sequence_number=self.sequence_number,
            document_id=self.document_id,
            document=self.document,
            document_hash=self.document_hash,
            receipt_number=self.receipt_number,
            submission_error=dict(self.submission_error) if self.submission_error else None,
            references_event_id=self.references_event_id,
            excluded_by_event_id=self.excluded_by_event_id,
            superseded_by_id=self.superseded_by_id,
            generated_at=self.generated_at,
            validated_at=self.validated_at,
            queued_at=self.queued_at,
            sent_at=self.sent_at,
            processed_at=self.processed_at,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ReportingEventModel":
        return cls(
            id=dto.id,
            company_id=dto.company_id,
            event_type=dto.event_type.value,
            group_type=dto.group.value,
            status=dto.status.value,
            business_key=dto.business_key,
            revision=dto.revision,
            subject_type=dto.subject_type,
            subject_id=dto.subject_id,
            employee_id=dto.employee_id,
            reference_year=dto.reference_year,
            reference_month=dto.reference_month,
            reference_date=dto.reference_date,
            due_date=dto.due_date,
            payload=dto.payload,
            payload_hash=dto.payload_hash,
            validation_errors=[e.to_dict() for e in dto.validation_errors] or None,
            references_event_id=dto.references_event_id,
            generated_at=dto.generated_at,
            validated_at=dto.validated_at,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<ReportingEventModel {self.event_type} {self.subject_type}/"
            f"{self.subject_id} r{self.revision} ({self.status})>"
        )


# ---------------------------------------------------------------------------
# RubricModel
# ---------------------------------------------------------------------------


class RubricModel(TrackedBase):
    """
    ORM model for ``Rubric`` -- an earning/deduction code with tax incidences.

    Code, type, nature, start date and incidence flags are historical facts
    once stored; changes go through a superseding rubric.
    """

    __tablename__ = "reporting_rubrics"

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    code: Mapped[str] = mapped_column(String(30), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rubric_type: Mapped[str] = mapped_column(String(20), nullable=False)
    nature_code: Mapped[str] = mapped_column(String(10), nullable=False)
    incidence_social_security: Mapped[str] = mapped_column(String(20), nullable=False)
    incidence_income_tax: Mapped[str] = mapped_column(String(20), nullable=False)
    incidence_severance_fund: Mapped[str] = mapped_column(String(20), nullable=False)
    incidence_union_dues: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("idx_reporting_rubric_company_code", "company_id", "code"),
        Index("idx_reporting_rubric_company_type", "company_id", "rubric_type"),
    )

    def to_dto(self):
        from labor_events.models import Incidence, Rubric, RubricType

        return Rubric(
            id=self.id,
            company_id=self.company_id,
            code=self.code,
            name=self.name,
            rubric_type=RubricType(self.rubric_type),
            nature_code=self.nature_code,
            start_date=self.start_date,
            end_date=self.end_date,
            description=self.description,
            incidence_social_security=Incidence(self.incidence_social_security),
            incidence_income_tax=Incidence(self.incidence_income_tax),
            incidence_severance_fund=Incidence(self.incidence_severance_fund),
            incidence_union_dues=Incidence(self.incidence_union_dues),
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "RubricModel":
        return cls(
            id=dto.id,
            company_id=dto.company_id,
            code=dto.code,
            name=dto.name,
            description=dto.description,
            rubric_type=dto.rubric_type.value,
            nature_code=dto.nature_code,
            incidence_social_security=dto.incidence_social_security.value,
            incidence_income_tax=dto.incidence_income_tax.value,
            incidence_severance_fund=dto.incidence_severance_fund.value,
            incidence_union_dues=dto.incidence_union_dues.value,
            start_date=dto.start_date,
            end_date=dto.end_date,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<RubricModel {self.code} from {self.start_date} ({self.rubric_type})>"


# ---------------------------------------------------------------------------
# ReportingConfigModel
# ---------------------------------------------------------------------------


class ReportingConfigModel(TrackedBase):
    """ORM model for ``ReportingConfig`` -- one row per company."""

    __tablename__ = "reporting_configs"

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    environment: Mapped[str] = mapped_column(String(20), nullable=False)
    employer_type: Mapped[int] = mapped_column(Integer, nullable=False)
    software_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    software_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    certificate_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)
    certificate_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    auto_generate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_send: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", name="uq_reporting_config_company"),
    )

    def to_dto(self):
        from labor_events.models import Environment, ReportingConfig

        return ReportingConfig(
            company_id=self.company_id,
            environment=Environment(self.environment),
            employer_type=self.employer_type,
            software_id=self.software_id,
            software_name=self.software_name,
            certificate_ref=self.certificate_ref,
            certificate_expiry=self.certificate_expiry,
            auto_generate=self.auto_generate,
            auto_send=self.auto_send,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ReportingConfigModel":
        return cls(
            company_id=dto.company_id,
            environment=dto.environment.value,
            employer_type=dto.employer_type,
            software_id=dto.software_id,
            software_name=dto.software_name,
            certificate_ref=dto.certificate_ref,
            certificate_expiry=dto.certificate_expiry,
            auto_generate=dto.auto_generate,
            auto_send=dto.auto_send,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ReportingConfigModel {self.company_id} ({self.environment})>"
