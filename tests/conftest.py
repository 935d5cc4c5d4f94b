"""
Pytest fixtures for the labor reporting test suite.

Provides:
- In-memory SQLite sessions with every ORM model created
- A deterministic clock
- An in-memory HR data source and a scripted submission transport
- Seed data: one company, its reporting configuration, employees and a
  closed January 2026 payroll
- Structured log capture

Uses in-memory SQLite for fast tests (no PostgreSQL required).
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from labor_batch.domain.types import (
    EventOutcome,
    PollResult,
    SubmissionEnvelope,
    SubmitReceipt,
)
from labor_config.schema import (
    DatabaseSettings,
    DocumentSettings,
    GenerationSettings,
    ReportingSettings,
)
from labor_events.config import ReportingConfigService
from labor_events.generator import EventGenerator
from labor_events.immutability import register_immutability_listeners
from labor_events.models import (
    CompanyProfile,
    EmployeeRecord,
    LeaveRecord,
    PayrollRecord,
    PayrollStatus,
    Payslip,
    PayslipItem,
    RubricInput,
    RubricType,
    TerminationRecord,
)
from labor_events.rubrics import RubricRegistry
from labor_kernel.db.base import Base
from labor_kernel.domain.clock import DeterministicClock
from labor_kernel.exceptions import TransportError
from labor_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from labor_services.bootstrap import import_all_models
from labor_services.reporting_service import ReportingService

COMPANY_ID = UUID("3f2b8c1e-0000-4000-8000-000000000001")
ACTOR_ID = UUID("3f2b8c1e-0000-4000-8000-0000000000aa")

# Valid worker tax ids (check digits correct)
TAX_ID_ANA = "52998224725"
TAX_ID_BRUNO = "11144477735"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture labor_reporting logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.generate_events(2026, 1)
            logs = captured_logs()
            assert any(r["message"] == "events_generated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("labor_reporting")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    import_all_models()
    register_immutability_listeners()
    yield


@pytest.fixture
def engine():
    """In-memory SQLite engine with real SAVEPOINT support."""
    engine = create_engine("sqlite:///:memory:")

    # pysqlite defers BEGIN on its own; let SQLAlchemy emit it so nested
    # transactions behave as on PostgreSQL
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return DeterministicClock(
        fixed_time=datetime(2026, 2, 10, 12, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def company_id() -> UUID:
    return COMPANY_ID


@pytest.fixture
def actor_id() -> UUID:
    return ACTOR_ID


@pytest.fixture
def settings() -> ReportingSettings:
    return ReportingSettings(
        database=DatabaseSettings(url="sqlite:///:memory:"),
        documents=DocumentSettings(
            process_version="LABOR_RPT_1.0",
            layout_version="v_S_01_02_00",
            namespace_base="http://www.esocial.gov.br/schema/evt",
        ),
        generation=GenerationSettings(max_workers=1),
    )


# =============================================================================
# HR source fake
# =============================================================================


class FakeHRSource:
    """In-memory ``HRDataSource``; tests mutate the public attributes."""

    def __init__(self, company: CompanyProfile | None = None):
        self.companies: dict[UUID, CompanyProfile] = {}
        if company is not None:
            self.companies[company.id] = company
        self.employees: dict[UUID, EmployeeRecord] = {}
        self.terminations: list[TerminationRecord] = []
        self.leaves: list[LeaveRecord] = []
        self.payrolls: dict[tuple[UUID, int, int], PayrollRecord] = {}

    def add_employee(self, employee: EmployeeRecord) -> EmployeeRecord:
        self.employees[employee.id] = employee
        return employee

    def add_payroll(self, payroll: PayrollRecord) -> PayrollRecord:
        self.payrolls[(payroll.company_id, payroll.year, payroll.month)] = payroll
        return payroll

    def get_company(self, company_id):
        return self.companies.get(company_id)

    def get_employee(self, company_id, employee_id):
        employee = self.employees.get(employee_id)
        if employee is None or employee.company_id != company_id:
            return None
        return employee

    def list_admissions(self, company_id, start, end, employee_ids=None):
        return [
            e for e in self.employees.values()
            if e.company_id == company_id
            and e.hire_date is not None
            and start <= e.hire_date <= end
            and (employee_ids is None or e.id in employee_ids)
        ]

    def list_terminations(self, company_id, start, end, employee_ids=None):
        return [
            t for t in self.terminations
            if self.get_employee(company_id, t.employee_id) is not None
            and t.termination_date is not None
            and start <= t.termination_date <= end
            and (employee_ids is None or t.employee_id in employee_ids)
        ]

    def list_leaves(self, company_id, start, end, employee_ids=None):
        return [
            lv for lv in self.leaves
            if self.get_employee(company_id, lv.employee_id) is not None
            and lv.start_date is not None
            and start <= lv.start_date <= end
            and (employee_ids is None or lv.employee_id in employee_ids)
        ]

    def get_payroll(self, company_id, year, month):
        return self.payrolls.get((company_id, year, month))


# =============================================================================
# Transport fake
# =============================================================================


class ScriptedTransport:
    """
    ``SubmissionTransport`` fake with scripted outcomes.

    Every document is accepted unless rejected or withheld beforehand.
    """

    def __init__(self):
        self.submitted: list[SubmissionEnvelope] = []
        self.poll_calls: list[str] = []
        self._submit_failures: list[TransportError] = []
        self._poll_failures: list[TransportError] = []
        self._rejections: dict[str, tuple[str, str]] = {}
        self._withheld: set[str] = set()
        self._batch_error: tuple[str, str] | None = None
        self._protocols: dict[str, SubmissionEnvelope] = {}

    def fail_next_submit(self, message: str = "gateway timeout") -> None:
        self._submit_failures.append(TransportError(message))

    def fail_next_poll(self, message: str = "gateway unavailable") -> None:
        self._poll_failures.append(TransportError(message))

    def reject(self, document_id: str, code: str = "E403", message: str = "Invalid data") -> None:
        self._rejections[document_id] = (code, message)

    def withhold(self, document_id: str) -> None:
        self._withheld.add(document_id)

    def release(self, document_id: str) -> None:
        self._withheld.discard(document_id)

    def reject_batch(self, code: str = "B500", message: str = "Invalid signature") -> None:
        self._batch_error = (code, message)

    def submit(self, envelope: SubmissionEnvelope) -> SubmitReceipt:
        if self._submit_failures:
            raise self._submit_failures.pop(0)
        self.submitted.append(envelope)
        protocol = f"1.2.202602.{len(self.submitted):07d}"
        self._protocols[protocol] = envelope
        return SubmitReceipt(protocol_number=protocol)

    def poll(self, protocol_number: str) -> PollResult:
        self.poll_calls.append(protocol_number)
        if self._poll_failures:
            raise self._poll_failures.pop(0)
        if self._batch_error is not None:
            code, message = self._batch_error
            return PollResult(
                protocol_number, batch_error_code=code, batch_error_message=message,
            )
        outcomes = []
        for doc in self._protocols[protocol_number].documents:
            if doc.document_id in self._withheld:
                continue
            if doc.document_id in self._rejections:
                code, message = self._rejections[doc.document_id]
                outcomes.append(
                    EventOutcome(doc.document_id, False, error_code=code, error_message=message)
                )
            else:
                outcomes.append(
                    EventOutcome(doc.document_id, True, receipt_number=f"R-{doc.document_id[-10:]}")
                )
        return PollResult(protocol_number, tuple(outcomes))


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def company() -> CompanyProfile:
    return CompanyProfile(
        id=COMPANY_ID,
        registration_number="12.345.678/0001-95",
        legal_name="Acme Comercio Ltda",
    )


@pytest.fixture
def ana(company) -> EmployeeRecord:
    return EmployeeRecord(
        id=uuid4(),
        company_id=company.id,
        code="E001",
        name="Ana Souza",
        tax_id=TAX_ID_ANA,
        civil_registry_number="1234567",
        birth_date=date(1990, 5, 17),
        hire_date=date(2026, 1, 12),
        contract_type="CLT",
        job_title="Analyst",
        salary=Decimal("4500.00"),
    )


@pytest.fixture
def bruno(company) -> EmployeeRecord:
    return EmployeeRecord(
        id=uuid4(),
        company_id=company.id,
        code="E002",
        name="Bruno Lima",
        tax_id=TAX_ID_BRUNO,
        civil_registry_number="7654321",
        birth_date=date(1985, 11, 2),
        hire_date=date(2026, 1, 20),
        contract_type="CLT",
        job_title="Clerk",
        salary=Decimal("3200.00"),
    )


@pytest.fixture
def carla(company) -> EmployeeRecord:
    """Employee hired without a tax id on file."""
    return EmployeeRecord(
        id=uuid4(),
        company_id=company.id,
        code="E003",
        name="Carla Dias",
        tax_id=None,
        civil_registry_number="5556667",
        birth_date=date(1999, 3, 8),
        hire_date=date(2026, 1, 26),
        contract_type="TEMPORARY",
    )


@pytest.fixture
def january_payroll(company, ana, bruno) -> PayrollRecord:
    return PayrollRecord(
        id=uuid4(),
        company_id=company.id,
        year=2026,
        month=1,
        status=PayrollStatus.CLOSED,
        payment_date=date(2026, 2, 5),
        payslips=(
            Payslip(
                id=uuid4(),
                employee_id=ana.id,
                gross_amount=Decimal("2903.23"),
                net_amount=Decimal("2540.10"),
                items=(
                    PayslipItem("1000", Decimal("2903.23"), Decimal("20")),
                    PayslipItem("9201", Decimal("-363.13")),
                ),
            ),
            Payslip(
                id=uuid4(),
                employee_id=bruno.id,
                gross_amount=Decimal("1238.71"),
                net_amount=Decimal("1140.00"),
                items=(PayslipItem("1000", Decimal("1238.71"), Decimal("12")),),
            ),
        ),
    )


@pytest.fixture
def hr_source(company, ana, bruno, carla, january_payroll) -> FakeHRSource:
    source = FakeHRSource(company)
    for employee in (ana, bruno, carla):
        source.add_employee(employee)
    source.add_payroll(january_payroll)
    return source


@pytest.fixture
def reporting_config(session, company_id, actor_id):
    config = ReportingConfigService(session).upsert(
        company_id,
        actor_id,
        environment="RESTRICTED",
        employer_type=1,
        software_id="12345678000195",
        software_name="Acme Payroll",
        certificate_ref="vault://certs/acme-a1",
        certificate_expiry=date(2027, 6, 30),
    )
    session.commit()
    return config


@pytest.fixture
def rubrics(session, company_id, actor_id):
    registry = RubricRegistry(session)
    created = [
        registry.create(
            company_id,
            RubricInput(
                code="1000",
                name="Base salary",
                rubric_type=RubricType.EARNING,
                nature_code="1000",
                start_date=date(2025, 1, 1),
            ),
            actor_id,
        ),
        registry.create(
            company_id,
            RubricInput(
                code="9201",
                name="Social security withholding",
                rubric_type=RubricType.DEDUCTION,
                nature_code="9201",
                start_date=date(2025, 1, 1),
            ),
            actor_id,
        ),
    ]
    session.commit()
    return created


@pytest.fixture
def service(session, company_id, actor_id, hr_source, transport, clock, settings, reporting_config, rubrics):
    """Facade over a configured company with rubrics and January data."""
    return ReportingService(
        session,
        company_id,
        actor_id,
        hr_source,
        transport,
        clock=clock,
        settings=settings,
    )


@pytest.fixture
def january_events(session, hr_source, clock, settings, company_id, actor_id, reporting_config, rubrics):
    """January 2026 generated and committed: 6 VALIDATED events, carla's admission DRAFT."""
    generator = EventGenerator(session, hr_source, clock=clock, settings=settings.generation)
    result = generator.generate(company_id, 2026, 1, actor_id)
    session.commit()
    return result
