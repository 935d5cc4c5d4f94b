"""
Document builders (``labor_events.documents``).

Responsibility
--------------
Render validated event payloads into the authority's XML layout.  One
pure builder per event type, all sharing the same header: the
``ideEvento`` block (rectification flag, environment, emitter, software
version) and the ``ideEmpregador`` block (inscription type and number).

Invariants enforced
-------------------
* Deterministic: element order is fixed per type and the same payload and
  envelope always render the same text.
* Worker tax ids are padded to 11 digits, employer registrations to 14.
* Dates render as ``YYYY-MM-DD``, periods as ``YYYY-MM``, amounts with two
  decimals.  Text escaping is left to the serializer.
* Builders only ever see validated payloads; a failure inside a builder is
  a defect and surfaces as ``DocumentBuildError``.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable

from labor_events.models import (
    CONTRACT_TYPE_CODES,
    INCIDENCE_CODES,
    LEAVE_TYPE_CODES,
    RUBRIC_TYPE_CODES,
    TERMINATION_REASON_CODES,
)
from labor_events.validation import digits_only
from labor_kernel.exceptions import DocumentBuildError

_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

# Inscription type of the employer: 1 = company registration
INSCRIPTION_TYPE = "1"

# Emitter: 1 = employer's own software
_EMITTER_CODE = "1"

DocumentBuilder = Callable[[dict[str, Any], "DocumentEnvelope"], str]


@dataclass(frozen=True)
class DocumentEnvelope:
    """Header values stamped into a document; fixed at enqueue time."""

    document_id: str
    sequence_number: int
    environment_code: str
    process_version: str
    layout_version: str
    namespace_base: str
    registration_number: str
    rectification: bool = False


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def pad_tax_id(value: str | None) -> str:
    return digits_only(value).zfill(11)


def pad_registration(value: str | None) -> str:
    return digits_only(value).zfill(14)


def format_date(value: date | str) -> str:
    if isinstance(value, str):
        value = date.fromisoformat(value)
    return value.strftime("%Y-%m-%d")


def format_amount(value: Decimal | str | int) -> str:
    return str(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def make_document_id(registration_number: str, issued_at: datetime, sequence_number: int) -> str:
    """``ID`` + inscription type + registration(14) + timestamp(14) + sequence(5)."""
    return (
        f"ID{INSCRIPTION_TYPE}{pad_registration(registration_number)}"
        f"{issued_at.strftime('%Y%m%d%H%M%S')}{sequence_number % 100000:05d}"
    )


def _text(parent: ET.Element, tag: str, value: Any) -> ET.Element:
    child = ET.SubElement(parent, tag)
    child.text = str(value)
    return child


def _optional(parent: ET.Element, tag: str, value: Any) -> None:
    if value not in (None, ""):
        _text(parent, tag, value)


def _start(
    event_name: str,
    envelope: DocumentEnvelope,
    period: str | None = None,
) -> tuple[ET.Element, ET.Element]:
    root = ET.Element(
        "eSocial",
        {"xmlns": f"{envelope.namespace_base}/{event_name}/{envelope.layout_version}"},
    )
    evt = ET.SubElement(root, event_name, {"Id": envelope.document_id})
    ide = ET.SubElement(evt, "ideEvento")
    _text(ide, "indRetif", "2" if envelope.rectification else "1")
    if period is not None:
        _text(ide, "indApuracao", "1")
        _text(ide, "perApur", period)
    _text(ide, "tpAmb", envelope.environment_code)
    _text(ide, "procEmi", _EMITTER_CODE)
    _text(ide, "verProc", envelope.process_version)
    employer = ET.SubElement(evt, "ideEmpregador")
    _text(employer, "tpInsc", INSCRIPTION_TYPE)
    _text(employer, "nrInsc", pad_registration(envelope.registration_number))
    return root, evt


def _render(root: ET.Element) -> str:
    return _XML_DECLARATION + ET.tostring(root, encoding="unicode")


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_employer(payload: dict[str, Any], envelope: DocumentEnvelope) -> str:
    root, evt = _start("evtInfoEmpregador", envelope)
    info = ET.SubElement(evt, "infoEmpregador")
    inclusion = ET.SubElement(info, "inclusao")
    validity = ET.SubElement(inclusion, "idePeriodo")
    _text(validity, "iniValid", payload["valid_from"])
    cadastro = ET.SubElement(inclusion, "infoCadastro")
    _text(cadastro, "nmRazao", payload["legal_name"])
    _text(cadastro, "classTrib", f"{payload['employer_type']:02d}")
    software = ET.SubElement(cadastro, "softwareHouse")
    _text(software, "idSoftware", payload["software_id"])
    _optional(software, "nmSoftware", payload.get("software_name"))
    return _render(root)


def build_rubric_table(payload: dict[str, Any], envelope: DocumentEnvelope) -> str:
    root, evt = _start("evtTabRubrica", envelope)
    info = ET.SubElement(evt, "infoRubrica")
    inclusion = ET.SubElement(info, "inclusao")
    ide = ET.SubElement(inclusion, "ideRubrica")
    _text(ide, "codRubr", payload["code"])
    _text(ide, "iniValid", payload["valid_from"])
    _optional(ide, "fimValid", payload.get("valid_to"))
    data = ET.SubElement(inclusion, "dadosRubrica")
    _text(data, "dscRubr", payload["name"])
    _text(data, "natRubr", payload["nature_code"])
    _text(data, "tpRubr", RUBRIC_TYPE_CODES[payload["rubric_type"]])
    _text(data, "codIncCP", INCIDENCE_CODES[payload["incidence_social_security"]])
    _text(data, "codIncIRRF", INCIDENCE_CODES[payload["incidence_income_tax"]])
    _text(data, "codIncFGTS", INCIDENCE_CODES[payload["incidence_severance_fund"]])
    _text(data, "codIncSIND", INCIDENCE_CODES[payload["incidence_union_dues"]])
    _optional(data, "observacao", payload.get("description"))
    return _render(root)


def build_admission(payload: dict[str, Any], envelope: DocumentEnvelope) -> str:
    root, evt = _start("evtAdmissao", envelope)
    worker = ET.SubElement(evt, "trabalhador")
    _text(worker, "cpfTrab", pad_tax_id(payload["tax_id"]))
    _text(worker, "nisTrab", digits_only(payload["civil_registry_number"]))
    _text(worker, "nmTrab", payload["name"])
    birth = ET.SubElement(worker, "nascimento")
    _text(birth, "dtNascto", format_date(payload["birth_date"]))
    link = ET.SubElement(evt, "vinculo")
    _text(link, "matricula", payload["employee_code"])
    _text(link, "tpRegTrab", "1")
    _text(link, "tpRegPrev", "1")
    contract = ET.SubElement(link, "infoRegimeTrab")
    clt = ET.SubElement(contract, "infoCeletista")
    _text(clt, "dtAdm", format_date(payload["hire_date"]))
    _text(clt, "tpAdmissao", "1")
    _text(clt, "tpContr", CONTRACT_TYPE_CODES[payload["contract_type"]])
    terms = ET.SubElement(link, "infoContrato")
    _optional(terms, "nmCargo", payload.get("job_title"))
    if payload.get("salary") is not None:
        pay = ET.SubElement(terms, "remuneracao")
        _text(pay, "vrSalFx", format_amount(payload["salary"]))
        _text(pay, "undSalFixo", "5")
    return _render(root)


def build_termination(payload: dict[str, Any], envelope: DocumentEnvelope) -> str:
    root, evt = _start("evtDeslig", envelope)
    link = ET.SubElement(evt, "ideVinculo")
    _text(link, "cpfTrab", pad_tax_id(payload["tax_id"]))
    _text(link, "matricula", payload["employee_code"])
    info = ET.SubElement(evt, "infoDeslig")
    _text(info, "mtvDeslig", TERMINATION_REASON_CODES[payload["reason"]])
    _text(info, "dtDeslig", format_date(payload["termination_date"]))
    if payload.get("notice_date"):
        _text(info, "dtAvPrv", format_date(payload["notice_date"]))
    if payload.get("net_amount") is not None:
        _text(info, "vrLiquido", format_amount(payload["net_amount"]))
    return _render(root)


def build_leave(payload: dict[str, Any], envelope: DocumentEnvelope) -> str:
    root, evt = _start("evtAfastTemp", envelope)
    link = ET.SubElement(evt, "ideVinculo")
    _text(link, "cpfTrab", pad_tax_id(payload["tax_id"]))
    _text(link, "matricula", payload["employee_code"])
    info = ET.SubElement(evt, "infoAfastamento")
    start = ET.SubElement(info, "iniAfastamento")
    _text(start, "dtIniAfast", format_date(payload["start_date"]))
    _text(start, "codMotAfast", LEAVE_TYPE_CODES[payload["leave_type"]])
    if payload.get("end_date"):
        end = ET.SubElement(info, "fimAfastamento")
        _text(end, "dtTermAfast", format_date(payload["end_date"]))
    return _render(root)


def build_remuneration(payload: dict[str, Any], envelope: DocumentEnvelope) -> str:
    root, evt = _start("evtRemun", envelope, period=payload["period"])
    worker = ET.SubElement(evt, "ideTrabalhador")
    _text(worker, "cpfTrab", pad_tax_id(payload["tax_id"]))
    statement = ET.SubElement(evt, "dmDev")
    _text(statement, "ideDmDev", payload["payslip_id"])
    period_info = ET.SubElement(statement, "infoPerApur")
    establishment = ET.SubElement(period_info, "ideEstabLot")
    _text(establishment, "tpInsc", INSCRIPTION_TYPE)
    _text(establishment, "nrInsc", pad_registration(envelope.registration_number))
    worker_pay = ET.SubElement(establishment, "remunPerApur")
    _text(worker_pay, "matricula", payload["employee_code"])
    for item in payload["items"]:
        row = ET.SubElement(worker_pay, "itensRemun")
        _text(row, "codRubr", item["rubric_code"])
        if item.get("quantity") is not None:
            _text(row, "qtdRubr", item["quantity"])
        _text(row, "vrRubr", format_amount(item["amount"]))
    return _render(root)


def build_payment(payload: dict[str, Any], envelope: DocumentEnvelope) -> str:
    root, evt = _start("evtPgtos", envelope, period=payload["period"])
    beneficiary = ET.SubElement(evt, "ideBenef")
    _text(beneficiary, "cpfBenef", pad_tax_id(payload["tax_id"]))
    payment = ET.SubElement(beneficiary, "infoPgto")
    _text(payment, "dtPgto", format_date(payload["payment_date"]))
    _text(payment, "tpPgto", "1")
    _text(payment, "perRef", payload["period"])
    _text(payment, "ideDmDev", payload["payslip_id"])
    _text(payment, "vrLiq", format_amount(payload["net_amount"]))
    return _render(root)


def build_period_closing(payload: dict[str, Any], envelope: DocumentEnvelope) -> str:
    root, evt = _start("evtFechaEvPer", envelope, period=payload["period"])
    info = ET.SubElement(evt, "infoFech")
    _text(info, "evtRemun", "S" if payload["has_remuneration"] else "N")
    _text(info, "evtPgtos", "S" if payload["has_payments"] else "N")
    _text(info, "evtComProd", "N")
    _text(info, "evtContratAvNP", "N")
    _text(info, "evtInfoComplPer", "N")
    return _render(root)


def build_exclusion(payload: dict[str, Any], envelope: DocumentEnvelope) -> str:
    root, evt = _start("evtExclusao", envelope)
    info = ET.SubElement(evt, "infoExclusao")
    _text(info, "tpEvento", payload["event_type"])
    _text(info, "nrRecEvt", payload["receipt_number"])
    if payload.get("tax_id"):
        worker = ET.SubElement(info, "ideTrabalhador")
        _text(worker, "cpfTrab", pad_tax_id(payload["tax_id"]))
    if payload.get("period"):
        payroll = ET.SubElement(info, "ideFolhaPagto")
        _text(payroll, "perApur", payload["period"])
    return _render(root)


def render_document(
    builder: DocumentBuilder,
    payload: dict[str, Any],
    envelope: DocumentEnvelope,
    *,
    event_id: str,
    event_type: str,
) -> str:
    """Run a builder, converting any failure into ``DocumentBuildError``."""
    try:
        return builder(payload, envelope)
    except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
        raise DocumentBuildError(event_id, event_type, f"{type(exc).__name__}: {exc}") from exc
