"""
Event Catalog (``labor_events.catalog``).

Responsibility
--------------
Static registry of every regulated event type: its group, display name,
description and statutory deadline.  Pure lookups, no I/O.

Deadlines are calendar days added to a reference date chosen by the
generator (hire date, termination date, leave start or the last day of
the reference month).  ``deadline_days=None`` means the event carries no
statutory deadline.

Invariants enforced
-------------------
* Exactly one definition per ``EventType`` (checked at import).
* Unknown types raise ``UnknownEventTypeError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from labor_kernel.exceptions import UnknownEventTypeError


class GroupType(str, Enum):
    """Submission group; a batch only carries events of one group."""

    TABLES = "TABLES"  # Employer and reference tables
    NON_PERIODIC = "NON_PERIODIC"  # Triggered by an HR fact
    PERIODIC = "PERIODIC"  # Monthly payroll obligations


class EventType(str, Enum):
    S_1000 = "S-1000"
    S_1005 = "S-1005"
    S_1010 = "S-1010"
    S_1020 = "S-1020"
    S_2190 = "S-2190"
    S_2200 = "S-2200"
    S_2205 = "S-2205"
    S_2206 = "S-2206"
    S_2230 = "S-2230"
    S_2231 = "S-2231"
    S_2240 = "S-2240"
    S_2298 = "S-2298"
    S_2299 = "S-2299"
    S_2300 = "S-2300"
    S_2306 = "S-2306"
    S_2399 = "S-2399"
    S_2400 = "S-2400"
    S_3000 = "S-3000"
    S_1200 = "S-1200"
    S_1210 = "S-1210"
    S_1260 = "S-1260"
    S_1270 = "S-1270"
    S_1280 = "S-1280"
    S_1298 = "S-1298"
    S_1299 = "S-1299"


@dataclass(frozen=True)
class EventDefinition:
    event_type: EventType
    group: GroupType
    name: str
    description: str
    deadline_days: int | None


def _d(
    event_type: EventType,
    group: GroupType,
    name: str,
    description: str,
    deadline_days: int | None,
) -> EventDefinition:
    return EventDefinition(event_type, group, name, description, deadline_days)


_T, _N, _P = GroupType.TABLES, GroupType.NON_PERIODIC, GroupType.PERIODIC

EVENT_DEFINITIONS: tuple[EventDefinition, ...] = (
    # Tables
    _d(EventType.S_1000, _T, "Employer information", "Employer registration, classification and contacts", None),
    _d(EventType.S_1005, _T, "Establishments table", "Establishments, works and units of the employer", None),
    _d(EventType.S_1010, _T, "Rubrics table", "Earning and deduction codes with tax incidences", None),
    _d(EventType.S_1020, _T, "Tax locations table", "Tax location codes used by workers", None),
    # Non-periodic
    _d(EventType.S_2190, _N, "Preliminary admission", "Registration of a worker before full admission data", 0),
    _d(EventType.S_2200, _N, "Admission", "Worker registration and employment contract", 1),
    _d(EventType.S_2205, _N, "Personal data change", "Change of worker registration data", 15),
    _d(EventType.S_2206, _N, "Contract change", "Change of employment contract terms", 15),
    _d(EventType.S_2230, _N, "Temporary leave", "Start or end of a temporary leave of absence", 15),
    _d(EventType.S_2231, _N, "Assignment", "Worker assignment or transfer to another employer", 15),
    _d(EventType.S_2240, _N, "Environmental conditions", "Work environment and exposure to hazardous agents", 15),
    _d(EventType.S_2298, _N, "Reinstatement", "Reinstatement of a terminated worker", 15),
    _d(EventType.S_2299, _N, "Termination", "End of employment contract", 10),
    _d(EventType.S_2300, _N, "Non-employee start", "Start of work without employment contract", 7),
    _d(EventType.S_2306, _N, "Non-employee change", "Change of non-employee contract terms", 15),
    _d(EventType.S_2399, _N, "Non-employee end", "End of work without employment contract", 15),
    _d(EventType.S_2400, _N, "Pension beneficiary", "Registration of a pension beneficiary", 15),
    _d(EventType.S_3000, _N, "Exclusion", "Exclusion of a previously accepted event", None),
    # Periodic
    _d(EventType.S_1200, _P, "Remuneration", "Worker remuneration for the reference month", 15),
    _d(EventType.S_1210, _P, "Payments", "Payments of income to workers", 15),
    _d(EventType.S_1260, _P, "Rural production sales", "Sales of rural production by individuals", 15),
    _d(EventType.S_1270, _P, "Occasional workers", "Hiring of occasional workers", 15),
    _d(EventType.S_1280, _P, "Complementary information", "Complementary periodic information", 15),
    _d(EventType.S_1298, _P, "Period reopening", "Reopening of closed periodic events", None),
    _d(EventType.S_1299, _P, "Period closing", "Closing of periodic events for the month", 15),
)

_BY_TYPE: dict[EventType, EventDefinition] = {d.event_type: d for d in EVENT_DEFINITIONS}

if len(_BY_TYPE) != len(EVENT_DEFINITIONS) or set(_BY_TYPE) != set(EventType):
    raise RuntimeError("Event catalog must define every event type exactly once")


def coerce_event_type(event_type: EventType | str) -> EventType:
    """Accept an ``EventType`` or its code (``"S-2200"``) or member name (``"S_2200"``)."""
    if isinstance(event_type, EventType):
        return event_type
    try:
        return EventType(event_type)
    except ValueError:
        pass
    try:
        return EventType[event_type]
    except KeyError:
        raise UnknownEventTypeError(
            str(event_type), [t.value for t in EventType]
        ) from None


def lookup(event_type: EventType | str) -> EventDefinition:
    """Return the catalog definition for an event type."""
    return _BY_TYPE[coerce_event_type(event_type)]


def event_group(event_type: EventType | str) -> GroupType:
    return lookup(event_type).group


def display_name(event_type: EventType | str) -> str:
    definition = lookup(event_type)
    return f"{definition.event_type.value} - {definition.name}"


def deadline(event_type: EventType | str, trigger_date: date) -> date | None:
    """Statutory due date: ``trigger_date`` plus the type's deadline in calendar days."""
    days = lookup(event_type).deadline_days
    if days is None:
        return None
    return trigger_date + timedelta(days=days)


def definitions_by_group(group: GroupType) -> tuple[EventDefinition, ...]:
    return tuple(d for d in EVENT_DEFINITIONS if d.group == group)
