"""
Business key and deterministic event id utilities.

A reporting obligation is identified by its business key: the company,
the event type, the source subject and the reference period.  The event
id is derived from the business key and a revision number, so generating
the same obligation twice always lands on the same row.
"""

from uuid import UUID, uuid5

# Fixed namespace for event ids; changing it re-keys every stored event.
EVENT_ID_NAMESPACE = UUID("6f1c2b1e-4d0a-5b7e-9a53-2f8d0c6e7a41")

_NO_PERIOD = "-"


def generate_business_key(
    company_id: UUID | str,
    event_type: str,
    subject: str,
    period: str | None = None,
) -> str:
    """
    Generate the business key for a reporting obligation.

    Format: company_id:event_type:subject:period

    Example:
        >>> generate_business_key(company, "S-2200", "employee/42")
        "…:S-2200:employee/42:-"
    """
    return f"{company_id}:{event_type}:{subject}:{period or _NO_PERIOD}"


def parse_business_key(key: str) -> tuple[str, str, str, str | None]:
    """
    Parse a business key into (company_id, event_type, subject, period).

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":")
    if len(parts) != 4 or not all(parts):
        raise ValueError(f"Invalid business key format: {key}")
    company_id, event_type, subject, period = parts
    return company_id, event_type, subject, None if period == _NO_PERIOD else period


def derive_event_id(business_key: str, revision: int = 1) -> UUID:
    """Derive the deterministic event id for a business key revision."""
    if revision < 1:
        raise ValueError(f"Revision must be positive, got {revision}")
    return uuid5(EVENT_ID_NAMESPACE, f"{business_key}#{revision}")
