"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing numbers for submission batch numbers and
    document sequence numbers, scoped per company by the sequence name.
    A dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) guarantees uniqueness and ordering under
    concurrent access.

Architecture position:
    Kernel > Services.  Called by the batch manager (batch numbers) and by
    document building at enqueue time (document sequence numbers).

Invariants enforced:
    - The locked counter row is the sole source of the next value; the
      aggregate-max-plus-one pattern is never used.
    - The increment is only visible once the caller's transaction commits.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from labor_kernel.db.base import Base
from labor_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One row per named sequence holding its current value."""

    __tablename__ = "sequence_counters"

    # e.g. "batch:<company_id>", "document:<company_id>"
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    BATCH_NUMBER = "batch"
    DOCUMENT = "document"

    def __init__(self, session: Session):
        self._session = session

    @staticmethod
    def scoped(kind: str, scope: object) -> str:
        """Sequence name for a per-scope counter, e.g. per company."""
        return f"{kind}:{scope}"

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the named counter (creating it on first use), increment it
        and return the new value.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously returned for this name.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use; a concurrent creator may win the insert race
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None if unused."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.name == sequence_name
            )
        ).scalar_one_or_none()
