"""
SequenceService -- document number allocation via locked counter rows.

Responsibility:
    Issues order and receipt numbers of the form
    ``{prefix}{yyyymmdd}{seq}``, e.g. ``PO202401150001``.  The daily
    sequence restarts at 1 for every prefix and date.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by OrderService (order numbers) and ReconciliationService
    (receipt numbers).

Invariants enforced:
    - Monotonic per counter: the locked counter row is the sole source of
      the next value.  Counting existing documents is never used.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller controls boundaries.

    Usage:
        number = SequenceService(session).next_document_number("PO", date(2024, 1, 15))
        # "PO202401150001"
    """

    def __init__(self, session: Session, width: int = 4):
        self._session = session
        self._width = width

    def next_value(self, sequence_name: str) -> int:
        """
        Lock (or create) the counter row, increment it and return the value.

        Postconditions:
            - Returns an integer > 0, strictly greater than any value
              previously returned for ``sequence_name``.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            # Savepoint so a lost creation race does not roll back the caller's work
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
                counter = self._session.execute(
                    select(SequenceCounter)
                    .where(SequenceCounter.name == sequence_name)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one()

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def next_document_number(self, prefix: str, on_date: date) -> str:
        """Allocate the next ``{prefix}{yyyymmdd}{seq}`` number for ``on_date``."""
        day_key = f"{prefix}{on_date:%Y%m%d}"
        value = self.next_value(day_key)
        return f"{day_key}{value:0{self._width}d}"
