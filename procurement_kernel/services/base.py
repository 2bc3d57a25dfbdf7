"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor and session-handling contract for the services
    that mutate orders and receipts.  Kernel services receive a SQLAlchemy
    ``Session`` and use ``session.flush()``, never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    ATOMIC_CONFIRMATION -- kernel services flush within the caller's
        transaction.  Only the facade services (ReconciliationService,
        OrderService) own commit and rollback.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from procurement_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Read-only queries belong in ``procurement_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
