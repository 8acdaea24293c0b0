"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor (session, clock, settings, actor,
    optional change notifier) and the unit-of-work helper every mutating
    operation runs in.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit.  Each public mutating method runs
      inside ``session.begin_nested()`` (a SAVEPOINT), so a failure leaves
      no partial effect while the caller's outer transaction survives.
    - Optimistic locking: ``StaleDataError`` raised by a versioned UPDATE is
      re-raised as ``OptimisticLockError`` (code CONFLICTING_UPDATE).

Failure modes:
    - If a subclass calls ``session.commit()`` the caller loses atomicity
      across multi-step operations.
"""

from abc import ABC
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import date
from typing import Generator, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from budget_kernel.db.base import Base
from budget_kernel.domain.cache import ChangeNotifier
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.dtos import ChangeEvent
from budget_kernel.domain.settings import DEFAULT_SETTINGS, EngineSettings
from budget_kernel.exceptions import OptimisticLockError

ModelType = TypeVar("ModelType", bound=Base)

# Actor recorded on rows written without an explicit actor (scripts, tests)
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


def period_of(day: date) -> tuple[int, int]:
    return (day.year, day.month)


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage the outer transaction (commit/rollback).
        - Does NOT provide read models; those belong in ``selectors/``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
        actor_id: UUID | None = None,
        notifier: ChangeNotifier | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._settings = settings or DEFAULT_SETTINGS
        self._actor_id = actor_id or SYSTEM_ACTOR_ID
        self._notifier = notifier

    def _dependencies(self) -> dict:
        """Constructor kwargs for collaborating services sharing this context."""
        return {
            "clock": self._clock,
            "settings": self._settings,
            "actor_id": self._actor_id,
            "notifier": self._notifier,
        }

    @contextmanager
    def _atomic(self, entity_type: str, entity_id: UUID | str | None = None) -> Generator[None, None, None]:
        """
        Run the block inside a SAVEPOINT and flush before releasing it.

        Raises:
            OptimisticLockError: if any versioned row changed underneath us.
        """
        try:
            with self.session.begin_nested():
                yield
                self.session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError(entity_type, str(entity_id)) from exc

    def _add(self, model: ModelType) -> ModelType:
        model.created_by_id = self._actor_id
        self.session.add(model)
        return model

    def _touch(self, model: ModelType) -> ModelType:
        model.updated_by_id = self._actor_id
        return model

    def _emit(
        self,
        entity_type: str,
        entity_id: UUID,
        action: str,
        periods: Iterable[tuple[int, int]] = (),
    ) -> None:
        if self._notifier is None:
            return
        unique = tuple(sorted(set(periods)))
        self._notifier.publish(ChangeEvent(entity_type, entity_id, action, unique))
