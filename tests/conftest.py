"""
Pytest fixtures for the budget kernel test suite.

Provides:
- An in-memory SQLite engine shared by the whole run (tables created once)
- Per-test sessions rolled back at teardown
- DeterministicClock, captured JSON logs, services and entity factories

Environment Variables:
- DATABASE_URL: run the suite against another database (e.g. PostgreSQL).
  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from budget_kernel.db.engine import build_engine, create_tables, drop_tables
from budget_kernel.domain.cache import ChangeNotifier
from budget_kernel.domain.clock import DeterministicClock
from budget_kernel.domain.settings import EngineSettings
from budget_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
)
from budget_kernel.models.fund import FundTransactionType
from budget_kernel.selectors.budget_selector import BudgetSelector
from budget_kernel.services.balance_service import BalanceService
from budget_kernel.services.budget_service import BudgetService
from budget_kernel.services.distribution_service import DistributionService
from budget_kernel.services.fund_service import FundService
from budget_kernel.services.ledger_service import LedgerService
from budget_kernel.services.obligation_service import ObligationService
from budget_kernel.services.recurrence_service import RecurrenceService
from budget_kernel.services.reserve_service import ReserveService

# Actor recorded on every row the tests write
TEST_ACTOR_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    configure_logging(level=logging.DEBUG, stream=StringIO(), force=True)
    yield


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture budget_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, obligation_service):
            obligation_service.confirm_expense(...)
            logs = captured_logs()
            assert any(r["message"] == "obligation_confirmed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("budget_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session, tables created once."""
    eng = build_engine(get_database_url())
    create_tables(eng)
    yield eng
    drop_tables(eng)
    eng.dispose()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """
    Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection; any
    ``session.commit()`` inside a test only releases a savepoint, and the
    outer transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Clock, settings, notifier
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 3, 15, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings(base_currency="RUB")


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def service_kwargs(deterministic_clock, engine_settings, test_actor_id, notifier) -> dict:
    """Constructor kwargs shared by every service in a test."""
    return {
        "clock": deterministic_clock,
        "settings": engine_settings,
        "actor_id": test_actor_id,
        "notifier": notifier,
    }


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def balance_service(session, service_kwargs):
    return BalanceService(session, **service_kwargs)


@pytest.fixture
def ledger_service(session, service_kwargs):
    return LedgerService(session, **service_kwargs)


@pytest.fixture
def fund_service(session, service_kwargs):
    return FundService(session, **service_kwargs)


@pytest.fixture
def budget_service(session, service_kwargs):
    return BudgetService(session, **service_kwargs)


@pytest.fixture
def recurrence_service(session, service_kwargs):
    return RecurrenceService(session, **service_kwargs)


@pytest.fixture
def obligation_service(session, service_kwargs):
    return ObligationService(session, **service_kwargs)


@pytest.fixture
def distribution_service(session, service_kwargs):
    return DistributionService(session, **service_kwargs)


@pytest.fixture
def reserve_service(session, service_kwargs):
    return ReserveService(session, **service_kwargs)


@pytest.fixture
def budget_selector(session, engine_settings):
    return BudgetSelector(session, engine_settings)


# =============================================================================
# Entity factories
# =============================================================================


@pytest.fixture
def create_account(ledger_service):
    """Factory: open an account.  Returns the Account."""

    def _create(
        name="Debit card",
        currency="RUB",
        balance=Decimal("0"),
        is_credit=False,
        linked_fund_id=None,
    ):
        return ledger_service.open_account(
            name=name,
            currency=currency,
            is_credit=is_credit,
            opening_balance=balance,
            linked_fund_id=linked_fund_id,
        )

    return _create


@pytest.fixture
def create_fund(fund_service):
    """Factory: create an active fund with a RUB currency asset."""

    def _create(name="Vacation", currencies=("RUB",)):
        return fund_service.create_fund(name, currencies=currencies)

    return _create


@pytest.fixture
def fill_fund(balance_service):
    """Put money straight into a fund's currency asset."""

    def _fill(fund, amount, currency="RUB"):
        return balance_service.credit_fund(
            fund.id, currency, Decimal(amount), FundTransactionType.DEPOSIT,
            description="test setup",
        )

    return _fill


@pytest.fixture
def create_income(ledger_service):
    """Factory: record an actual income on an account."""

    def _create(account, amount, income_date=date(2024, 3, 10), source="Salary"):
        return ledger_service.record_income(
            account_id=account.id,
            amount=Decimal(amount),
            source=source,
            income_date=income_date,
        )

    return _create
