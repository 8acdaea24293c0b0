"""Tests for the structured logging system (budget_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from budget_kernel.exceptions import InsufficientFundBalanceError
from budget_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
)
from budget_kernel.models.fund import FundStatus


@pytest.fixture(autouse=True)
def _restore_suite_logging():
    """Each test may reconfigure; put the suite's handler back afterwards."""
    LogContext.clear()
    yield
    LogContext.clear()
    configure_logging(level=logging.DEBUG, stream=StringIO(), force=True)


def _configure(level=logging.DEBUG) -> StringIO:
    stream = StringIO()
    configure_logging(level=level, stream=stream, force=True)
    return stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:

    def test_basic_json_output(self):
        stream = _configure()
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "budget_kernel.test"
        assert "ts" in record

    def test_extra_fields_and_types(self):
        stream = _configure()
        fund_id = uuid4()
        get_logger("test").info(
            "fund_deposit",
            extra={
                "fund_id": fund_id,
                "amount": Decimal("10.50"),
                "status": FundStatus.PAUSED,
                "currencies": {"USD", "EUR"},
            },
        )

        (record,) = _parse_all_logs(stream)
        assert record["fund_id"] == str(fund_id)
        assert record["amount"] == "10.50"
        assert record["status"] == "paused"
        assert record["currencies"] == ["EUR", "USD"]

    def test_reserved_record_key_is_rejected_by_stdlib(self):
        _configure()
        with pytest.raises(KeyError):
            get_logger("test").info("generated", extra={"created": 1})

    def test_exception_attributes(self):
        stream = _configure()
        fund_id = uuid4()
        try:
            raise InsufficientFundBalanceError(fund_id, "RUB", 100, 5)
        except InsufficientFundBalanceError:
            get_logger("test").exception("debit_failed")

        (record,) = _parse_all_logs(stream)
        assert record["exc_type"] == "InsufficientFundBalanceError"
        assert record["exc_code"] == InsufficientFundBalanceError.code
        assert record["exc_fund_id"] == str(fund_id)
        assert "traceback" in record

    def test_formatter_standalone(self):
        record = logging.LogRecord("budget_kernel.x", logging.WARNING, __file__, 1, "plain", (), None)
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["level"] == "WARNING"
        assert payload["message"] == "plain"


class TestLogContext:

    def test_bind_adds_and_restores(self):
        stream = _configure()
        logger = get_logger("test")

        with LogContext.bind(budget_id="b-1", entity_id="e-1"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = _parse_all_logs(stream)
        assert inside["budget_id"] == "b-1"
        assert inside["entity_id"] == "e-1"
        assert "budget_id" not in outside

    def test_nested_bind(self):
        with LogContext.bind(entity_id="outer"):
            with LogContext.bind(entity_id="inner"):
                assert LogContext.get_all()["entity_id"] == "inner"
            assert LogContext.get_all()["entity_id"] == "outer"
        assert LogContext.get_all() == {}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(budget_id="b-1"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {}

    def test_values_are_stringified(self):
        entity_id = uuid4()
        with LogContext.bind(entity_id=entity_id):
            assert LogContext.get_all() == {"entity_id": str(entity_id)}

    def test_set_ignores_none(self):
        LogContext.set(correlation_id="c-1")
        LogContext.set(correlation_id=None, actor_id="a-1")

        assert LogContext.get_all() == {"correlation_id": "c-1", "actor_id": "a-1"}

    def test_unknown_field(self):
        with pytest.raises(TypeError):
            LogContext.set(request_path="/budgets")


class TestConfigureLogging:

    def test_second_call_keeps_installed_handler(self):
        installed = configure_logging(level=logging.DEBUG, stream=StringIO(), force=True)

        again = configure_logging(stream=StringIO())

        assert again is installed
        assert logging.getLogger("budget_kernel").handlers.count(installed) == 1

    def test_force_replaces_handler(self):
        first = configure_logging(stream=StringIO(), force=True)

        second = configure_logging(stream=StringIO(), force=True)

        handlers = logging.getLogger("budget_kernel").handlers
        assert second is not first
        assert first not in handlers
        assert handlers.count(second) == 1

    def test_level_filters(self):
        stream = _configure(level=logging.WARNING)
        logger = get_logger("test")

        logger.info("quiet")
        logger.warning("loud")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["loud"]

    def test_does_not_propagate(self):
        _configure()
        assert logging.getLogger("budget_kernel").propagate is False
