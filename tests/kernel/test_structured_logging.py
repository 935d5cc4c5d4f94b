"""
Tests for structured JSON logging and LogContext propagation.
"""

import json
import logging
import sys
from decimal import Decimal
from uuid import UUID

import pytest

from labor_kernel.exceptions import BatchNotFoundError
from labor_kernel.logging_config import LogContext, StructuredFormatter, get_logger

logger = get_logger("tests.logging")


class TestStructuredFormatter:
    def test_record_is_single_json_line(self, captured_logs):
        logger.info("something_happened", extra={"count": 3})
        records = [r for r in captured_logs() if r["message"] == "something_happened"]
        assert len(records) == 1
        record = records[0]
        assert record["level"] == "INFO"
        assert record["logger"] == "labor_reporting.tests.logging"
        assert record["count"] == 3
        assert "ts" in record

    def test_special_types_are_serialized(self, captured_logs):
        logger.info(
            "typed_values",
            extra={"amount": Decimal("1.50"), "ref": UUID(int=1)},
        )
        record = next(r for r in captured_logs() if r["message"] == "typed_values")
        assert record["amount"] == "1.50"
        assert record["ref"] == str(UUID(int=1))

    def test_exception_attributes_are_flattened(self):
        formatter = StructuredFormatter()
        try:
            raise BatchNotFoundError("b-1")
        except BatchNotFoundError:
            record = logging.getLogger("x").makeRecord(
                "x", logging.ERROR, __file__, 1, "lookup_failed", (), sys.exc_info(),
            )
        payload = json.loads(formatter.format(record))
        assert payload["exc_type"] == "BatchNotFoundError"
        assert payload["exc_code"] == "BATCH_NOT_FOUND"
        assert payload["exc_batch_id"] == "b-1"


class TestLogContext:
    def test_bound_fields_appear_in_records(self, captured_logs):
        with LogContext.bind(company_id="c-1", batch_id="b-9"):
            logger.info("inside_context")
        logger.info("outside_context")

        records = {r["message"]: r for r in captured_logs()}
        assert records["inside_context"]["company_id"] == "c-1"
        assert records["inside_context"]["batch_id"] == "b-9"
        assert "company_id" not in records["outside_context"]

    def test_bind_restores_outer_values(self):
        with LogContext.bind(company_id="outer"):
            with LogContext.bind(company_id="inner", batch_id="b-1"):
                assert LogContext.get_all() == {"company_id": "inner", "batch_id": "b-1"}
            assert LogContext.get_all() == {"company_id": "outer"}
        assert LogContext.get_all() == {}

    def test_none_values_are_ignored(self):
        with LogContext.bind(company_id="c-1"):
            with LogContext.bind(company_id=None, actor_id="a-1"):
                assert LogContext.get_all() == {"company_id": "c-1", "actor_id": "a-1"}

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            with LogContext.bind(tenant="t"):
                pass
        assert LogContext.get_all() == {}
