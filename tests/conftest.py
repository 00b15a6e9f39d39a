"""
Pytest fixtures for the payroll engine test suite.

Provides:
- In-memory SQLite database sessions with immutability listeners registered
- Deterministic clock
- The shipped SARS rate set registry and a small example rate set
- Employee / payslip service fixtures and factories

Environment Variables:
- DATABASE_URL: database URL for persistence tests.  Defaults to an
  in-memory SQLite database; point it at PostgreSQL to exercise row locks.
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

from payroll_config import get_default_registry
from payroll_config.loader import parse_rate_set
from payroll_config.schema import RateSetRegistry
from payroll_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from payroll_kernel.db.immutability import register_immutability_listeners
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payroll_modules.employees.service import EmployeeService
from payroll_modules.payslips.service import PayslipService

# Test actor / business IDs for all test operations
TEST_ACTOR_ID = uuid4()
TEST_BUSINESS_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite:///:memory:"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, payslip_service):
            payslip_service.create_payslip(...)
            logs = captured_logs()
            assert any(r["message"] == "payslip_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Fresh schema and session per test."""
    init_engine_from_url(get_database_url())
    create_tables()
    register_immutability_listeners()
    session = get_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        drop_tables()
        reset_engine()


@pytest.fixture
def actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def business_id():
    return TEST_BUSINESS_ID


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 30, 9, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Rate sets
# =============================================================================


def rate_set_document(**overrides) -> dict:
    """
    Raw rate set document with a two-bracket example table:
    18% up to R250 000, 26% above (cumulative R45 000).
    """
    doc = {
        "version": "EXAMPLE-2024-2025",
        "effective_from": "2024-03-01",
        "effective_to": "2025-02-28",
        "tax_table": [
            {"min": "0", "max": "250000", "rate": "0.18", "cumulative_tax_at_min": "0"},
            {"min": "250000", "max": None, "rate": "0.26", "cumulative_tax_at_min": "45000"},
        ],
        "rebates": {"primary": "17235", "secondary": "9444", "tertiary": "3145"},
        "thresholds": {
            "under_65": "95750",
            "age_65_to_74": "148217",
            "age_75_plus": "165689",
        },
        "uif": {"employee_rate": "0.01", "employer_rate": "0.01", "monthly_ceiling": "17712"},
        "sdl": {"rate": "0.01", "exemption_threshold": "500000"},
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def rate_set_doc():
    """The ``rate_set_document`` builder, for tests that tweak a rate set."""
    return rate_set_document


@pytest.fixture
def example_rates():
    return parse_rate_set(rate_set_document())


@pytest.fixture
def example_registry(example_rates) -> RateSetRegistry:
    return RateSetRegistry([example_rates])


@pytest.fixture(scope="session")
def sars_registry() -> RateSetRegistry:
    return get_default_registry()


@pytest.fixture
def rates_2024(sars_registry):
    return sars_registry.for_date(date(2024, 6, 25))


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def employee_service(db_session, clock) -> EmployeeService:
    return EmployeeService(db_session, clock=clock)


@pytest.fixture
def payslip_service(db_session, example_registry, clock) -> PayslipService:
    return PayslipService(db_session, example_registry, clock=clock)


@pytest.fixture
def make_employee(employee_service):
    """Factory for persisted employees with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "business_id": TEST_BUSINESS_ID,
            "employee_number": f"E-{counter['n']:04d}",
            "first_name": "Thandi",
            "last_name": "Nkosi",
            "employment_type": "full_time",
            "salary_type": "monthly",
            "salary_amount": Decimal("20000.00"),
            "pay_frequency": "monthly",
            "start_date": date(2024, 3, 1),
            "actor_id": TEST_ACTOR_ID,
        }
        fields.update(overrides)
        return employee_service.create_employee(**fields)

    return _make


@pytest.fixture
def make_payslip(payslip_service):
    """Factory for persisted June 2024 payslips."""

    def _make(employee_id, amounts=None, **overrides):
        fields = {
            "pay_period_start": date(2024, 6, 1),
            "pay_period_end": date(2024, 6, 30),
            "pay_date": date(2024, 6, 25),
            "actor_id": TEST_ACTOR_ID,
            "amounts": amounts if amounts is not None else {"basic_salary": "20000.00"},
        }
        fields.update(overrides)
        return payslip_service.create_payslip(employee_id, **fields)

    return _make
