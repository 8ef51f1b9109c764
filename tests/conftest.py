"""
Pytest fixtures for the accreditation kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (tables + append-only triggers)
- A raw session for service-level tests and an operations facade for
  end-to-end tests
- Project / record factories and a deterministic clock
- Captured structured logs

Environment Variables:
- ACCREDITATION_TEST_POSTGRES_URL: enables tests marked ``postgres``.

Note: the in-memory database is a single shared connection.  A test uses
either ``session`` (services) or ``ops`` (facade) at any one time, never an
open ``session`` transaction across an ``ops`` call.
"""

import json
import logging
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from accreditation_kernel.db.engine import (
    create_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from accreditation_kernel.domain.clock import DeterministicClock
from accreditation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from accreditation_kernel.services.operations import AccreditationOperations
from accreditation_kernel.services.project_service import ProjectService
from accreditation_kernel.services.record_service import RecordService
from accreditation_kernel.services.status_machine import StatusStateMachine
from accreditation_kernel.services.verification_service import VerificationService

from tests.factories import (
    ACCESS_GROUPS,
    ADMIN_ID,
    BUMP_IN_ONLY,
    PROJECT_WINDOWS,
    QID_HOLDER,
    SUBMITTER_ID,
    utc,
)


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
    Capture accreditation_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ops):
            ops.verify("nope", GATE_ID)
            logs = captured_logs()
            assert any(r["message"] == "verification_not_found" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("accreditation_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database with tables and append-only triggers."""
    eng = init_engine_from_url("sqlite://")
    create_tables()
    yield eng
    reset_engine()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(utc(2025, 1, 3, 12, 0, 0))


@pytest.fixture
def ops(engine, clock) -> AccreditationOperations:
    return AccreditationOperations(get_session_factory(), clock, qr_base_url="https://accred.example.com")


# =============================================================================
# Service-level fixtures (share ``session``)
# =============================================================================


@pytest.fixture
def machine(session, clock) -> StatusStateMachine:
    return StatusStateMachine(session, clock)


@pytest.fixture
def verifier(session, clock) -> VerificationService:
    return VerificationService(session, clock)


@pytest.fixture
def project(session, clock):
    return ProjectService(session, clock).create_project(
        code="FEST25",
        name="Festival 2025",
        windows=PROJECT_WINDOWS,
        access_groups=ACCESS_GROUPS,
        actor_id=ADMIN_ID,
    )


@pytest.fixture
def make_record(session, clock, project):
    """Create a DRAFT record in ``project``; keyword overrides allowed."""
    service = RecordService(session, clock)

    def _make(**overrides):
        fields = dict(
            project_id=project.id,
            first_name="Dana",
            last_name="Reyes",
            organization="Stagecraft Ltd",
            job_title="Rigger",
            access_group="Crew",
            identification=QID_HOLDER,
            actor_id=SUBMITTER_ID,
            access=BUMP_IN_ONLY,
        )
        fields.update(overrides)
        return service.create_record(**fields)

    return _make


@pytest.fixture
def pending_record(make_record, machine):
    record = make_record()
    return machine.submit(record.id, SUBMITTER_ID)


@pytest.fixture
def approved_record(pending_record, machine):
    return machine.approve(pending_record.id, ADMIN_ID)


# =============================================================================
# Facade-level fixtures (share ``ops``)
# =============================================================================


@pytest.fixture
def ops_project(ops):
    return ops.create_project(
        code="FEST25",
        name="Festival 2025",
        windows=PROJECT_WINDOWS,
        access_groups=ACCESS_GROUPS,
        actor_id=ADMIN_ID,
    )


@pytest.fixture
def ops_record(ops, ops_project):
    """DRAFT record created through the facade."""

    def _make(**overrides):
        fields = dict(
            project_id=ops_project.id,
            first_name="Sam",
            last_name="Okafor",
            organization="Lights Co",
            job_title="Electrician",
            access_group="Crew",
            identification=QID_HOLDER,
            actor_id=SUBMITTER_ID,
            access=BUMP_IN_ONLY,
        )
        fields.update(overrides)
        return ops.create_record(**fields)

    return _make
