"""
Property-based tests for the credential lifecycle and the gate decision.

Properties:
- Any sequence of operations keeps the record on the status graph; a
  rejected operation changes nothing.
- qr_token is present exactly while APPROVED and is never reused.
- Every successful operation appends exactly one history row.
- The gate grants access iff some enabled window contains ``now``
  (bounds inclusive).
"""

import re
from datetime import timedelta
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from accreditation_kernel.domain.phases import PhaseWindow, PhaseWindowConfig
from accreditation_kernel.domain.records import AccreditationRecord
from accreditation_kernel.domain.status import (
    EDIT_DEMOTES,
    TRANSITIONS,
    AccreditationStatus,
)
from accreditation_kernel.domain.verification import VerificationOutcome, evaluate
from accreditation_kernel.exceptions import InvalidTransitionError
from accreditation_kernel.services.audit_trail import AuditTrail

from tests.factories import ADMIN_ID, utc

HEX32 = re.compile(r"^[0-9a-f]{32}$")

OPERATIONS = ["submit", "approve", "reject", "revoke", "reinstate", "return_to_draft", "edit"]

_BY_OPERATION = {t.operation: t for t in TRANSITIONS.values()}


def _expected_status(current: AccreditationStatus, operation: str) -> AccreditationStatus | None:
    """Status after ``operation``, or None when the operation must be refused."""
    if operation == "edit":
        return EDIT_DEMOTES.get(current, current)
    transition = _BY_OPERATION[operation]
    if transition.from_status is not current:
        return None
    return transition.to_status


def _run(machine, record_id, operation, step):
    if operation in ("reject", "revoke"):
        return getattr(machine, operation)(record_id, ADMIN_ID, f"reason {step}")
    if operation == "edit":
        return machine.edit(record_id, {"job_title": f"Title {step}"}, ADMIN_ID)
    return getattr(machine, operation)(record_id, ADMIN_ID)


class TestLifecycleProperties:
    @given(operations=st.lists(st.sampled_from(OPERATIONS), min_size=1, max_size=12))
    @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_random_operation_sequences(self, make_record, machine, session, clock, operations):
        record = make_record()
        status = AccreditationStatus.DRAFT
        seen_tokens = set()
        successes = 0

        for step, operation in enumerate(operations):
            clock.advance(1)
            expected = _expected_status(status, operation)
            if expected is None:
                try:
                    _run(machine, record.id, operation, step)
                except InvalidTransitionError as exc:
                    assert exc.actual_status == status.value
                else:
                    raise AssertionError(f"{operation} from {status.value} should be refused")
                continue

            result = _run(machine, record.id, operation, step)
            successes += 1
            status = expected
            assert result.status is status

            if status is AccreditationStatus.APPROVED:
                assert HEX32.match(result.qr_token)
                if operation in ("approve", "reinstate"):
                    assert result.qr_token not in seen_tokens
                    seen_tokens.add(result.qr_token)
            else:
                assert result.qr_token is None

        stored = machine.records.get(record.id)
        assert stored.status == status.value
        assert (stored.qr_token is not None) == (status is AccreditationStatus.APPROVED)
        history = AuditTrail(session, clock).history_for_record(record.id)
        assert len(history) == successes + 1


_instants = st.integers(min_value=0, max_value=31 * 24 * 3600).map(lambda s: utc(2025, 1, 1) + timedelta(seconds=s))


@st.composite
def _windows(draw):
    start = draw(_instants)
    length = draw(st.integers(min_value=0, max_value=10 * 24 * 3600))
    return PhaseWindow.between(start, start + timedelta(seconds=length))


class TestGateDecisionProperties:
    @given(window=_windows(), now=_instants)
    @settings(max_examples=200)
    def test_valid_iff_window_contains_now(self, window, now):
        record = AccreditationRecord(
            id=uuid4(),
            accreditation_number="ACC-0001",
            project_id=uuid4(),
            first_name="Jo",
            last_name="Tan",
            organization="Stage Co",
            job_title="Runner",
            access_group="Crew",
            access=PhaseWindowConfig(live=window),
            status=AccreditationStatus.APPROVED,
            qr_token="d" * 32,
        )

        result = evaluate(record, None, now)

        inside = window.start <= now <= window.end
        assert result.is_valid == inside
        expected = VerificationOutcome.VALID if inside else VerificationOutcome.NOT_VALID_NOW
        assert result.outcome is expected
        assert result.valid_phases == (("live",) if inside else ())

    @given(window=_windows())
    @settings(max_examples=50)
    def test_boundaries_always_valid(self, window):
        record = AccreditationRecord(
            id=uuid4(),
            accreditation_number="ACC-0001",
            project_id=uuid4(),
            first_name="Jo",
            last_name="Tan",
            organization="Stage Co",
            job_title="Runner",
            access_group="Crew",
            access=PhaseWindowConfig(bump_out=window),
            status=AccreditationStatus.APPROVED,
            qr_token="d" * 32,
        )

        assert evaluate(record, None, window.start).is_valid
        assert evaluate(record, None, window.end).is_valid
        assert not evaluate(record, None, window.end + timedelta(seconds=1)).is_valid
