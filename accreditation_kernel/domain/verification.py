"""
Module: accreditation_kernel.domain.verification
Responsibility: The pure allow/deny decision for a scanned credential.
Architecture position: Kernel > Domain.  Pure, zero I/O.  The service layer
    resolves the record, captures ``now`` once and hands both in here.

Decision order (short-circuiting):
    1. no record                         -> NOT_FOUND
    2. REVOKED                           -> REVOKED (with reason)
    3. REJECTED                          -> REJECTED
    4. DRAFT / PENDING                   -> PENDING_APPROVAL
    5. APPROVED, no phase flags enabled  -> NO_ACCESS_WINDOWS_CONFIGURED
       APPROVED, no window contains now  -> NOT_VALID_NOW (windows echoed)
       APPROVED, some window contains now-> VALID (matched phases)

Invariants enforced:
    - All three phase checks use the same ``now``.
    - ``is_valid`` is True only for VALID.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from accreditation_kernel.domain.phases import Phase, PhaseWindow
from accreditation_kernel.domain.records import AccreditationRecord, ProjectConfig
from accreditation_kernel.domain.status import AccreditationStatus


class VerificationOutcome(str, Enum):
    """Why a scan was allowed or denied."""

    NOT_FOUND = "NOT_FOUND"
    REVOKED = "REVOKED"
    REJECTED = "REJECTED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    NO_ACCESS_WINDOWS_CONFIGURED = "NO_ACCESS_WINDOWS_CONFIGURED"
    NOT_VALID_NOW = "NOT_VALID_NOW"
    VALID = "VALID"


@dataclass(frozen=True)
class ConfiguredWindow:
    """A phase window echoed back to the gate operator."""

    phase: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class VerificationResult:
    """
    Structured gate decision.

    ``scan_logged`` reports whether the scan row was durably written; the
    decision itself is independent of it.
    """

    outcome: VerificationOutcome
    checked_at: datetime
    record_id: str | None = None
    accreditation_number: str | None = None
    holder_name: str | None = None
    organization: str | None = None
    job_title: str | None = None
    access_group: str | None = None
    identification_type: str | None = None
    qid_number: str | None = None
    profile_photo_url: str | None = None
    status: AccreditationStatus | None = None
    project_code: str | None = None
    project_name: str | None = None
    valid_phases: tuple[str, ...] = ()
    configured_windows: tuple[ConfiguredWindow, ...] = ()
    revocation_reason: str | None = None
    scan_logged: bool = False
    message: str = ""

    @property
    def is_valid(self) -> bool:
        return self.outcome is VerificationOutcome.VALID

    def with_scan_logged(self, logged: bool) -> "VerificationResult":
        return replace(self, scan_logged=logged)


_MESSAGES = {
    VerificationOutcome.NOT_FOUND: "Accreditation not found",
    VerificationOutcome.REVOKED: "Accreditation has been revoked",
    VerificationOutcome.REJECTED: "Accreditation was rejected",
    VerificationOutcome.PENDING_APPROVAL: "Accreditation is pending approval",
    VerificationOutcome.NO_ACCESS_WINDOWS_CONFIGURED: "No access phases configured",
    VerificationOutcome.NOT_VALID_NOW: "Not valid at this time",
    VerificationOutcome.VALID: "Access granted",
}


def _configured(phase: Phase, window: PhaseWindow) -> ConfiguredWindow:
    return ConfiguredWindow(phase=phase.value, start=window.start, end=window.end)


def not_found(checked_at: datetime) -> VerificationResult:
    return VerificationResult(
        outcome=VerificationOutcome.NOT_FOUND,
        checked_at=checked_at,
        message=_MESSAGES[VerificationOutcome.NOT_FOUND],
    )


def evaluate(
    record: AccreditationRecord,
    project: ProjectConfig | None,
    now: datetime,
) -> VerificationResult:
    """Decide whether ``record`` grants access at ``now``."""
    # Echoed so the operator can match the badge to the person holding it.
    document = record.identification
    base = dict(
        checked_at=now,
        record_id=str(record.id),
        accreditation_number=record.accreditation_number,
        holder_name=record.full_name,
        organization=record.organization,
        job_title=record.job_title,
        access_group=record.access_group,
        identification_type=document.identification_type.value if document else None,
        qid_number=document.qid_number if document else None,
        profile_photo_url=record.profile_photo_url,
        status=record.status,
        project_code=project.code if project else None,
        project_name=project.name if project else None,
    )

    if record.status is AccreditationStatus.REVOKED:
        outcome = VerificationOutcome.REVOKED
        return VerificationResult(
            outcome=outcome,
            revocation_reason=record.revocation_reason,
            message=_MESSAGES[outcome],
            **base,
        )

    if record.status is AccreditationStatus.REJECTED:
        outcome = VerificationOutcome.REJECTED
        return VerificationResult(outcome=outcome, message=_MESSAGES[outcome], **base)

    if record.status is not AccreditationStatus.APPROVED:
        outcome = VerificationOutcome.PENDING_APPROVAL
        return VerificationResult(outcome=outcome, message=_MESSAGES[outcome], **base)

    enabled = [(p, w) for p, w in record.access.enabled() if w.is_complete]
    if not enabled:
        outcome = VerificationOutcome.NO_ACCESS_WINDOWS_CONFIGURED
        return VerificationResult(outcome=outcome, message=_MESSAGES[outcome], **base)

    configured = tuple(_configured(p, w) for p, w in enabled)
    valid_phases = tuple(p.value for p in record.access.active_phases(now))

    outcome = VerificationOutcome.VALID if valid_phases else VerificationOutcome.NOT_VALID_NOW
    return VerificationResult(
        outcome=outcome,
        valid_phases=valid_phases,
        configured_windows=configured,
        message=_MESSAGES[outcome],
        **base,
    )
