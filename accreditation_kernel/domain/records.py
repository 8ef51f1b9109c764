"""
Module: accreditation_kernel.domain.records
Responsibility: Immutable value objects handed across the kernel boundary.
    ORM rows never leave a transaction; callers receive these instead.
Architecture position: Kernel > Domain.  Pure, zero I/O.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from accreditation_kernel.domain.identification import IDENTIFICATION_FIELDS, Identification
from accreditation_kernel.domain.phases import PhaseWindowConfig
from accreditation_kernel.domain.status import AccreditationStatus, HistoryAction

# Fields an administrative edit may change.  Status, token and approval
# metadata only move through named transitions.
IDENTITY_FIELDS = frozenset({"first_name", "last_name", "organization", "job_title"})

WINDOW_FIELDS = frozenset({
    "has_bump_in_access",
    "bump_in_start",
    "bump_in_end",
    "has_live_access",
    "live_start",
    "live_end",
    "has_bump_out_access",
    "bump_out_start",
    "bump_out_end",
})

EDITABLE_FIELDS = IDENTITY_FIELDS | WINDOW_FIELDS | IDENTIFICATION_FIELDS | {"access_group", "profile_photo_url"}


@dataclass(frozen=True)
class ProjectConfig:
    """A project's phase windows and access groups."""

    id: UUID
    code: str
    name: str
    windows: PhaseWindowConfig
    access_groups: tuple[str, ...]
    is_active: bool = True


@dataclass(frozen=True)
class AccreditationRecord:
    """Snapshot of an accreditation record."""

    id: UUID
    accreditation_number: str
    project_id: UUID
    first_name: str
    last_name: str
    organization: str
    job_title: str
    access_group: str
    access: PhaseWindowConfig
    status: AccreditationStatus
    identification: Identification | None = None
    profile_photo_url: str | None = None
    qr_token: str | None = None
    approved_by_id: str | None = None
    approved_at: datetime | None = None
    revoked_by_id: str | None = None
    revoked_at: datetime | None = None
    revocation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by_id: str | None = None
    updated_by_id: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class HistoryEntry:
    """One row of the append-only history stream."""

    id: UUID
    record_id: UUID
    project_id: UUID
    action: HistoryAction
    old_status: AccreditationStatus | None
    new_status: AccreditationStatus
    actor_id: str
    occurred_at: datetime
    notes: str | None = None
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScanRequestMeta:
    """Opaque request metadata supplied by the gate device."""

    device: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class ScanLogEntry:
    """One row of the append-only scan stream."""

    id: UUID
    actor_id: str
    scanned_at: datetime
    was_valid: bool
    record_id: UUID | None = None
    project_id: UUID | None = None
    valid_phases: tuple[str, ...] = ()
    device: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class ScanLogWriteResult:
    """
    Outcome of a best-effort scan log write.

    The verification decision never depends on this value; callers may
    discard it.
    """

    written: bool
    error: str | None = None
