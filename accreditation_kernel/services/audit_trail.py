"""
AuditTrail -- the history and scan streams.

Responsibility:
    Appends lifecycle events and gate scans, and serves the read paths used
    by reporting.  Nothing here updates or deletes a row.

Architecture position:
    Kernel > Services.  Sink for StatusStateMachine, RecordService and
    VerificationService.

Invariants enforced:
    - History appends join the caller's transaction.  A failing history write
      aborts the surrounding transition.
    - Scan appends are best-effort: written inside a SAVEPOINT, a storage
      failure rolls back only the savepoint and is reported through
      ScanLogWriteResult instead of an exception.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from accreditation_kernel.domain.clock import Clock, SystemClock
from accreditation_kernel.domain.records import (
    HistoryEntry,
    ScanLogEntry,
    ScanLogWriteResult,
    ScanRequestMeta,
)
from accreditation_kernel.domain.status import AccreditationStatus, HistoryAction
from accreditation_kernel.logging_config import get_logger
from accreditation_kernel.models import HistoryEntryModel, ScanLogModel
from accreditation_kernel.repositories.audit_repository import SqlHistoryRepository, SqlScanLogRepository
from accreditation_kernel.repositories.base import HistoryRepository, ScanLogRepository

logger = get_logger("services.audit_trail")


class AuditTrail:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        history: HistoryRepository | None = None,
        scans: ScanLogRepository | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.history = history or SqlHistoryRepository(session)
        self.scans = scans or SqlScanLogRepository(session)

    def record_history(
        self,
        *,
        record_id: UUID,
        project_id: UUID,
        action: HistoryAction,
        old_status: AccreditationStatus | None,
        new_status: AccreditationStatus,
        actor_id: str,
        notes: str | None = None,
        changes: dict[str, Any] | None = None,
    ) -> HistoryEntry:
        entry = self.history.append(
            HistoryEntryModel(
                record_id=record_id,
                project_id=project_id,
                action=action.value,
                old_status=old_status.value if old_status else None,
                new_status=new_status.value,
                notes=notes,
                changes=changes or {},
                actor_id=actor_id,
                occurred_at=self.clock.now_utc(),
            )
        )
        logger.info(
            "history_appended",
            extra={
                "record_id": str(record_id),
                "action": action.value,
                "old_status": old_status.value if old_status else None,
                "new_status": new_status.value,
            },
        )
        return entry.to_dto()

    def record_scan(
        self,
        *,
        record_id: UUID | None,
        project_id: UUID | None,
        actor_id: str,
        was_valid: bool,
        valid_phases: tuple[str, ...] | list[str] = (),
        meta: ScanRequestMeta | None = None,
    ) -> ScanLogWriteResult:
        """Best-effort scan write.  Never raises on a storage failure."""
        meta = meta or ScanRequestMeta()
        try:
            with self.session.begin_nested():
                self.scans.append(
                    ScanLogModel(
                        record_id=record_id,
                        project_id=project_id,
                        actor_id=actor_id,
                        scanned_at=self.clock.now_utc(),
                        was_valid=was_valid,
                        valid_phases=list(valid_phases),
                        device=meta.device,
                        ip_address=meta.ip_address,
                    )
                )
        except SQLAlchemyError as exc:
            logger.error(
                "scan_log_write_failed",
                extra={"record_id": str(record_id) if record_id else None},
                exc_info=True,
            )
            return ScanLogWriteResult(written=False, error=str(exc))

        return ScanLogWriteResult(written=True)

    def history_for_record(self, record_id: UUID) -> list[HistoryEntry]:
        return [row.to_dto() for row in self.history.query_by_record(record_id)]

    def history_for_project(self, project_id: UUID) -> list[HistoryEntry]:
        return [row.to_dto() for row in self.history.query_by_project(project_id)]

    def scans_for_record(self, record_id: UUID) -> list[ScanLogEntry]:
        return [row.to_dto() for row in self.scans.query_by_record(record_id)]

    def scans_for_project(self, project_id: UUID, since: datetime | None = None) -> list[ScanLogEntry]:
        return [row.to_dto() for row in self.scans.query_by_project(project_id, since)]
