"""
VerificationService -- the gate decision.

Responsibility:
    Resolves a scanned key to a record, evaluates it against a single
    captured ``now`` and writes one scan row per resolved record.

Architecture position:
    Kernel > Services.  Read path over AccreditationRepository and
    ProjectRepository; write path only through AuditTrail.record_scan.

Invariants enforced:
    - Lookup order: exact qr_token match, then case-insensitive
      accreditation number.
    - Every call that resolves a record appends exactly one scan row whose
      ``was_valid`` equals the decision's ``is_valid``.
    - An unresolved key appends no scan row; a warning is logged instead.
    - A failed scan write never changes or fails the decision.
"""

from sqlalchemy.orm import Session

from accreditation_kernel.domain.clock import Clock
from accreditation_kernel.domain.records import ScanRequestMeta
from accreditation_kernel.domain.verification import VerificationResult, evaluate, not_found
from accreditation_kernel.logging_config import get_logger
from accreditation_kernel.models import AccreditationModel
from accreditation_kernel.repositories.accreditation_repository import SqlAccreditationRepository
from accreditation_kernel.repositories.base import AccreditationRepository, ProjectRepository
from accreditation_kernel.repositories.project_repository import SqlProjectRepository
from accreditation_kernel.services.audit_trail import AuditTrail
from accreditation_kernel.services.base import BaseService

logger = get_logger("services.verification")


class VerificationService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        records: AccreditationRepository | None = None,
        projects: ProjectRepository | None = None,
        audit: AuditTrail | None = None,
    ):
        super().__init__(session, clock)
        self.records = records or SqlAccreditationRepository(session)
        self.projects = projects or SqlProjectRepository(session)
        self.audit = audit or AuditTrail(session, self.clock)

    def resolve(self, key: str) -> AccreditationModel | None:
        key = (key or "").strip()
        if not key:
            return None
        return self.records.find_by_token(key) or self.records.find_by_number(key)

    def verify(
        self,
        key: str,
        actor_id: str,
        meta: ScanRequestMeta | None = None,
    ) -> VerificationResult:
        now = self.clock.now_utc()
        model = self.resolve(key)

        if model is None:
            logger.warning(
                "verification_not_found",
                extra={
                    "scanned_by": actor_id,
                    "device": meta.device if meta else None,
                    "ip_address": meta.ip_address if meta else None,
                },
            )
            return not_found(now)

        record = model.to_dto()
        project = self.projects.get(model.project_id)
        result = evaluate(record, project.to_dto() if project else None, now)

        write = self.audit.record_scan(
            record_id=record.id,
            project_id=record.project_id,
            actor_id=actor_id,
            was_valid=result.is_valid,
            valid_phases=result.valid_phases,
            meta=meta,
        )

        logger.info(
            "verification_completed",
            extra={
                "record_id": str(record.id),
                "outcome": result.outcome.value,
                "valid_phases": list(result.valid_phases),
                "scan_logged": write.written,
            },
        )
        return result.with_scan_logged(write.written)
