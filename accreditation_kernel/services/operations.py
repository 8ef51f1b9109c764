"""
AccreditationOperations -- transport-agnostic facade over the kernel.

Responsibility:
    One method per external operation.  Each method opens its own session,
    runs the relevant service(s) and commits on success or rolls back on
    error.  This is the layer that owns transaction boundaries; the services
    below it only flush.

Invariants enforced:
    - A transition's record update, token binding and history row commit
      together or not at all.
    - ``verify`` never raises because of scan logging, including a failed
      final commit; the decision is returned with ``scan_logged=False``.
    - Authorization is the caller's concern; actor ids are recorded as given.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Generator
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from accreditation_kernel.db.engine import session_scope
from accreditation_kernel.domain.clock import Clock, SystemClock
from accreditation_kernel.domain.identification import Identification
from accreditation_kernel.domain.phases import PhaseWindowConfig
from accreditation_kernel.domain.records import (
    AccreditationRecord,
    HistoryEntry,
    ProjectConfig,
    ScanLogEntry,
    ScanRequestMeta,
)
from accreditation_kernel.domain.verification import VerificationResult
from accreditation_kernel.exceptions import (
    ProjectNotFoundError,
    RecordNotFoundError,
)
from accreditation_kernel.logging_config import LogContext, get_logger
from accreditation_kernel.repositories.accreditation_repository import SqlAccreditationRepository
from accreditation_kernel.services.audit_trail import AuditTrail
from accreditation_kernel.services.project_service import ProjectService
from accreditation_kernel.services.qr_renderer import DEFAULT_IMAGE_SIZE, QrRenderer
from accreditation_kernel.services.record_service import (
    DEFAULT_NUMBER_PREFIX,
    DEFAULT_NUMBER_WIDTH,
    RecordService,
)
from accreditation_kernel.services.status_machine import StatusStateMachine
from accreditation_kernel.services.token_issuer import (
    MAX_ATTEMPTS,
    MIN_TOKEN_BYTES,
    TokenIssuer,
    validate_token_settings,
)
from accreditation_kernel.services.verification_service import VerificationService

logger = get_logger("services.operations")


def _coerce_id(value: UUID | str, not_found: Callable[[str], Exception]) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise not_found(str(value)) from None


def _record_id(value: UUID | str) -> UUID:
    return _coerce_id(value, RecordNotFoundError)


def _project_id(value: UUID | str) -> UUID:
    return _coerce_id(value, ProjectNotFoundError)


class AccreditationOperations:
    """
    Entry point for collaborators (HTTP handlers, CLI, jobs).

    Args:
        session_factory: Factory for new sessions, usually
            ``get_session_factory()``.
        clock: Time source shared by every service.
        token_factory: Replaces ``secrets.token_hex``; tests only.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        *,
        token_bytes: int = MIN_TOKEN_BYTES,
        token_attempts: int = MAX_ATTEMPTS,
        token_factory: Callable[[int], str] | None = None,
        number_prefix: str = DEFAULT_NUMBER_PREFIX,
        number_width: int = DEFAULT_NUMBER_WIDTH,
        qr_base_url: str | None = None,
        qr_image_size: int = DEFAULT_IMAGE_SIZE,
    ):
        validate_token_settings(token_bytes, token_attempts)
        self._session_factory = session_factory
        self.clock = clock or SystemClock()
        self._token_bytes = token_bytes
        self._token_attempts = token_attempts
        self._token_factory = token_factory
        self._number_prefix = number_prefix
        self._number_width = number_width
        self._qr_base_url = qr_base_url
        self._qr_image_size = qr_image_size

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, **context: str | None) -> Generator[Session, None, None]:
        with LogContext.bind(**context), session_scope(self._session_factory) as session:
            yield session

    def _machine(self, session: Session) -> StatusStateMachine:
        records = SqlAccreditationRepository(session)
        issuer = TokenIssuer(
            session,
            records,
            token_factory=self._token_factory,
            num_bytes=self._token_bytes,
            max_attempts=self._token_attempts,
        )
        return StatusStateMachine(session, self.clock, records=records, token_issuer=issuer)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(self, record_id: UUID | str, actor_id: str, notes: str | None = None) -> AccreditationRecord:
        rid = _record_id(record_id)
        with self._transaction(record_id=str(rid), actor_id=actor_id) as session:
            return self._machine(session).submit(rid, actor_id, notes)

    def approve(
        self,
        record_id: UUID | str,
        approver_id: str,
        notes: str | None = None,
    ) -> AccreditationRecord:
        rid = _record_id(record_id)
        with self._transaction(record_id=str(rid), actor_id=approver_id) as session:
            return self._machine(session).approve(rid, approver_id, notes)

    def reject(self, record_id: UUID | str, approver_id: str, reason: str) -> AccreditationRecord:
        rid = _record_id(record_id)
        with self._transaction(record_id=str(rid), actor_id=approver_id) as session:
            return self._machine(session).reject(rid, approver_id, reason)

    def revoke(self, record_id: UUID | str, actor_id: str, reason: str) -> AccreditationRecord:
        rid = _record_id(record_id)
        with self._transaction(record_id=str(rid), actor_id=actor_id) as session:
            return self._machine(session).revoke(rid, actor_id, reason)

    def reinstate(
        self,
        record_id: UUID | str,
        actor_id: str,
        notes: str | None = None,
    ) -> AccreditationRecord:
        rid = _record_id(record_id)
        with self._transaction(record_id=str(rid), actor_id=actor_id) as session:
            return self._machine(session).reinstate(rid, actor_id, notes)

    def return_to_draft(
        self,
        record_id: UUID | str,
        actor_id: str,
        notes: str | None = None,
    ) -> AccreditationRecord:
        rid = _record_id(record_id)
        with self._transaction(record_id=str(rid), actor_id=actor_id) as session:
            return self._machine(session).return_to_draft(rid, actor_id, notes)

    def edit(self, record_id: UUID | str, changes: dict[str, Any], actor_id: str) -> AccreditationRecord:
        rid = _record_id(record_id)
        with self._transaction(record_id=str(rid), actor_id=actor_id) as session:
            return self._machine(session).edit(rid, changes, actor_id)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(
        self,
        key: str,
        actor_id: str,
        meta: ScanRequestMeta | None = None,
    ) -> VerificationResult:
        """Gate decision for ``key`` (QR token or accreditation number)."""
        with LogContext.bind(actor_id=actor_id):
            session = self._session_factory()
            try:
                result = VerificationService(session, self.clock).verify(key, actor_id, meta)
                try:
                    session.commit()
                except SQLAlchemyError:
                    session.rollback()
                    logger.error(
                        "scan_log_commit_failed",
                        extra={"record_id": result.record_id},
                        exc_info=True,
                    )
                    result = result.with_scan_logged(False)
                return result
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    # ------------------------------------------------------------------
    # Projects and records
    # ------------------------------------------------------------------

    def create_project(
        self,
        *,
        code: str,
        name: str,
        windows: PhaseWindowConfig,
        access_groups: list[str],
        actor_id: str,
        is_active: bool = True,
    ) -> ProjectConfig:
        with self._transaction(actor_id=actor_id) as session:
            return ProjectService(session, self.clock).create_project(
                code=code,
                name=name,
                windows=windows,
                access_groups=access_groups,
                actor_id=actor_id,
                is_active=is_active,
            )

    def delete_project(self, project_id: UUID | str, actor_id: str) -> int:
        pid = _project_id(project_id)
        with self._transaction(project_id=str(pid), actor_id=actor_id) as session:
            return ProjectService(session, self.clock).delete_project(pid, actor_id)

    def get_project(self, project_id: UUID | str) -> ProjectConfig:
        pid = _project_id(project_id)
        with self._transaction(project_id=str(pid)) as session:
            project = ProjectService(session, self.clock).get_project(pid)
        if project is None:
            raise ProjectNotFoundError(str(pid))
        return project

    def create_record(
        self,
        *,
        project_id: UUID | str,
        first_name: str,
        last_name: str,
        organization: str,
        job_title: str,
        access_group: str,
        identification: Identification,
        actor_id: str,
        access: PhaseWindowConfig | None = None,
        profile_photo_url: str | None = None,
    ) -> AccreditationRecord:
        pid = _project_id(project_id)
        with self._transaction(project_id=str(pid), actor_id=actor_id) as session:
            service = RecordService(
                session,
                self.clock,
                number_prefix=self._number_prefix,
                number_width=self._number_width,
            )
            return service.create_record(
                project_id=pid,
                first_name=first_name,
                last_name=last_name,
                organization=organization,
                job_title=job_title,
                access_group=access_group,
                identification=identification,
                actor_id=actor_id,
                access=access,
                profile_photo_url=profile_photo_url,
            )

    def get_record(self, record_id: UUID | str) -> AccreditationRecord:
        rid = _record_id(record_id)
        with self._transaction(record_id=str(rid)) as session:
            record = RecordService(session, self.clock).get_record(rid)
        if record is None:
            raise RecordNotFoundError(str(rid))
        return record

    def list_records(self, project_id: UUID | str) -> list[AccreditationRecord]:
        pid = _project_id(project_id)
        with self._transaction(project_id=str(pid)) as session:
            return RecordService(session, self.clock).list_records(pid)

    def render_qr(self, record_id: UUID | str, base_url: str | None = None) -> bytes:
        rid = _record_id(record_id)
        with self._transaction(record_id=str(rid)) as session:
            renderer = QrRenderer(session, self.clock, image_size=self._qr_image_size)
            return renderer.render(rid, base_url or self._qr_base_url or "")

    # ------------------------------------------------------------------
    # Audit reads
    # ------------------------------------------------------------------

    def history_for_record(self, record_id: UUID | str) -> list[HistoryEntry]:
        rid = _record_id(record_id)
        with self._transaction() as session:
            return AuditTrail(session, self.clock).history_for_record(rid)

    def history_for_project(self, project_id: UUID | str) -> list[HistoryEntry]:
        pid = _project_id(project_id)
        with self._transaction() as session:
            return AuditTrail(session, self.clock).history_for_project(pid)

    def scans_for_record(self, record_id: UUID | str) -> list[ScanLogEntry]:
        rid = _record_id(record_id)
        with self._transaction() as session:
            return AuditTrail(session, self.clock).scans_for_record(rid)

    def scans_for_project(
        self,
        project_id: UUID | str,
        since: datetime | None = None,
    ) -> list[ScanLogEntry]:
        pid = _project_id(project_id)
        with self._transaction() as session:
            return AuditTrail(session, self.clock).scans_for_project(pid, since)
