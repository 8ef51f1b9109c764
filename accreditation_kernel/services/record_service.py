"""
RecordService -- creation of accreditation records.

Responsibility:
    Validates identity fields, the identity document, access group and
    access windows against the owning project, assigns the next sequential
    accreditation number and inserts the record in DRAFT with a CREATED history row.

Failure modes:
    - ProjectNotFoundError, MissingFieldError, InvalidIdentificationError,
      InvalidAccessGroupError, PhaseWindowError.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from accreditation_kernel.domain.clock import Clock
from accreditation_kernel.domain.identification import (
    Identification,
    normalize_identification,
    normalize_photo_url,
    validate_identification,
)
from accreditation_kernel.domain.phases import (
    PhaseWindowConfig,
    normalize_config,
    validate_access_group,
    validate_access_windows,
)
from accreditation_kernel.domain.records import AccreditationRecord
from accreditation_kernel.domain.status import AccreditationStatus, HistoryAction
from accreditation_kernel.exceptions import MissingFieldError, ProjectNotFoundError
from accreditation_kernel.logging_config import get_logger
from accreditation_kernel.models import AccreditationModel
from accreditation_kernel.repositories.accreditation_repository import SqlAccreditationRepository
from accreditation_kernel.repositories.base import AccreditationRepository, ProjectRepository
from accreditation_kernel.repositories.project_repository import SqlProjectRepository
from accreditation_kernel.services.audit_trail import AuditTrail
from accreditation_kernel.services.base import BaseService

logger = get_logger("services.records")

DEFAULT_NUMBER_PREFIX = "ACC"
DEFAULT_NUMBER_WIDTH = 4


class RecordService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        records: AccreditationRepository | None = None,
        projects: ProjectRepository | None = None,
        audit: AuditTrail | None = None,
        number_prefix: str = DEFAULT_NUMBER_PREFIX,
        number_width: int = DEFAULT_NUMBER_WIDTH,
    ):
        super().__init__(session, clock)
        self.records = records or SqlAccreditationRepository(session)
        self.projects = projects or SqlProjectRepository(session)
        self.audit = audit or AuditTrail(session, self.clock)
        self.number_prefix = number_prefix
        self.number_width = number_width

    def create_record(
        self,
        *,
        project_id: UUID,
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
        project = self.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))

        identity = {
            "first_name": first_name,
            "last_name": last_name,
            "organization": organization,
            "job_title": job_title,
            "access_group": access_group,
        }
        for name, value in identity.items():
            if value is None or not str(value).strip():
                raise MissingFieldError(name)
            identity[name] = str(value).strip()

        identification = normalize_identification(identification)
        validate_identification(identification)

        validate_access_group(identity["access_group"], list(project.access_groups or ()))

        access = normalize_config(access or PhaseWindowConfig())
        validate_access_windows(access, project.windows)

        now = self.clock.now_utc()
        model = self.records.add(
            AccreditationModel(
                accreditation_number=self.records.next_number(self.number_prefix, self.number_width),
                project_id=project.id,
                status=AccreditationStatus.DRAFT.value,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
                **identity,
                profile_photo_url=normalize_photo_url(profile_photo_url),
                **AccreditationModel.identification_columns(identification),
                **AccreditationModel.access_columns(access),
            )
        )

        self.audit.record_history(
            record_id=model.id,
            project_id=project.id,
            action=HistoryAction.CREATED,
            old_status=None,
            new_status=AccreditationStatus.DRAFT,
            actor_id=actor_id,
        )
        logger.info(
            "accreditation_created",
            extra={
                "record_id": str(model.id),
                "accreditation_number": model.accreditation_number,
                "project_id": str(project.id),
            },
        )
        return model.to_dto()

    def get_record(self, record_id: UUID) -> AccreditationRecord | None:
        model = self.records.get(record_id)
        return model.to_dto() if model else None

    def list_records(self, project_id: UUID) -> list[AccreditationRecord]:
        """Records of a project ordered by accreditation number."""
        return [model.to_dto() for model in self.records.list_for_project(project_id)]
