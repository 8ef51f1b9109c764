"""
ProjectService -- creation and deletion of accreditation projects.

Invariants enforced:
    - Phase windows are complete, ordered and sequential before insert.
    - At least one access group; group names are stripped and de-duplicated.
    - A project is never deleted while it has APPROVED records.  Deleting
      removes its remaining records; their history and scan rows stay.

Failure modes:
    - DuplicateProjectCodeError, MissingFieldError, PhaseWindowError,
      ProjectNotFoundError, ProjectHasApprovedRecordsError.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from accreditation_kernel.domain.clock import Clock
from accreditation_kernel.domain.phases import (
    PhaseWindowConfig,
    normalize_config,
    validate_project_windows,
)
from accreditation_kernel.domain.records import ProjectConfig
from accreditation_kernel.exceptions import (
    DuplicateProjectCodeError,
    MissingFieldError,
    ProjectHasApprovedRecordsError,
    ProjectNotFoundError,
)
from accreditation_kernel.logging_config import get_logger
from accreditation_kernel.models import ProjectModel
from accreditation_kernel.repositories.base import ProjectRepository
from accreditation_kernel.repositories.project_repository import SqlProjectRepository
from accreditation_kernel.services.base import BaseService

logger = get_logger("services.projects")


class ProjectService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        projects: ProjectRepository | None = None,
    ):
        super().__init__(session, clock)
        self.projects = projects or SqlProjectRepository(session)

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
        code = (code or "").strip()
        name = (name or "").strip()
        if not code:
            raise MissingFieldError("code")
        if not name:
            raise MissingFieldError("name")

        groups = list(dict.fromkeys(g.strip() for g in access_groups if g and g.strip()))
        if not groups:
            raise MissingFieldError("access_groups")

        windows = normalize_config(windows)
        validate_project_windows(windows)

        if self.projects.get_by_code(code) is not None:
            raise DuplicateProjectCodeError(code)

        now = self.clock.now_utc()
        model = self.projects.add(
            ProjectModel(
                code=code,
                name=name,
                access_groups=groups,
                is_active=is_active,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
                **ProjectModel.window_columns(windows),
            )
        )
        logger.info("project_created", extra={"project_id": str(model.id), "code": code})
        return model.to_dto()

    def get_project(self, project_id: UUID) -> ProjectConfig | None:
        model = self.projects.get(project_id)
        return model.to_dto() if model else None

    def delete_project(self, project_id: UUID, actor_id: str) -> int:
        """
        Delete a project and its records.  Returns the number of records removed.

        Refused while any record is APPROVED.  The records are removed by a
        conditional delete that never matches an APPROVED row, and the count
        is taken again afterwards in the same transaction: an approval that
        lands between the first check and the delete makes the call fail
        (the caller rolls back) instead of losing the credential.
        """
        model = self.projects.get(project_id)
        if model is None:
            raise ProjectNotFoundError(str(project_id))

        self._refuse_if_approved(project_id)
        removed = self.projects.delete_unapproved_records(project_id)
        self._refuse_if_approved(project_id)

        self.projects.delete(model)
        logger.info(
            "project_deleted",
            extra={"project_id": str(project_id), "records_removed": removed, "deleted_by": actor_id},
        )
        return removed

    def _refuse_if_approved(self, project_id: UUID) -> None:
        approved = self.projects.approved_count(project_id)
        if approved:
            logger.warning(
                "project_delete_refused",
                extra={"project_id": str(project_id), "approved_count": approved},
            )
            raise ProjectHasApprovedRecordsError(str(project_id), approved)
