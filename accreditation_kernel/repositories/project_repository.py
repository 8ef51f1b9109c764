"""SQLAlchemy implementation of ProjectRepository."""

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from accreditation_kernel.domain.status import AccreditationStatus
from accreditation_kernel.models import AccreditationModel, ProjectModel


class SqlProjectRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, project_id: UUID) -> ProjectModel | None:
        return self.session.get(ProjectModel, project_id)

    def get_by_code(self, code: str) -> ProjectModel | None:
        return self.session.execute(
            select(ProjectModel).where(ProjectModel.code == code)
        ).scalar_one_or_none()

    def add(self, model: ProjectModel) -> ProjectModel:
        self.session.add(model)
        self.session.flush()
        return model

    def approved_count(self, project_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(AccreditationModel)
            .where(
                AccreditationModel.project_id == project_id,
                AccreditationModel.status == AccreditationStatus.APPROVED.value,
            )
        ).scalar_one()

    def delete_unapproved_records(self, project_id: UUID) -> int:
        """
        DELETE ... WHERE project_id = :id AND status <> 'APPROVED'.

        The status test is evaluated by the database against the committed
        row, so a record approved after the caller last looked is skipped
        rather than removed.  Returns the number of rows deleted.
        """
        result = self.session.execute(
            delete(AccreditationModel)
            .where(
                AccreditationModel.project_id == project_id,
                AccreditationModel.status != AccreditationStatus.APPROVED.value,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete(self, model: ProjectModel) -> None:
        self.session.delete(model)
        self.session.flush()
