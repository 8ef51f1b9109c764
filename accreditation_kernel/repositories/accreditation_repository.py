"""SQLAlchemy implementation of AccreditationRepository."""

from typing import Any
from uuid import UUID

from sqlalchemy import case, exists, func, select, update
from sqlalchemy.orm import Session

from accreditation_kernel.domain.status import AccreditationStatus
from accreditation_kernel.models import AccreditationModel


class SqlAccreditationRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, record_id: UUID) -> AccreditationModel | None:
        # populate_existing: a conditional UPDATE bypasses the identity map.
        return self.session.get(AccreditationModel, record_id, populate_existing=True)

    def find_by_token(self, token: str) -> AccreditationModel | None:
        return self.session.execute(
            select(AccreditationModel).where(AccreditationModel.qr_token == token)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def find_by_number(self, number: str) -> AccreditationModel | None:
        """
        Case-insensitive lookup.  The unique constraint is case-sensitive, so
        several rows may match; an exact match wins, then the oldest row.
        """
        number_col = AccreditationModel.accreditation_number
        return self.session.execute(
            select(AccreditationModel)
            .where(func.lower(number_col) == number.lower())
            .order_by(case((number_col == number, 0), else_=1), AccreditationModel.created_at)
            .limit(1)
            .execution_options(populate_existing=True)
        ).scalars().first()

    def token_exists(self, token: str) -> bool:
        return bool(
            self.session.execute(
                select(exists().where(AccreditationModel.qr_token == token))
            ).scalar()
        )

    def next_number(self, prefix: str, width: int) -> str:
        """
        Next sequential number for ``prefix`` (e.g. ACC-0001).

        The scan ignores case, so prefixes differing only in case share one
        sequence.  Concurrent callers may compute the same value; the unique
        constraint on accreditation_number rejects the loser.
        """
        stem = f"{prefix}-"
        numbers = self.session.execute(
            select(AccreditationModel.accreditation_number).where(
                func.lower(AccreditationModel.accreditation_number).like(f"{stem.lower()}%")
            )
        ).scalars()
        highest = 0
        for number in numbers:
            suffix = number[len(stem):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{stem}{highest + 1:0{width}d}"

    def add(self, model: AccreditationModel) -> AccreditationModel:
        self.session.add(model)
        self.session.flush()
        return model

    def conditional_update(
        self,
        record_id: UUID,
        expected_status: AccreditationStatus,
        values: dict[str, Any],
    ) -> int:
        """
        UPDATE ... WHERE id = :id AND status = :expected.

        Returns the affected row count; 0 means the record is gone or another
        caller moved it first.
        """
        result = self.session.execute(
            update(AccreditationModel)
            .where(
                AccreditationModel.id == record_id,
                AccreditationModel.status == expected_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def list_for_project(self, project_id: UUID) -> list[AccreditationModel]:
        return list(
            self.session.execute(
                select(AccreditationModel)
                .where(AccreditationModel.project_id == project_id)
                .order_by(AccreditationModel.accreditation_number)
            ).scalars()
        )
