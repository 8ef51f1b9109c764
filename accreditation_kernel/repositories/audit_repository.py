"""SQLAlchemy implementations of the append-only history and scan repositories."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from accreditation_kernel.models import HistoryEntryModel, ScanLogModel


class SqlHistoryRepository:
    def __init__(self, session: Session):
        self.session = session

    def append(self, entry: HistoryEntryModel) -> HistoryEntryModel:
        self.session.add(entry)
        self.session.flush()
        return entry

    def query_by_record(self, record_id: UUID) -> list[HistoryEntryModel]:
        return list(
            self.session.execute(
                select(HistoryEntryModel)
                .where(HistoryEntryModel.record_id == record_id)
                .order_by(HistoryEntryModel.occurred_at.desc())
            ).scalars()
        )

    def query_by_project(self, project_id: UUID) -> list[HistoryEntryModel]:
        return list(
            self.session.execute(
                select(HistoryEntryModel)
                .where(HistoryEntryModel.project_id == project_id)
                .order_by(HistoryEntryModel.occurred_at.desc())
            ).scalars()
        )


class SqlScanLogRepository:
    def __init__(self, session: Session):
        self.session = session

    def append(self, entry: ScanLogModel) -> ScanLogModel:
        self.session.add(entry)
        self.session.flush()
        return entry

    def query_by_record(self, record_id: UUID) -> list[ScanLogModel]:
        return list(
            self.session.execute(
                select(ScanLogModel)
                .where(ScanLogModel.record_id == record_id)
                .order_by(ScanLogModel.scanned_at.desc())
            ).scalars()
        )

    def query_by_project(
        self, project_id: UUID, since: datetime | None = None
    ) -> list[ScanLogModel]:
        stmt = select(ScanLogModel).where(ScanLogModel.project_id == project_id)
        if since is not None:
            stmt = stmt.where(ScanLogModel.scanned_at >= since)
        return list(self.session.execute(stmt.order_by(ScanLogModel.scanned_at.desc())).scalars())
