"""
Module: accreditation_kernel.repositories.base
Responsibility: The narrow persistence interfaces the services depend on.
    Each protocol exposes only what the lifecycle, issuance, verification and
    audit paths need.  SQLAlchemy implementations live beside this module;
    tests may substitute in-memory fakes.
Architecture position: Kernel > Repositories.  May import from models/ and
    domain/.  Repositories flush, never commit.
"""

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from accreditation_kernel.domain.status import AccreditationStatus
from accreditation_kernel.models import (
    AccreditationModel,
    HistoryEntryModel,
    ProjectModel,
    ScanLogModel,
)


class AccreditationRepository(Protocol):
    def get(self, record_id: UUID) -> AccreditationModel | None: ...

    def find_by_token(self, token: str) -> AccreditationModel | None: ...

    def find_by_number(self, number: str) -> AccreditationModel | None: ...

    def token_exists(self, token: str) -> bool: ...

    def next_number(self, prefix: str, width: int) -> str: ...

    def add(self, model: AccreditationModel) -> AccreditationModel: ...

    def conditional_update(
        self,
        record_id: UUID,
        expected_status: AccreditationStatus,
        values: dict[str, Any],
    ) -> int: ...

    def list_for_project(self, project_id: UUID) -> list[AccreditationModel]: ...


class ProjectRepository(Protocol):
    def get(self, project_id: UUID) -> ProjectModel | None: ...

    def get_by_code(self, code: str) -> ProjectModel | None: ...

    def add(self, model: ProjectModel) -> ProjectModel: ...

    def approved_count(self, project_id: UUID) -> int: ...

    def delete_unapproved_records(self, project_id: UUID) -> int: ...

    def delete(self, model: ProjectModel) -> None: ...


class HistoryRepository(Protocol):
    def append(self, entry: HistoryEntryModel) -> HistoryEntryModel: ...

    def query_by_record(self, record_id: UUID) -> list[HistoryEntryModel]: ...

    def query_by_project(self, project_id: UUID) -> list[HistoryEntryModel]: ...


class ScanLogRepository(Protocol):
    def append(self, entry: ScanLogModel) -> ScanLogModel: ...

    def query_by_record(self, record_id: UUID) -> list[ScanLogModel]: ...

    def query_by_project(
        self, project_id: UUID, since: datetime | None = None
    ) -> list[ScanLogModel]: ...
