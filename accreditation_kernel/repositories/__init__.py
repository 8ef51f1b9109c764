"""Narrow persistence interfaces and their SQLAlchemy implementations."""

from accreditation_kernel.repositories.accreditation_repository import SqlAccreditationRepository
from accreditation_kernel.repositories.audit_repository import SqlHistoryRepository, SqlScanLogRepository
from accreditation_kernel.repositories.base import (
    AccreditationRepository,
    HistoryRepository,
    ProjectRepository,
    ScanLogRepository,
)
from accreditation_kernel.repositories.project_repository import SqlProjectRepository

__all__ = [
    "AccreditationRepository",
    "ProjectRepository",
    "HistoryRepository",
    "ScanLogRepository",
    "SqlAccreditationRepository",
    "SqlProjectRepository",
    "SqlHistoryRepository",
    "SqlScanLogRepository",
]
