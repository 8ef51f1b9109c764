"""ORM models for the accreditation kernel."""

from accreditation_kernel.models.accreditation import AccreditationModel
from accreditation_kernel.models.history import HistoryEntryModel
from accreditation_kernel.models.project import ProjectModel
from accreditation_kernel.models.scan_log import ScanLogModel

__all__ = [
    "ProjectModel",
    "AccreditationModel",
    "HistoryEntryModel",
    "ScanLogModel",
]
