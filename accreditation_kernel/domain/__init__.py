"""Pure domain layer: statuses, phase windows, value objects and the gate decision."""

from accreditation_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from accreditation_kernel.domain.identification import (
    Identification,
    IdentificationType,
    validate_identification,
)
from accreditation_kernel.domain.phases import (
    PHASE_ORDER,
    Phase,
    PhaseWindow,
    PhaseWindowConfig,
    validate_access_group,
    validate_access_windows,
    validate_project_windows,
)
from accreditation_kernel.domain.records import (
    EDITABLE_FIELDS,
    AccreditationRecord,
    HistoryEntry,
    ProjectConfig,
    ScanLogEntry,
    ScanLogWriteResult,
    ScanRequestMeta,
)
from accreditation_kernel.domain.status import (
    TRANSITIONS,
    AccreditationStatus,
    HistoryAction,
    Transition,
    allowed_edges,
)
from accreditation_kernel.domain.verification import (
    ConfiguredWindow,
    VerificationOutcome,
    VerificationResult,
    evaluate,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Phase",
    "PHASE_ORDER",
    "PhaseWindow",
    "PhaseWindowConfig",
    "validate_project_windows",
    "validate_access_windows",
    "validate_access_group",
    "Identification",
    "IdentificationType",
    "validate_identification",
    "AccreditationRecord",
    "ProjectConfig",
    "HistoryEntry",
    "ScanLogEntry",
    "ScanLogWriteResult",
    "ScanRequestMeta",
    "EDITABLE_FIELDS",
    "AccreditationStatus",
    "HistoryAction",
    "Transition",
    "TRANSITIONS",
    "allowed_edges",
    "ConfiguredWindow",
    "VerificationOutcome",
    "VerificationResult",
    "evaluate",
]
