"""Kernel services: lifecycle, issuance, verification, audit and the operations facade."""

from accreditation_kernel.services.audit_trail import AuditTrail
from accreditation_kernel.services.base import BaseService
from accreditation_kernel.services.operations import AccreditationOperations
from accreditation_kernel.services.project_service import ProjectService
from accreditation_kernel.services.qr_renderer import QrRenderer
from accreditation_kernel.services.record_service import RecordService
from accreditation_kernel.services.status_machine import StatusStateMachine
from accreditation_kernel.services.token_issuer import MAX_ATTEMPTS, TokenIssuer
from accreditation_kernel.services.verification_service import VerificationService

__all__ = [
    "AccreditationOperations",
    "AuditTrail",
    "BaseService",
    "ProjectService",
    "QrRenderer",
    "RecordService",
    "StatusStateMachine",
    "TokenIssuer",
    "MAX_ATTEMPTS",
    "VerificationService",
]
