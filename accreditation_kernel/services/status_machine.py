"""
StatusStateMachine -- the only writer of accreditation status.

Responsibility:
    Executes the named lifecycle transitions (submit, approve, reject,
    revoke, reinstate, return_to_draft) and administrative edits, each with
    its history row.

Architecture position:
    Kernel > Services.  Uses TokenIssuer for approve/reinstate and AuditTrail
    for history.  Flushes only; the caller owns the transaction.

Invariants enforced:
    - Each operation names its single valid predecessor state and checks it
      explicitly before writing.
    - The write itself is ``UPDATE ... WHERE id = :id AND status = :expected``.
      When a concurrent caller got there first the update matches zero rows
      and the operation fails with InvalidTransitionError naming the status
      actually found in storage.  Nothing is written in that case.
    - qr_token is set exactly when the record enters APPROVED and cleared
      (with any rendered QR image) whenever it leaves APPROVED.
    - Editing an APPROVED record demotes it to PENDING and drops the token.

Failure modes:
    - RecordNotFoundError: unknown record id.
    - InvalidTransitionError: wrong predecessor state or lost race.
    - MissingReasonError: reject/revoke without a reason.
    - TokenExhaustedError: from TokenIssuer, aborts the approval.
    - UnknownFieldError, MissingFieldError, InvalidIdentificationError,
      InvalidAccessGroupError, PhaseWindowError: rejected edits.
"""

from dataclasses import replace
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from accreditation_kernel.domain.clock import Clock, ensure_utc
from accreditation_kernel.domain.identification import (
    IDENTIFICATION_FIELDS,
    normalize_identification,
    normalize_photo_url,
    validate_identification,
)
from accreditation_kernel.domain.phases import (
    validate_access_group,
    validate_access_windows,
)
from accreditation_kernel.domain.records import (
    EDITABLE_FIELDS,
    IDENTITY_FIELDS,
    WINDOW_FIELDS,
    AccreditationRecord,
)
from accreditation_kernel.domain.status import (
    EDIT_DEMOTES,
    AccreditationStatus,
    HistoryAction,
    Transition,
    transition_for,
)
from accreditation_kernel.exceptions import (
    InvalidTransitionError,
    MissingFieldError,
    MissingReasonError,
    ProjectNotFoundError,
    RecordNotFoundError,
    UnknownFieldError,
)
from accreditation_kernel.logging_config import get_logger
from accreditation_kernel.models import AccreditationModel
from accreditation_kernel.repositories.accreditation_repository import SqlAccreditationRepository
from accreditation_kernel.repositories.base import AccreditationRepository, ProjectRepository
from accreditation_kernel.repositories.project_repository import SqlProjectRepository
from accreditation_kernel.services.audit_trail import AuditTrail
from accreditation_kernel.services.base import BaseService
from accreditation_kernel.services.token_issuer import TokenIssuer

logger = get_logger("services.status_machine")

_CLEARED_APPROVAL = {
    "qr_token": None,
    "qr_code_image": None,
    "approved_by_id": None,
    "approved_at": None,
}


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class StatusStateMachine(BaseService):
    """Named, conditional status transitions for accreditation records."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        records: AccreditationRepository | None = None,
        projects: ProjectRepository | None = None,
        audit: AuditTrail | None = None,
        token_issuer: TokenIssuer | None = None,
    ):
        super().__init__(session, clock)
        self.records = records or SqlAccreditationRepository(session)
        self.projects = projects or SqlProjectRepository(session)
        self.audit = audit or AuditTrail(session, self.clock)
        self.token_issuer = token_issuer or TokenIssuer(session, self.records)

    # ------------------------------------------------------------------
    # Named transitions
    # ------------------------------------------------------------------

    def submit(self, record_id: UUID, actor_id: str, notes: str | None = None) -> AccreditationRecord:
        return self._simple_transition(record_id, HistoryAction.SUBMITTED, actor_id, notes)

    def approve(
        self,
        record_id: UUID,
        approver_id: str,
        notes: str | None = None,
    ) -> AccreditationRecord:
        """PENDING -> APPROVED with a freshly issued token."""
        transition = transition_for(HistoryAction.APPROVED)
        model = self._load(record_id)
        self._require(model, transition)
        now = self.clock.now_utc()

        def bind(token: str) -> None:
            self._apply(
                model,
                transition,
                {
                    "qr_token": token,
                    "qr_code_image": None,
                    "approved_by_id": approver_id,
                    "approved_at": now,
                },
                approver_id,
            )

        self.token_issuer.issue(bind)
        return self._finish(model, transition, approver_id, notes)

    def reject(self, record_id: UUID, approver_id: str, reason: str) -> AccreditationRecord:
        """PENDING -> REJECTED.  ``reason`` is stored as the history note."""
        transition = transition_for(HistoryAction.REJECTED)
        model = self._load(record_id)
        reason = self._require_reason(model, reason, transition)
        self._require(model, transition)
        self._apply(model, transition, {}, approver_id)
        return self._finish(model, transition, approver_id, reason)

    def revoke(self, record_id: UUID, actor_id: str, reason: str) -> AccreditationRecord:
        """APPROVED -> REVOKED.  Clears the token and any rendered QR image."""
        transition = transition_for(HistoryAction.REVOKED)
        model = self._load(record_id)
        reason = self._require_reason(model, reason, transition)
        self._require(model, transition)
        self._apply(
            model,
            transition,
            {
                **_CLEARED_APPROVAL,
                "revoked_by_id": actor_id,
                "revoked_at": self.clock.now_utc(),
                "revocation_reason": reason,
            },
            actor_id,
        )
        return self._finish(model, transition, actor_id, reason)

    def reinstate(
        self,
        record_id: UUID,
        actor_id: str,
        notes: str | None = None,
    ) -> AccreditationRecord:
        """REVOKED -> APPROVED with a new token; the old one is never reused."""
        transition = transition_for(HistoryAction.REINSTATED)
        model = self._load(record_id)
        self._require(model, transition)
        now = self.clock.now_utc()

        def bind(token: str) -> None:
            self._apply(
                model,
                transition,
                {
                    "qr_token": token,
                    "qr_code_image": None,
                    "approved_by_id": actor_id,
                    "approved_at": now,
                    "revoked_by_id": None,
                    "revoked_at": None,
                    "revocation_reason": None,
                },
                actor_id,
            )

        self.token_issuer.issue(bind)
        return self._finish(model, transition, actor_id, notes)

    def return_to_draft(
        self,
        record_id: UUID,
        actor_id: str,
        notes: str | None = None,
    ) -> AccreditationRecord:
        return self._simple_transition(record_id, HistoryAction.RETURNED_TO_DRAFT, actor_id, notes)

    # ------------------------------------------------------------------
    # Administrative edit
    # ------------------------------------------------------------------

    def edit(
        self,
        record_id: UUID,
        changes: dict[str, Any],
        actor_id: str,
    ) -> AccreditationRecord:
        """
        Apply field changes in any status.

        An APPROVED record is demoted to PENDING and loses its token,
        whatever fields changed.
        """
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise UnknownFieldError(unknown)

        model = self._load(record_id)
        values = self._validated_edit_values(model, changes)

        old_status = AccreditationStatus(model.status)
        new_status = EDIT_DEMOTES.get(old_status, old_status)

        diff = {
            name: {"from": _json_value(getattr(model, name)), "to": _json_value(value)}
            for name, value in values.items()
            if getattr(model, name) != value
        }

        update_values = dict(values)
        notes = None
        if new_status is not old_status:
            update_values.update(_CLEARED_APPROVAL)
            update_values["status"] = new_status.value
            notes = "Approval invalidated by edit"

        update_values["updated_at"] = self.clock.now_utc()
        update_values["updated_by_id"] = actor_id

        affected = self.records.conditional_update(model.id, old_status, update_values)
        if affected == 0:
            self._raise_lost_race(model.id, "edit", old_status)

        self.audit.record_history(
            record_id=model.id,
            project_id=model.project_id,
            action=HistoryAction.UPDATED,
            old_status=old_status,
            new_status=new_status,
            actor_id=actor_id,
            notes=notes,
            changes=diff,
        )

        if new_status is not old_status:
            logger.warning(
                "approval_invalidated_by_edit",
                extra={"record_id": str(model.id), "changed_fields": sorted(diff)},
            )
        logger.info(
            "accreditation_edited",
            extra={"record_id": str(model.id), "changed_fields": sorted(diff)},
        )
        return self._reload(model.id)

    def _validated_edit_values(self, model: AccreditationModel, changes: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name, value in changes.items():
            if isinstance(value, datetime):
                value = ensure_utc(value)
            if name in IDENTITY_FIELDS or name == "access_group":
                if value is None or not str(value).strip():
                    raise MissingFieldError(name)
                value = str(value).strip()
            values[name] = value

        if "profile_photo_url" in values:
            values["profile_photo_url"] = normalize_photo_url(values["profile_photo_url"])

        document = {k: v for k, v in values.items() if k in IDENTIFICATION_FIELDS}
        if document:
            identification = normalize_identification(replace(model.identification, **document))
            validate_identification(identification)
            columns = AccreditationModel.identification_columns(identification)
            values.update((name, columns[name]) for name in document)

        project = self.projects.get(model.project_id)
        if project is None:
            raise ProjectNotFoundError(str(model.project_id))

        if "access_group" in values:
            validate_access_group(values["access_group"], list(project.access_groups or ()))

        window_fields = {k: v for k, v in values.items() if k in WINDOW_FIELDS}
        if window_fields:
            merged = {**AccreditationModel.access_columns(model.access), **window_fields}
            candidate = AccreditationModel.access_from_columns(merged)
            validate_access_windows(candidate, project.windows)
        return values

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _simple_transition(
        self,
        record_id: UUID,
        action: HistoryAction,
        actor_id: str,
        notes: str | None,
    ) -> AccreditationRecord:
        transition = transition_for(action)
        model = self._load(record_id)
        self._require(model, transition)
        self._apply(model, transition, {}, actor_id)
        return self._finish(model, transition, actor_id, notes)

    def _load(self, record_id: UUID) -> AccreditationModel:
        model = self.records.get(record_id)
        if model is None:
            raise RecordNotFoundError(str(record_id))
        return model

    def _require(self, model: AccreditationModel, transition: Transition) -> None:
        if model.status != transition.from_status.value:
            logger.warning(
                "transition_rejected",
                extra={
                    "record_id": str(model.id),
                    "operation": transition.operation,
                    "actual_status": model.status,
                    "expected_status": transition.from_status.value,
                },
            )
            raise InvalidTransitionError(
                record_id=str(model.id),
                action=transition.operation,
                actual_status=model.status,
                expected_status=transition.from_status.value,
            )

    def _require_reason(self, model: AccreditationModel, reason: str | None, transition: Transition) -> str:
        if reason is None or not reason.strip():
            raise MissingReasonError(str(model.id), transition.operation)
        return reason.strip()

    def _apply(
        self,
        model: AccreditationModel,
        transition: Transition,
        values: dict[str, Any],
        actor_id: str,
    ) -> None:
        affected = self.records.conditional_update(
            model.id,
            transition.from_status,
            {
                **values,
                "status": transition.to_status.value,
                "updated_at": self.clock.now_utc(),
                "updated_by_id": actor_id,
            },
        )
        if affected == 0:
            self._raise_lost_race(model.id, transition.operation, transition.from_status)

    def _raise_lost_race(self, record_id: UUID, operation: str, expected: AccreditationStatus) -> None:
        current = self.records.get(record_id)
        if current is None:
            raise RecordNotFoundError(str(record_id))
        logger.warning(
            "transition_conflict",
            extra={
                "record_id": str(record_id),
                "operation": operation,
                "actual_status": current.status,
                "expected_status": expected.value,
            },
        )
        raise InvalidTransitionError(
            record_id=str(record_id),
            action=operation,
            actual_status=current.status,
            expected_status=expected.value,
        )

    def _finish(
        self,
        model: AccreditationModel,
        transition: Transition,
        actor_id: str,
        notes: str | None,
    ) -> AccreditationRecord:
        self.audit.record_history(
            record_id=model.id,
            project_id=model.project_id,
            action=transition.action,
            old_status=transition.from_status,
            new_status=transition.to_status,
            actor_id=actor_id,
            notes=notes,
        )
        logger.info(
            f"accreditation_{transition.action.value.lower()}",
            extra={
                "record_id": str(model.id),
                "from_status": transition.from_status.value,
                "to_status": transition.to_status.value,
            },
        )
        return self._reload(model.id)

    def _reload(self, record_id: UUID) -> AccreditationRecord:
        return self._load(record_id).to_dto()
