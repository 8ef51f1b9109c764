"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The history and scan streams are the evidence behind every gate decision and
every approval.  Neither may be rewritten after the fact, and an APPROVED
credential may not silently disappear from the database while badges carrying
its token are in circulation.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications made through SQLAlchemy ORM code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (database triggers)
    - Catches raw SQL and bulk statements on the audit tables

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable              | Rule
---------------------|-----------------------------|-----------------------------
HistoryEntryModel    | ALWAYS (from creation)      | no UPDATE, no DELETE
ScanLogModel         | ALWAYS (from creation)      | no UPDATE, no DELETE
AccreditationModel   | while status = APPROVED     | no DELETE

Record status changes are NOT guarded here: transitions go through Core
``UPDATE ... WHERE status = :expected`` statements issued by the repository,
and the state machine is the authority on which edges exist.

===============================================================================
USAGE
===============================================================================

Registered by ``init_engine_from_url()``.  Registration is idempotent.

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm import Session

from accreditation_kernel.exceptions import ImmutabilityViolationError
from accreditation_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _reject_history_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="HistoryEntry",
        entity_id=str(target.id),
        reason="History entries are append-only -- cannot modify",
    )


def _reject_history_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="HistoryEntry",
        entity_id=str(target.id),
        reason="History entries are append-only -- cannot delete",
    )


def _reject_scan_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ScanLog",
        entity_id=str(target.id),
        reason="Scan log entries are append-only -- cannot modify",
    )


def _reject_scan_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ScanLog",
        entity_id=str(target.id),
        reason="Scan log entries are append-only -- cannot delete",
    )


def _check_approved_deletion_before_flush(session, flush_context, instances):
    """
    Refuse to delete an APPROVED accreditation.

    Runs in SessionEvents.before_flush so the check happens before the
    flush plan is executed.
    """
    from accreditation_kernel.domain.status import AccreditationStatus
    from accreditation_kernel.models.accreditation import AccreditationModel

    for obj in list(session.deleted):
        if not isinstance(obj, AccreditationModel):
            continue
        if obj.status == AccreditationStatus.APPROVED.value:
            logger.warning(
                "approved_record_delete_blocked",
                extra={"record_id": str(obj.id)},
            )
            raise ImmutabilityViolationError(
                entity_type="Accreditation",
                entity_id=str(obj.id),
                reason="Approved accreditations cannot be deleted",
            )


def _mapper_listeners():
    from accreditation_kernel.models.history import HistoryEntryModel
    from accreditation_kernel.models.scan_log import ScanLogModel

    return [
        (HistoryEntryModel, "before_update", _reject_history_update),
        (HistoryEntryModel, "before_delete", _reject_history_delete),
        (ScanLogModel, "before_update", _reject_scan_update),
        (ScanLogModel, "before_delete", _reject_scan_delete),
    ]


def register_immutability_listeners() -> None:
    """Register all ORM immutability listeners (idempotent)."""
    for target, identifier, fn in _mapper_listeners():
        if not event.contains(target, identifier, fn):
            event.listen(target, identifier, fn)

    if not event.contains(Session, "before_flush", _check_approved_deletion_before_flush):
        event.listen(Session, "before_flush", _check_approved_deletion_before_flush)

    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove all ORM immutability listeners. FOR TESTING ONLY."""
    for target, identifier, fn in _mapper_listeners():
        if event.contains(target, identifier, fn):
            event.remove(target, identifier, fn)

    if event.contains(Session, "before_flush", _check_approved_deletion_before_flush):
        event.remove(Session, "before_flush", _check_approved_deletion_before_flush)
