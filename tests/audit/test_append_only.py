"""
Append-only audit streams and storage-level invariants.

Layer 1: ORM listeners reject UPDATE/DELETE of history and scan rows, and
deletion of an APPROVED record.
Layer 2: database triggers reject the same statements issued as raw SQL.
Storage constraints keep the token/status pairing and revocation reason
consistent even when the state machine is bypassed.
"""

import pytest
from sqlalchemy import select, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError

from accreditation_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from accreditation_kernel.db.triggers import (
    ALL_TRIGGER_NAMES,
    get_installed_triggers,
    install_append_only_triggers,
    triggers_installed,
    uninstall_append_only_triggers,
)
from accreditation_kernel.domain.status import AccreditationStatus
from accreditation_kernel.exceptions import ImmutabilityViolationError
from accreditation_kernel.models import AccreditationModel, HistoryEntryModel, ScanLogModel

from tests.factories import GATE_ID, SUBMITTER_ID


def _first(session, model):
    return session.execute(select(model)).scalars().first()


class TestOrmListeners:
    def test_history_update_rejected(self, pending_record, session):
        entry = _first(session, HistoryEntryModel)
        entry.notes = "rewritten"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "HistoryEntry"

    def test_history_delete_rejected(self, pending_record, session):
        session.delete(_first(session, HistoryEntryModel))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_scan_update_rejected(self, approved_record, verifier, session):
        verifier.verify(approved_record.qr_token, GATE_ID)
        scan = _first(session, ScanLogModel)
        scan.was_valid = False

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "ScanLog"

    def test_scan_delete_rejected(self, approved_record, verifier, session):
        verifier.verify(approved_record.qr_token, GATE_ID)
        session.delete(_first(session, ScanLogModel))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_approved_record_delete_rejected(self, approved_record, session):
        session.delete(session.get(AccreditationModel, approved_record.id, populate_existing=True))

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Accreditation"

    def test_draft_record_delete_allowed(self, make_record, session):
        record = make_record()
        session.delete(session.get(AccreditationModel, record.id))
        session.flush()

        assert session.get(AccreditationModel, record.id) is None

    def test_registration_is_idempotent(self, engine):
        register_immutability_listeners()
        register_immutability_listeners()


class TestDatabaseTriggers:
    def test_all_triggers_installed(self, engine):
        assert triggers_installed(engine)
        assert get_installed_triggers(engine) == sorted(ALL_TRIGGER_NAMES)

    def test_raw_history_update_rejected(self, pending_record, session):
        with pytest.raises(DBAPIError):
            session.execute(text("UPDATE accreditation_history SET notes = 'rewritten'"))

    def test_raw_history_delete_rejected(self, pending_record, session):
        with pytest.raises(DBAPIError):
            session.execute(text("DELETE FROM accreditation_history"))

    def test_raw_scan_delete_rejected(self, approved_record, verifier, session):
        verifier.verify(approved_record.qr_token, GATE_ID)
        with pytest.raises(DBAPIError):
            session.execute(text("DELETE FROM accreditation_scans"))

    def test_trigger_catches_orm_write_when_listeners_removed(self, pending_record, session):
        unregister_immutability_listeners()
        try:
            entry = _first(session, HistoryEntryModel)
            entry.notes = "rewritten"
            with pytest.raises(DBAPIError):
                session.flush()
        finally:
            register_immutability_listeners()

    def test_uninstall_and_reinstall(self, engine):
        uninstall_append_only_triggers(engine)
        assert get_installed_triggers(engine) == []

        install_append_only_triggers(engine)
        assert triggers_installed(engine)


class TestStorageConstraints:
    def test_approved_requires_token(self, pending_record, session):
        with pytest.raises(IntegrityError, match="ck_accreditations_token_iff_approved|CHECK"):
            with session.begin_nested():
                session.execute(
                    update(AccreditationModel)
                    .where(AccreditationModel.id == pending_record.id)
                    .values(status=AccreditationStatus.APPROVED.value)
                )

    def test_token_only_while_approved(self, make_record, session):
        record = make_record()
        with pytest.raises(IntegrityError):
            with session.begin_nested():
                session.execute(
                    update(AccreditationModel)
                    .where(AccreditationModel.id == record.id)
                    .values(qr_token="a" * 32)
                )

    def test_revoked_requires_reason(self, approved_record, session):
        with pytest.raises(IntegrityError):
            with session.begin_nested():
                session.execute(
                    update(AccreditationModel)
                    .where(AccreditationModel.id == approved_record.id)
                    .values(status=AccreditationStatus.REVOKED.value, qr_token=None)
                )

    def test_unknown_status_rejected(self, make_record, session):
        record = make_record()
        with pytest.raises(IntegrityError):
            with session.begin_nested():
                session.execute(
                    update(AccreditationModel)
                    .where(AccreditationModel.id == record.id)
                    .values(status="ARCHIVED")
                )

    def test_token_unique(self, approved_record, make_record, machine, session):
        other = make_record()
        machine.submit(other.id, SUBMITTER_ID)
        with pytest.raises(IntegrityError, match="qr_token"):
            with session.begin_nested():
                session.execute(
                    update(AccreditationModel)
                    .where(AccreditationModel.id == other.id)
                    .values(status=AccreditationStatus.APPROVED.value, qr_token=approved_record.qr_token)
                )
