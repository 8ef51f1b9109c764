"""
Tests for RecordService and ProjectService.

Record creation validates identity, the identity document, access group and
access windows against the owning project and numbers records sequentially.  Project deletion is
refused while any record is APPROVED and never touches the audit streams.
"""

from dataclasses import replace
from datetime import datetime
from uuid import uuid4

import pytest
from sqlalchemy import update

from accreditation_kernel.domain.identification import IdentificationType
from accreditation_kernel.domain.phases import PhaseWindow, PhaseWindowConfig
from accreditation_kernel.domain.status import AccreditationStatus, HistoryAction
from accreditation_kernel.exceptions import (
    DuplicateProjectCodeError,
    InvalidAccessGroupError,
    InvalidIdentificationError,
    MissingFieldError,
    PhaseWindowError,
    ProjectHasApprovedRecordsError,
    ProjectNotFoundError,
)
from accreditation_kernel.models import AccreditationModel
from accreditation_kernel.services.audit_trail import AuditTrail
from accreditation_kernel.services.project_service import ProjectService
from accreditation_kernel.services.record_service import RecordService

from tests.factories import ADMIN_ID, PASSPORT_HOLDER, PROJECT_WINDOWS, QID_HOLDER, SUBMITTER_ID, utc


class TestCreateRecord:
    def test_new_record_is_draft_with_created_history(self, make_record, session, clock):
        record = make_record()

        assert record.status is AccreditationStatus.DRAFT
        assert record.qr_token is None
        assert record.created_by_id == SUBMITTER_ID
        history = AuditTrail(session, clock).history_for_record(record.id)
        assert [h.action for h in history] == [HistoryAction.CREATED]
        assert history[0].old_status is None
        assert history[0].new_status is AccreditationStatus.DRAFT

    def test_numbers_are_sequential(self, make_record):
        numbers = [make_record().accreditation_number for _ in range(3)]
        assert numbers == ["ACC-0001", "ACC-0002", "ACC-0003"]

    def test_custom_prefix_and_width(self, session, clock, project):
        service = RecordService(session, clock, number_prefix="GATE", number_width=3)
        record = service.create_record(
            project_id=project.id,
            first_name="Ari",
            last_name="Lund",
            organization="Sound Co",
            job_title="Engineer",
            access_group="Production",
            identification=QID_HOLDER,
            actor_id=SUBMITTER_ID,
        )
        assert record.accreditation_number == "GATE-001"

    def test_identity_fields_are_stripped(self, make_record):
        record = make_record(first_name="  Dana ", organization=" Stagecraft Ltd")
        assert record.first_name == "Dana"
        assert record.organization == "Stagecraft Ltd"

    @pytest.mark.parametrize("field_name", ["first_name", "last_name", "organization", "job_title", "access_group"])
    def test_blank_required_field(self, make_record, field_name):
        with pytest.raises(MissingFieldError) as exc_info:
            make_record(**{field_name: "   "})
        assert exc_info.value.field_name == field_name

    def test_access_group_must_belong_to_project(self, make_record):
        with pytest.raises(InvalidAccessGroupError) as exc_info:
            make_record(access_group="VIP")
        assert exc_info.value.allowed_groups == ["Crew", "Production", "Artist"]

    def test_access_window_outside_project_window(self, make_record):
        access = PhaseWindowConfig(live=PhaseWindow.between(utc(2025, 1, 6), utc(2025, 2, 1)))
        with pytest.raises(PhaseWindowError) as exc_info:
            make_record(access=access)
        assert exc_info.value.phase == "live"

    def test_access_window_start_after_end(self, make_record):
        access = PhaseWindowConfig(bump_in=PhaseWindow.between(utc(2025, 1, 4), utc(2025, 1, 2)))
        with pytest.raises(PhaseWindowError):
            make_record(access=access)

    def test_enabled_window_without_bounds(self, make_record):
        access = PhaseWindowConfig(bump_in=PhaseWindow(enabled=True, start=utc(2025, 1, 1)))
        with pytest.raises(PhaseWindowError):
            make_record(access=access)

    def test_phase_not_enabled_on_project(self, session, clock):
        bump_in_project = ProjectService(session, clock).create_project(
            code="SETUP25",
            name="Setup only",
            windows=PhaseWindowConfig(bump_in=PhaseWindow.between(utc(2025, 1, 1), utc(2025, 1, 5))),
            access_groups=["Crew"],
            actor_id=ADMIN_ID,
        )
        with pytest.raises(PhaseWindowError, match="not enabled for the project"):
            RecordService(session, clock).create_record(
                project_id=bump_in_project.id,
                first_name="Dana",
                last_name="Reyes",
                organization="Stagecraft Ltd",
                job_title="Rigger",
                access_group="Crew",
                identification=QID_HOLDER,
                actor_id=SUBMITTER_ID,
                access=PhaseWindowConfig(live=PhaseWindow.between(utc(2025, 1, 6), utc(2025, 1, 7))),
            )

    def test_unknown_project(self, session, clock, engine):
        with pytest.raises(ProjectNotFoundError):
            RecordService(session, clock).create_record(
                project_id=uuid4(),
                first_name="Dana",
                last_name="Reyes",
                organization="Stagecraft Ltd",
                job_title="Rigger",
                access_group="Crew",
                identification=QID_HOLDER,
                actor_id=SUBMITTER_ID,
            )

    def test_naive_window_bounds_are_taken_as_utc(self, make_record):
        access = PhaseWindowConfig(bump_in=PhaseWindow.between(datetime(2025, 1, 2), datetime(2025, 1, 3)))
        record = make_record(access=access)
        assert record.access.bump_in.start == utc(2025, 1, 2)

    def test_string_window_bound_rejected(self, make_record):
        access = PhaseWindowConfig(bump_in=PhaseWindow(enabled=True, start="2025-01-02", end=utc(2025, 1, 3)))
        with pytest.raises(PhaseWindowError) as exc_info:
            make_record(access=access)
        assert exc_info.value.phase == "bumpIn"

    def test_numbering_ignores_case_of_existing_numbers(self, make_record, session, clock, project):
        make_record()
        lower = RecordService(session, clock, number_prefix="acc")
        record = lower.create_record(
            project_id=project.id,
            first_name="Ari",
            last_name="Lund",
            organization="Sound Co",
            job_title="Engineer",
            access_group="Production",
            identification=QID_HOLDER,
            actor_id=SUBMITTER_ID,
        )
        assert record.accreditation_number == "acc-0002"


class TestRecordIdentification:
    def test_qid_holder_persisted(self, make_record):
        record = make_record(profile_photo_url=" https://cdn.example.com/p/dana.jpg ")
        assert record.identification == QID_HOLDER
        assert record.profile_photo_url == "https://cdn.example.com/p/dana.jpg"

    def test_passport_holder_persisted(self, make_record):
        record = make_record(identification=PASSPORT_HOLDER)
        assert record.identification.identification_type is IdentificationType.PASSPORT
        assert record.identification.hayya_visa_number == "H-99812"
        assert record.profile_photo_url is None

    def test_short_qid_rejected(self, make_record, session, clock, project):
        with pytest.raises(InvalidIdentificationError) as exc_info:
            make_record(identification=replace(QID_HOLDER, qid_number="12345"))
        assert exc_info.value.field_name == "qid_number"
        assert RecordService(session, clock).list_records(project.id) == []

    def test_passport_without_hayya_visa_rejected(self, make_record):
        with pytest.raises(MissingFieldError) as exc_info:
            make_record(identification=replace(PASSPORT_HOLDER, hayya_visa_number=None))
        assert exc_info.value.field_name == "hayya_visa_number"


class TestCreateProject:
    def test_create(self, project):
        assert project.code == "FEST25"
        assert project.access_groups == ("Crew", "Production", "Artist")
        assert project.windows.live.start == utc(2025, 1, 6)

    def test_duplicate_code(self, project, session, clock):
        with pytest.raises(DuplicateProjectCodeError) as exc_info:
            ProjectService(session, clock).create_project(
                code="FEST25",
                name="Again",
                windows=PROJECT_WINDOWS,
                access_groups=["Crew"],
                actor_id=ADMIN_ID,
            )
        assert exc_info.value.project_code == "FEST25"

    def test_access_groups_deduplicated(self, session, clock, engine):
        project = ProjectService(session, clock).create_project(
            code="DUP",
            name="Dup groups",
            windows=PROJECT_WINDOWS,
            access_groups=["Crew", " Crew ", "Artist", ""],
            actor_id=ADMIN_ID,
        )
        assert project.access_groups == ("Crew", "Artist")

    def test_access_groups_required(self, session, clock, engine):
        with pytest.raises(MissingFieldError) as exc_info:
            ProjectService(session, clock).create_project(
                code="NONE",
                name="No groups",
                windows=PROJECT_WINDOWS,
                access_groups=[],
                actor_id=ADMIN_ID,
            )
        assert exc_info.value.field_name == "access_groups"

    def test_overlapping_phases_rejected(self, session, clock, engine):
        windows = PhaseWindowConfig(
            bump_in=PhaseWindow.between(utc(2025, 1, 1), utc(2025, 1, 10)),
            live=PhaseWindow.between(utc(2025, 1, 5), utc(2025, 1, 20)),
        )
        with pytest.raises(PhaseWindowError) as exc_info:
            ProjectService(session, clock).create_project(
                code="OVERLAP",
                name="Overlap",
                windows=windows,
                access_groups=["Crew"],
                actor_id=ADMIN_ID,
            )
        assert exc_info.value.phase == "live"


class TestDeleteProject:
    def test_refused_while_any_record_approved(self, approved_record, make_record, project, session, clock):
        make_record()
        service = ProjectService(session, clock)

        with pytest.raises(ProjectHasApprovedRecordsError) as exc_info:
            service.delete_project(project.id, ADMIN_ID)

        assert exc_info.value.approved_count == 1
        assert service.get_project(project.id) is not None
        assert RecordService(session, clock).get_record(approved_record.id) is not None

    def test_removes_records_and_keeps_history(self, make_record, machine, project, session, clock):
        draft = make_record()
        pending = make_record()
        machine.submit(pending.id, SUBMITTER_ID)
        service = ProjectService(session, clock)

        removed = service.delete_project(project.id, ADMIN_ID)

        assert removed == 2
        assert service.get_project(project.id) is None
        assert RecordService(session, clock).get_record(draft.id) is None
        history = AuditTrail(session, clock).history_for_project(project.id)
        assert len(history) == 3

    def test_allowed_after_revocation(self, approved_record, machine, project, session, clock):
        machine.revoke(approved_record.id, ADMIN_ID, "Left the crew")
        assert ProjectService(session, clock).delete_project(project.id, ADMIN_ID) == 1

    def test_unknown_project(self, session, clock, engine):
        with pytest.raises(ProjectNotFoundError):
            ProjectService(session, clock).delete_project(uuid4(), ADMIN_ID)

    def test_approval_landing_after_check_is_not_deleted(
        self, pending_record, make_record, project, session, clock, monkeypatch
    ):
        make_record()
        service = ProjectService(session, clock)
        real_count = service.projects.approved_count
        calls = []

        def count_then_approve(project_id):
            calls.append(project_id)
            count = real_count(project_id)
            if len(calls) == 1:
                # Another caller's approval commits right after the first count.
                session.execute(
                    update(AccreditationModel)
                    .where(AccreditationModel.id == pending_record.id)
                    .values(status=AccreditationStatus.APPROVED.value, qr_token="e" * 32)
                )
            return count

        monkeypatch.setattr(service.projects, "approved_count", count_then_approve)

        with pytest.raises(ProjectHasApprovedRecordsError) as exc_info:
            service.delete_project(project.id, ADMIN_ID)

        assert exc_info.value.approved_count == 1
        assert len(calls) == 2
        survivor = RecordService(session, clock).get_record(pending_record.id)
        assert survivor.status is AccreditationStatus.APPROVED
        assert service.get_project(project.id) is not None

    def test_conditional_record_delete_skips_approved(self, approved_record, make_record, project, session, clock):
        make_record()
        make_record()
        assert ProjectService(session, clock).projects.delete_unapproved_records(project.id) == 2
        remaining = RecordService(session, clock).list_records(project.id)
        assert [r.id for r in remaining] == [approved_record.id]
