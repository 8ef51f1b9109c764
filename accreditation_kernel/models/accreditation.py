"""
Module: accreditation_kernel.models.accreditation
Responsibility: ORM persistence for accreditation records (the credential).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced (storage level):
    - accreditation_number is unique.
    - qr_token is unique across all records (uq_accreditations_qr_token).
      This constraint, not the issuer's pre-check, is the safety guarantee
      under concurrent approvals.
    - qr_token IS NOT NULL iff status = 'APPROVED' (ck_accreditations_token_iff_approved).
    - revocation_reason IS NOT NULL whenever status = 'REVOKED'
      (ck_accreditations_revoked_has_reason).
    - status is one of the five lifecycle values (ck_accreditations_status).
    - identification_type is qid or passport
      (ck_accreditations_identification_type).

Failure modes:
    - IntegrityError on any of the constraints above.  TokenIssuer turns a
      qr_token violation into a retry.

Audit relevance:
    Status and token columns only change through StatusStateMachine, whose
    every write is paired with a history row in the same transaction.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from accreditation_kernel.db.base import TrackedBase, UUIDString
from accreditation_kernel.domain.identification import (
    IDENTIFICATION_FIELDS,
    Identification,
    IdentificationType,
)
from accreditation_kernel.domain.phases import PhaseWindow, PhaseWindowConfig
from accreditation_kernel.domain.records import AccreditationRecord
from accreditation_kernel.domain.status import AccreditationStatus

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in AccreditationStatus)
_IDENTIFICATION_VALUES = ", ".join(f"'{t.value}'" for t in IdentificationType)


class AccreditationModel(TrackedBase):
    """
    Accreditation record.

    Contract:
        Rows are inserted in DRAFT by RecordService.  Status, token, approval
        and revocation columns are written only by the repository's
        conditional update on behalf of StatusStateMachine.
    """

    __tablename__ = "accreditations"

    __table_args__ = (
        UniqueConstraint("accreditation_number", name="uq_accreditations_number"),
        UniqueConstraint("qr_token", name="uq_accreditations_qr_token"),
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_accreditations_status"),
        CheckConstraint(
            "(status = 'APPROVED' AND qr_token IS NOT NULL) "
            "OR (status <> 'APPROVED' AND qr_token IS NULL)",
            name="ck_accreditations_token_iff_approved",
        ),
        CheckConstraint(
            "status <> 'REVOKED' OR revocation_reason IS NOT NULL",
            name="ck_accreditations_revoked_has_reason",
        ),
        CheckConstraint(
            f"identification_type IN ({_IDENTIFICATION_VALUES})",
            name="ck_accreditations_identification_type",
        ),
        Index("idx_accreditations_project_status", "project_id", "status"),
    )

    accreditation_number: Mapped[str] = mapped_column(String(50), nullable=False)

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accreditation_projects.id"),
        nullable=False,
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    organization: Mapped[str] = mapped_column(String(200), nullable=False)
    job_title: Mapped[str] = mapped_column(String(200), nullable=False)
    access_group: Mapped[str] = mapped_column(String(100), nullable=False)
    profile_photo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    identification_type: Mapped[str] = mapped_column(String(20), nullable=False)
    qid_number: Mapped[str | None] = mapped_column(String(11), nullable=True)
    qid_expiry: Mapped[datetime | None] = mapped_column(nullable=True)
    passport_number: Mapped[str | None] = mapped_column(String(12), nullable=True)
    passport_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    passport_expiry: Mapped[datetime | None] = mapped_column(nullable=True)
    hayya_visa_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    hayya_visa_expiry: Mapped[datetime | None] = mapped_column(nullable=True)

    has_bump_in_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bump_in_start: Mapped[datetime | None] = mapped_column(nullable=True)
    bump_in_end: Mapped[datetime | None] = mapped_column(nullable=True)

    has_live_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    live_start: Mapped[datetime | None] = mapped_column(nullable=True)
    live_end: Mapped[datetime | None] = mapped_column(nullable=True)

    has_bump_out_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bump_out_start: Mapped[datetime | None] = mapped_column(nullable=True)
    bump_out_end: Mapped[datetime | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AccreditationStatus.DRAFT.value,
    )

    qr_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # Rendered PNG of the QR code; cleared whenever the token changes.
    qr_code_image: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)

    approved_by_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    revoked_by_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    revocation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def access(self) -> PhaseWindowConfig:
        return self.access_from_columns(
            {name: getattr(self, name) for name in self.access_columns(PhaseWindowConfig())}
        )

    @staticmethod
    def access_from_columns(values: dict) -> PhaseWindowConfig:
        """PhaseWindowConfig from access column values."""
        return PhaseWindowConfig(
            bump_in=PhaseWindow(
                values["has_bump_in_access"], values["bump_in_start"], values["bump_in_end"]
            ),
            live=PhaseWindow(values["has_live_access"], values["live_start"], values["live_end"]),
            bump_out=PhaseWindow(
                values["has_bump_out_access"], values["bump_out_start"], values["bump_out_end"]
            ),
        )

    @staticmethod
    def access_columns(config: PhaseWindowConfig) -> dict:
        """Column values for a record's PhaseWindowConfig."""
        return {
            "has_bump_in_access": config.bump_in.enabled,
            "bump_in_start": config.bump_in.start,
            "bump_in_end": config.bump_in.end,
            "has_live_access": config.live.enabled,
            "live_start": config.live.start,
            "live_end": config.live.end,
            "has_bump_out_access": config.bump_out.enabled,
            "bump_out_start": config.bump_out.start,
            "bump_out_end": config.bump_out.end,
        }

    @property
    def identification(self) -> Identification:
        values = {name: getattr(self, name) for name in IDENTIFICATION_FIELDS}
        values["identification_type"] = IdentificationType(self.identification_type)
        return Identification(**values)

    @staticmethod
    def identification_columns(identification: Identification) -> dict:
        """Column values for an Identification; the type is stored by value."""
        columns = {name: getattr(identification, name) for name in IDENTIFICATION_FIELDS}
        columns["identification_type"] = IdentificationType(identification.identification_type).value
        return columns

    def to_dto(self) -> AccreditationRecord:
        return AccreditationRecord(
            id=self.id,
            accreditation_number=self.accreditation_number,
            project_id=self.project_id,
            first_name=self.first_name,
            last_name=self.last_name,
            organization=self.organization,
            job_title=self.job_title,
            access_group=self.access_group,
            access=self.access,
            status=AccreditationStatus(self.status),
            identification=self.identification,
            profile_photo_url=self.profile_photo_url,
            qr_token=self.qr_token,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            revoked_by_id=self.revoked_by_id,
            revoked_at=self.revoked_at,
            revocation_reason=self.revocation_reason,
            created_at=self.created_at,
            updated_at=self.updated_at,
            created_by_id=self.created_by_id,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return f"<AccreditationModel {self.accreditation_number} {self.status}>"
