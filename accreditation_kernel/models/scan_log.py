"""
Module: accreditation_kernel.models.scan_log
Responsibility: Append-only log of gate scans.
Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are never updated or deleted.
    - record_id is nullable and carries no foreign key.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from accreditation_kernel.db.base import Base, UUIDString
from accreditation_kernel.domain.records import ScanLogEntry


class ScanLogModel(Base):
    """A single verification attempt at a gate."""

    __tablename__ = "accreditation_scans"

    __table_args__ = (
        Index("idx_accreditation_scans_record", "record_id", "scanned_at"),
        Index("idx_accreditation_scans_project", "project_id", "scanned_at"),
    )

    record_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    project_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    scanned_at: Mapped[datetime] = mapped_column(nullable=False)
    was_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    valid_phases: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    device: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def to_dto(self) -> ScanLogEntry:
        return ScanLogEntry(
            id=self.id,
            record_id=self.record_id,
            project_id=self.project_id,
            actor_id=self.actor_id,
            scanned_at=self.scanned_at,
            was_valid=self.was_valid,
            valid_phases=tuple(self.valid_phases or ()),
            device=self.device,
            ip_address=self.ip_address,
        )
