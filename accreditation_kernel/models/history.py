"""
Module: accreditation_kernel.models.history
Responsibility: Append-only history stream of accreditation lifecycle events.
Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are never updated or deleted (ORM listeners in db/immutability.py,
      triggers in db/triggers.py).
    - record_id and project_id carry no foreign key so that history outlives
      a deleted draft record or project.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from accreditation_kernel.db.base import Base, UUIDString
from accreditation_kernel.domain.records import HistoryEntry
from accreditation_kernel.domain.status import AccreditationStatus, HistoryAction


class HistoryEntryModel(Base):
    """One lifecycle event for one accreditation record."""

    __tablename__ = "accreditation_history"

    __table_args__ = (
        Index("idx_accreditation_history_record", "record_id", "occurred_at"),
        Index("idx_accreditation_history_project", "project_id", "occurred_at"),
    )

    record_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    project_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    changes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self) -> HistoryEntry:
        return HistoryEntry(
            id=self.id,
            record_id=self.record_id,
            project_id=self.project_id,
            action=HistoryAction(self.action),
            old_status=AccreditationStatus(self.old_status) if self.old_status else None,
            new_status=AccreditationStatus(self.new_status),
            actor_id=self.actor_id,
            occurred_at=self.occurred_at,
            notes=self.notes,
            changes=dict(self.changes or {}),
        )
