"""
Module: accreditation_kernel.models.project
Responsibility: ORM persistence for accreditation projects -- the owner of
    the three phase windows and of the allowed access-group set.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - code is unique (uq_accreditation_projects_code).
    - Window shape and ordering are validated by ProjectService before
      insert; the columns themselves are plain nullable timestamps.

Audit relevance:
    Window bounds decide every gate outcome for the project's credentials.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from accreditation_kernel.db.base import TrackedBase
from accreditation_kernel.domain.phases import PhaseWindow, PhaseWindowConfig
from accreditation_kernel.domain.records import ProjectConfig


class ProjectModel(TrackedBase):
    """
    Accreditation project.

    Guarantees:
        - ``to_dto()`` returns an immutable ProjectConfig snapshot.
    """

    __tablename__ = "accreditation_projects"

    __table_args__ = (
        UniqueConstraint("code", name="uq_accreditation_projects_code"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    bump_in_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bump_in_start: Mapped[datetime | None] = mapped_column(nullable=True)
    bump_in_end: Mapped[datetime | None] = mapped_column(nullable=True)

    live_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    live_start: Mapped[datetime | None] = mapped_column(nullable=True)
    live_end: Mapped[datetime | None] = mapped_column(nullable=True)

    bump_out_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bump_out_start: Mapped[datetime | None] = mapped_column(nullable=True)
    bump_out_end: Mapped[datetime | None] = mapped_column(nullable=True)

    access_groups: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def windows(self) -> PhaseWindowConfig:
        return PhaseWindowConfig(
            bump_in=PhaseWindow(self.bump_in_enabled, self.bump_in_start, self.bump_in_end),
            live=PhaseWindow(self.live_enabled, self.live_start, self.live_end),
            bump_out=PhaseWindow(self.bump_out_enabled, self.bump_out_start, self.bump_out_end),
        )

    @staticmethod
    def window_columns(config: PhaseWindowConfig) -> dict:
        """Column values for a PhaseWindowConfig."""
        return {
            "bump_in_enabled": config.bump_in.enabled,
            "bump_in_start": config.bump_in.start,
            "bump_in_end": config.bump_in.end,
            "live_enabled": config.live.enabled,
            "live_start": config.live.start,
            "live_end": config.live.end,
            "bump_out_enabled": config.bump_out.enabled,
            "bump_out_start": config.bump_out.start,
            "bump_out_end": config.bump_out.end,
        }

    def to_dto(self) -> ProjectConfig:
        return ProjectConfig(
            id=self.id,
            code=self.code,
            name=self.name,
            windows=self.windows,
            access_groups=tuple(self.access_groups or ()),
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<ProjectModel {self.code}>"
