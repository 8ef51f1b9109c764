"""
Module: accreditation_kernel.domain.phases
Responsibility: Named phase windows (bump-in, live, bump-out) and the pure
    validators that keep project windows and per-record access windows
    coherent.
Architecture position: Kernel > Domain.  Pure, zero I/O.

Invariants enforced:
    - Window bounds are datetimes and enable flags are booleans.
    - An enabled window has both bounds and start <= end.
    - Enabled project windows are sequential: bump-in ends no later than live
      starts, live ends no later than bump-out starts.
    - A record's enabled access window lies inside the project's window for
      the same phase, and that project phase must itself be enabled.
    - A record's enabled access windows do not overlap each other.
    - A record's access group is one of the project's access groups.

Failure modes:
    - PhaseWindowError naming the phase and the violated rule.
    - InvalidAccessGroupError listing the allowed groups.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterator

from accreditation_kernel.domain.clock import ensure_utc
from accreditation_kernel.exceptions import InvalidAccessGroupError, PhaseWindowError


class Phase(str, Enum):
    """Phase names as reported to gate operators."""

    BUMP_IN = "bumpIn"
    LIVE = "live"
    BUMP_OUT = "bumpOut"


PHASE_ORDER: tuple[Phase, ...] = (Phase.BUMP_IN, Phase.LIVE, Phase.BUMP_OUT)


@dataclass(frozen=True)
class PhaseWindow:
    """A single enable flag with its inclusive [start, end] range."""

    enabled: bool = False
    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def disabled(cls) -> "PhaseWindow":
        return cls(enabled=False)

    @classmethod
    def between(cls, start: datetime, end: datetime) -> "PhaseWindow":
        return cls(enabled=True, start=start, end=end)

    @property
    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None

    def contains(self, now: datetime) -> bool:
        """True iff the window is enabled and ``start <= now <= end``."""
        if not self.enabled or not self.is_complete:
            return False
        return self.start <= now <= self.end

    def covers(self, other: "PhaseWindow") -> bool:
        """True iff ``other``'s range lies inside this enabled window."""
        if not self.enabled or not self.is_complete or not other.is_complete:
            return False
        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True)
class PhaseWindowConfig:
    """The three named windows of a project or of a single record."""

    bump_in: PhaseWindow = field(default_factory=PhaseWindow.disabled)
    live: PhaseWindow = field(default_factory=PhaseWindow.disabled)
    bump_out: PhaseWindow = field(default_factory=PhaseWindow.disabled)

    def window(self, phase: Phase) -> PhaseWindow:
        return {
            Phase.BUMP_IN: self.bump_in,
            Phase.LIVE: self.live,
            Phase.BUMP_OUT: self.bump_out,
        }[phase]

    def items(self) -> Iterator[tuple[Phase, PhaseWindow]]:
        for phase in PHASE_ORDER:
            yield phase, self.window(phase)

    def enabled(self) -> list[tuple[Phase, PhaseWindow]]:
        return [(phase, w) for phase, w in self.items() if w.enabled]

    def active_phases(self, now: datetime) -> list[Phase]:
        """Phases whose window contains ``now``, in phase order."""
        return [phase for phase, w in self.items() if w.contains(now)]


def _validate_window_shape(phase: Phase, window: PhaseWindow) -> None:
    if not isinstance(window.enabled, bool):
        raise PhaseWindowError(phase.value, "the enable flag must be true or false")
    for label, bound in (("start", window.start), ("end", window.end)):
        if bound is not None and not isinstance(bound, datetime):
            raise PhaseWindowError(phase.value, f"{label} must be a datetime, not {type(bound).__name__}")
    if not window.enabled:
        return
    if not window.is_complete:
        raise PhaseWindowError(phase.value, "start and end are required when the phase is enabled")
    if window.start > window.end:
        raise PhaseWindowError(phase.value, "start must not be after end")


def _validate_sequential(windows: list[tuple[Phase, PhaseWindow]]) -> None:
    for (prev_phase, prev), (phase, current) in zip(windows, windows[1:]):
        if prev.end > current.start:
            raise PhaseWindowError(
                phase.value,
                f"overlaps {prev_phase.value}: {prev_phase.value} ends after {phase.value} starts",
            )


def validate_project_windows(config: PhaseWindowConfig) -> None:
    """Validate a project's phase configuration."""
    for phase, window in config.items():
        _validate_window_shape(phase, window)
    _validate_sequential(config.enabled())


def validate_access_windows(access: PhaseWindowConfig, project: PhaseWindowConfig) -> None:
    """Validate a record's access windows against its project's windows."""
    for phase, window in access.items():
        _validate_window_shape(phase, window)
        if not window.enabled:
            continue
        project_window = project.window(phase)
        if not project_window.enabled:
            raise PhaseWindowError(phase.value, "phase is not enabled for the project")
        if not project_window.covers(window):
            raise PhaseWindowError(phase.value, "access window lies outside the project window")
    _validate_sequential(access.enabled())


def validate_access_group(access_group: str, allowed_groups: list[str]) -> None:
    if access_group not in allowed_groups:
        raise InvalidAccessGroupError(access_group, list(allowed_groups))


def normalize_window(window: PhaseWindow) -> PhaseWindow:
    """Same window with both bounds expressed in UTC."""
    return PhaseWindow(
        enabled=window.enabled,
        start=ensure_utc(window.start) if isinstance(window.start, datetime) else window.start,
        end=ensure_utc(window.end) if isinstance(window.end, datetime) else window.end,
    )


def normalize_config(config: PhaseWindowConfig) -> PhaseWindowConfig:
    return PhaseWindowConfig(
        bump_in=normalize_window(config.bump_in),
        live=normalize_window(config.live),
        bump_out=normalize_window(config.bump_out),
    )
