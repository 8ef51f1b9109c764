"""Tests for phase windows and their validators."""

from datetime import datetime, timedelta, timezone

import pytest

from accreditation_kernel.domain.phases import (
    Phase,
    PhaseWindow,
    PhaseWindowConfig,
    normalize_config,
    validate_access_group,
    validate_access_windows,
    validate_project_windows,
)
from accreditation_kernel.exceptions import InvalidAccessGroupError, PhaseWindowError

from tests.factories import PROJECT_WINDOWS, utc


class TestPhaseWindow:
    def test_bounds_are_inclusive(self):
        window = PhaseWindow.between(utc(2025, 1, 1), utc(2025, 1, 5))
        assert window.contains(utc(2025, 1, 1))
        assert window.contains(utc(2025, 1, 5))
        assert not window.contains(utc(2025, 1, 5) + timedelta(microseconds=1))
        assert not window.contains(utc(2025, 1, 1) - timedelta(microseconds=1))

    def test_disabled_window_contains_nothing(self):
        window = PhaseWindow(enabled=False, start=utc(2025, 1, 1), end=utc(2025, 1, 5))
        assert not window.contains(utc(2025, 1, 3))

    def test_covers(self):
        outer = PhaseWindow.between(utc(2025, 1, 1), utc(2025, 1, 10))
        assert outer.covers(PhaseWindow.between(utc(2025, 1, 1), utc(2025, 1, 10)))
        assert not outer.covers(PhaseWindow.between(utc(2024, 12, 31), utc(2025, 1, 2)))


class TestPhaseWindowConfig:
    def test_items_follow_phase_order(self):
        assert [p for p, _ in PROJECT_WINDOWS.items()] == [Phase.BUMP_IN, Phase.LIVE, Phase.BUMP_OUT]

    def test_active_phases(self):
        assert PROJECT_WINDOWS.active_phases(utc(2025, 1, 10)) == [Phase.LIVE]
        assert PROJECT_WINDOWS.active_phases(utc(2025, 3, 1)) == []

    def test_empty_config(self):
        assert PhaseWindowConfig().enabled() == []

    def test_active_phases_inclusive_bounds(self):
        assert PROJECT_WINDOWS.active_phases(utc(2025, 1, 6)) == [Phase.LIVE]
        assert PROJECT_WINDOWS.active_phases(utc(2025, 1, 20, 23, 59, 59)) == [Phase.LIVE]


class TestProjectWindows:
    def test_valid_sequence(self):
        validate_project_windows(PROJECT_WINDOWS)

    def test_touching_phases_allowed(self):
        validate_project_windows(
            PhaseWindowConfig(
                bump_in=PhaseWindow.between(utc(2025, 1, 1), utc(2025, 1, 5)),
                live=PhaseWindow.between(utc(2025, 1, 5), utc(2025, 1, 9)),
            )
        )

    def test_gap_phase_disabled_still_sequential(self):
        with pytest.raises(PhaseWindowError) as exc_info:
            validate_project_windows(
                PhaseWindowConfig(
                    bump_in=PhaseWindow.between(utc(2025, 1, 1), utc(2025, 1, 20)),
                    bump_out=PhaseWindow.between(utc(2025, 1, 10), utc(2025, 1, 25)),
                )
            )
        assert exc_info.value.phase == "bumpOut"

    def test_inverted_window(self):
        with pytest.raises(PhaseWindowError, match="start must not be after end"):
            validate_project_windows(
                PhaseWindowConfig(live=PhaseWindow.between(utc(2025, 1, 9), utc(2025, 1, 6)))
            )


class TestAccessWindows:
    def test_subset_of_project_window(self):
        validate_access_windows(
            PhaseWindowConfig(live=PhaseWindow.between(utc(2025, 1, 7), utc(2025, 1, 8))),
            PROJECT_WINDOWS,
        )

    def test_disabled_access_phase_ignores_bounds(self):
        validate_access_windows(
            PhaseWindowConfig(live=PhaseWindow(enabled=False, start=utc(2030, 1, 1), end=utc(2020, 1, 1))),
            PROJECT_WINDOWS,
        )

    def test_outside_project_window(self):
        with pytest.raises(PhaseWindowError) as exc_info:
            validate_access_windows(
                PhaseWindowConfig(bump_out=PhaseWindow.between(utc(2025, 1, 21), utc(2025, 1, 27))),
                PROJECT_WINDOWS,
            )
        assert exc_info.value.phase == "bumpOut"


class TestAccessGroup:
    def test_member(self):
        validate_access_group("Crew", ["Crew", "Artist"])

    def test_case_sensitive(self):
        with pytest.raises(InvalidAccessGroupError):
            validate_access_group("crew", ["Crew", "Artist"])


class TestNormalize:
    def test_offset_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        config = normalize_config(
            PhaseWindowConfig(live=PhaseWindow.between(datetime(2025, 1, 6, 2, tzinfo=plus_two), datetime(2025, 1, 7)))
        )
        assert config.live.start == utc(2025, 1, 6, 0)
        assert config.live.start.tzinfo == timezone.utc
        assert config.live.end == utc(2025, 1, 7)
