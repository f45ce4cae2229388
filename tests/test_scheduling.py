"""Tests for send delay clamping and scheduled-date arithmetic."""

from datetime import date, datetime, timezone

import pytest

from followup.dispatch.scheduling import (
    DispatchValidationError,
    clamp_send_delay,
    days_remaining,
    is_due,
    is_overdue,
    parse_send_delay,
    schedule_label,
    scheduled_date,
)


class TestClampSendDelay:
    """Tests for keeping delays within 1-90 days."""

    @pytest.mark.parametrize(
        "requested,expected",
        [(0, 1), (-5, 1), (1, 1), (14, 14), (90, 90), (200, 90)],
    )
    def test_clamps_into_range(self, requested: int, expected: int) -> None:
        """Test delays outside the allowed range are clamped."""
        assert clamp_send_delay(requested) == expected

    def test_accepts_integer_strings(self) -> None:
        """Test integer strings are accepted as delays."""
        assert clamp_send_delay(" 30 ") == 30

    def test_explicit_bounds(self) -> None:
        """Test custom bounds override the defaults."""
        assert clamp_send_delay(50, minimum=7, maximum=21) == 21

    @pytest.mark.parametrize("value", ["abc", "14 days", 2.5, True, None, [14]])
    def test_rejects_malformed_values(self, value) -> None:
        """Test non-integer delays raise a validation error."""
        with pytest.raises(DispatchValidationError):
            clamp_send_delay(value)

    def test_parse_keeps_out_of_range_values(self) -> None:
        """Test parsing alone does not clamp."""
        assert parse_send_delay(200) == 200


class TestScheduledDate:
    """Tests for creation date + delay arithmetic."""

    def test_adds_calendar_days(self) -> None:
        """Test the send date is creation date plus the delay."""
        created = datetime(2024, 3, 1, 23, 30, tzinfo=timezone.utc)
        assert scheduled_date(created, 14) == date(2024, 3, 15)

    def test_naive_timestamps_are_treated_as_utc(self) -> None:
        """Test naive creation timestamps are read as UTC."""
        created = datetime(2024, 12, 25, 8, 0)
        assert scheduled_date(created, 10) == date(2025, 1, 4)

    def test_generic_link_has_no_date(self) -> None:
        """Test a generic link has no scheduled date."""
        created = datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert scheduled_date(created, None) is None
        assert scheduled_date(None, 5) is None


class TestDaysRemaining:
    """Tests for the countdown shown to practitioners."""

    def test_same_day_is_zero(self) -> None:
        """Test a send date of today leaves zero days."""
        today = date(2024, 3, 15)
        assert days_remaining(today, today) == 0
        assert schedule_label(days_remaining(today, today)) == "Sending today"

    def test_future_date(self) -> None:
        """Test days remaining for a future send date."""
        assert days_remaining(date(2024, 3, 20), date(2024, 3, 15)) == 5

    def test_past_date_is_clamped_and_overdue(self) -> None:
        """Test a past send date reads zero days and overdue."""
        scheduled = date(2024, 3, 10)
        today = date(2024, 3, 15)

        assert days_remaining(scheduled, today) == 0
        assert is_overdue(scheduled, today) is True
        assert is_due(scheduled, today) is True

    def test_due_today_is_not_overdue(self) -> None:
        """Test a dispatch due today is due but not overdue."""
        today = date(2024, 3, 15)
        assert is_due(today, today) is True
        assert is_overdue(today, today) is False

    def test_labels(self) -> None:
        """Test the human-readable schedule labels."""
        assert schedule_label(1) == "Sending in 1 day"
        assert schedule_label(12) == "Sending in 12 days"
