"""
Unit tests for session and booking data models.
"""
import pytest
from datetime import datetime, time, timedelta, timezone

from lessonhub.schemas.booking import (
    MONDAY,
    SUNDAY,
    BookingDraft,
    TimeInterval,
    WeeklyAvailability,
    day_of_week,
    parse_hhmm,
)
from lessonhub.schemas.session import BLOCKING_STATUSES, JOINABLE_STATUSES, Session, SessionStatus

from conftest import make_slot

UTC = timezone.utc


class TestSessionStatus:

    def test_happy_path(self):
        assert SessionStatus.PENDING_CONFIRMATION.can_transition_to(SessionStatus.CONFIRMED)
        assert SessionStatus.CONFIRMED.can_transition_to(SessionStatus.IN_PROGRESS)
        assert SessionStatus.IN_PROGRESS.can_transition_to(SessionStatus.COMPLETED)

    @pytest.mark.parametrize("source", [SessionStatus.PENDING_CONFIRMATION, SessionStatus.CONFIRMED])
    @pytest.mark.parametrize("target", [
        SessionStatus.CANCELLED_BY_MENTOR,
        SessionStatus.CANCELLED_BY_MENTEE,
        SessionStatus.NO_SHOW_MENTOR,
        SessionStatus.NO_SHOW_MENTEE,
    ])
    def test_side_branches_before_start(self, source, target):
        assert source.can_transition_to(target)

    def test_in_progress_cannot_be_cancelled(self):
        assert not SessionStatus.IN_PROGRESS.can_transition_to(SessionStatus.CANCELLED_BY_MENTOR)

    def test_no_skipping_confirmation(self):
        assert not SessionStatus.PENDING_CONFIRMATION.can_transition_to(SessionStatus.IN_PROGRESS)

    @pytest.mark.parametrize("status", list(SessionStatus))
    def test_terminal_states_have_no_exit(self, status):
        terminal = status in (
            SessionStatus.COMPLETED,
            SessionStatus.CANCELLED_BY_MENTOR,
            SessionStatus.CANCELLED_BY_MENTEE,
            SessionStatus.NO_SHOW_MENTOR,
            SessionStatus.NO_SHOW_MENTEE,
        )
        assert status.is_terminal is terminal
        if terminal:
            assert not any(status.can_transition_to(t) for t in SessionStatus)

    def test_status_groups(self):
        assert JOINABLE_STATUSES == {SessionStatus.CONFIRMED, SessionStatus.IN_PROGRESS}
        assert SessionStatus.PENDING_CONFIRMATION in BLOCKING_STATUSES
        assert SessionStatus.COMPLETED not in BLOCKING_STATUSES


class TestSession:

    def test_wire_names(self):
        session = Session.model_validate({
            "id": "s1",
            "mentor_profile_id": "m1",
            "mentee_profile_id": "e1",
            "scheduled_at": "2025-03-10T11:00:00+01:00",
            "duration": 45,
            "status": "PENDING_CONFIRMATION",
            "lesson_plan": "Surah Yasin",
            "mentor_notes": None,
            "cancelled_by": None,
        })
        assert session.mentor_id == "m1"
        assert session.lesson_notes == "Surah Yasin"
        assert session.scheduled_at == datetime(2025, 3, 10, 10, 0, tzinfo=UTC)
        assert session.scheduled_at.tzinfo == UTC
        assert session.ends_at == datetime(2025, 3, 10, 10, 45, tzinfo=UTC)

    def test_naive_datetime_is_utc(self):
        session = Session(
            id="s1", mentor_id="m1", mentee_id="e1",
            scheduled_at=datetime(2025, 3, 10, 10, 0),
            duration_minutes=60, status=SessionStatus.CONFIRMED,
        )
        assert session.scheduled_at.tzinfo == UTC

    def test_duration_must_be_positive(self):
        with pytest.raises(ValueError):
            Session(
                id="s1", mentor_id="m1", mentee_id="e1",
                scheduled_at=datetime(2025, 3, 10, 10, 0, tzinfo=UTC),
                duration_minutes=0, status=SessionStatus.CONFIRMED,
            )


class TestAvailability:

    def test_parse_hhmm(self):
        assert parse_hhmm("09:30") == time(9, 30)
        assert parse_hhmm("23:59:00") == time(23, 59)

    @pytest.mark.parametrize("value", ["9", "24:00", "12:60", "ab:cd"])
    def test_parse_hhmm_rejects(self, value):
        with pytest.raises(ValueError):
            parse_hhmm(value)

    def test_sunday_is_zero(self):
        assert day_of_week(datetime(2025, 3, 9).date()) == SUNDAY
        assert day_of_week(datetime(2025, 3, 10).date()) == MONDAY

    def test_interval_must_be_ordered(self):
        with pytest.raises(ValueError):
            TimeInterval(time(12, 0), time(10, 0))

    def test_overlapping_intervals_rejected(self):
        with pytest.raises(ValueError):
            WeeklyAvailability("UTC", {MONDAY: [
                TimeInterval(time(9, 0), time(11, 0)),
                TimeInterval(time(10, 30), time(12, 0)),
            ]})

    def test_adjacent_intervals_allowed_and_sorted(self):
        availability = WeeklyAvailability("UTC", {MONDAY: [
            TimeInterval(time(14, 0), time(15, 0)),
            TimeInterval(time(9, 0), time(14, 0)),
        ]})
        assert [i.start for i in availability.intervals_for(MONDAY)] == [time(9, 0), time(14, 0)]

    def test_invalid_day(self):
        with pytest.raises(ValueError):
            WeeklyAvailability("UTC", {7: [TimeInterval(time(9, 0), time(10, 0))]})

    def test_from_rows_skips_unavailable(self):
        availability = WeeklyAvailability.from_rows([
            {"day_of_week": 1, "start_time": "10:00", "end_time": "12:00", "is_available": True},
            {"day_of_week": 3, "start_time": "10:00", "end_time": "12:00", "is_available": False},
            {"day_of_week": 5, "start_time": "18:00:00", "end_time": "20:00:00"},
        ], "Europe/Paris")
        assert len(availability.intervals_for(1)) == 1
        assert availability.intervals_for(3) == []
        assert availability.intervals_for(5)[0].end == time(20, 0)


class TestBookingDraft:

    def test_serialisation_keeps_slot(self):
        start = datetime(2025, 3, 10, 11, 0, tzinfo=UTC)
        draft = BookingDraft(
            client_session_id="tab-1",
            mentor_id="m1",
            selected_date="2025-03-10",
            selected_slot=make_slot(start, mentor_id="m1"),
            duration=90,
            lesson_notes="Revision",
            timezone="Europe/Paris",
            current_step=2,
        )
        restored = BookingDraft.from_dict(draft.to_dict())
        assert restored == draft
        assert restored.selected_slot.end_at - restored.selected_slot.start_at == timedelta(minutes=60)
