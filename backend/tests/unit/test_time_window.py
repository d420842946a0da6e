"""
Unit tests for the join-window gate and the session timer.
"""
import pytest
from datetime import datetime, timedelta, timezone

from lessonhub.schemas.session import SessionStatus
from lessonhub.services.scheduling.time_window import (
    EARLY_JOIN_MINUTES,
    EXPIRED_MESSAGE,
    LATE_JOIN_MINUTES,
    NOT_AVAILABLE_MESSAGE,
    evaluate_join_window,
    join_window,
)
from lessonhub.services.scheduling.timer import compute_timer, countdown

from conftest import make_session

UTC = timezone.utc
START = datetime(2025, 3, 10, 10, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Join window
# ---------------------------------------------------------------------------

class TestJoinWindow:

    def test_constants(self):
        assert EARLY_JOIN_MINUTES == 15
        assert LATE_JOIN_MINUTES == 30

    def test_window_bounds(self):
        session = make_session(scheduled_at=START, duration=60)
        window_start, window_end = join_window(session)
        assert window_start == START - timedelta(minutes=15)
        assert window_end == START + timedelta(minutes=90)

    def test_denied_sixteen_minutes_before(self):
        session = make_session(scheduled_at=START)
        decision = evaluate_join_window(session, START - timedelta(minutes=16))
        assert decision.allowed is False
        assert decision.minutes_until_open == 1

    def test_allowed_fourteen_minutes_before(self):
        session = make_session(scheduled_at=START)
        assert evaluate_join_window(session, START - timedelta(minutes=14)).allowed is True

    def test_allowed_exactly_at_window_start(self):
        session = make_session(scheduled_at=START)
        assert evaluate_join_window(session, START - timedelta(minutes=15)).allowed is True

    def test_denied_thirty_one_minutes_after_end(self):
        session = make_session(scheduled_at=START, duration=60)
        decision = evaluate_join_window(session, START + timedelta(minutes=60 + 31))
        assert decision.allowed is False
        assert decision.reason == EXPIRED_MESSAGE

    def test_allowed_twenty_nine_minutes_after_end(self):
        session = make_session(scheduled_at=START, duration=60)
        assert evaluate_join_window(session, START + timedelta(minutes=60 + 29)).allowed is True

    def test_scenario_before_and_after_window_opens(self):
        session = make_session(scheduled_at=datetime(2025, 3, 10, 10, 0, tzinfo=UTC), duration=60)

        early = evaluate_join_window(session, datetime(2025, 3, 10, 9, 44, tzinfo=UTC))
        assert early.allowed is False
        assert "minute" in early.reason
        assert "You can join in 1 minute." in early.reason

        on_time = evaluate_join_window(session, datetime(2025, 3, 10, 9, 46, tzinfo=UTC))
        assert on_time.allowed is True
        assert on_time.reason == ""

    def test_minutes_are_rounded_up_and_pluralised(self):
        session = make_session(scheduled_at=START)
        decision = evaluate_join_window(session, START - timedelta(minutes=29, seconds=30))
        assert decision.minutes_until_open == 15
        assert "15 minutes" in decision.reason

    def test_in_progress_session_is_joinable(self):
        session = make_session(status=SessionStatus.IN_PROGRESS, scheduled_at=START)
        assert evaluate_join_window(session, START + timedelta(minutes=5)).allowed is True

    @pytest.mark.parametrize("status", [
        SessionStatus.PENDING_CONFIRMATION,
        SessionStatus.COMPLETED,
        SessionStatus.CANCELLED_BY_MENTOR,
        SessionStatus.CANCELLED_BY_MENTEE,
        SessionStatus.NO_SHOW_MENTOR,
        SessionStatus.NO_SHOW_MENTEE,
    ])
    def test_wrong_status_denied_inside_window(self, status):
        session = make_session(status=status, scheduled_at=START)
        decision = evaluate_join_window(session, START)
        assert decision.allowed is False
        assert decision.reason == NOT_AVAILABLE_MESSAGE
        assert decision.minutes_until_open is None

    def test_decision_serialises(self):
        session = make_session(scheduled_at=START)
        data = evaluate_join_window(session, START).to_dict()
        assert data["allowed"] is True
        assert data["window_start"] == "2025-03-10T09:45:00+00:00"


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------

class TestTimer:

    def test_halfway(self):
        timer = compute_timer(START, 60, START + timedelta(minutes=30))
        assert timer.elapsed_seconds == 1800
        assert timer.remaining_seconds == 1800
        assert timer.progress_percent == 50.0
        assert timer.label == "30:00 / 60:00"
        assert timer.is_overtime is False
        assert timer.is_ending_soon is False

    def test_last_five_minutes_flagged(self):
        timer = compute_timer(START, 60, START + timedelta(minutes=56))
        assert timer.is_ending_soon is True
        assert timer.remaining_seconds == 240

    def test_overtime(self):
        timer = compute_timer(START, 60, START + timedelta(minutes=65))
        assert timer.is_overtime is True
        assert timer.is_ending_soon is False
        assert timer.remaining_seconds == 0
        assert timer.progress_percent == 100.0
        assert timer.label == "+05:00 / 60:00"

    def test_before_start_elapsed_is_zero(self):
        timer = compute_timer(START, 45, START - timedelta(minutes=3))
        assert timer.elapsed_seconds == 0
        assert timer.remaining_seconds == 45 * 60
        assert timer.to_dict()["label"] == "00:00 / 45:00"


class TestCountdown:

    @pytest.mark.parametrize("delta,label,urgency", [
        (timedelta(minutes=30), "in 30 min", "urgent"),
        (timedelta(hours=5, minutes=10), "in 5h", "warning"),
        (timedelta(days=3, hours=2), "in 3 days", "neutral"),
        (timedelta(days=1), "in 1 day", "neutral"),
    ])
    def test_labels(self, delta, label, urgency):
        result = countdown(START, START - delta)
        assert result.label == label
        assert result.urgency == urgency

    def test_started(self):
        result = countdown(START, START + timedelta(seconds=1))
        assert result.urgency == "started"
        assert result.seconds_until == 0
