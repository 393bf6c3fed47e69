"""Calendar arithmetic across timezones and DST transitions."""

from datetime import date, datetime, timedelta, timezone

from streakdsa.features.streaks import days as calendar

INSTANT = datetime(2024, 1, 1, 22, 0, tzinfo=timezone.utc)


def test_today_depends_on_timezone():
    assert calendar.today("Asia/Kolkata", INSTANT) == date(2024, 1, 2)
    assert calendar.today("UTC", INSTANT) == date(2024, 1, 1)
    assert calendar.yesterday("Asia/Kolkata", INSTANT) == date(2024, 1, 1)


def test_today_is_a_date_and_start_of_day_is_an_instant():
    token = calendar.today("Asia/Kolkata", INSTANT)
    start = calendar.real_start_of_day("Asia/Kolkata", INSTANT)
    assert type(token) is date
    assert isinstance(start, datetime)
    assert start.tzinfo is not None
    assert start == datetime(2024, 1, 1, 18, 30, tzinfo=timezone.utc)


def test_deadline_is_offset_from_real_start_of_day():
    start = calendar.real_start_of_day("Asia/Kolkata", INSTANT)
    deadline = calendar.deadline("Asia/Kolkata", "22:00", INSTANT)
    assert deadline == start + timedelta(hours=22)
    assert deadline == datetime(2024, 1, 2, 16, 30, tzinfo=timezone.utc)
    assert not calendar.is_deadline_passed("Asia/Kolkata", "22:00", INSTANT)


def test_deadline_passed_at_exact_instant():
    deadline = calendar.deadline("UTC", "09:30", INSTANT)
    assert calendar.is_deadline_passed("UTC", "09:30", deadline)
    assert not calendar.is_deadline_passed("UTC", "09:30", deadline - timedelta(seconds=1))


def test_deadline_on_spring_forward_day_uses_absolute_offset():
    # 2024-03-10 is 23 hours long in New York; local midnight is still EST.
    now = datetime(2024, 3, 10, 20, 0, tzinfo=timezone.utc)
    start = calendar.real_start_of_day("America/New_York", now)
    assert start == datetime(2024, 3, 10, 5, 0, tzinfo=timezone.utc)
    assert calendar.deadline("America/New_York", "22:00", now) == datetime(2024, 3, 11, 3, 0, tzinfo=timezone.utc)


def test_naive_now_is_treated_as_utc():
    naive = datetime(2024, 1, 1, 22, 0)
    assert calendar.today("Asia/Kolkata", naive) == date(2024, 1, 2)


def test_days_remaining_clamps_at_zero():
    now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    assert calendar.pledge_end_date(date(2026, 3, 1), 30) == date(2026, 3, 31)
    assert calendar.days_remaining(date(2026, 3, 1), 30, "UTC", now) == 21
    assert calendar.days_remaining(date(2025, 1, 1), 30, "UTC", now) == 0


def test_calendar_day_difference():
    assert calendar.calendar_day_difference(date(2024, 3, 1), date(2024, 2, 28)) == 2
    assert calendar.calendar_day_difference(date(2024, 1, 1), date(2024, 1, 1)) == 0


def test_format_time_remaining():
    now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    assert calendar.format_time_remaining(now + timedelta(hours=2, minutes=5), now) == "2h 5m"
    assert calendar.format_time_remaining(now + timedelta(minutes=45), now) == "45m"
    assert calendar.format_time_remaining(now, now) == "Deadline passed"
    assert calendar.format_time_remaining(now - timedelta(minutes=1), now) == "Deadline passed"
