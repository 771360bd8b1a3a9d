from datetime import date, datetime, time, timedelta
from types import SimpleNamespace

from groombook.core.cadence import classify_cadence, is_due_soon, is_overdue
from groombook.core.enrichment import ClientView, enrich_client

NOW = datetime(2024, 2, 1, 10, 0)


def appt(id, day, at=time(9, 0), client_id=1):
    return SimpleNamespace(id=id, client_id=client_id, date=day, time=at, price=50)


def client(frequency_days):
    return SimpleNamespace(id=1, frequency_days=frequency_days)


def view_for(frequency_days, appointments=()):
    return enrich_client(client(frequency_days), list(appointments), NOW)


def days_ago(n):
    return NOW.date() - timedelta(days=n)


def test_no_cadence_is_never_overdue_or_due_soon():
    for history in ([], [appt(1, days_ago(200))], [appt(1, days_ago(3))]):
        view = view_for(None, history)
        assert is_overdue(view, NOW) is False
        assert is_due_soon(view, NOW) is False


def test_zero_frequency_counts_as_no_cadence():
    view = view_for(0, [appt(1, days_ago(90))])
    assert classify_cadence(view, NOW).on_track is True


def test_client_with_cadence_and_no_history_is_overdue():
    view = view_for(21)
    assert is_overdue(view, NOW) is True
    assert is_due_soon(view, NOW) is False


def test_due_soon_when_within_horizon_of_due_date():
    view = view_for(14, [appt(1, days_ago(10))])
    assert is_due_soon(view, NOW) is True
    assert is_overdue(view, NOW) is False


def test_overdue_after_frequency_elapsed():
    view = view_for(14, [appt(1, days_ago(20))])
    assert is_overdue(view, NOW) is True
    assert is_due_soon(view, NOW) is False


def test_ceiling_applies_even_with_long_frequency():
    view = view_for(45, [appt(1, days_ago(35))])
    assert is_overdue(view, NOW) is True
    assert is_overdue(view, NOW, ceiling_days=40) is False


def test_exactly_on_due_date_is_due_soon_not_overdue():
    view = view_for(14, [appt(1, days_ago(14))])
    status = classify_cadence(view, NOW)
    assert status.overdue is False
    assert status.due_soon is True


def test_booking_inside_horizon_suppresses_due_soon():
    booked = view_for(14, [appt(1, days_ago(10)), appt(2, NOW.date() + timedelta(days=3))])
    assert is_due_soon(booked, NOW) is False

    far = view_for(14, [appt(1, days_ago(10)), appt(2, NOW.date() + timedelta(days=12))])
    assert is_due_soon(far, NOW) is True


def test_stale_next_booking_marks_overdue():
    view = ClientView(
        client=client(30),
        last_appointment=appt(1, days_ago(5)),
        next_appointment=appt(2, days_ago(1)),
    )
    assert is_overdue(view, NOW) is True


def test_time_of_day_does_not_move_thresholds():
    history = [appt(1, days_ago(14), at=time(18, 0))]
    early_now = NOW.replace(hour=0, minute=1)
    late_now = NOW.replace(hour=23, minute=59)

    early = classify_cadence(enrich_client(client(14), history, early_now), early_now)
    late = classify_cadence(enrich_client(client(14), history, late_now), late_now)
    assert early == late


def test_monthly_client_between_two_bookings():
    history = [appt(1, date(2024, 1, 1)), appt(2, date(2024, 3, 1))]
    view = view_for(30, history)

    assert view.last_appointment.date == date(2024, 1, 1)
    assert view.next_appointment.date == date(2024, 3, 1)
    status = classify_cadence(view, NOW)
    assert status.overdue is True
    assert status.due_soon is False
    assert status.on_track is False


def test_ceiling_and_due_soon_can_both_fire():
    view = view_for(45, [appt(1, days_ago(40))])
    status = classify_cadence(view, NOW)
    assert status.overdue is True
    assert status.due_soon is True
    assert status.on_track is False
