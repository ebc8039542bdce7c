from datetime import date

from conftest import FRIDAY, MONDAY, WEDNESDAY, add_appointment, add_user
from schedcore.risk import assess_appointment_risk, cancellation_risk_notice


def test_last_minute_midweek_morning_is_low_risk(db):
    customer = add_user(db, "fresh@example.com")
    appointment = add_appointment(db, customer, WEDNESDAY, "10:00")

    result = assess_appointment_risk(db, appointment.id, today=date(2026, 3, 3))
    assert result.risk_score == 5
    assert result.risk_factors == ["Last-minute appointment"]
    assert result.risk_level == "low"
    assert [r.action for r in result.recommendations] == ["monitor"]


def test_unknown_appointment_returns_none(db):
    assert assess_appointment_risk(db, 9999) is None


def test_history_and_situation_push_to_high(db):
    customer = add_user(db, "flaky@example.com")
    history = ["no_show", "no_show", "cancelled", "cancelled", "cancelled", "completed"]
    for i, status in enumerate(history):
        add_appointment(db, customer, date(2026, 1, 5 + i), "10:00", status=status)
    appointment = add_appointment(db, customer, FRIDAY, "13:00")

    result = assess_appointment_risk(db, appointment.id, today=date(2026, 3, 5))
    # 2/7 no-show (28.6%) +25, 3/7 cancelled (42.9%) +20, last-minute +5,
    # peak hours +10, Friday +10.
    assert result.risk_score == 70
    assert result.risk_level == "high"
    assert "High no-show history (28.6%)" in result.risk_factors
    assert "High cancellation rate (42.9%)" in result.risk_factors
    assert [r.action for r in result.recommendations] == ["send_reminder", "confirm_call", "increase_fee"]


def test_moderate_no_show_gives_medium(db):
    customer = add_user(db, "sometimes@example.com")
    for i in range(7):
        add_appointment(db, customer, date(2026, 1, 5 + i), "10:00", status="completed")
    add_appointment(db, customer, date(2026, 1, 20), "10:00", status="no_show")
    appointment = add_appointment(db, customer, MONDAY, "12:30")

    result = assess_appointment_risk(db, appointment.id, today=date(2026, 2, 20))
    # 1/9 no-show (11.1%) +15, peak +10, Monday +10; ten days out adds nothing.
    assert result.risk_score == 35
    assert result.risk_level == "medium"
    assert "Moderate no-show history (11.1%)" in result.risk_factors
    assert [r.action for r in result.recommendations] == ["send_reminder", "have_backup"]


def test_well_planned_appointment_can_go_negative(db):
    customer = add_user(db, "planner@example.com")
    appointment = add_appointment(db, customer, WEDNESDAY, "09:00")

    result = assess_appointment_risk(db, appointment.id, today=date(2026, 1, 2))
    assert result.risk_score == -10
    assert result.risk_level == "low"
    assert result.risk_factors == ["Well-planned appointment (low urgency)"]


def test_cancellation_risk_notice_levels(db):
    customer = add_user(db, "client@example.com")
    assert cancellation_risk_notice(db, WEDNESDAY, "10:00").show_notice is False

    for _ in range(6):
        add_appointment(db, customer, WEDNESDAY, "10:00")
    medium = cancellation_risk_notice(db, WEDNESDAY, "10:00")
    assert medium.risk_level == "medium"
    assert medium.utilization_rate == 60
    assert medium.current_bookings == 6

    for _ in range(3):
        add_appointment(db, customer, WEDNESDAY, "10:00")
    add_appointment(db, customer, WEDNESDAY, "10:00", status="cancelled")
    high = cancellation_risk_notice(db, WEDNESDAY, "10:00")
    assert high.risk_level == "high"
    assert high.show_notice is True
    assert high.utilization_rate == 90


def test_days_until_counts_from_local_today(db, monkeypatch):
    import schedcore.risk as risk

    class LocalDate(date):
        @classmethod
        def today(cls):
            return date(2026, 3, 5)

    monkeypatch.setattr(risk, "date", LocalDate)
    customer = add_user(db, "local@example.com")
    appointment = add_appointment(db, customer, FRIDAY, "10:00")

    result = assess_appointment_risk(db, appointment.id)
    assert "Last-minute appointment" in result.risk_factors
