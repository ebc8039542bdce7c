from conftest import (
    TUESDAY,
    WEDNESDAY,
    add_appointment,
    add_blackout,
    add_bucket,
    add_user,
    add_workday_buckets,
)
from schedcore.alternatives import suggest_alternatives


def test_same_day_alternatives_ranked_by_utilization(db, calendar):
    customer = add_user(db, "anna@example.com")
    add_workday_buckets(db, max_per_slot=5)
    # 09:00 bucket 40% full, 10:00 bucket 20% full, the rest empty.
    for at in ["09:00", "09:30"]:
        add_appointment(db, customer, TUESDAY, at)
    add_appointment(db, customer, TUESDAY, "10:00")

    found = suggest_alternatives(db, TUESDAY, "12:00", calendar=calendar)
    assert len(found) == 5
    assert all(slot.date == TUESDAY for slot in found)
    assert all(slot.description == "Same day, different time" for slot in found)
    assert "12:00" not in [slot.time for slot in found]
    # Empty buckets first, earliest time breaking ties.
    assert [slot.time for slot in found] == ["11:00", "11:30", "12:30", "13:00", "13:30"]
    assert found[0].utilization == 0
    assert found[0].available_capacity == 5


def test_busy_buckets_are_dropped_at_sixty_percent(db, calendar):
    customer = add_user(db, "ola@example.com")
    add_bucket(db, "09:00", "10:00", max_per_slot=5)
    add_bucket(db, "10:00", "11:00", max_per_slot=5)
    for at in ["09:00", "09:00", "09:30"]:
        add_appointment(db, customer, TUESDAY, at)
    for at in ["10:00", "10:30"]:
        add_appointment(db, customer, TUESDAY, at)

    found = suggest_alternatives(db, TUESDAY, "16:00", calendar=calendar)
    assert [slot.time for slot in found] == ["10:00", "10:30"]
    assert {slot.utilization for slot in found} == {40.0}


def test_falls_back_to_next_day_when_same_day_is_full(db, calendar):
    customer = add_user(db, "jan@example.com")
    add_bucket(db, "09:00", "10:00", max_per_slot=1)
    add_appointment(db, customer, TUESDAY, "09:00")

    found = suggest_alternatives(db, TUESDAY, "09:00", calendar=calendar)
    assert [(slot.date, slot.time) for slot in found] == [(WEDNESDAY, "09:00"), (WEDNESDAY, "09:30")]
    assert all(slot.description == "Next day" for slot in found)


def test_skips_blacked_out_days_and_respects_horizon(db, calendar):
    add_workday_buckets(db)
    add_blackout(db, TUESDAY, reason="Holiday")
    add_blackout(db, WEDNESDAY, reason="Holiday")

    assert suggest_alternatives(db, TUESDAY, "10:00", days_ahead=1, calendar=calendar) == []

    found = suggest_alternatives(db, TUESDAY, "10:00", days_ahead=2, calendar=calendar)
    assert found
    assert all(slot.description == "In 2 days" for slot in found)
