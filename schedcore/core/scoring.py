"""Point tables behind the recommendation and risk engines.

Each table is a tuple of ``(threshold, points)`` pairs checked top to bottom;
the first matching row wins and the floor applies when nothing matches.
"""

# -- staff recommendation -----------------------------------------------------

# Non-cancelled appointments the staff member already holds that day (at most).
WORKLOAD_STEPS = ((0, 25), (2, 20), (4, 15), (6, 10))
WORKLOAD_FLOOR = 5

# Completed appointments of the requested service type (at least).
SPECIALIZATION_STEPS = ((10, 20), (5, 15), (2, 10))
SPECIALIZATION_FLOOR = 0

# Completed appointments with the same customer (at least).
CUSTOMER_HISTORY_STEPS = ((5, 20), (3, 15), (1, 10))
CUSTOMER_HISTORY_FLOOR = 0

# Lifetime completion percentage (at least).
PERFORMANCE_STEPS = ((95, 20), (85, 15), (75, 10))
PERFORMANCE_FLOOR = 5
NEW_STAFF_PERFORMANCE = 10

# Completion percentage over the recent window (at least).
RECENT_COMPLETION_STEPS = ((90, 15), (75, 10), (50, 5))
RECENT_COMPLETION_FLOOR = 0
NO_RECENT_COMPLETION = 10

STAFF_TOP_N = 3

# -- time-slot recommendation -------------------------------------------------

PREFERRED_WINDOW_POINTS = 20
BUSINESS_HOURS_POINTS = 10
NO_BOOKINGS_POINTS = 15
FEW_BOOKINGS_POINTS = 10
FEW_BOOKINGS_MAX = 2
ON_THE_HOUR_POINTS = 5

TIME_SLOT_TOP_N = 5

# -- risk assessment ----------------------------------------------------------

# Percentages are compared strictly (rate > threshold).
NO_SHOW_RATE_STEPS = ((20, 25), (10, 15))
CANCELLATION_RATE_STEPS = ((30, 20),)
LAST_MINUTE_DAYS = 1
LAST_MINUTE_POINTS = 5
WELL_PLANNED_DAYS = 30
WELL_PLANNED_POINTS = -10
PEAK_HOURS_POINTS = 10
HIGH_NO_SHOW_WEEKDAY_POINTS = 10

RISK_LEVEL_STEPS = ((60, "high"), (30, "medium"))
RISK_LEVEL_FLOOR = "low"

RISK_RECOMMENDATIONS = {
    "high": (
        ("send_reminder", "Send SMS/Email reminder 24 hours before", "high"),
        ("confirm_call", "Make confirmation call to customer", "high"),
        ("increase_fee", "Consider prepayment or deposit", "medium"),
    ),
    "medium": (
        ("send_reminder", "Send automated reminder 24 hours before", "medium"),
        ("have_backup", "Keep a backup staff member available", "medium"),
    ),
    "low": (
        ("monitor", "Standard appointment process", "low"),
    ),
}

# -- workload / notices -------------------------------------------------------

WORKLOAD_STATUS_STEPS = ((8, "overloaded"), (5, "busy"))
WORKLOAD_STATUS_FLOOR = "available"

SLOT_NOTICE_STEPS = ((85, "high"), (60, "medium"))
SLOT_NOTICE_FLOOR = "low"


def step_at_most(value, steps, floor):
    for threshold, points in steps:
        if value <= threshold:
            return points
    return floor


def step_at_least(value, steps, floor):
    for threshold, points in steps:
        if value >= threshold:
            return points
    return floor


def step_above(value, steps, floor):
    for threshold, points in steps:
        if value > threshold:
            return points
    return floor


def percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return (part * 100) / whole


def workload_points(appointments_that_day: int) -> int:
    return step_at_most(appointments_that_day, WORKLOAD_STEPS, WORKLOAD_FLOOR)


def specialization_points(completed_of_type: int) -> int:
    return step_at_least(completed_of_type, SPECIALIZATION_STEPS, SPECIALIZATION_FLOOR)


def customer_history_points(completed_with_customer: int) -> int:
    return step_at_least(
        completed_with_customer, CUSTOMER_HISTORY_STEPS, CUSTOMER_HISTORY_FLOOR
    )


def performance_points(completed: int, non_cancelled: int) -> int:
    if non_cancelled == 0:
        return NEW_STAFF_PERFORMANCE
    return step_at_least(
        percentage(completed, non_cancelled), PERFORMANCE_STEPS, PERFORMANCE_FLOOR
    )


def recent_completion_points(completed: int, non_cancelled: int) -> int:
    if non_cancelled == 0:
        return NO_RECENT_COMPLETION
    return step_at_least(
        percentage(completed, non_cancelled),
        RECENT_COMPLETION_STEPS,
        RECENT_COMPLETION_FLOOR,
    )


def risk_level(score: int) -> str:
    return step_at_least(score, RISK_LEVEL_STEPS, RISK_LEVEL_FLOOR)


def workload_status(appointments_that_day: int) -> str:
    return step_at_least(appointments_that_day, WORKLOAD_STATUS_STEPS, WORKLOAD_STATUS_FLOOR)
