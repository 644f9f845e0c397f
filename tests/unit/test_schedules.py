"""Unit tests for installment and recurring schedule generation"""

import pytest
from datetime import date
from billing_engine.domain.exceptions import ValidationError
from billing_engine.domain.models import PaymentStatus
from billing_engine.domain.schedules import (
    build_cycle_charge,
    calculate_prorated_charge,
    daily_rate_for,
    generate_installment_schedule,
    generate_recurring_schedule,
)


def test_installment_schedule_example():
    """50000 total, 10000 down, 12 installments from 2024-01-01"""
    schedule = generate_installment_schedule("cust_1", 50000, 10000, 12, date(2024, 1, 1))

    assert len(schedule) == 12
    assert all(inst.amount == 3333 for inst in schedule[:11])
    assert schedule[11].amount == 3337  # Last absorbs rounding remainder
    assert schedule[0].due_date == date(2024, 2, 1)
    assert schedule[11].due_date == date(2025, 1, 1)
    assert [inst.installment_number for inst in schedule] == list(range(1, 13))


def test_installment_schedule_initial_state():
    schedule = generate_installment_schedule("cust_1", 12000, 0, 3, date(2024, 1, 10))

    for inst in schedule:
        assert inst.status == PaymentStatus.DUE
        assert inst.paid_amount == 0
        assert inst.remaining_amount == inst.amount
        assert inst.total_count == 3
        assert inst.id is None


@pytest.mark.parametrize("total,down,count", [
    (50000, 10000, 12),
    (10001, 0, 3),
    (99999, 1, 7),
    (40003, 3, 4),
    (1000, 999, 1),
    (7, 0, 5),
])
def test_installment_amounts_sum_to_financed(total, down, count):
    schedule = generate_installment_schedule("cust_1", total, down, count, date(2024, 1, 1))
    assert sum(inst.amount for inst in schedule) == total - down


def test_installment_rounds_half_up():
    """10 / 4 = 2.5 rounds to 3, last takes 10 - 9 = 1"""
    schedule = generate_installment_schedule("cust_1", 10, 0, 4, date(2024, 1, 1))
    assert [inst.amount for inst in schedule] == [3, 3, 3, 1]


def test_installment_month_end_start_clamps():
    schedule = generate_installment_schedule("cust_1", 3000, 0, 3, date(2024, 1, 31))
    assert [inst.due_date for inst in schedule] == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


@pytest.mark.parametrize("total,down,count", [
    (1000, 0, 0),
    (1000, 1000, 4),
    (1000, 1200, 4),
    (1000, -1, 4),
    (6, 0, 4),  # 1.5 -> 2 each, last would be 0
])
def test_installment_schedule_rejects_invalid_plans(total, down, count):
    with pytest.raises(ValidationError):
        generate_installment_schedule("cust_1", total, down, count, date(2024, 1, 1))


def test_daily_rate_table_and_fallback():
    assert daily_rate_for(3000) == 100
    assert daily_rate_for(3600) == 120
    assert daily_rate_for(4500) == 150
    assert daily_rate_for(3100) == 103  # round(3100 / 30)
    assert daily_rate_for(45) == 2  # 1.5 rounds up


def test_prorated_charge_mid_month():
    """Joining Jan 15 bills Jan 15 through Jan 31: 17 days"""
    charge = calculate_prorated_charge(3000, date(2024, 1, 15))
    assert charge.days == 17
    assert charge.daily_rate == 100
    assert charge.amount == 1700


def test_prorated_charge_leap_february():
    charge = calculate_prorated_charge(4500, date(2024, 2, 20))
    assert charge.days == 10  # Feb 20..29
    assert charge.amount == 1500


def test_recurring_schedule_with_cycle_count():
    schedule = generate_recurring_schedule(
        "cust_1", 3000, date(2024, 1, 15), cycle_count=3, today=date(2024, 1, 15)
    )

    assert len(schedule) == 4
    first = schedule[0]
    assert first.is_prorated
    assert first.period_key == "2024-01-01"
    assert first.amount == 1700
    assert first.prorated_days == 17
    assert first.daily_rate == 100

    assert [c.period_key for c in schedule[1:]] == ["2024-02-01", "2024-03-01", "2024-04-01"]
    assert [c.due_date for c in schedule[1:]] == [date(2024, 2, 5), date(2024, 3, 5), date(2024, 4, 5)]
    assert all(c.amount == 3000 and not c.is_prorated for c in schedule[1:])
    assert all(c.status == PaymentStatus.DUE for c in schedule)


def test_prorated_due_date_is_join_plus_five_days():
    """Pinned policy: the first charge is due five days after joining, not on the 5th of next month"""
    schedule = generate_recurring_schedule(
        "cust_1", 3600, date(2024, 3, 28), cycle_count=0, today=date(2024, 3, 28)
    )
    assert len(schedule) == 1
    assert schedule[0].due_date == date(2024, 4, 2)


def test_recurring_schedule_catches_up_to_today():
    schedule = generate_recurring_schedule("cust_1", 3000, date(2024, 1, 15), today=date(2024, 4, 10))

    assert [c.period_key for c in schedule] == ["2024-01-01", "2024-02-01", "2024-03-01", "2024-04-01"]
    # Past charges beyond the 10-day threshold start overdue
    assert schedule[1].status == PaymentStatus.OVERDUE
    assert schedule[2].status == PaymentStatus.OVERDUE
    assert schedule[3].status == PaymentStatus.DUE


def test_recurring_schedule_catch_up_in_join_month():
    schedule = generate_recurring_schedule("cust_1", 3000, date(2024, 1, 15), today=date(2024, 1, 16))
    assert len(schedule) == 1
    assert schedule[0].is_prorated


def test_recurring_schedule_rejects_non_positive_amount():
    with pytest.raises(ValidationError):
        generate_recurring_schedule("cust_1", 0, date(2024, 1, 15), cycle_count=1)


def test_build_cycle_charge():
    charge = build_cycle_charge("cust_9", 4500, date(2024, 6, 1), due_day=5)
    assert charge.period_key == "2024-06-01"
    assert charge.due_date == date(2024, 6, 5)
    assert charge.amount == charge.remaining_amount == 4500
    assert charge.status == PaymentStatus.DUE
