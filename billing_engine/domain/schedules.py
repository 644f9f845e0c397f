"""Obligation schedule generation for installment and recurring plans"""

from datetime import date, timedelta
from typing import Dict, List, Optional
from billing_engine.domain.exceptions import ValidationError
from billing_engine.domain.models import Installment, ProRatedCharge, RecurringCharge
from billing_engine.domain.status import DEFAULT_POLICY, OverduePolicy, evaluate_obligation
from billing_engine.utils.amounts import round_half_up
from billing_engine.utils.date_utils import (
    add_months,
    days_between,
    first_of_next_month,
    iter_months,
    period_key,
)

# Daily rates for the standard monthly plans; other amounts fall back to amount / 30
DAILY_RATE_TABLE: Dict[int, int] = {
    3000: 100,
    3600: 120,
    4500: 150,
}


def generate_installment_schedule(
    customer_id: str,
    total_amount: int,
    down_payment: int,
    count: int,
    start_date: date,
) -> List[Installment]:
    """
    Split the financed amount into monthly installments.

    Requirements:
    - Per-installment amount = round_half_up((total - down) / count)
    - Last installment absorbs the rounding remainder so the schedule sums
      to exactly total - down
    - Installment i is due start_date + i calendar months

    Example:
        50000 total, 10000 down, 12 installments
        40000 / 12 = 3333.33 -> 3333 x 11, last = 40000 - 36663 = 3337
    """
    if count < 1:
        raise ValidationError(f"Installment count must be at least 1, got {count}")
    if down_payment < 0:
        raise ValidationError("Down payment cannot be negative")
    financed = total_amount - down_payment
    if financed <= 0:
        raise ValidationError("Down payment must be less than the total amount")

    per_installment = round_half_up(financed, count)
    last_amount = financed - per_installment * (count - 1)
    if last_amount <= 0:
        raise ValidationError(
            f"Cannot split {financed} into {count} positive installments"
        )

    schedule = []
    for number in range(1, count + 1):
        amount = last_amount if number == count else per_installment
        schedule.append(
            Installment(
                customer_id=customer_id,
                sequence_label=str(number),
                amount=amount,
                due_date=add_months(start_date, number),
                total_count=count,
            )
        )

    return schedule


def daily_rate_for(periodic_amount: int) -> int:
    """Table lookup on exact amount, otherwise round_half_up(amount / 30)"""
    if periodic_amount in DAILY_RATE_TABLE:
        return DAILY_RATE_TABLE[periodic_amount]
    return round_half_up(periodic_amount, 30)


def calculate_prorated_charge(periodic_amount: int, join_date: date) -> ProRatedCharge:
    """Bill the days from join_date up to the first of the following month"""
    days = days_between(join_date, first_of_next_month(join_date))
    rate = daily_rate_for(periodic_amount)
    return ProRatedCharge(amount=rate * days, days=days, daily_rate=rate)


def build_cycle_charge(
    customer_id: str,
    periodic_amount: int,
    period_start: date,
    due_day: int = 5,
) -> RecurringCharge:
    """Full-amount charge for one billing month, due on due_day of that month"""
    if periodic_amount <= 0:
        raise ValidationError(f"Periodic amount must be positive, got {periodic_amount}")
    return RecurringCharge(
        customer_id=customer_id,
        sequence_label=period_key(period_start),
        amount=periodic_amount,
        due_date=period_start.replace(day=due_day),
    )


def generate_recurring_schedule(
    customer_id: str,
    periodic_amount: int,
    join_date: date,
    cycle_count: Optional[int] = None,
    today: Optional[date] = None,
    policy: OverduePolicy = DEFAULT_POLICY,
    prorated_due_offset_days: int = 5,
    due_day: int = 5,
) -> List[RecurringCharge]:
    """
    Build the recurring charges for a new subscriber.

    - First charge is pro-rated from join_date to the first of next month,
      keyed by the join month and due join_date + prorated_due_offset_days
    - Then one full charge per month, due on due_day of its month: either
      cycle_count months, or (cycle_count=None) every month through today's
      month inclusive
    - Charges whose due date has already passed the overdue threshold as of
      today start out overdue

    Pure function: callers must skip periods that already exist in storage.
    """
    if periodic_amount <= 0:
        raise ValidationError("Periodic amount must be positive")
    if cycle_count is not None and cycle_count < 0:
        raise ValidationError("Cycle count cannot be negative")
    if not 1 <= due_day <= 28:
        raise ValidationError(f"Due day must fall in every month (1-28), got {due_day}")

    as_of = today or date.today()

    prorated = calculate_prorated_charge(periodic_amount, join_date)
    schedule = [
        RecurringCharge(
            customer_id=customer_id,
            sequence_label=period_key(join_date),
            amount=prorated.amount,
            due_date=join_date + timedelta(days=prorated_due_offset_days),
            is_prorated=True,
            prorated_days=prorated.days,
            daily_rate=prorated.daily_rate,
        )
    ]

    first_full_month = first_of_next_month(join_date)
    if cycle_count is None:
        months = iter_months(first_full_month, as_of)
    else:
        months = [add_months(first_full_month, i) for i in range(cycle_count)]

    for month_start in months:
        schedule.append(build_cycle_charge(customer_id, periodic_amount, month_start, due_day))

    for charge in schedule:
        charge.status = evaluate_obligation(charge, as_of, policy)

    return schedule
