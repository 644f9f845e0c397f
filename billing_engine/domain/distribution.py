"""Payment distribution - allocate an amount across outstanding obligations"""

from datetime import date
from typing import List, Sequence, Tuple
from billing_engine.domain.models import (
    Allocation,
    DistributionResult,
    Installment,
    Obligation,
    PaymentStatus,
    RecurringCharge,
    TargetKind,
)
from billing_engine.domain.status import DEFAULT_POLICY, OverduePolicy, evaluate_status

URGENT_STATUSES = (PaymentStatus.OVERDUE, PaymentStatus.PARTIAL)


def priority_key(obligation: Obligation) -> Tuple[int, date]:
    """Overdue/partial before due, then earliest due date first"""
    tier = 0 if obligation.status in URGENT_STATUSES else 1
    return tier, obligation.due_date


def prioritize(obligations: Sequence[Obligation]) -> List[Obligation]:
    """Outstanding obligations in the order a payment should settle them"""
    outstanding = [o for o in obligations if o.remaining_amount > 0]
    return sorted(outstanding, key=priority_key)


def _allocate(
    amount: int,
    obligations: Sequence[Obligation],
    today: date,
    policy: OverduePolicy,
) -> Tuple[List[Allocation], int]:
    allocations = []
    for obligation in prioritize(obligations):
        if amount <= 0:
            break

        pay = min(amount, obligation.remaining_amount)
        new_paid = obligation.paid_amount + pay
        new_remaining = obligation.remaining_amount - pay

        # Status follows the updated amounts, so a settled overdue item becomes paid
        new_status = evaluate_status(
            new_paid,
            new_remaining,
            obligation.due_date,
            today,
            policy.threshold_for(obligation.kind),
        )

        allocations.append(
            Allocation(
                obligation_id=obligation.id,
                kind=obligation.kind,
                sequence_label=obligation.sequence_label,
                amount=pay,
                new_paid_amount=new_paid,
                new_remaining_amount=new_remaining,
                new_status=new_status,
                expected_version=obligation.version,
            )
        )
        amount -= pay

    return allocations, amount


def distribute(
    amount: int,
    installments: Sequence[Installment],
    recurring: Sequence[RecurringCharge],
    target_kind: TargetKind = TargetKind.AUTO,
    today: date | None = None,
    policy: OverduePolicy = DEFAULT_POLICY,
) -> DistributionResult:
    """
    Allocate a payment across a customer's outstanding obligations.

    Requirements:
    - Only obligations with remaining_amount > 0 take part
    - Each list is consumed in priority order (see priority_key)
    - installment/recurring targets consume only that list; auto settles
      installments first and applies any leftover to recurring charges
    - Whatever cannot be applied is returned as excess

    Pure function: no I/O. Conservation holds:
        sum(a.amount for a in result.allocations) + result.excess == amount
    """
    today = today or date.today()
    result = DistributionResult()
    remaining = amount

    if target_kind in (TargetKind.INSTALLMENT, TargetKind.AUTO):
        result.installment_allocations, remaining = _allocate(remaining, installments, today, policy)

    if target_kind == TargetKind.RECURRING or (target_kind == TargetKind.AUTO and remaining > 0):
        result.recurring_allocations, remaining = _allocate(remaining, recurring, today, policy)

    result.excess = remaining
    result.total_processed = amount - remaining
    return result
