"""Billing summary calculations over a customer's obligations"""

from datetime import date
from typing import Optional, Sequence
from billing_engine.domain.models import (
    BillingSummary,
    Installment,
    InstallmentProgress,
    Obligation,
    PaymentStatus,
    RecurringCharge,
)
from billing_engine.domain.status import DEFAULT_POLICY, OverduePolicy
from billing_engine.utils.date_utils import days_past_due


def total_outstanding(obligations: Sequence[Obligation]) -> int:
    return sum(o.remaining_amount for o in obligations)


def total_paid(obligations: Sequence[Obligation]) -> int:
    return sum(o.paid_amount for o in obligations)


def overdue_amount(
    obligations: Sequence[Obligation],
    today: date,
    policy: OverduePolicy = DEFAULT_POLICY,
) -> int:
    """Remaining amount on obligations past their kind's overdue threshold"""
    return sum(
        o.remaining_amount
        for o in obligations
        if o.remaining_amount > 0 and days_past_due(o.due_date, today) > policy.threshold_for(o.kind)
    )


def next_due_date(obligations: Sequence[Obligation]) -> Optional[date]:
    """Earliest due date among obligations that still have something owing"""
    due_dates = [o.due_date for o in obligations if o.remaining_amount > 0]
    return min(due_dates) if due_dates else None


def installment_progress(installments: Sequence[Installment]) -> Optional[InstallmentProgress]:
    if not installments:
        return None
    paid = sum(1 for i in installments if i.status == PaymentStatus.PAID)
    total = len(installments)
    return InstallmentProgress(paid=paid, total=total, percentage=round(paid / total * 100, 1))


def build_billing_summary(
    customer_id: str,
    installments: Sequence[Installment],
    recurring_charges: Sequence[RecurringCharge],
    credit_balance: int,
    today: date,
    policy: OverduePolicy = DEFAULT_POLICY,
) -> BillingSummary:
    obligations = list(installments) + list(recurring_charges)
    return BillingSummary(
        customer_id=customer_id,
        installments=list(installments),
        recurring_charges=list(recurring_charges),
        credit_balance=credit_balance,
        total_paid=total_paid(obligations),
        total_outstanding=total_outstanding(obligations),
        overdue_amount=overdue_amount(obligations, today, policy),
        next_due_date=next_due_date(obligations),
        installment_progress=installment_progress(installments),
    )
