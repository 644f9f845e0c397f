"""Payment status derivation from amount and date state"""

from dataclasses import dataclass
from datetime import date, timedelta
from billing_engine.domain.models import Obligation, ObligationKind, PaymentStatus
from billing_engine.utils.date_utils import days_past_due


@dataclass(frozen=True)
class OverduePolicy:
    """
    Days past due before an unpaid obligation becomes overdue.

    One policy is shared by status evaluation, payment allocation and the
    daily overdue sweep, so all three agree on when something is overdue.
    """

    installment_days: int = 5
    recurring_days: int = 10

    def threshold_for(self, kind: ObligationKind) -> int:
        if kind == ObligationKind.INSTALLMENT:
            return self.installment_days
        return self.recurring_days

    def sweep_cutoff(self, kind: ObligationKind, today: date) -> date:
        """Obligations due strictly before this date are past the threshold"""
        return today - timedelta(days=self.threshold_for(kind))

    @classmethod
    def from_settings(cls, settings) -> "OverduePolicy":
        return cls(
            installment_days=settings.installment_overdue_days,
            recurring_days=settings.recurring_overdue_days,
        )


DEFAULT_POLICY = OverduePolicy()


def evaluate_status(
    paid_amount: int,
    remaining_amount: int,
    due_date: date,
    today: date,
    overdue_threshold_days: int,
) -> PaymentStatus:
    """
    Map an obligation's amounts and due date to its payment status.

    - Nothing remaining: paid
    - Partly paid: overdue once past the threshold, otherwise partial
    - Nothing paid: overdue once past the threshold, otherwise due
    """
    if remaining_amount == 0:
        return PaymentStatus.PAID

    past_threshold = days_past_due(due_date, today) > overdue_threshold_days

    if paid_amount > 0:
        return PaymentStatus.OVERDUE if past_threshold else PaymentStatus.PARTIAL
    return PaymentStatus.OVERDUE if past_threshold else PaymentStatus.DUE


def evaluate_obligation(
    obligation: Obligation,
    today: date,
    policy: OverduePolicy = DEFAULT_POLICY,
) -> PaymentStatus:
    """evaluate_status for a stored obligation using its kind's threshold"""
    return evaluate_status(
        obligation.paid_amount,
        obligation.remaining_amount,
        obligation.due_date,
        today,
        policy.threshold_for(obligation.kind),
    )


def overdue_days(due_date: date, today: date, overdue_threshold_days: int) -> int:
    """Days beyond the overdue threshold; 0 at or before the boundary"""
    return max(0, days_past_due(due_date, today) - overdue_threshold_days)
