"""Unit tests for payment status evaluation"""

import pytest
from datetime import date, timedelta
from billing_engine.domain.models import ObligationKind, PaymentStatus
from billing_engine.domain.status import DEFAULT_POLICY, OverduePolicy, evaluate_obligation, evaluate_status, overdue_days
from billing_engine.utils.date_utils import days_past_due
from tests.factories import make_charge, make_installment

DUE = date(2024, 3, 1)


@pytest.mark.parametrize("paid,remaining,today,expected", [
    (1000, 0, date(2024, 5, 1), PaymentStatus.PAID),  # Paid wins even long after due
    (400, 600, date(2024, 3, 6), PaymentStatus.PARTIAL),  # 5 days: at threshold
    (400, 600, date(2024, 3, 7), PaymentStatus.OVERDUE),
    (0, 1000, date(2024, 2, 20), PaymentStatus.DUE),
    (0, 1000, date(2024, 3, 6), PaymentStatus.DUE),
    (0, 1000, date(2024, 3, 7), PaymentStatus.OVERDUE),
])
def test_evaluate_status(paid, remaining, today, expected):
    assert evaluate_status(paid, remaining, DUE, today, overdue_threshold_days=5) == expected


def test_default_thresholds_pinned():
    """Installments turn overdue after 5 days, recurring charges after 10"""
    assert DEFAULT_POLICY.threshold_for(ObligationKind.INSTALLMENT) == 5
    assert DEFAULT_POLICY.threshold_for(ObligationKind.RECURRING) == 10


def test_evaluate_obligation_uses_kind_threshold():
    installment = make_installment(1, 1000, DUE)
    charge = make_charge("2024-03-01", 1000, DUE)
    today = date(2024, 3, 8)  # 7 days past due

    assert evaluate_obligation(installment, today) == PaymentStatus.OVERDUE
    assert evaluate_obligation(charge, today) == PaymentStatus.DUE


def test_overdue_days_zero_until_threshold():
    assert overdue_days(DUE, date(2024, 2, 25), 5) == 0
    assert overdue_days(DUE, date(2024, 3, 6), 5) == 0
    assert overdue_days(DUE, date(2024, 3, 7), 5) == 1
    assert overdue_days(DUE, date(2024, 3, 21), 10) == 10


def test_overdue_days_non_decreasing():
    values = [overdue_days(DUE, DUE + timedelta(days=offset), 5) for offset in range(-10, 40)]
    assert values == sorted(values)


@pytest.mark.parametrize("kind", [ObligationKind.INSTALLMENT, ObligationKind.RECURRING])
def test_sweep_cutoff_matches_threshold(kind):
    """due_date < cutoff holds exactly when days past due exceed the threshold"""
    policy = OverduePolicy(installment_days=5, recurring_days=10)
    today = date(2024, 3, 20)
    cutoff = policy.sweep_cutoff(kind, today)

    for offset in range(-5, 30):
        due_date = today - timedelta(days=offset)
        assert (due_date < cutoff) == (days_past_due(due_date, today) > policy.threshold_for(kind))
