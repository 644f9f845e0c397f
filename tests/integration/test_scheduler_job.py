"""Integration tests for the daily billing job"""

import threading
import pytest
from prometheus_client import REGISTRY
from datetime import date
from billing_engine.domain.models import Customer, ObligationKind, PaymentRequest, PaymentStatus, PlanType, TargetKind
from billing_engine.services.scheduler import DailyBillingJob
from billing_engine.domain.status import OverduePolicy


def _recurring(store, customer_id):
    return {o.period_key: o for o in store.list_obligations(customer_id) if o.kind == ObligationKind.RECURRING}


def _add_customer(store, customer_id, periodic_amount=3000, active=True):
    store.add_customer(
        Customer(
            id=customer_id,
            name=customer_id,
            plan_type=PlanType.RECURRING,
            periodic_amount=periodic_amount,
            join_date=date(2024, 1, 1),
            active=active,
        )
    )
    store.commit()


@pytest.fixture
def january_tenants(orchestrator, store):
    """Two active recurring customers, one inactive, one installment customer"""
    orchestrator.enroll_recurring_customer("cust_a", "A", 3000, date(2024, 1, 10), cycle_count=0, today=date(2024, 1, 10))
    orchestrator.enroll_recurring_customer("cust_b", "B", 4500, date(2024, 1, 20), cycle_count=0, today=date(2024, 1, 20))
    _add_customer(store, "cust_gone", active=False)
    orchestrator.enroll_installment_customer("cust_emi", "E", 12000, 0, 3, date(2024, 1, 1))


def test_generation_on_billing_day(daily_job, store, january_tenants):
    result = daily_job.run(today=date(2024, 2, 1))

    assert not result.skipped
    assert result.generated_count == 2
    assert result.errors == []
    assert result.overdue_rent_count == result.overdue_installment_count == 0

    charge = _recurring(store, "cust_a")["2024-02-01"]
    assert charge.amount == 3000
    assert charge.due_date == date(2024, 2, 5)
    assert charge.status == PaymentStatus.DUE
    assert not charge.is_prorated
    assert _recurring(store, "cust_b")["2024-02-01"].amount == 4500

    assert _recurring(store, "cust_gone") == {}
    assert _recurring(store, "cust_emi") == {}
    assert store.get_last_run_date("test-daily") == date(2024, 2, 1)


def test_same_day_rerun_is_skipped(daily_job, store, january_tenants):
    daily_job.run(today=date(2024, 2, 1))

    again = daily_job.run(today=date(2024, 2, 1))

    assert again.skipped
    assert again.generated_count == 0
    assert len(_recurring(store, "cust_a")) == 2


def test_forced_rerun_creates_no_duplicates(daily_job, store, january_tenants):
    daily_job.run(today=date(2024, 2, 1))

    forced = daily_job.run(today=date(2024, 2, 1), force=True)

    assert not forced.skipped
    assert forced.generated_count == 0
    assert len(_recurring(store, "cust_a")) == 2


def test_customer_joined_this_month_is_skipped(orchestrator, daily_job, store):
    orchestrator.enroll_recurring_customer("cust_new", "N", 3000, date(2024, 2, 1), cycle_count=0, today=date(2024, 2, 1))

    result = daily_job.run(today=date(2024, 2, 1))

    assert result.generated_count == 0
    charges = _recurring(store, "cust_new")
    assert list(charges) == ["2024-02-01"]
    assert charges["2024-02-01"].is_prorated


def test_failed_customer_is_collected_and_run_retried(daily_job, store, january_tenants):
    _add_customer(store, "cust_zero", periodic_amount=0)

    result = daily_job.run(today=date(2024, 2, 1))

    assert result.generated_count == 2
    assert len(result.errors) == 1
    assert result.errors[0].customer_id == "cust_zero"
    assert result.errors[0].error_type == "ValidationError"
    assert store.get_last_run_date("test-daily") is None

    retry = daily_job.run(today=date(2024, 2, 1))
    assert not retry.skipped
    assert retry.generated_count == 0
    assert len(retry.errors) == 1


def test_cancel_stops_generation(store, cache, january_tenants):
    cancel = threading.Event()
    cancel.set()
    job = DailyBillingJob(
        store,
        policy=OverduePolicy(),
        cache=cache,
        job_name="test-daily",
        billing_cycle_day=1,
        sweep_start_day=5,
        cancel_event=cancel,
    )

    result = job.run(today=date(2024, 2, 1))

    assert result.generated_count == 0
    assert [e.error_type for e in result.errors] == ["Cancelled"]
    assert store.get_last_run_date("test-daily") is None


def test_days_between_cycle_and_sweep_do_nothing(daily_job, store, january_tenants):
    result = daily_job.run(today=date(2024, 2, 3))

    assert not result.skipped
    assert result.generated_count == 0
    assert result.overdue_rent_count == result.overdue_installment_count == 0
    assert store.get_last_run_date("test-daily") == date(2024, 2, 3)


@pytest.fixture
def sweep_setup(orchestrator):
    """Pro-rated charge due 01-20, February charge due 02-05, first EMI due 02-01"""
    orchestrator.enroll_recurring_customer("cust_rent", "R", 3000, date(2024, 1, 15), cycle_count=1, today=date(2024, 1, 15))
    orchestrator.enroll_installment_customer("cust_emi", "E", 12000, 0, 3, date(2024, 1, 1))


def test_sweep_uses_kind_thresholds(daily_job, store, sweep_setup):
    day6 = daily_job.run(today=date(2024, 2, 6))

    # Recurring: 01-20 is 17 days past due; installment: 02-01 is exactly 5 days
    assert day6.overdue_rent_count == 1
    assert day6.overdue_installment_count == 0
    assert _recurring(store, "cust_rent")["2024-01-01"].status == PaymentStatus.OVERDUE
    assert _recurring(store, "cust_rent")["2024-02-01"].status == PaymentStatus.DUE

    day7 = daily_job.run(today=date(2024, 2, 7))
    assert day7.overdue_rent_count == 0
    assert day7.overdue_installment_count == 1

    day15 = daily_job.run(today=date(2024, 2, 15))
    assert day15.overdue_rent_count == 0

    day16 = daily_job.run(today=date(2024, 2, 16))
    assert day16.overdue_rent_count == 1
    assert _recurring(store, "cust_rent")["2024-02-01"].status == PaymentStatus.OVERDUE


def test_sweep_is_idempotent(daily_job, sweep_setup):
    first = daily_job.run(today=date(2024, 2, 7))
    again = daily_job.run(today=date(2024, 2, 7), force=True)

    assert first.overdue_rent_count + first.overdue_installment_count == 2
    assert again.overdue_rent_count == again.overdue_installment_count == 0
    assert again.notifications == []


def test_sweep_builds_notifications(daily_job, sweep_setup):
    result = daily_job.run(today=date(2024, 2, 7))

    notices = {n.customer_id: n for n in result.notifications}
    assert result.affected_customer_count == 2
    assert notices["cust_rent"].overdue_recurring_amount == 1700
    assert notices["cust_rent"].overdue_installment_amount == 0
    assert notices["cust_emi"].overdue_installment_amount == 4000
    assert notices["cust_emi"].total_overdue_amount == 4000


def test_sweep_skips_paid_obligations(orchestrator, daily_job, store, sweep_setup):
    orchestrator.process_payment(
        PaymentRequest("cust_rent", 1700, TargetKind.RECURRING, effective_date=date(2024, 1, 18))
    )

    result = daily_job.run(today=date(2024, 2, 6))

    assert result.overdue_rent_count == 0
    assert _recurring(store, "cust_rent")["2024-01-01"].status == PaymentStatus.PAID


def test_run_with_changes_clears_cache(daily_job, cache, january_tenants):
    cache.set("billing-summary:cust_a", "stale")

    daily_job.run(today=date(2024, 2, 1))

    assert len(cache) == 0


def test_run_without_changes_keeps_cache(daily_job, cache):
    cache.set("billing-summary:cust_a", "fresh")

    daily_job.run(today=date(2024, 2, 3))

    assert cache.get("billing-summary:cust_a") == "fresh"


def _job_runs(outcome: str) -> float:
    return REGISTRY.get_sample_value("billing_job_runs_total", {"outcome": outcome}) or 0.0


def test_future_joiner_not_billed_before_join_month(orchestrator, daily_job, store, january_tenants):
    """Enrolled in January with a March join date: no February charge"""
    orchestrator.enroll_recurring_customer(
        "cust_future", "F", 3000, date(2024, 3, 15), cycle_count=0, today=date(2024, 1, 20)
    )

    result = daily_job.run(today=date(2024, 2, 1))

    assert result.generated_count == 2
    assert list(_recurring(store, "cust_future")) == ["2024-03-01"]


def test_run_with_errors_counts_as_failed(daily_job, store, january_tenants):
    _add_customer(store, "cust_zero", periodic_amount=0)
    failed_before = _job_runs("failed")
    completed_before = _job_runs("completed")

    daily_job.run(today=date(2024, 2, 1))

    assert _job_runs("failed") == failed_before + 1
    assert _job_runs("completed") == completed_before

    store.add_customer(
        Customer(id="cust_zero", name="Z", plan_type=PlanType.RECURRING, periodic_amount=3000, join_date=date(2024, 1, 1))
    )
    store.commit()
    daily_job.run(today=date(2024, 2, 1))

    assert _job_runs("completed") == completed_before + 1
