"""Daily billing job - monthly charge generation and overdue sweep"""

import logging
import threading
import time
from datetime import date
from typing import Dict, List, Optional, Tuple
from billing_engine.config import settings
from billing_engine.domain.exceptions import ConcurrencyConflictError, DomainException
from billing_engine.domain.ledger import LedgerStore
from billing_engine.domain.models import (
    BatchError,
    JobResult,
    Obligation,
    ObligationKind,
    OverdueNotice,
)
from billing_engine.domain.schedules import build_cycle_charge
from billing_engine.domain.status import OverduePolicy, evaluate_obligation
from billing_engine.infrastructure.cache import SummaryCache, summary_cache
from billing_engine.infrastructure.observability.logging import log_job_run
from billing_engine.infrastructure.observability.metrics import job_run_counter, record_job_run
from billing_engine.utils.date_utils import first_of_month, first_of_next_month, period_key


def build_overdue_notices(swept: List[Obligation]) -> List[OverdueNotice]:
    """Aggregate newly overdue remaining amounts per customer"""
    notices: Dict[str, OverdueNotice] = {}
    for obligation in swept:
        notice = notices.setdefault(obligation.customer_id, OverdueNotice(customer_id=obligation.customer_id))
        if obligation.kind == ObligationKind.RECURRING:
            notice.overdue_recurring_amount += obligation.remaining_amount
        else:
            notice.overdue_installment_amount += obligation.remaining_amount
    return list(notices.values())


class DailyBillingJob:
    """
    Idempotent daily routine invoked by an external trigger (cron, HTTP call).

    State per calendar day:
    - day == billing_cycle_day: create this month's charge for every active
      recurring customer that has none yet
    - day >= sweep_start_day: move unpaid obligations past their overdue
      threshold to overdue
    Both steps may run in the same invocation.

    A durable last-run marker in the ledger store makes repeat invocations on
    the same day no-ops. The marker is only written when the run finished
    without errors, so a failed run is retried by the next trigger. Both
    steps are safe to repeat: generation checks for an existing period first
    and the store rejects duplicates, and the sweep only touches due/partial rows.
    """

    def __init__(
        self,
        store: LedgerStore,
        policy: OverduePolicy | None = None,
        cache: SummaryCache | None = None,
        job_name: str | None = None,
        billing_cycle_day: int | None = None,
        sweep_start_day: int | None = None,
        due_day: int | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self.store = store
        self.policy = policy or OverduePolicy.from_settings(settings)
        self.cache = cache if cache is not None else summary_cache
        self.job_name = job_name or settings.daily_job_name
        self.billing_cycle_day = billing_cycle_day or settings.billing_cycle_day
        self.sweep_start_day = sweep_start_day or settings.sweep_start_day
        self.due_day = due_day or settings.recurring_due_day
        self.cancel_event = cancel_event or threading.Event()

    def run(self, today: Optional[date] = None, force: bool = False) -> JobResult:
        """Run the daily steps that apply to `today`; force bypasses the last-run marker"""
        start_time = time.time()
        today = today or date.today()
        result = JobResult(run_date=today)

        try:
            last_run = self.store.get_last_run_date(self.job_name)
        except DomainException:
            self.store.rollback()
            job_run_counter.labels(outcome="failed").inc()
            raise

        if last_run == today and not force:
            self.store.rollback()
            result.skipped = True
            self._finish(result, start_time)
            return result

        if today.day == self.billing_cycle_day:
            result.generated_count, generation_errors = self.generate_cycle_charges(today)
            result.errors.extend(generation_errors)

        if today.day >= self.sweep_start_day:
            try:
                swept_rent, swept_installments = self.sweep_overdue(today)
            except DomainException as e:
                self.store.rollback()
                logging.error(f"Overdue sweep failed: {e}", extra={"step": "overdue_sweep"})
                result.errors.append(BatchError(customer_id=None, error_type=type(e).__name__, message=str(e)))
            else:
                result.overdue_rent_count = len(swept_rent)
                result.overdue_installment_count = len(swept_installments)
                result.notifications = build_overdue_notices(swept_rent + swept_installments)
                result.affected_customer_count = len(result.notifications)

        if not result.errors:
            try:
                self.store.set_last_run_date(self.job_name, today)
                self.store.commit()
            except DomainException as e:
                self.store.rollback()
                result.errors.append(BatchError(customer_id=None, error_type=type(e).__name__, message=str(e)))

        if result.generated_count or result.overdue_rent_count or result.overdue_installment_count:
            self.cache.clear()

        self._finish(result, start_time)
        return result

    def generate_cycle_charges(self, today: date) -> Tuple[int, List[BatchError]]:
        """
        Create the current month's charge for each active recurring customer
        that has joined by the end of this month.

        Each customer is committed separately; one customer's failure is
        recorded and the batch moves on. A cancel request stops the batch
        between customers.
        """
        period_start = first_of_month(today)
        next_period_start = first_of_next_month(today)
        key = period_key(today)
        errors: List[BatchError] = []
        generated = 0

        try:
            customers = self.store.list_active_recurring_customers()
        except DomainException as e:
            self.store.rollback()
            return 0, [BatchError(customer_id=None, error_type=type(e).__name__, message=str(e))]

        for customer in customers:
            if self.cancel_event.is_set():
                errors.append(
                    BatchError(customer_id=None, error_type="Cancelled", message="Generation cancelled before completion")
                )
                break

            if customer.join_date is not None and customer.join_date >= next_period_start:
                # Not subscribed yet; billing starts with the pro-rated join month
                continue

            try:
                if self.store.exists_obligation_for_period(customer.id, key):
                    continue
                charge = build_cycle_charge(customer.id, customer.periodic_amount, period_start, self.due_day)
                charge.status = evaluate_obligation(charge, today, self.policy)
                self.store.upsert_obligation(charge)
                self.store.commit()
                generated += 1
            except ConcurrencyConflictError:
                # Another run created this period first
                self.store.rollback()
            except DomainException as e:
                self.store.rollback()
                logging.warning(
                    f"Charge generation failed for customer {customer.id}: {e}",
                    extra={"customer_id": customer.id, "step": "cycle_generation"},
                )
                errors.append(BatchError(customer_id=customer.id, error_type=type(e).__name__, message=str(e)))

        return generated, errors

    def sweep_overdue(self, today: date) -> Tuple[List[Obligation], List[Obligation]]:
        """Bulk-mark overdue obligations of both kinds in one commit"""
        swept_rent = self.store.mark_overdue(
            ObligationKind.RECURRING, self.policy.sweep_cutoff(ObligationKind.RECURRING, today)
        )
        swept_installments = self.store.mark_overdue(
            ObligationKind.INSTALLMENT, self.policy.sweep_cutoff(ObligationKind.INSTALLMENT, today)
        )
        self.store.commit()
        return swept_rent, swept_installments

    def _finish(self, result: JobResult, start_time: float) -> None:
        duration_ms = (time.time() - start_time) * 1000
        record_job_run(
            result.skipped,
            bool(result.errors),
            result.generated_count,
            result.overdue_rent_count,
            result.overdue_installment_count,
        )
        log_job_run(
            self.job_name,
            result.run_date.isoformat(),
            result.skipped,
            result.generated_count,
            result.overdue_rent_count + result.overdue_installment_count,
            len(result.errors),
            duration_ms,
        )
