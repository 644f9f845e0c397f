"""Billing orchestration - applies payment distributions and enrolls customers"""

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from billing_engine.domain.distribution import distribute
from billing_engine.domain.exceptions import (
    ConcurrencyConflictError,
    CustomerNotFoundError,
    DomainException,
    NoPendingDuesError,
    ValidationError,
)
from billing_engine.domain.ledger import LedgerStore
from billing_engine.domain.models import (
    BillingSummary,
    Customer,
    DistributionResult,
    Installment,
    Obligation,
    ObligationKind,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    PlanType,
    RecurringCharge,
    TargetKind,
    TransactionKind,
    TransactionRecord,
)
from billing_engine.domain.schedules import generate_installment_schedule, generate_recurring_schedule
from billing_engine.domain.status import OverduePolicy
from billing_engine.domain.summary import build_billing_summary
from billing_engine.infrastructure.cache import SummaryCache, summary_cache, summary_key, summary_prefix
from billing_engine.infrastructure.observability.logging import log_payment
from billing_engine.infrastructure.observability.metrics import concurrency_conflict_counter, record_payment
from billing_engine.config import settings


def validate_payment_request(request: PaymentRequest) -> None:
    if not request.customer_id:
        raise ValidationError("customer_id is required")
    if isinstance(request.amount, bool) or not isinstance(request.amount, int):
        raise ValidationError(f"Payment amount must be a whole number, got {request.amount!r}")
    if request.amount <= 0:
        raise ValidationError(f"Payment amount must be positive, got {request.amount}")
    if not isinstance(request.target_kind, TargetKind):
        raise ValidationError(f"Unknown payment target: {request.target_kind!r}")


class BillingOrchestrator:
    """
    Customer-facing billing operations on top of a LedgerStore.

    Every public operation is one unit of work: it either commits all of its
    writes or rolls all of them back.
    """

    def __init__(
        self,
        store: LedgerStore,
        policy: OverduePolicy | None = None,
        cache: SummaryCache | None = None,
    ):
        self.store = store
        self.policy = policy or OverduePolicy.from_settings(settings)
        self.cache = cache if cache is not None else summary_cache

    def process_payment(self, request: PaymentRequest) -> PaymentResult:
        """
        Apply a payment to the customer's outstanding obligations.

        Flow:
        1. Validate the request and load outstanding obligations (row-locked)
        2. Compute the allocation with the pure distributor
        3. Persist each updated obligation (compare-and-swap) plus one
           transaction per obligation touched
        4. Credit any excess to the customer's balance with a deposit transaction
        5. Commit, or roll back everything on failure

        Failures come back as PaymentResult(success=False) carrying the typed
        error and, when it got that far, the computed distribution.
        """
        today = request.effective_date or date.today()
        calculation: Optional[DistributionResult] = None

        try:
            validate_payment_request(request)
            if self.store.get_customer(request.customer_id) is None:
                raise CustomerNotFoundError(f"Customer {request.customer_id} not found")

            installments = self.store.get_outstanding_installments(request.customer_id)
            recurring = self.store.get_outstanding_recurring(request.customer_id)

            calculation = distribute(
                request.amount,
                installments,
                recurring,
                request.target_kind,
                today=today,
                policy=self.policy,
            )
            if not calculation.allocations and calculation.excess == request.amount:
                raise NoPendingDuesError(
                    f"No pending {request.target_kind.value} dues for customer {request.customer_id}"
                )

            occurred_at = self._occurred_at(request.effective_date)
            transaction_ids = self._apply(request, calculation, installments + recurring, occurred_at)
            self.store.commit()

        except DomainException as e:
            self.store.rollback()
            if isinstance(e, ConcurrencyConflictError):
                concurrency_conflict_counter.inc()
            record_payment(False, 0, 0, 0)
            log_payment(
                request.customer_id,
                request.amount,
                getattr(request.target_kind, "value", str(request.target_kind)),
                success=False,
                allocated=0,
                excess=0,
                error_type=type(e).__name__,
            )
            return PaymentResult(
                success=False,
                calculation=calculation,
                excess=calculation.excess if calculation else 0,
                error=e,
            )

        self.cache.invalidate_prefix(summary_prefix(request.customer_id))
        record_payment(
            True,
            sum(a.amount for a in calculation.installment_allocations),
            sum(a.amount for a in calculation.recurring_allocations),
            calculation.excess,
        )
        log_payment(
            request.customer_id,
            request.amount,
            request.target_kind.value,
            success=True,
            allocated=calculation.total_processed,
            excess=calculation.excess,
        )
        return PaymentResult(
            success=True,
            calculation=calculation,
            excess=calculation.excess,
            transaction_ids=transaction_ids,
        )

    @staticmethod
    def _occurred_at(effective_date: Optional[date]) -> datetime:
        now = datetime.now(timezone.utc)
        if effective_date is None:
            return now
        return datetime.combine(effective_date, now.timetz())

    def _apply(
        self,
        request: PaymentRequest,
        calculation: DistributionResult,
        loaded: List[Obligation],
        occurred_at: datetime,
    ) -> List[str]:
        by_id: Dict[str, Obligation] = {o.id: o for o in loaded}
        transaction_ids = []

        for allocation in calculation.allocations:
            updated = replace(
                by_id[allocation.obligation_id],
                paid_amount=allocation.new_paid_amount,
                remaining_amount=allocation.new_remaining_amount,
                status=allocation.new_status,
                version=allocation.expected_version,
            )
            self.store.upsert_obligation(updated)

            label = "EMI" if allocation.kind == ObligationKind.INSTALLMENT else "Rent"
            record = self.store.append_transaction(
                TransactionRecord(
                    customer_id=request.customer_id,
                    amount=allocation.amount,
                    kind=TransactionKind(allocation.kind.value),
                    status=allocation.new_status.value,
                    obligation_ref=allocation.obligation_id,
                    mode=request.mode,
                    remarks=request.remarks or f"{label} payment - {allocation.new_status.value}",
                    occurred_at=occurred_at,
                )
            )
            transaction_ids.append(record.id)

        if calculation.excess > 0:
            credit = self.store.get_credit_balance(request.customer_id)
            self.store.upsert_credit_balance(request.customer_id, credit.balance + calculation.excess)
            record = self.store.append_transaction(
                TransactionRecord(
                    customer_id=request.customer_id,
                    amount=calculation.excess,
                    kind=TransactionKind.DEPOSIT,
                    status=PaymentStatus.PAID.value,
                    mode=request.mode,
                    remarks=f"Credit added from excess payment. {request.remarks or ''}".strip(),
                    occurred_at=occurred_at,
                )
            )
            transaction_ids.append(record.id)

        return transaction_ids

    def enroll_installment_customer(
        self,
        customer_id: str,
        name: str,
        total_amount: int,
        down_payment: int,
        count: int,
        start_date: date,
    ) -> List[Installment]:
        """Register an installment-plan customer and persist the full schedule"""
        schedule = generate_installment_schedule(customer_id, total_amount, down_payment, count, start_date)

        try:
            existing = [
                o for o in self.store.list_obligations(customer_id)
                if o.kind == ObligationKind.INSTALLMENT
            ]
            if existing:
                raise ValidationError(f"Customer {customer_id} already has an installment plan")

            self.store.add_customer(
                Customer(id=customer_id, name=name, plan_type=PlanType.INSTALLMENT, join_date=start_date)
            )
            for installment in schedule:
                self.store.upsert_obligation(installment)
            self.store.commit()
        except DomainException:
            self.store.rollback()
            raise

        self.cache.invalidate_prefix(summary_prefix(customer_id))
        logging.info(
            f"Scheduled {len(schedule)} installments",
            extra={"customer_id": customer_id, "step": "enroll_installment"},
        )
        return schedule

    def enroll_recurring_customer(
        self,
        customer_id: str,
        name: str,
        periodic_amount: int,
        join_date: date,
        cycle_count: Optional[int] = None,
        today: Optional[date] = None,
    ) -> List[RecurringCharge]:
        """
        Register a recurring-plan customer and persist its charges.

        Without cycle_count the schedule catches up through the current month.
        Periods that already have a charge are skipped, so re-enrolling is safe.
        """
        schedule = generate_recurring_schedule(
            customer_id,
            periodic_amount,
            join_date,
            cycle_count=cycle_count,
            today=today,
            policy=self.policy,
            prorated_due_offset_days=settings.prorated_due_offset_days,
            due_day=settings.recurring_due_day,
        )

        created = []
        try:
            self.store.add_customer(
                Customer(
                    id=customer_id,
                    name=name,
                    plan_type=PlanType.RECURRING,
                    periodic_amount=periodic_amount,
                    join_date=join_date,
                )
            )
            for charge in schedule:
                if self.store.exists_obligation_for_period(customer_id, charge.period_key):
                    continue
                created.append(self.store.upsert_obligation(charge))
            self.store.commit()
        except DomainException:
            self.store.rollback()
            raise

        self.cache.invalidate_prefix(summary_prefix(customer_id))
        logging.info(
            f"Scheduled {len(created)} recurring charges",
            extra={"customer_id": customer_id, "step": "enroll_recurring"},
        )
        return created

    def get_billing_summary(self, customer_id: str, today: Optional[date] = None) -> BillingSummary:
        """Billing overview for one customer as of `today`, served from cache when fresh"""
        as_of = today or date.today()

        def load() -> BillingSummary:
            if self.store.get_customer(customer_id) is None:
                raise CustomerNotFoundError(f"Customer {customer_id} not found")
            obligations = self.store.list_obligations(customer_id)
            return build_billing_summary(
                customer_id,
                [o for o in obligations if o.kind == ObligationKind.INSTALLMENT],
                [o for o in obligations if o.kind == ObligationKind.RECURRING],
                self.store.get_credit_balance(customer_id).balance,
                as_of,
                self.policy,
            )

        try:
            return self.cache.get_or_load(summary_key(customer_id, as_of), load)
        finally:
            # Release any locks taken while loading
            self.store.rollback()
