"""Data access layer for billing entities"""

import functools
import uuid
from datetime import date
from typing import List, Optional, Type
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from billing_engine.domain.exceptions import ConcurrencyConflictError, StoreError
from billing_engine.domain.ledger import LedgerStore
from billing_engine.domain.models import (
    CreditBalance,
    Customer,
    Installment,
    Obligation,
    ObligationKind,
    PaymentMode,
    PaymentStatus,
    PlanType,
    RecurringCharge,
    TransactionKind,
    TransactionRecord,
)
from billing_engine.infrastructure.database.models import (
    CustomerCreditModel,
    CustomerModel,
    InstallmentModel,
    JobStateModel,
    RecurringChargeModel,
    TransactionModel,
)

SWEEPABLE_STATUSES = [PaymentStatus.DUE.value, PaymentStatus.PARTIAL.value]


def translate_store_errors(method):
    """Surface driver failures as StoreError with the original message"""

    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    return wrapper


def _customer_to_domain(row: CustomerModel) -> Customer:
    return Customer(
        id=row.id,
        name=row.name,
        plan_type=PlanType(row.plan_type),
        periodic_amount=row.periodic_amount,
        join_date=row.join_date,
        active=row.active,
    )


def _installment_to_domain(row: InstallmentModel) -> Installment:
    return Installment(
        id=str(row.id),
        customer_id=row.customer_id,
        sequence_label=str(row.installment_number),
        total_count=row.total_count,
        amount=row.amount,
        due_date=row.due_date,
        paid_amount=row.paid_amount,
        remaining_amount=row.remaining_amount,
        status=PaymentStatus(row.status),
        version=row.version,
    )


def _recurring_to_domain(row: RecurringChargeModel) -> RecurringCharge:
    return RecurringCharge(
        id=str(row.id),
        customer_id=row.customer_id,
        sequence_label=row.period_key,
        amount=row.amount,
        due_date=row.due_date,
        paid_amount=row.paid_amount,
        remaining_amount=row.remaining_amount,
        status=PaymentStatus(row.status),
        is_prorated=row.is_prorated,
        prorated_days=row.prorated_days,
        daily_rate=row.daily_rate,
        version=row.version,
    )


def _transaction_to_domain(row: TransactionModel) -> TransactionRecord:
    return TransactionRecord(
        id=str(row.id),
        customer_id=row.customer_id,
        amount=row.amount,
        kind=TransactionKind(row.kind),
        status=row.status,
        obligation_ref=row.obligation_ref,
        mode=PaymentMode(row.mode) if row.mode else None,
        remarks=row.remarks,
        occurred_at=row.occurred_at,
    )


class SqlLedgerStore(LedgerStore):
    """
    LedgerStore on a SQLAlchemy session.

    Concurrency:
    - Outstanding and credit reads use SELECT ... FOR UPDATE (row locks on
      PostgreSQL; ignored by SQLite)
    - Obligation updates are compare-and-swap on `version`, so a writer that
      read a stale row gets ConcurrencyConflictError instead of overwriting
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _model_for(kind: ObligationKind) -> Type:
        return InstallmentModel if kind == ObligationKind.INSTALLMENT else RecurringChargeModel

    @staticmethod
    def _to_domain(kind: ObligationKind, row) -> Obligation:
        if kind == ObligationKind.INSTALLMENT:
            return _installment_to_domain(row)
        return _recurring_to_domain(row)

    # Customers

    @translate_store_errors
    def get_customer(self, customer_id: str) -> Optional[Customer]:
        row = self.db.get(CustomerModel, customer_id)
        return _customer_to_domain(row) if row else None

    @translate_store_errors
    def add_customer(self, customer: Customer) -> Customer:
        """Insert the customer, or update the stored profile if it exists"""
        row = self.db.get(CustomerModel, customer.id)
        if row is None:
            row = CustomerModel(id=customer.id)
            self.db.add(row)
        row.name = customer.name
        row.plan_type = customer.plan_type.value
        row.periodic_amount = customer.periodic_amount
        row.join_date = customer.join_date
        row.active = customer.active
        self.db.flush()
        return customer

    @translate_store_errors
    def list_active_recurring_customers(self) -> List[Customer]:
        rows = self.db.execute(
            select(CustomerModel)
            .where(
                CustomerModel.plan_type == PlanType.RECURRING.value,
                CustomerModel.active.is_(True),
            )
            .order_by(CustomerModel.id)
        ).scalars()
        return [_customer_to_domain(row) for row in rows]

    # Obligations

    def _outstanding(self, kind: ObligationKind, customer_id: str) -> List[Obligation]:
        model = self._model_for(kind)
        rows = self.db.execute(
            select(model)
            .where(model.customer_id == customer_id, model.remaining_amount > 0)
            .order_by(model.due_date)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars()
        return [self._to_domain(kind, row) for row in rows]

    @translate_store_errors
    def get_outstanding_installments(self, customer_id: str) -> List[Installment]:
        return self._outstanding(ObligationKind.INSTALLMENT, customer_id)

    @translate_store_errors
    def get_outstanding_recurring(self, customer_id: str) -> List[RecurringCharge]:
        return self._outstanding(ObligationKind.RECURRING, customer_id)

    @translate_store_errors
    def list_obligations(self, customer_id: str) -> List[Obligation]:
        installments = self.db.execute(
            select(InstallmentModel)
            .where(InstallmentModel.customer_id == customer_id)
            .order_by(InstallmentModel.installment_number)
            .execution_options(populate_existing=True)
        ).scalars()
        recurring = self.db.execute(
            select(RecurringChargeModel)
            .where(RecurringChargeModel.customer_id == customer_id)
            .order_by(RecurringChargeModel.period_key)
            .execution_options(populate_existing=True)
        ).scalars()
        return [_installment_to_domain(r) for r in installments] + [_recurring_to_domain(r) for r in recurring]

    @translate_store_errors
    def exists_obligation_for_period(self, customer_id: str, period_key: str) -> bool:
        found = self.db.execute(
            select(RecurringChargeModel.id).where(
                RecurringChargeModel.customer_id == customer_id,
                RecurringChargeModel.period_key == period_key,
            )
        ).first()
        return found is not None

    @translate_store_errors
    def upsert_obligation(self, obligation: Obligation) -> Obligation:
        if obligation.id is None:
            return self._insert_obligation(obligation)

        model = self._model_for(obligation.kind)
        result = self.db.execute(
            update(model)
            .where(
                model.id == uuid.UUID(obligation.id),
                model.version == obligation.version,
            )
            .values(
                paid_amount=obligation.paid_amount,
                remaining_amount=obligation.remaining_amount,
                status=obligation.status.value,
                version=obligation.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyConflictError(
                f"{obligation.kind.value} {obligation.id} changed since version {obligation.version}"
            )
        obligation.version += 1
        return obligation

    def _insert_obligation(self, obligation: Obligation) -> Obligation:
        if obligation.kind == ObligationKind.INSTALLMENT:
            row = InstallmentModel(installment_number=int(obligation.sequence_label), total_count=obligation.total_count)
        else:
            row = RecurringChargeModel(
                period_key=obligation.sequence_label,
                is_prorated=obligation.is_prorated,
                prorated_days=obligation.prorated_days,
                daily_rate=obligation.daily_rate,
            )
        row.customer_id = obligation.customer_id
        row.amount = obligation.amount
        row.due_date = obligation.due_date
        row.paid_amount = obligation.paid_amount
        row.remaining_amount = obligation.remaining_amount
        row.status = obligation.status.value
        row.version = obligation.version

        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise ConcurrencyConflictError(
                f"{obligation.kind.value} {obligation.sequence_label} already exists "
                f"for customer {obligation.customer_id}"
            ) from e

        obligation.id = str(row.id)
        return obligation

    @translate_store_errors
    def mark_overdue(self, kind: ObligationKind, cutoff: date) -> List[Obligation]:
        model = self._model_for(kind)
        rows = self.db.execute(
            select(model)
            .where(
                model.status.in_(SWEEPABLE_STATUSES),
                model.remaining_amount > 0,
                model.due_date < cutoff,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        if not rows:
            return []

        self.db.execute(
            update(model)
            .where(model.id.in_([row.id for row in rows]), model.status.in_(SWEEPABLE_STATUSES))
            .values(status=PaymentStatus.OVERDUE.value, version=model.version + 1)
            .execution_options(synchronize_session=False)
        )

        swept = []
        for row in rows:
            obligation = self._to_domain(kind, row)
            obligation.status = PaymentStatus.OVERDUE
            obligation.version += 1
            swept.append(obligation)
        return swept

    # Transactions

    @translate_store_errors
    def append_transaction(self, record: TransactionRecord) -> TransactionRecord:
        row = TransactionModel(
            customer_id=record.customer_id,
            amount=record.amount,
            kind=record.kind.value,
            status=record.status,
            obligation_ref=record.obligation_ref,
            mode=record.mode.value if record.mode else None,
            remarks=record.remarks,
            occurred_at=record.occurred_at,
        )
        self.db.add(row)
        self.db.flush()
        record.id = str(row.id)
        return record

    @translate_store_errors
    def list_transactions(self, customer_id: str) -> List[TransactionRecord]:
        rows = self.db.execute(
            select(TransactionModel)
            .where(TransactionModel.customer_id == customer_id)
            .order_by(TransactionModel.occurred_at, TransactionModel.created_at)
        ).scalars()
        return [_transaction_to_domain(row) for row in rows]

    # Credit

    def _credit_row(self, customer_id: str) -> Optional[CustomerCreditModel]:
        return self.db.execute(
            select(CustomerCreditModel)
            .where(CustomerCreditModel.customer_id == customer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @translate_store_errors
    def get_credit_balance(self, customer_id: str) -> CreditBalance:
        row = self._credit_row(customer_id)
        return CreditBalance(customer_id=customer_id, balance=row.balance if row else 0)

    @translate_store_errors
    def upsert_credit_balance(self, customer_id: str, balance: int) -> CreditBalance:
        row = self._credit_row(customer_id)
        if row is not None:
            row.balance = balance
            self.db.flush()
            return CreditBalance(customer_id=customer_id, balance=balance)

        self.db.add(CustomerCreditModel(customer_id=customer_id, balance=balance))
        try:
            self.db.flush()
        except IntegrityError as e:
            # A concurrent payment created the first credit row
            raise ConcurrencyConflictError(f"Credit balance for customer {customer_id} was created concurrently") from e
        return CreditBalance(customer_id=customer_id, balance=balance)

    # Job state

    @translate_store_errors
    def get_last_run_date(self, job_name: str) -> Optional[date]:
        row = self.db.execute(
            select(JobStateModel)
            .where(JobStateModel.job_name == job_name)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return row.last_run_date if row else None

    @translate_store_errors
    def set_last_run_date(self, job_name: str, run_date: date) -> None:
        row = self.db.get(JobStateModel, job_name, with_for_update=True)
        if row is None:
            row = JobStateModel(job_name=job_name)
            self.db.add(row)
        row.last_run_date = run_date
        self.db.flush()

    # Unit of work

    @translate_store_errors
    def commit(self) -> None:
        self.db.commit()

    @translate_store_errors
    def rollback(self) -> None:
        self.db.rollback()
