"""Ledger store contract consumed by the billing services"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional
from billing_engine.domain.models import (
    CreditBalance,
    Customer,
    Installment,
    Obligation,
    ObligationKind,
    RecurringCharge,
    TransactionRecord,
)


class LedgerStore(ABC):
    """
    Record store for obligations, transactions and credit balances.

    Writes are buffered until commit(); rollback() discards them. Outstanding
    reads lock the returned rows where the backend supports it, and
    upsert_obligation() on an existing row is a compare-and-swap on `version`
    that raises ConcurrencyConflictError when the row moved on. Inserting a
    second charge for an existing (customer, period) raises the same error.
    After any error the caller must rollback() before reusing the store.
    """

    @abstractmethod
    def get_customer(self, customer_id: str) -> Optional[Customer]: ...

    @abstractmethod
    def add_customer(self, customer: Customer) -> Customer: ...

    @abstractmethod
    def list_active_recurring_customers(self) -> List[Customer]: ...

    @abstractmethod
    def get_outstanding_installments(self, customer_id: str) -> List[Installment]: ...

    @abstractmethod
    def get_outstanding_recurring(self, customer_id: str) -> List[RecurringCharge]: ...

    @abstractmethod
    def list_obligations(self, customer_id: str) -> List[Obligation]: ...

    @abstractmethod
    def exists_obligation_for_period(self, customer_id: str, period_key: str) -> bool: ...

    @abstractmethod
    def upsert_obligation(self, obligation: Obligation) -> Obligation: ...

    @abstractmethod
    def mark_overdue(self, kind: ObligationKind, cutoff: date) -> List[Obligation]:
        """Bulk due/partial -> overdue for unpaid rows due before cutoff"""

    @abstractmethod
    def append_transaction(self, record: TransactionRecord) -> TransactionRecord: ...

    @abstractmethod
    def list_transactions(self, customer_id: str) -> List[TransactionRecord]: ...

    @abstractmethod
    def get_credit_balance(self, customer_id: str) -> CreditBalance: ...

    @abstractmethod
    def upsert_credit_balance(self, customer_id: str, balance: int) -> CreditBalance: ...

    @abstractmethod
    def get_last_run_date(self, job_name: str) -> Optional[date]: ...

    @abstractmethod
    def set_last_run_date(self, job_name: str, run_date: date) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
