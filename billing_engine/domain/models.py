"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import ClassVar, List, Optional


class PaymentStatus(str, Enum):
    DUE = "due"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class ObligationKind(str, Enum):
    INSTALLMENT = "installment"
    RECURRING = "recurring"


class TargetKind(str, Enum):
    """Which obligations a payment may be applied to"""

    INSTALLMENT = "installment"
    RECURRING = "recurring"
    AUTO = "auto"  # Installments first, leftover to recurring charges


class TransactionKind(str, Enum):
    INSTALLMENT = "installment"
    RECURRING = "recurring"
    DEPOSIT = "deposit"  # Excess credited to the customer's balance


class PaymentMode(str, Enum):
    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class PlanType(str, Enum):
    INSTALLMENT = "installment"
    RECURRING = "recurring"


@dataclass
class Customer:
    """Billing-relevant view of a customer"""

    id: str
    name: str
    plan_type: PlanType
    periodic_amount: int = 0  # Monthly charge for recurring plans
    join_date: Optional[date] = None
    active: bool = True


@dataclass
class Obligation:
    """
    A single amount owed by a customer.

    Invariants: remaining_amount == amount - paid_amount, both >= 0,
    and status == PAID exactly when remaining_amount == 0.
    `version` increments on every stored update and guards compare-and-swap writes.
    """

    kind: ClassVar[ObligationKind]

    customer_id: str
    sequence_label: str
    amount: int
    due_date: date
    paid_amount: int = 0
    remaining_amount: Optional[int] = None
    status: PaymentStatus = PaymentStatus.DUE
    id: Optional[str] = None
    version: int = 0

    def __post_init__(self) -> None:
        if self.remaining_amount is None:
            self.remaining_amount = self.amount - self.paid_amount


@dataclass
class Installment(Obligation):
    """One scheduled portion (EMI) of a fixed-total plan"""

    kind: ClassVar[ObligationKind] = ObligationKind.INSTALLMENT

    total_count: int = 0

    @property
    def installment_number(self) -> int:
        return int(self.sequence_label)


@dataclass
class RecurringCharge(Obligation):
    """Monthly rent charge; sequence_label is the YYYY-MM-01 period key"""

    kind: ClassVar[ObligationKind] = ObligationKind.RECURRING

    is_prorated: bool = False
    prorated_days: Optional[int] = None
    daily_rate: Optional[int] = None

    @property
    def period_key(self) -> str:
        return self.sequence_label


@dataclass
class ProRatedCharge:
    """Partial first-period billing figures"""

    amount: int
    days: int
    daily_rate: int


@dataclass
class CreditBalance:
    customer_id: str
    balance: int = 0


@dataclass
class TransactionRecord:
    """Append-only audit row for one balance change"""

    customer_id: str
    amount: int
    kind: TransactionKind
    status: str
    occurred_at: datetime
    obligation_ref: Optional[str] = None
    remarks: Optional[str] = None
    mode: Optional[PaymentMode] = None
    id: Optional[str] = None


@dataclass
class PaymentRequest:
    """Transient input to the payment operation"""

    customer_id: str
    amount: int
    target_kind: TargetKind = TargetKind.AUTO
    mode: PaymentMode = PaymentMode.CASH
    remarks: Optional[str] = None
    effective_date: Optional[date] = None


@dataclass
class Allocation:
    """Share of a payment applied to one obligation"""

    obligation_id: str
    kind: ObligationKind
    sequence_label: str
    amount: int
    new_paid_amount: int
    new_remaining_amount: int
    new_status: PaymentStatus
    expected_version: int = 0


@dataclass
class DistributionResult:
    installment_allocations: List[Allocation] = field(default_factory=list)
    recurring_allocations: List[Allocation] = field(default_factory=list)
    excess: int = 0
    total_processed: int = 0

    @property
    def allocations(self) -> List[Allocation]:
        return self.installment_allocations + self.recurring_allocations


@dataclass
class PaymentResult:
    success: bool
    calculation: Optional[DistributionResult] = None
    excess: int = 0
    transaction_ids: List[str] = field(default_factory=list)
    error: Optional[Exception] = None


@dataclass
class BatchError:
    """One customer's failure inside a batch job"""

    customer_id: Optional[str]
    error_type: str
    message: str


@dataclass
class OverdueNotice:
    """Notification payload for a customer with newly overdue obligations"""

    customer_id: str
    overdue_recurring_amount: int = 0
    overdue_installment_amount: int = 0

    @property
    def total_overdue_amount(self) -> int:
        return self.overdue_recurring_amount + self.overdue_installment_amount


@dataclass
class JobResult:
    """Outcome of one daily scheduler invocation"""

    run_date: date
    skipped: bool = False
    generated_count: int = 0
    overdue_rent_count: int = 0
    overdue_installment_count: int = 0
    affected_customer_count: int = 0
    errors: List[BatchError] = field(default_factory=list)
    notifications: List[OverdueNotice] = field(default_factory=list)


@dataclass
class InstallmentProgress:
    paid: int
    total: int
    percentage: float


@dataclass
class BillingSummary:
    """Per-customer billing overview"""

    customer_id: str
    installments: List[Installment]
    recurring_charges: List[RecurringCharge]
    credit_balance: int
    total_paid: int
    total_outstanding: int
    overdue_amount: int
    next_due_date: Optional[date]
    installment_progress: Optional[InstallmentProgress] = None
