"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional

from billing_engine.domain.models import (
    Allocation,
    BatchError,
    BillingSummary,
    JobResult,
    Obligation,
    ObligationKind,
    OverdueNotice,
    PaymentMode,
    PaymentStatus,
    TargetKind,
)


class InstallmentEnrollmentRequest(BaseModel):
    """Request body for POST /v1/customers/installment"""

    customer_id: str = Field(..., min_length=1, description="Customer identifier")
    name: str = Field(..., min_length=1)
    total_amount: int = Field(..., gt=0, description="Plan total including down payment")
    down_payment: int = Field(0, ge=0)
    installment_count: int = Field(..., ge=1)
    start_date: date = Field(..., description="Installment i is due start_date + i months")


class RecurringEnrollmentRequest(BaseModel):
    """Request body for POST /v1/customers/recurring"""

    customer_id: str = Field(..., min_length=1, description="Customer identifier")
    name: str = Field(..., min_length=1)
    periodic_amount: int = Field(..., gt=0, description="Monthly charge")
    join_date: date
    cycle_count: Optional[int] = Field(None, ge=0, description="Full months to schedule; omit to catch up to today")


class ObligationSchema(BaseModel):
    id: Optional[str]
    kind: ObligationKind
    sequence_label: str
    amount: int
    due_date: date
    paid_amount: int
    remaining_amount: int
    status: PaymentStatus
    is_prorated: bool = False
    prorated_days: Optional[int] = None
    daily_rate: Optional[int] = None

    @classmethod
    def from_domain(cls, obligation: Obligation) -> "ObligationSchema":
        return cls(
            id=obligation.id,
            kind=obligation.kind,
            sequence_label=obligation.sequence_label,
            amount=obligation.amount,
            due_date=obligation.due_date,
            paid_amount=obligation.paid_amount,
            remaining_amount=obligation.remaining_amount,
            status=obligation.status,
            is_prorated=getattr(obligation, "is_prorated", False),
            prorated_days=getattr(obligation, "prorated_days", None),
            daily_rate=getattr(obligation, "daily_rate", None),
        )


class EnrollmentResponse(BaseModel):
    customer_id: str
    obligations: List[ObligationSchema]


class PaymentRequestSchema(BaseModel):
    """Request body for POST /v1/payments"""

    customer_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, description="Payment amount in whole currency units")
    target_kind: TargetKind = TargetKind.AUTO
    mode: PaymentMode = PaymentMode.CASH
    remarks: Optional[str] = None
    effective_date: Optional[date] = None


class AllocationSchema(BaseModel):
    obligation_id: str
    kind: ObligationKind
    sequence_label: str
    amount: int
    new_paid_amount: int
    new_remaining_amount: int
    new_status: PaymentStatus

    @classmethod
    def from_domain(cls, allocation: Allocation) -> "AllocationSchema":
        return cls(
            obligation_id=allocation.obligation_id,
            kind=allocation.kind,
            sequence_label=allocation.sequence_label,
            amount=allocation.amount,
            new_paid_amount=allocation.new_paid_amount,
            new_remaining_amount=allocation.new_remaining_amount,
            new_status=allocation.new_status,
        )


class ErrorSchema(BaseModel):
    type: str
    message: str


class PaymentResponse(BaseModel):
    """Response for POST /v1/payments"""

    success: bool
    allocations: List[AllocationSchema] = []
    excess: int = 0
    total_processed: int = 0
    transaction_ids: List[str] = []
    error: Optional[ErrorSchema] = None


class InstallmentProgressSchema(BaseModel):
    paid: int
    total: int
    percentage: float


class BillingSummaryResponse(BaseModel):
    """Response for GET /v1/customers/{customer_id}/billing"""

    customer_id: str
    obligations: List[ObligationSchema]
    credit_balance: int
    total_paid: int
    total_outstanding: int
    overdue_amount: int
    next_due_date: Optional[date] = None
    installment_progress: Optional[InstallmentProgressSchema] = None

    @classmethod
    def from_domain(cls, summary: BillingSummary) -> "BillingSummaryResponse":
        progress = summary.installment_progress
        return cls(
            customer_id=summary.customer_id,
            obligations=[
                ObligationSchema.from_domain(o) for o in summary.installments + summary.recurring_charges
            ],
            credit_balance=summary.credit_balance,
            total_paid=summary.total_paid,
            total_outstanding=summary.total_outstanding,
            overdue_amount=summary.overdue_amount,
            next_due_date=summary.next_due_date,
            installment_progress=(
                InstallmentProgressSchema(paid=progress.paid, total=progress.total, percentage=progress.percentage)
                if progress
                else None
            ),
        )


class BatchErrorSchema(BaseModel):
    customer_id: Optional[str]
    error_type: str
    message: str


class OverdueNoticeSchema(BaseModel):
    customer_id: str
    overdue_recurring_amount: int
    overdue_installment_amount: int
    total_overdue_amount: int


class JobResponse(BaseModel):
    """Response for POST /v1/jobs/daily"""

    run_date: date
    skipped: bool
    generated_count: int
    overdue_rent_count: int
    overdue_installment_count: int
    affected_customer_count: int
    errors: List[BatchErrorSchema]
    notifications: List[OverdueNoticeSchema]

    @classmethod
    def from_domain(cls, result: JobResult) -> "JobResponse":
        return cls(
            run_date=result.run_date,
            skipped=result.skipped,
            generated_count=result.generated_count,
            overdue_rent_count=result.overdue_rent_count,
            overdue_installment_count=result.overdue_installment_count,
            affected_customer_count=result.affected_customer_count,
            errors=[_batch_error(e) for e in result.errors],
            notifications=[_notice(n) for n in result.notifications],
        )


def _batch_error(error: BatchError) -> BatchErrorSchema:
    return BatchErrorSchema(customer_id=error.customer_id, error_type=error.error_type, message=error.message)


def _notice(notice: OverdueNotice) -> OverdueNoticeSchema:
    return OverdueNoticeSchema(
        customer_id=notice.customer_id,
        overdue_recurring_amount=notice.overdue_recurring_amount,
        overdue_installment_amount=notice.overdue_installment_amount,
        total_overdue_amount=notice.total_overdue_amount,
    )
