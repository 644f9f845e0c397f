"""Customer enrollment and billing summary endpoints"""

from fastapi import APIRouter, Depends, Request

from billing_engine.api.dependencies import get_orchestrator, raise_http_error
from billing_engine.api.v1.schemas import (
    BillingSummaryResponse,
    EnrollmentResponse,
    InstallmentEnrollmentRequest,
    ObligationSchema,
    RecurringEnrollmentRequest,
)
from billing_engine.domain.exceptions import DomainException
from billing_engine.services.billing import BillingOrchestrator

router = APIRouter()


@router.post("/customers/installment", response_model=EnrollmentResponse, status_code=201)
def enroll_installment_customer(
    request_body: InstallmentEnrollmentRequest,
    request: Request,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    """Register an installment-plan customer and schedule every installment"""
    try:
        schedule = orchestrator.enroll_installment_customer(
            customer_id=request_body.customer_id,
            name=request_body.name,
            total_amount=request_body.total_amount,
            down_payment=request_body.down_payment,
            count=request_body.installment_count,
            start_date=request_body.start_date,
        )
    except DomainException as e:
        raise_http_error(e, request)

    return EnrollmentResponse(
        customer_id=request_body.customer_id,
        obligations=[ObligationSchema.from_domain(o) for o in schedule],
    )


@router.post("/customers/recurring", response_model=EnrollmentResponse, status_code=201)
def enroll_recurring_customer(
    request_body: RecurringEnrollmentRequest,
    request: Request,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    """
    Register a recurring-plan customer.

    Schedules the pro-rated first period and then either cycle_count months
    or every month through the current one.
    """
    try:
        charges = orchestrator.enroll_recurring_customer(
            customer_id=request_body.customer_id,
            name=request_body.name,
            periodic_amount=request_body.periodic_amount,
            join_date=request_body.join_date,
            cycle_count=request_body.cycle_count,
        )
    except DomainException as e:
        raise_http_error(e, request)

    return EnrollmentResponse(
        customer_id=request_body.customer_id,
        obligations=[ObligationSchema.from_domain(o) for o in charges],
    )


@router.get("/customers/{customer_id}/billing", response_model=BillingSummaryResponse)
def get_billing_summary(
    customer_id: str,
    request: Request,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    """Obligations, totals, overdue amount and credit balance for a customer"""
    try:
        summary = orchestrator.get_billing_summary(customer_id)
    except DomainException as e:
        raise_http_error(e, request)

    return BillingSummaryResponse.from_domain(summary)
