"""POST /v1/payments - apply a customer payment"""

import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from billing_engine.api.dependencies import get_orchestrator, get_request_id, status_code_for
from billing_engine.api.v1.schemas import AllocationSchema, ErrorSchema, PaymentRequestSchema, PaymentResponse
from billing_engine.domain.models import PaymentRequest
from billing_engine.services.billing import BillingOrchestrator

router = APIRouter()


@router.post("/payments", response_model=PaymentResponse)
def create_payment(
    request_body: PaymentRequestSchema,
    request: Request,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    """
    Distribute a payment across the customer's outstanding obligations.

    Flow:
    1. Allocate by priority (overdue/partial first, then earliest due date)
    2. Persist updated obligations and one transaction per obligation
    3. Credit any excess to the customer's balance

    Rejected payments return success=false with the error type; nothing is
    written in that case.
    """
    result = orchestrator.process_payment(
        PaymentRequest(
            customer_id=request_body.customer_id,
            amount=request_body.amount,
            target_kind=request_body.target_kind,
            mode=request_body.mode,
            remarks=request_body.remarks,
            effective_date=request_body.effective_date,
        )
    )

    calculation = result.calculation
    response = PaymentResponse(
        success=result.success,
        allocations=[AllocationSchema.from_domain(a) for a in calculation.allocations] if calculation else [],
        excess=result.excess,
        total_processed=calculation.total_processed if calculation and result.success else 0,
        transaction_ids=result.transaction_ids,
        error=ErrorSchema(type=type(result.error).__name__, message=str(result.error)) if result.error else None,
    )

    if result.success:
        return response

    status_code = status_code_for(result.error)
    logging.warning(
        f"Payment rejected: {result.error}",
        extra={"request_id": get_request_id(request), "customer_id": request_body.customer_id},
    )
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
