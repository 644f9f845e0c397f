"""POST /v1/jobs/daily - trigger entry point for the daily billing job"""

from fastapi import APIRouter, Depends, Query, Request

from billing_engine.api.dependencies import get_daily_job, raise_http_error
from billing_engine.api.v1.schemas import JobResponse
from billing_engine.domain.exceptions import DomainException
from billing_engine.services.scheduler import DailyBillingJob

router = APIRouter()


@router.post("/jobs/daily", response_model=JobResponse)
def run_daily_job(
    request: Request,
    force: bool = Query(False, description="Run even if the job already ran today"),
    job: DailyBillingJob = Depends(get_daily_job),
):
    """
    Invoked by an external scheduler once a day (repeat calls are no-ops).

    Returns generated/overdue counts, per-customer errors, and overdue
    notification data. A store failure before any step runs maps to 503.
    """
    try:
        result = job.run(force=force)
    except DomainException as e:
        raise_http_error(e, request)

    return JobResponse.from_domain(result)
