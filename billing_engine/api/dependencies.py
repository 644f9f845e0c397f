"""Dependency injection for FastAPI endpoints"""

import logging
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from billing_engine.domain.exceptions import (
    ConcurrencyConflictError,
    CustomerNotFoundError,
    DomainException,
    NoPendingDuesError,
    StoreError,
    ValidationError,
)
from billing_engine.infrastructure.database.repositories import SqlLedgerStore
from billing_engine.infrastructure.database.session import get_db
from billing_engine.services.billing import BillingOrchestrator
from billing_engine.services.scheduler import DailyBillingJob

ERROR_STATUS_CODES = {
    ValidationError: 422,
    CustomerNotFoundError: 404,
    NoPendingDuesError: 409,
    ConcurrencyConflictError: 409,
    StoreError: 503,
}


def status_code_for(error: Exception) -> int:
    """HTTP status for a domain error; unknown errors are server errors"""
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_store(db: Session = Depends(get_db)) -> SqlLedgerStore:
    """Provide a ledger store bound to the request's session"""
    return SqlLedgerStore(db)


def get_orchestrator(store: SqlLedgerStore = Depends(get_store)) -> BillingOrchestrator:
    return BillingOrchestrator(store)


def get_daily_job(store: SqlLedgerStore = Depends(get_store)) -> DailyBillingJob:
    return DailyBillingJob(store)


def raise_http_error(error: DomainException, request: Request) -> None:
    """Log a domain error and re-raise it as the mapped HTTPException"""
    status_code = status_code_for(error)
    logging.warning(f"{type(error).__name__}: {error}", extra={"request_id": get_request_id(request)})
    raise HTTPException(status_code=status_code, detail=str(error)) from error
