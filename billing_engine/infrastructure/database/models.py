"""SQLAlchemy ORM models for the billing ledger"""

import uuid
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class CustomerModel(Base):
    """Customer billing profile"""

    __tablename__ = "customer"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    plan_type = Column(String(20), nullable=False)
    periodic_amount = Column(BigInteger, nullable=False, default=0)
    join_date = Column(Date, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class InstallmentModel(Base):
    """One EMI of an installment plan"""

    __tablename__ = "installment"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(Text, ForeignKey("customer.id"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    total_count = Column(Integer, nullable=False)
    amount = Column(BigInteger, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    paid_amount = Column(BigInteger, nullable=False, default=0)
    remaining_amount = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="due", index=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("customer_id", "installment_number", name="uq_installment_number"),)


class RecurringChargeModel(Base):
    """Monthly rent charge, one per customer per period"""

    __tablename__ = "recurring_charge"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(Text, ForeignKey("customer.id"), nullable=False, index=True)
    period_key = Column(String(10), nullable=False)  # YYYY-MM-01
    amount = Column(BigInteger, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    paid_amount = Column(BigInteger, nullable=False, default=0)
    remaining_amount = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="due", index=True)
    is_prorated = Column(Boolean, nullable=False, default=False)
    prorated_days = Column(Integer, nullable=True)
    daily_rate = Column(BigInteger, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("customer_id", "period_key", name="uq_recurring_period"),)


class TransactionModel(Base):
    """Append-only audit trail of balance changes"""

    __tablename__ = "billing_transaction"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(Text, ForeignKey("customer.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    kind = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    obligation_ref = Column(Text, nullable=True)
    mode = Column(String(20), nullable=True)
    remarks = Column(Text, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CustomerCreditModel(Base):
    """Standing credit from excess payments"""

    __tablename__ = "customer_credit"

    customer_id = Column(Text, ForeignKey("customer.id"), primary_key=True)
    balance = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class JobStateModel(Base):
    """Durable last-run marker for periodic jobs"""

    __tablename__ = "job_state"

    job_name = Column(Text, primary_key=True)
    last_run_date = Column(Date, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
