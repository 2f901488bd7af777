"""SQLAlchemy models for rentledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    JSON,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class RawTransaction(Base):
    """Bank transaction exactly as pulled from the feed."""

    __tablename__ = "raw_transactions"

    id = Column(Integer, primary_key=True)
    external_id = Column(String, unique=True, nullable=False)
    account_id = Column(String, nullable=True)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(String, nullable=True)
    merchant = Column(String, nullable=True)
    provider_category = Column(String, nullable=True)
    imported_at = Column(DateTime, default=_utcnow, nullable=False)

    expense = relationship("Expense", back_populates="raw_transaction", uselist=False)


class Expense(Base):
    """Classified outgoing transaction."""

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True)
    raw_transaction_id = Column(Integer, ForeignKey("raw_transactions.id"), unique=True, nullable=True)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    name = Column(String, nullable=False)
    merchant = Column(String, nullable=True)
    expense_type = Column(String, nullable=False)
    category = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    raw_transaction = relationship("RawTransaction", back_populates="expense")
    payment_requests = relationship("PaymentRequest", back_populates="expense")
    adjustments = relationship("Adjustment", back_populates="expense")


class Income(Base):
    """Money received."""

    __tablename__ = "income"

    id = Column(Integer, primary_key=True)
    income_type = Column(String, nullable=False)
    date = Column(Date, nullable=False)
    received_date = Column(Date, nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(String, nullable=True)
    payer = Column(String, nullable=True)
    payment_request_id = Column(Integer, ForeignKey("payment_requests.id"), unique=True, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    payment_request = relationship("PaymentRequest", back_populates="income")


class PaymentRequest(Base):
    """Amount owed by a participant for a billing period."""

    __tablename__ = "payment_requests"

    id = Column(Integer, primary_key=True)
    participant = Column(String, nullable=False)
    bill_type = Column(String, nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=True)
    status = Column(String, nullable=False, default="pending")
    paid_date = Column(DateTime, nullable=True)
    tracking_id = Column(String, nullable=False, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    # One request per participant, bill and billing period
    __table_args__ = (
        UniqueConstraint("bill_type", "month", "year", "participant", name="uq_request_period_participant"),
    )

    # Relationships
    expense = relationship("Expense", back_populates="payment_requests")
    income = relationship("Income", back_populates="payment_request", uselist=False)
    adjustment = relationship("Adjustment", back_populates="payment_request", uselist=False)
    events = relationship("PaymentEvent", back_populates="payment_request")


class PaymentEvent(Base):
    """Normalized payment notification."""

    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True)
    external_message_id = Column(String, unique=True, nullable=False)
    event_type = Column(String, nullable=True)
    actor = Column(String, nullable=True)
    amount = Column(Numeric(10, 2), nullable=True)
    note = Column(String, nullable=True)
    tracking_id = Column(String, nullable=True)
    occurred_at = Column(DateTime, nullable=False)
    matched = Column(Boolean, default=False, nullable=False)
    payment_request_id = Column(Integer, ForeignKey("payment_requests.id"), nullable=True)
    review_reason = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    payment_request = relationship("PaymentRequest", back_populates="events")


class Adjustment(Base):
    """Correction against an expense for a reimbursement received."""

    __tablename__ = "adjustments"

    id = Column(Integer, primary_key=True)
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False)
    payment_request_id = Column(Integer, ForeignKey("payment_requests.id"), unique=True, nullable=False)
    adjustment_amount = Column(Numeric(10, 2), nullable=False)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    expense = relationship("Expense", back_populates="adjustments")
    payment_request = relationship("PaymentRequest", back_populates="adjustment")


class JobRun(Base):
    """One pipeline invocation."""

    __tablename__ = "job_runs"

    id = Column(Integer, primary_key=True)
    job_type = Column(String, nullable=False)
    status = Column(String, nullable=False)
    started_at = Column(DateTime, default=_utcnow, nullable=False)
    finished_at = Column(DateTime, nullable=True)
    counts = Column(JSON, nullable=False, default=dict)
    errors = Column(JSON, nullable=False, default=list)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
