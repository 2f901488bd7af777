"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic: enum columns are stored as their
string values and come back as domain enums, amounts come back as cents.
"""

from decimal import Decimal
from typing import Optional

from rentledger.domain import entities as domain
from rentledger.database.models import (
    RawTransaction as ORMRawTransaction,
    Expense as ORMExpense,
    Income as ORMIncome,
    PaymentRequest as ORMPaymentRequest,
    PaymentEvent as ORMPaymentEvent,
    Adjustment as ORMAdjustment,
    JobRun as ORMJobRun,
)
from rentledger.utils.amount_parser import round_half_up


def _money(value) -> Decimal:
    return round_half_up(Decimal(value))


def _optional_money(value) -> Optional[Decimal]:
    return None if value is None else _money(value)


def raw_transaction_to_domain(orm_raw: ORMRawTransaction) -> domain.RawTransaction:
    """Convert SQLAlchemy RawTransaction model to domain RawTransaction entity."""
    return domain.RawTransaction(
        id=orm_raw.id,
        external_id=orm_raw.external_id,
        account_id=orm_raw.account_id,
        date=orm_raw.date,
        amount=_money(orm_raw.amount),
        description=orm_raw.description,
        merchant=orm_raw.merchant,
        provider_category=orm_raw.provider_category,
        imported_at=orm_raw.imported_at,
    )


def expense_to_domain(orm_expense: ORMExpense) -> domain.Expense:
    """Convert SQLAlchemy Expense model to domain Expense entity."""
    return domain.Expense(
        id=orm_expense.id,
        raw_transaction_id=orm_expense.raw_transaction_id,
        date=orm_expense.date,
        amount=_money(orm_expense.amount),
        name=orm_expense.name,
        merchant=orm_expense.merchant,
        expense_type=domain.ExpenseType(orm_expense.expense_type),
        category=orm_expense.category,
        created_at=orm_expense.created_at,
    )


def income_to_domain(orm_income: ORMIncome) -> domain.Income:
    """Convert SQLAlchemy Income model to domain Income entity."""
    return domain.Income(
        id=orm_income.id,
        income_type=domain.IncomeType(orm_income.income_type),
        date=orm_income.date,
        amount=_money(orm_income.amount),
        description=orm_income.description,
        payer=orm_income.payer,
        payment_request_id=orm_income.payment_request_id,
        received_date=orm_income.received_date,
        created_at=orm_income.created_at,
    )


def payment_request_to_domain(orm_request: ORMPaymentRequest) -> domain.PaymentRequest:
    """Convert SQLAlchemy PaymentRequest model to domain PaymentRequest entity."""
    return domain.PaymentRequest(
        id=orm_request.id,
        participant=orm_request.participant,
        bill_type=domain.BillType(orm_request.bill_type),
        month=orm_request.month,
        year=orm_request.year,
        amount=_money(orm_request.amount),
        total_amount=_optional_money(orm_request.total_amount),
        status=domain.RequestStatus(orm_request.status),
        paid_date=orm_request.paid_date,
        tracking_id=orm_request.tracking_id,
        expense_id=orm_request.expense_id,
        created_at=orm_request.created_at,
        updated_at=orm_request.updated_at,
    )


def payment_event_to_domain(orm_event: ORMPaymentEvent) -> domain.PaymentEvent:
    """Convert SQLAlchemy PaymentEvent model to domain PaymentEvent entity."""
    return domain.PaymentEvent(
        id=orm_event.id,
        external_message_id=orm_event.external_message_id,
        type=domain.EventType(orm_event.event_type) if orm_event.event_type else None,
        actor=orm_event.actor,
        amount=_optional_money(orm_event.amount),
        note=orm_event.note,
        tracking_id=orm_event.tracking_id,
        occurred_at=orm_event.occurred_at,
        matched=orm_event.matched,
        payment_request_id=orm_event.payment_request_id,
        review_reason=orm_event.review_reason,
        created_at=orm_event.created_at,
    )


def adjustment_to_domain(orm_adjustment: ORMAdjustment) -> domain.Adjustment:
    """Convert SQLAlchemy Adjustment model to domain Adjustment entity."""
    return domain.Adjustment(
        id=orm_adjustment.id,
        expense_id=orm_adjustment.expense_id,
        payment_request_id=orm_adjustment.payment_request_id,
        adjustment_amount=_money(orm_adjustment.adjustment_amount),
        description=orm_adjustment.description,
        created_at=orm_adjustment.created_at,
    )


def job_run_to_domain(orm_run: ORMJobRun) -> domain.JobRun:
    """Convert SQLAlchemy JobRun model to domain JobRun entity."""
    return domain.JobRun(
        id=orm_run.id,
        job_type=domain.JobType(orm_run.job_type),
        status=domain.JobStatus(orm_run.status),
        started_at=orm_run.started_at,
        finished_at=orm_run.finished_at,
        counts=dict(orm_run.counts or {}),
        errors=tuple(orm_run.errors or ()),
    )
