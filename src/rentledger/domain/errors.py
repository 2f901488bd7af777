"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as a concurrent state change."""


class InvalidTransitionError(ConflictError):
    """Payment request is not in a state that allows the requested action."""


class DuplicateError(DomainError):
    """Idempotency key already used; callers treat this as a no-op."""


class AmbiguousMatchError(DomainError):
    """Payment event has zero or several equally good candidate requests."""


class IntegrityViolation(DomainError):
    """Cross-entity inconsistency found by the integrity auditor."""


class ExternalServiceError(RuntimeError):
    """Bank feed, mailbox or other collaborator is unavailable."""


def payment_request_not_found(request_id: int) -> str:
    """Return message for missing payment request."""
    return f"Payment request {request_id} not found"


def payment_event_not_found(event_id: int) -> str:
    """Return message for missing payment event."""
    return f"Payment event {event_id} not found"


def expense_not_found(expense_id: int) -> str:
    """Return message for missing expense."""
    return f"Expense {expense_id} not found"


def job_run_not_found(run_id: int) -> str:
    """Return message for missing job run."""
    return f"Job run {run_id} not found"


def duplicate_payment_request(participant: str, bill_type: str, month: int, year: int) -> str:
    """Return message for an existing request under the same dedup key."""
    return (
        f"Payment request for {participant} ({bill_type} {year}-{month:02d}) already exists"
    )


def invalid_transition(request_id: int, status: str, action: str) -> str:
    """Return message when a request cannot take an action from its status."""
    return f"Cannot {action} payment request {request_id}: status is '{status}'"


def no_match_candidates(event_id: int, reason: str) -> str:
    """Return message for an event that could not be matched."""
    return f"Payment event {event_id} could not be matched: {reason}"
