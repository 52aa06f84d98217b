"""
Typed exception hierarchy for the QMX kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The command layer above the kernel turns failures into user-facing messages.
It must be able to tell "you typed something wrong" apart from "that student
does not exist" and "the ledger could not be saved" without parsing message
strings.  Every exception therefore:

  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, transport-safe)
  3. Carries structured DATA as attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    QmxKernelError (base)
    |
    +-- ValidationError                 rejected before any state change
    |   +-- InvalidFieldError
    |   +-- MissingFieldError
    |   +-- InvalidRangeError
    |   +-- UnknownEnumValueError
    |   +-- ScoreIndexError
    |
    +-- NotFoundError                   referenced id / plan does not exist
    |   +-- StudentNotFoundError
    |   +-- CashNotFoundError
    |   +-- InstallmentPlanNotFoundError
    |
    +-- DomainConflictError             input is well-formed, state forbids it
    |   +-- PlanCompletedError
    |   +-- NothingToCancelError
    |   +-- MembershipWindowError
    |   +-- NotAnInstallmentError
    |   +-- IllegalStatusTransitionError
    |
    +-- StateError                      lock or persistence failure
        +-- LockAcquisitionError
        +-- PersistenceError
        +-- SnapshotLoadError

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        manager.generate_next_installment(plan_id)
    except PlanCompletedError as e:
        notify(f"Plan {e.plan_id} is already complete ({e.total_installments})")
    except NotFoundError as e:
        return {"error": e.code}
    except StateError:
        # memory was rolled back to the last saved snapshot
        raise
"""

from __future__ import annotations

from typing import Any


class QmxKernelError(Exception):
    """
    Base exception for all kernel errors.

    All subclasses define a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "QMX_KERNEL_ERROR"


# Validation


class ValidationError(QmxKernelError):
    """Malformed or out-of-range input.  Raised before any state change."""

    code: str = "VALIDATION_ERROR"


class InvalidFieldError(ValidationError):
    """A single field value is not acceptable."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class MissingFieldError(ValidationError):
    """A builder reached its terminal build without a required field."""

    code: str = "MISSING_FIELD"

    def __init__(self, entity: str, field: str):
        self.entity = entity
        self.field = field
        super().__init__(f"{entity} requires field '{field}'")


class InvalidRangeError(ValidationError):
    """Lower bound of a range filter is above its upper bound."""

    code: str = "INVALID_RANGE"

    def __init__(self, field: str, minimum: Any, maximum: Any):
        self.field = field
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"Invalid {field} range: minimum {minimum!r} is greater than "
            f"maximum {maximum!r}"
        )


class UnknownEnumValueError(ValidationError):
    """A label does not name any member of the enumeration."""

    code: str = "UNKNOWN_ENUM_VALUE"

    def __init__(self, enum_name: str, label: str, allowed: list[str]):
        self.enum_name = enum_name
        self.label = label
        self.allowed = allowed
        super().__init__(
            f"Unknown {enum_name} {label!r}; expected one of {', '.join(allowed)}"
        )


class ScoreIndexError(ValidationError):
    """Score index does not address an existing score."""

    code: str = "SCORE_INDEX_OUT_OF_RANGE"

    def __init__(self, index: int, score_count: int):
        self.index = index
        self.score_count = score_count
        super().__init__(
            f"Score index {index} out of range for {score_count} score(s)"
        )


# Not found


class NotFoundError(QmxKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class StudentNotFoundError(NotFoundError):
    """Student with given id was not found."""

    code: str = "STUDENT_NOT_FOUND"

    def __init__(self, student_id: int):
        self.student_id = student_id
        super().__init__(f"Student not found: {student_id}")


class CashNotFoundError(NotFoundError):
    """Cash record with given id was not found."""

    code: str = "CASH_NOT_FOUND"

    def __init__(self, cash_id: int):
        self.cash_id = cash_id
        super().__init__(f"Cash record not found: {cash_id}")


class InstallmentPlanNotFoundError(NotFoundError):
    """No cash record carries an installment of the given plan."""

    code: str = "INSTALLMENT_PLAN_NOT_FOUND"

    def __init__(self, plan_id: int):
        self.plan_id = plan_id
        super().__init__(f"Installment plan not found: {plan_id}")


# Domain conflicts


class DomainConflictError(QmxKernelError):
    """Input is well-formed but the current state forbids the operation."""

    code: str = "DOMAIN_CONFLICT"


class PlanCompletedError(DomainConflictError):
    """The latest installment of the plan is already the last one."""

    code: str = "PLAN_COMPLETED"

    def __init__(self, plan_id: int, total_installments: int):
        self.plan_id = plan_id
        self.total_installments = total_installments
        super().__init__(
            f"Installment plan {plan_id} is complete "
            f"({total_installments}/{total_installments})"
        )


class NothingToCancelError(DomainConflictError):
    """Every installment of the plan is already cancelled."""

    code: str = "NOTHING_TO_CANCEL"

    def __init__(self, plan_id: int):
        self.plan_id = plan_id
        super().__init__(f"Installment plan {plan_id} has nothing to cancel")


class MembershipWindowError(DomainConflictError):
    """Membership start is not strictly before its end."""

    code: str = "INVALID_MEMBERSHIP_WINDOW"

    def __init__(self, start: Any, end: Any):
        self.start = start
        self.end = end
        super().__init__(
            f"Membership start {start} must be before membership end {end}"
        )


class NotAnInstallmentError(DomainConflictError):
    """An installment-only operation was applied to a plain cash record."""

    code: str = "NOT_AN_INSTALLMENT"

    def __init__(self, cash_id: int):
        self.cash_id = cash_id
        super().__init__(f"Cash record {cash_id} is not an installment")


class IllegalStatusTransitionError(DomainConflictError):
    """Installment status change is not in the transition table."""

    code: str = "ILLEGAL_STATUS_TRANSITION"

    def __init__(self, cash_id: int, current: str, requested: str):
        self.cash_id = cash_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Installment {cash_id} cannot move from {current} to {requested}"
        )


# State


class StateError(QmxKernelError):
    """Shared state could not be locked, saved or loaded."""

    code: str = "STATE_ERROR"


class LockAcquisitionError(StateError):
    """The state lock was not acquired within the configured timeout."""

    code: str = "LOCK_ACQUISITION_FAILED"

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Could not lock ledger state for {operation} "
            f"within {timeout_seconds}s"
        )


class PersistenceError(StateError):
    """Saving the snapshot failed; memory was rolled back."""

    code: str = "PERSISTENCE_FAILED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Persisting after {operation} failed: {reason}")


class SnapshotLoadError(StateError):
    """The persisted snapshot could not be loaded."""

    code: str = "SNAPSHOT_LOAD_FAILED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Could not load ledger snapshot: {reason}")
