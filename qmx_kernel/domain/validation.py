"""
Validation -- Stateless input checks run before any mutation.

Responsibility:
    Rejects malformed primitive input (names, phones, notes, ages, amounts,
    scores, ids, counts, ranges, timestamps) early, before a builder or
    updater stages it and long before the manager takes the state lock.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Called by builder/updater setters, query range setters and the manager.

Invariants enforced:
    - Every check either returns the (normalized) value or raises a
      ``ValidationError`` subclass.  Nothing is coerced silently.

Failure modes:
    - InvalidFieldError for a bad single value.
    - InvalidRangeError when a range's minimum exceeds its maximum.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from qmx_kernel.exceptions import InvalidFieldError, InvalidRangeError

NAME_MAX_LENGTH = 50
PHONE_MAX_LENGTH = 20
NOTE_MAX_LENGTH = 1000
AGE_MIN = 3
AGE_MAX = 120
AMOUNT_LIMIT = 100_000_000
SCORE_MIN = 0.0
SCORE_MAX = 1000.0
INSTALLMENT_COUNT_MAX = 360
LESSON_LEFT_MAX = 9999

_NAME_FORBIDDEN = frozenset("<>&")
_NOTE_ALLOWED_CONTROL = frozenset("\n\r\t")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _has_control(text: str, allowed: frozenset[str] = frozenset()) -> bool:
    return any(
        (ord(c) < 32 or ord(c) == 127) and c not in allowed for c in text
    )


def validate_student_name(name: str) -> str:
    """Return the stripped name; 1..50 chars, no control chars or ``<>&``."""
    if not isinstance(name, str):
        raise InvalidFieldError("name", name, "must be a string")
    name = name.strip()
    if not name:
        raise InvalidFieldError("name", name, "must not be empty")
    if len(name) > NAME_MAX_LENGTH:
        raise InvalidFieldError(
            "name", name, f"must be at most {NAME_MAX_LENGTH} characters"
        )
    if _has_control(name) or any(c in _NAME_FORBIDDEN for c in name):
        raise InvalidFieldError("name", name, "contains forbidden characters")
    return name


def validate_phone(phone: str) -> str:
    """Return the stripped phone number; 1..20 chars."""
    if not isinstance(phone, str):
        raise InvalidFieldError("phone", phone, "must be a string")
    phone = phone.strip()
    if not phone:
        raise InvalidFieldError("phone", phone, "must not be empty")
    if len(phone) > PHONE_MAX_LENGTH:
        raise InvalidFieldError(
            "phone", phone, f"must be at most {PHONE_MAX_LENGTH} characters"
        )
    return phone


def validate_note(note: str) -> str:
    """Return the stripped note; up to 1000 chars, only tab/newline controls."""
    if not isinstance(note, str):
        raise InvalidFieldError("note", note, "must be a string")
    note = note.strip()
    if len(note) > NOTE_MAX_LENGTH:
        raise InvalidFieldError(
            "note", f"{note[:20]}...", f"must be at most {NOTE_MAX_LENGTH} characters"
        )
    if _has_control(note, _NOTE_ALLOWED_CONTROL):
        raise InvalidFieldError("note", note, "contains control characters")
    return note


def validate_age(age: int) -> int:
    if not _is_int(age) or not AGE_MIN <= age <= AGE_MAX:
        raise InvalidFieldError("age", age, f"must be between {AGE_MIN} and {AGE_MAX}")
    return age


def validate_amount(amount: int, field: str = "amount") -> int:
    """Signed whole amount whose magnitude stays within ``AMOUNT_LIMIT``."""
    if not _is_int(amount):
        raise InvalidFieldError(field, amount, "must be a whole number")
    if abs(amount) > AMOUNT_LIMIT:
        raise InvalidFieldError(field, amount, f"magnitude must not exceed {AMOUNT_LIMIT}")
    return amount


def validate_score(score: float) -> float:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise InvalidFieldError("score", score, "must be a number")
    score = float(score)
    if not math.isfinite(score):
        raise InvalidFieldError("score", score, "must be finite")
    if not SCORE_MIN <= score <= SCORE_MAX:
        raise InvalidFieldError(
            "score", score, f"must be between {SCORE_MIN:g} and {SCORE_MAX:g}"
        )
    return score


def validate_entity_id(value: int, field: str) -> int:
    """Ids are positive integers; 0 is never issued."""
    if not _is_int(value) or value < 1:
        raise InvalidFieldError(field, value, "must be a positive integer")
    return value


def validate_plan_id(plan_id: int) -> int:
    return validate_entity_id(plan_id, "plan_id")


def validate_installment_count(count: int) -> int:
    if not _is_int(count) or not 1 <= count <= INSTALLMENT_COUNT_MAX:
        raise InvalidFieldError(
            "total_installments", count, f"must be between 1 and {INSTALLMENT_COUNT_MAX}"
        )
    return count


def validate_current_installment(current: int, total: int) -> int:
    if not _is_int(current) or not 1 <= current <= total:
        raise InvalidFieldError(
            "current_installment", current, f"must be between 1 and {total}"
        )
    return current


def validate_lesson_left(lessons: int) -> int:
    if not _is_int(lessons) or not 0 <= lessons <= LESSON_LEFT_MAX:
        raise InvalidFieldError(
            "lesson_left", lessons, f"must be between 0 and {LESSON_LEFT_MAX}"
        )
    return lessons


def validate_days(days: int) -> int:
    if not _is_int(days) or days <= 0:
        raise InvalidFieldError("days", days, "must be greater than 0")
    return days


def validate_timestamp(value: datetime, field: str) -> datetime:
    """Require a timezone-aware datetime."""
    if not isinstance(value, datetime):
        raise InvalidFieldError(field, value, "must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidFieldError(field, value, "must be timezone-aware")
    return value


def validate_range(minimum: Any, maximum: Any, field: str) -> None:
    """Fail fast when a range filter is inverted."""
    if minimum > maximum:
        raise InvalidRangeError(field, minimum, maximum)
