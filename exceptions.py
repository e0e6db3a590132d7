"""
exceptions.py
=============
TRAINREG — Hierarchical Exception System

All application exceptions inherit from TrainregError so callers
can catch the full hierarchy with a single except clause when needed.

Structure
---------
TrainregError
├── DatabaseError
│   ├── NotFoundError
│   ├── DuplicateError
│   │   ├── DuplicateNumberError
│   │   └── NumberCollisionError
│   └── StaleCountersError
├── ValidationError
│   ├── MissingFieldError
│   ├── InvalidValueError
│   │   └── InvalidNumberFormatError
│   ├── MedicalExpiredError
│   ├── LockedGroupError
│   └── InvalidTransitionError
├── ServiceError
│   ├── NumberingError
│   │   └── SequenceExhaustedError
│   └── ArchiveNotReadyError
└── ConfigurationError
"""


# ─── Root ────────────────────────────────────────────────────────────────────

class TrainregError(Exception):
    """Base exception for all TRAINREG errors."""

    def __init__(self, message: str = "", *, code: str = "", detail: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code          # machine-readable code e.g. "GROUP_LOCKED"
        self.detail = detail      # extra context for logging

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} | {self.detail}"
        return self.message


# ─── Database ────────────────────────────────────────────────────────────────

class DatabaseError(TrainregError):
    """Raised when a database operation fails unexpectedly."""


class NotFoundError(DatabaseError):
    """Raised when a requested record does not exist in the database."""

    def __init__(self, entity: str = "", id_value=None, **kwargs):
        if entity and id_value is not None:
            message = f"{entity} with id={id_value} not found"
        elif entity:
            message = f"{entity} not found"
        else:
            message = kwargs.pop("message", "Record not found")
        super().__init__(message, **kwargs)
        self.entity = entity
        self.id_value = id_value


class DuplicateError(DatabaseError):
    """Raised when a unique constraint is violated."""

    def __init__(self, entity: str = "", field: str = "", value=None, **kwargs):
        if entity and field:
            message = f"{entity} with {field}={value!r} already exists"
        else:
            message = kwargs.pop("message", "Duplicate record")
        super().__init__(message, **kwargs)
        self.entity = entity
        self.field = field
        self.value = value


class DuplicateNumberError(DuplicateError):
    """Raised when a manually entered unique number is already issued."""

    def __init__(self, number: str = "", **kwargs):
        kwargs.setdefault("code", "NUMBER_TAKEN")
        super().__init__("Participant", "unique_number", number, **kwargs)
        self.number = number


class NumberCollisionError(DuplicateError):
    """Raised when restoring an archived group would clash with live data."""

    def __init__(self, message: str = "", **kwargs):
        kwargs.setdefault("code", "RESTORE_COLLISION")
        super().__init__(message=message or "Restore collides with live data", **kwargs)


class StaleCountersError(DatabaseError):
    """Raised when the sequence counters changed since they were read."""

    def __init__(self, expected_version: int = 0, **kwargs):
        kwargs.setdefault("code", "COUNTERS_STALE")
        super().__init__(
            f"Sequence counters changed concurrently (expected version {expected_version})",
            **kwargs,
        )
        self.expected_version = expected_version


# ─── Validation ──────────────────────────────────────────────────────────────

class ValidationError(TrainregError):
    """Raised when user-provided data fails validation."""

    def __init__(self, message: str = "", *, field: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class MissingFieldError(ValidationError):
    """Raised when a required field is empty or None."""

    def __init__(self, field: str, **kwargs):
        super().__init__(f"Required field is missing: '{field}'", field=field, **kwargs)


class InvalidValueError(ValidationError):
    """Raised when a field value is out of range or has an invalid format."""

    def __init__(self, field: str, value=None, reason: str = "", **kwargs):
        msg = f"Invalid value for field '{field}'"
        if value is not None:
            msg += f": {value!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, field=field, **kwargs)
        self.value = value
        self.reason = reason


class InvalidNumberFormatError(InvalidValueError):
    """Raised when a unique number does not match PPPP-S."""

    def __init__(self, value=None, **kwargs):
        kwargs.setdefault("code", "NUMBER_FORMAT")
        super().__init__("unique_number", value, "expected format PPPP-S", **kwargs)


class MedicalExpiredError(ValidationError):
    """Raised when a medical exam date does not cover the target period."""

    def __init__(self, medical_date=None, period_start=None, **kwargs):
        kwargs.setdefault("code", "MEDICAL_EXPIRED")
        super().__init__(
            f"Medical exam of {medical_date} is not valid for the period "
            f"starting {period_start}",
            field="medical_exam_date",
            **kwargs,
        )
        self.medical_date = medical_date
        self.period_start = period_start


class LockedGroupError(ValidationError):
    """Raised when a mutation targets a completed and locked group."""

    def __init__(self, group_number=None, period_start=None, **kwargs):
        kwargs.setdefault("code", "GROUP_LOCKED")
        label = f"Group #{group_number}" if group_number else "Group"
        if period_start is not None:
            label += f" ({period_start})"
        super().__init__(f"{label} is completed and locked", **kwargs)
        self.group_number = group_number
        self.period_start = period_start


class InvalidTransitionError(ValidationError):
    """Raised when a group status change is not allowed from its current state."""

    def __init__(self, message: str = "", *, current=None, target=None, **kwargs):
        kwargs.setdefault("code", "BAD_TRANSITION")
        if not message:
            message = f"Cannot move group from '{current}' to '{target}'"
        super().__init__(message, field="status", **kwargs)
        self.current = current
        self.target = target


# ─── Service ─────────────────────────────────────────────────────────────────

class ServiceError(TrainregError):
    """Base for errors raised by the service layer."""


class NumberingError(ServiceError):
    """Raised when unique number allocation fails."""


class SequenceExhaustedError(NumberingError):
    """Raised when the next prefix no longer fits the 4-digit format."""

    def __init__(self, prefix: int = 0, **kwargs):
        kwargs.setdefault("code", "SEQUENCE_EXHAUSTED")
        super().__init__(f"Prefix {prefix} exceeds the 4-digit capacity", **kwargs)
        self.prefix = prefix


class ArchiveNotReadyError(ServiceError):
    """Raised when archiving is attempted while unfinished groups remain."""

    def __init__(self, year: int = 0, blocking=None, **kwargs):
        kwargs.setdefault("code", "ARCHIVE_NOT_READY")
        self.blocking = list(blocking or [])
        super().__init__(
            f"Cannot archive {year}: {len(self.blocking)} group(s) still active or planned",
            **kwargs,
        )
        self.year = year


# ─── Configuration ───────────────────────────────────────────────────────────

class ConfigurationError(TrainregError):
    """Raised when the application configuration is invalid or incomplete."""
