"""
TRAINREG Constants - Single Source of Truth
===========================================

Course-cycle and numbering constants shared by the allocator, the period
synchronizer and the participant repository.
"""


class Course:
    """
    Weekly course cycle.

    Usage:
        from constants import Course
        period_end = period_start + timedelta(days=Course.PERIOD_DAYS)
    """

    PERIOD_DAYS = 7
    LOOKAHEAD_PERIODS = 2           # planned placeholders after the base period
    MEDICAL_VALIDITY_MONTHS = 6


class Numbering:
    """Unique number format and counter defaults."""

    INITIAL_PREFIX = 3530
    INITIAL_SEQ = 0
    PREFIX_WIDTH = 4
    MAX_PREFIX = 9999
    COUNTERS_ID = 1
    PATTERN = r"^(\d{4})-(\d+)$"


class ParticipantFlags:
    """Progress flags; completion is the AND of all four."""

    SUBMITTED = "submitted"
    DOCUMENTS = "documents"
    HANDED_OVER = "handed_over"
    PAID = "paid"

    ALL = (SUBMITTED, DOCUMENTS, HANDED_OVER, PAID)


class AuditActions:
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ACTIVATE = "activate"
    DEMOTE = "demote"
    CLOSE = "close"
    LOCK = "lock"
    UNLOCK = "unlock"
    ARCHIVE = "archive"
    RESTORE = "restore"
