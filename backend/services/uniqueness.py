from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from services.errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATE for unique_violation on PostgreSQL.
PG_UNIQUE_VIOLATION = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == PG_UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(orig)


def insert_or_conflict(db: Session, create: Callable[[], T], message: str) -> T:
    """Run `create` and turn a unique-index violation into ConflictError.

    The unit of work is rolled back on any integrity failure, so nothing staged
    before the call survives it. Failures other than a unique violation (a
    dangling foreign key, a NOT NULL column) propagate unchanged.
    """
    try:
        return create()
    except IntegrityError as exc:
        db.rollback()
        if not _is_unique_violation(exc):
            raise
        logger.warning("Uniqueness conflict: %s (%s)", message, exc.orig.__class__.__name__)
        raise ConflictError(message) from None
