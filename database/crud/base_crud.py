"""
database/crud/base_crud.py
===========================
BaseCRUD — the base class of every repository.

Session rules:
  1. get_session() is a plain context manager (no nested returns)
  2. every mutating operation ends with exactly one commit
  3. automatic rollback on any exception
  4. close() guaranteed in finally, except for sessions owned by the caller
  5. accepts a callable (get_session_local / a sessionmaker) or a Session
"""

from sqlalchemy.orm import Session
from contextlib import contextmanager
from typing import Any, Callable, Dict, Optional, Union
from datetime import date, datetime
import enum
import json
import logging

from database.db_utils import utc_now
from database.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class BaseCRUD:

    def __init__(
        self,
        model: Any,
        session_factory: Union[Callable, Session],
        *,
        table_name: Optional[str] = None,
    ):
        self.model           = model
        self.session_factory = session_factory
        self.table_name      = table_name or getattr(model, "__tablename__", model.__name__.lower())

    # ─────────────────────────────────────────────────────────────────────────
    # Session Management
    # ─────────────────────────────────────────────────────────────────────────

    @contextmanager
    def get_session(self) -> Session:
        """
        Context manager yielding a ready Session.

        Case 1, a Session instance (injected by the caller):
            used as-is and never closed here

        Case 2, a callable:
            factory() → sessionmaker → sessionmaker() → Session
            factory() → Session directly (tests hand in `lambda: session`)

        Rollback on any exception. close() in finally unless the session is
        owned by someone else (case 1, or flagged _is_shared_test_session).
        """
        if isinstance(self.session_factory, Session):
            try:
                yield self.session_factory
            except Exception:
                self.session_factory.rollback()
                raise
            return

        session = None
        try:
            result = self.session_factory()

            if isinstance(result, Session):
                session = result
            elif callable(result):
                session = result()
            else:
                raise TypeError(
                    f"session_factory returned unexpected type: {type(result).__name__}"
                )

            yield session

        except Exception:
            if session is not None:
                session.rollback()
            raise

        finally:
            should_close = (
                session is not None
                and not getattr(session, "_is_shared_test_session", False)
            )
            if should_close:
                session.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _get_user_id(self, user) -> Optional[int]:
        if user is None:
            return None
        return user.get("id") if isinstance(user, dict) else getattr(user, "id", None)

    def _stamp_create(self, obj: Any):
        now = utc_now()
        if hasattr(obj, "created_at") and getattr(obj, "created_at", None) is None:
            obj.created_at = now
        if hasattr(obj, "updated_at"):
            obj.updated_at = now

    def _stamp_update(self, obj: Any):
        if hasattr(obj, "updated_at"):
            obj.updated_at = utc_now()

    def _to_dict(self, obj: Any) -> Dict[str, Any]:
        """Column values only; dates rendered as ISO strings."""
        if obj is None:
            return {}
        out = {}
        for c in obj.__table__.columns:
            value = getattr(obj, c.name)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            elif isinstance(value, enum.Enum):
                value = value.value
            out[c.name] = value
        return out

    def _audit(self, session: Session, *, action: str, before=None, after=None,
               record_id=None, user=None):
        """Adds an AuditLog row to the current unit of work (committed with it)."""
        rec_id = record_id or (after or {}).get("id") or (before or {}).get("id")
        details = {}
        if after:
            details["after"] = after
        if before:
            details["before"] = before
        session.add(AuditLog(
            user_id    = self._get_user_id(user),
            action     = action,
            table_name = self.table_name,
            record_id  = str(rec_id) if rec_id is not None else None,
            details    = json.dumps(details, ensure_ascii=False, default=str),
        ))

    # ─────────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────────

    def get(self, id: Any):
        with self.get_session() as session:
            return session.get(self.model, id)
