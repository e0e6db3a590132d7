from __future__ import annotations

import logging
from datetime import date
from typing import Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Entry point
# =============================================================================

def run_bootstrap(session_factory=None, today: Optional[date] = None):
    """
    Prepares the database and runs the startup integrity pass.

      ① tables created (idempotent); later schema changes ship as Alembic
         revisions under migrations/versions/
      ② CourseService.startup_check(): counters seeded, single Active group
         enforced, periods synchronized, numbering gaps reported

    Returns the StartupReport. Errors propagate: a database that cannot be
    prepared must stop the program.
    """
    from database.models import init_db
    from services.course_service import CourseService

    try:
        # ①
        init_db()
        logger.info("Bootstrap: database tables ready")

        # ②
        report = CourseService(session_factory).startup_check(today)
        logger.info("Bootstrap: startup check complete")
        return report

    except Exception as exc:
        logger.error(f"Bootstrap failed: {exc}", exc_info=True)
        raise
