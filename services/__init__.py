"""
Domain services.

    numbering_service    unique certificate numbers and their counters
    period_sync_service  groups ↔ participant periods reconciliation
    course_service       thread-safe facade over the repositories

Import the submodules directly; this package imports nothing eagerly so the
repositories in database.crud can depend on the services without a cycle.
"""
