"""
migrations/env.py — TRAINREG
==============================
Alembic environment for the project.

  - database path resolved at runtime by database.db_utils.get_db_path()
    (honours DATABASE_PATH)
  - Base.metadata from database.models for autogenerate
  - offline and online modes
  - render_as_batch for SQLite (no direct ALTER TABLE support)
"""
from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import engine_from_config, pool

from alembic import context

# project root on sys.path so `database.models` imports from any cwd
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# importing the package registers every model and the SQLite connect listener
from database.models import Base  # noqa: E402

target_metadata = Base.metadata


def get_database_url() -> str:
    from database.db_utils import get_db_path
    return f"sqlite:///{get_db_path()}"


def include_object(obj, name, type_, reflected, compare_to):
    """Skip alembic's own table and scratch tables."""
    if type_ == "table":
        if name == "alembic_version":
            return False
        if name.startswith("tmp_") or name.startswith("_"):
            return False
    return True


def run_migrations_offline() -> None:
    """Emit SQL without a live connection."""
    context.configure(
        url=get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_object=include_object,
        render_as_batch=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = get_database_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            render_as_batch=True,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
