"""
env.py — Alembic environment for tenderlink

The database URL comes from tenderlink settings (DATABASE_URL), never from
alembic.ini. Revisions build tables from Base.metadata against a live
connection, so only online mode is supported; `alembic upgrade --sql`
stops with an error.

Called by: alembic CLI
Depends on: tenderlink.config, tenderlink.models
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from tenderlink.config import settings
from tenderlink.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations() -> None:
    engine = create_engine(settings.database_url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # SQLite cannot ALTER most constraints in place
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    raise SystemExit("tenderlink migrations need a database connection; offline (--sql) mode is not supported")
run_migrations()
