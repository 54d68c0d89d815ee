"""
Alembic environment for the booking schema.

The database URL always comes from rental_booking.config (DATABASE_URL), so
the API, the worker and migrations agree on the target. SQLite targets use
batch mode because SQLite cannot ALTER constraints in place; the PostgreSQL
exclusion constraint is created with raw DDL in the revisions themselves.
"""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context  # type: ignore[attr-defined]
from rental_booking.config import DATABASE_URL
from rental_booking.models.base import Base
from rental_booking.models.listings import Listing  # noqa: F401
from rental_booking.models.overrides import AvailabilityOverride, PriceOverride  # noqa: F401
from rental_booking.models.reservations import Reservation  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option("sqlalchemy.url", DATABASE_URL)
target_metadata = Base.metadata


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Render the migration SQL without connecting (alembic upgrade --sql)."""
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_is_sqlite(DATABASE_URL),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
