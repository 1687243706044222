"""Alembic environment for the OTP gate tables."""
from __future__ import annotations

from alembic import context
from sqlalchemy import engine_from_config, pool

from otp_gate.core.logging import configure_logging
from otp_gate.core.settings import settings
from otp_gate.db.session import Base

config = context.config
configure_logging()

if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", settings.database_url_sync)
DATABASE_URL = config.get_main_option("sqlalchemy.url")

# SQLite cannot ALTER most constraints in place.
CONFIGURE_OPTS = {
    "target_metadata": Base.metadata,
    "compare_type": True,
    "render_as_batch": DATABASE_URL.startswith("sqlite"),
}


def run_migrations_offline() -> None:
    context.configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **CONFIGURE_OPTS,
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
        context.configure(connection=connection, **CONFIGURE_OPTS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
