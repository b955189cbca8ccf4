from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from cashback_engine.db import Base, DATABASE_URL
from cashback_engine.models.admin import Admin  # noqa: F401
from cashback_engine.models.credit import Credit  # noqa: F401
from cashback_engine.models.customer import Customer  # noqa: F401
from cashback_engine.models.ledger_entry import LedgerEntry  # noqa: F401
from cashback_engine.models.store_location import StoreLocation  # noqa: F401


config = context.config
config.set_main_option("sqlalchemy.url", DATABASE_URL.replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
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
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
