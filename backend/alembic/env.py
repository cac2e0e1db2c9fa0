from __future__ import annotations

import os
from logging.config import fileConfig

from alembic.operations import ops
from sqlalchemy import engine_from_config, pool

from alembic import context
from app.core.config import settings
from app.core.db import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

DROP_OPS = (ops.DropTableOp, ops.DropColumnOp, ops.DropIndexOp, ops.DropConstraintOp)


def _database_url() -> str:
    url = settings.DATABASE_URL
    config.set_main_option("sqlalchemy.url", url)
    return url


def _iter_ops(op: ops.MigrateOperation):
    yield op
    for child in getattr(op, "ops", None) or []:
        yield from _iter_ops(child)


def _refuse_autogenerated_drops(_context, _revision, directives) -> None:
    """Autogenerate must not emit drops unless ALLOW_ALEMBIC_DROPS=1."""
    if os.environ.get("ALLOW_ALEMBIC_DROPS") == "1" or not directives:
        return
    upgrade_ops = getattr(directives[0], "upgrade_ops", None)
    if upgrade_ops is None:
        return
    drops = [op for op in _iter_ops(upgrade_ops) if isinstance(op, DROP_OPS)]
    if drops:
        raise SystemExit(
            f"Refusing to autogenerate {len(drops)} drop operation(s). "
            "Align the models with the database or set ALLOW_ALEMBIC_DROPS=1."
        )


def _configure_kwargs(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "process_revision_directives": _refuse_autogenerated_drops,
        # SQLite cannot ALTER most constraints in place.
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    url = _database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _database_url()
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
