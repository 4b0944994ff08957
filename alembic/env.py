"""Alembic environment for the Factorshot schema.

The database comes from ``DATABASE_URL`` (``.env`` is honoured), falling back
to ``sqlalchemy.url`` in ``alembic.ini``.  Online runs reuse the app's own
engine factory so migrations see the same connection settings as the API.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv

from alembic import context
from factorshot.database.engine import create_db_engine
from factorshot.database.models import Base

load_dotenv()

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
# compare_type so autogenerate notices VARCHAR width changes.
options = {"target_metadata": Base.metadata, "compare_type": True}

if context.is_offline_mode():
    context.configure(url=url, literal_binds=True, **options)
    with context.begin_transaction():
        context.run_migrations()
else:
    engine = create_db_engine(url)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **options)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()
