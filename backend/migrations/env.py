# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Alembic environment for the coach schema.

Run from ``backend/`` (``alembic upgrade head``).  The connection comes from
the application's own engine, so etc/app.conf is the only place the
database URL is configured.
"""

import os
import sys

_BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from alembic import context  # noqa: E402

from core.config import settings  # noqa: E402
from database import Base, engine  # noqa: E402

# Registers every table on Base.metadata for --autogenerate
import models.user        # noqa: F401, E402
import models.vault_blob  # noqa: F401, E402
import models.audit_log   # noqa: F401, E402

_OPTIONS = {
    "target_metadata": Base.metadata,
    "compare_type": True,
}


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of executing it (``--sql``)."""
    context.configure(url=settings.database_url, literal_binds=True, **_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with engine.connect() as conn:
        # SQLite cannot ALTER most things in place
        context.configure(connection=conn, render_as_batch=conn.dialect.name == "sqlite", **_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
