# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the first admin user and their empty vault.

Run once after the initial migration:
    python bin/seed_admin.py

The script reads FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD from etc/app.conf
file.  After the row is inserted those env vars are no longer used by the
application.  An existing account with that email is promoted to admin; its
password and vault are left untouched.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed_admin.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from core.config import settings                       # noqa: E402
from core.errors import CoachError                     # noqa: E402
from core.security import derive_encryption_key        # noqa: E402
from database import session_scope                     # noqa: E402
from auth import credentials                           # noqa: E402
from vault import service as vault_service             # noqa: E402


def seed():
    if not settings.first_admin_email or not settings.first_admin_password:
        print("[seed_admin] FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set in etc/app.conf – nothing to do.")
        return

    with session_scope() as db:
        existing = credentials.find_by_email(db, settings.first_admin_email)
        if existing:
            if existing.role != "admin":
                existing.role = "admin"
                print(f"[seed_admin] '{existing.email}' promoted to admin.")
            else:
                print(f"[seed_admin] Admin '{existing.email}' already exists – skipping.")
            return

        try:
            admin = credentials.register(db, settings.first_admin_email, settings.first_admin_password, "Admin")
        except CoachError as exc:
            print(f"[seed_admin] Cannot create admin: {exc.detail}")
            sys.exit(1)
        admin.role = "admin"
        db.commit()

        key = derive_encryption_key(settings.first_admin_password, admin.encryption_salt)
        vault_service.ensure_vault(db, admin.id, key, admin.display_name or "")
        print(f"[seed_admin] Admin '{admin.email}' created successfully.")


if __name__ == "__main__":
    seed()
