# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Vault store – persistence of exactly one encrypted Blob per user id.

Writes are a single-row upsert committed in one transaction, so a
concurrent reader sees either the previous blob or the new one, never a
mix.  Two writers for the same user are last-writer-wins, including two
requests racing to create the first blob.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.logger import logger
from models.vault_blob import VaultBlob
from vault.cipher import Blob


def _parse_timestamp(value: Optional[str]) -> datetime:
    if value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def _find_row(db: Session, user_id: str) -> Optional[VaultBlob]:
    return db.query(VaultBlob).filter(VaultBlob.user_id == user_id).first()


def read_blob(db: Session, user_id: str) -> Optional[Blob]:
    row = _find_row(db, user_id)
    if row is None:
        return None
    return Blob(
        iv=row.iv,
        auth_tag=row.auth_tag,
        ciphertext=row.ciphertext,
        algorithm=row.algorithm,
        version=row.version,
        updated_at=row.updated_at.isoformat() if row.updated_at else None,
        iterations=row.iterations,
    )


def _fill(row: VaultBlob, blob: Blob) -> None:
    row.version = blob.version
    row.algorithm = blob.algorithm
    row.iv = blob.iv
    row.auth_tag = blob.auth_tag
    row.ciphertext = blob.ciphertext
    row.iterations = blob.iterations or 0
    row.updated_at = _parse_timestamp(blob.updated_at)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def write_blob(db: Session, user_id: str, blob: Blob) -> None:
    row = _find_row(db, user_id)
    if row is not None:
        _fill(row, blob)
        _commit(db)
        return

    row = VaultBlob(user_id=user_id)
    _fill(row, blob)
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        # Another request inserted the first blob for this user in the meantime
        db.rollback()
        logger.warning("Concurrent first write of vault for user %s, overwriting", user_id)
        row = _find_row(db, user_id)
        if row is None:
            raise
        _fill(row, blob)
        _commit(db)
    except Exception:
        db.rollback()
        raise


def delete_blob(db: Session, user_id: str) -> bool:
    """Delete the user's blob.  Returns False when there was none."""
    deleted = db.query(VaultBlob).filter(VaultBlob.user_id == user_id).delete()
    db.commit()
    return bool(deleted)


def list_user_ids(db: Session) -> list[str]:
    return [row.user_id for row in db.query(VaultBlob.user_id).all()]
