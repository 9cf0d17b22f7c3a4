# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""VaultBlob ORM model – one encrypted vault document per user."""

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.dialects.mysql import LONGTEXT

from database import Base


class VaultBlob(Base):
    __tablename__ = "vault_blobs"

    # Deliberately no foreign key to users: account deletion removes the blob
    # and the user row in two steps, and an orphaned blob is harmless.
    user_id = Column(String(36), primary_key=True)
    version = Column(Integer, nullable=False, default=1)
    algorithm = Column(String(32), nullable=False)
    # base64( 12-byte AES-GCM nonce )
    iv = Column(String(64), nullable=False)
    # base64( 16-byte GCM authentication tag )
    auth_tag = Column(String(64), nullable=False)
    # base64( ciphertext ) – a full vault can exceed MySQL's 64 KB TEXT
    ciphertext = Column(Text().with_variant(LONGTEXT(), "mysql"), nullable=False)
    # KDF iteration count the key was derived with, recorded for audits
    iterations = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
