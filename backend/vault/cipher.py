# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Vault cipher – AES-256-GCM over the whole vault document.

A vault is always encrypted and decrypted as one unit.  The persisted form
is a ``Blob``:

    version     1
    algorithm   "aes-256-gcm"
    iv          base64( 12-byte random nonce, fresh on every encrypt )
    authTag     base64( 16-byte GCM tag )
    ciphertext  base64( AES-GCM ciphertext without the tag )
    updatedAt   ISO-8601 UTC
    iterations  KDF iteration count the key was derived with

Decryption either returns the complete document or raises; there is no
partial result.  ``AuthenticationFailed`` means the tag did not verify
(wrong key, corruption, tampering); ``MalformedBlob`` means the blob is not
even shaped like one of ours.
"""

import base64
import binascii
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.config import settings
from core.errors import AuthenticationFailed, MalformedBlob, ValidationError, VaultTooLarge
from core.logger import logger
from core.sessions import KEY_LENGTH

BLOB_VERSION = 1
ALGORITHM = "aes-256-gcm"
NONCE_SIZE = 12  # 96-bit nonce per NIST SP 800-38D
TAG_SIZE = 16

_REQUIRED_FIELDS = ("iv", "authTag", "ciphertext")


@dataclass(frozen=True)
class Blob:
    iv: str
    auth_tag: str
    ciphertext: str
    algorithm: str = ALGORITHM
    version: int = BLOB_VERSION
    updated_at: Optional[str] = None
    iterations: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "algorithm": self.algorithm,
            "iv": self.iv,
            "authTag": self.auth_tag,
            "ciphertext": self.ciphertext,
            "updatedAt": self.updated_at,
            "iterations": self.iterations,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Blob":
        if not isinstance(data, dict):
            raise MalformedBlob()
        if any(not isinstance(data.get(name), str) for name in _REQUIRED_FIELDS):
            raise MalformedBlob()
        return cls(
            iv=data["iv"],
            auth_tag=data["authTag"],
            ciphertext=data["ciphertext"],
            algorithm=data.get("algorithm", ALGORITHM),
            version=data.get("version", BLOB_VERSION),
            updated_at=data.get("updatedAt"),
            iterations=data.get("iterations"),
        )


def _check_key(key: bytes) -> AESGCM:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LENGTH:
        raise ValidationError("Encryption key must be exactly 32 bytes")
    return AESGCM(bytes(key))


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedBlob() from exc


def serialize_document(document: dict) -> bytes:
    """orjson-encode a vault document.  Non-JSON values are a client error."""
    if not isinstance(document, dict):
        raise ValidationError("Vault payload must be a JSON object.")
    try:
        return orjson.dumps(document)
    except orjson.JSONEncodeError as exc:
        raise ValidationError("Vault payload is not valid JSON data.") from exc


def encrypt(key: bytes, document: dict) -> Blob:
    """
    Serialize and encrypt *document*.

    Raises ``VaultTooLarge`` when the serialized document exceeds
    ``settings.max_vault_size_bytes``; nothing is encrypted in that case.
    """
    aesgcm = _check_key(key)
    serialized = serialize_document(document)
    if len(serialized) > settings.max_vault_size_bytes:
        logger.warning("Vault size %d exceeds limit of %d bytes", len(serialized), settings.max_vault_size_bytes)
        raise VaultTooLarge()

    iv = secrets.token_bytes(NONCE_SIZE)
    # AESGCM returns ciphertext || tag; the blob stores them separately
    ct_and_tag = aesgcm.encrypt(iv, serialized, None)
    ciphertext, tag = ct_and_tag[:-TAG_SIZE], ct_and_tag[-TAG_SIZE:]

    return Blob(
        iv=base64.b64encode(iv).decode("ascii"),
        auth_tag=base64.b64encode(tag).decode("ascii"),
        ciphertext=base64.b64encode(ciphertext).decode("ascii"),
        updated_at=datetime.now(timezone.utc).isoformat(),
        iterations=settings.kdf_iterations,
    )


def decrypt(key: bytes, blob: Blob) -> dict:
    """
    Verify and decrypt *blob* back into the vault document.

    Raises ``AuthenticationFailed`` if the GCM tag does not verify and
    ``MalformedBlob`` if the blob is structurally invalid.
    """
    aesgcm = _check_key(key)
    if blob.version != BLOB_VERSION or blob.algorithm != ALGORITHM:
        raise MalformedBlob()

    iv = _b64decode(blob.iv)
    tag = _b64decode(blob.auth_tag)
    ciphertext = _b64decode(blob.ciphertext)
    if len(iv) != NONCE_SIZE or len(tag) != TAG_SIZE:
        raise MalformedBlob()

    try:
        plaintext = aesgcm.decrypt(iv, ciphertext + tag, None)
    except InvalidTag as exc:
        raise AuthenticationFailed() from exc

    try:
        document = orjson.loads(plaintext)
    except orjson.JSONDecodeError as exc:
        raise MalformedBlob() from exc
    if not isinstance(document, dict):
        raise MalformedBlob()
    return document
