"""Backup descriptor model.

A descriptor is the metadata half of a backup: the ciphertext itself lives
in an ``ArtifactStore`` under ``ciphertext_ref``.  The password that derived
the encryption key is never part of it.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class BackupDescriptor(BaseModel):
    """Metadata of one encrypted backup artifact."""

    id: str
    timestamp: datetime
    tables: list[str] = Field(default_factory=list)
    record_count: int = 0          # sampled rows included in the artifact
    size_bytes: int = 0            # ciphertext size
    salt: str                      # hex, scrypt salt
    iv: str                        # hex, AES-GCM nonce
    ciphertext_ref: str            # artifact store key
