"""Encrypted backups: descriptor model, crypto, artifact store.

``BackupVault`` lives in ``secure_migrator.backup.vault``; it is not
re-exported here because it depends on the project package, which in turn
imports ``BackupDescriptor`` from this one.
"""

from secure_migrator.backup.models import BackupDescriptor
from secure_migrator.backup.store import ArtifactStore, FileArtifactStore

__all__ = [
    "BackupDescriptor",
    "ArtifactStore",
    "FileArtifactStore",
]
