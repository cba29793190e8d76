"""Encrypted backup vault.

A backup captures the project's snapshot (with obfuscation already applied
to its sampled rows) together with the obfuscation config, encrypted with a
key derived from an operator password.  The descriptor is appended to the
project; the ciphertext goes to the artifact store.

Usage:
    vault = BackupVault(project_store, FileArtifactStore(Path("backups")), events)

    descriptor = await vault.create(project_id, password="correct horse")
    envelope = await vault.download(project_id, descriptor.id)
    await vault.delete(project_id, descriptor.id)
"""

import asyncio
import base64
import json
import logging
import uuid
from datetime import datetime, timezone

from secure_migrator.backup import crypto
from secure_migrator.backup.models import BackupDescriptor
from secure_migrator.backup.store import ArtifactStore
from secure_migrator.errors import (
    BackupNotFoundError,
    ConfigValidationError,
    StateError,
)
from secure_migrator.obfuscation.engine import obfuscate_snapshot
from secure_migrator.obfuscation.models import dump_config
from secure_migrator.project.events import EventLog, Severity
from secure_migrator.project.models import Project, ProjectState
from secure_migrator.project.store import ProjectStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
BACKUP_FORMAT_VERSION = "1.0"


class BackupVault:
    """Create, list, download and delete encrypted backups of a project."""

    def __init__(
        self,
        project_store: ProjectStore,
        artifact_store: ArtifactStore,
        event_log: EventLog,
    ) -> None:
        self._projects = project_store
        self._artifacts = artifact_store
        self._events = event_log

    async def create(self, project_id: str, password: str) -> BackupDescriptor:
        """Encrypt the project's obfuscated snapshot and config.

        Args:
            project_id: Project to back up.
            password: Encryption password (at least 8 characters).  Never
                stored or logged.

        Returns:
            The new ``BackupDescriptor``.

        Raises:
            StateError: If the project has no extracted schema.
            ConfigValidationError: If the password is too short.
        """
        project = await self._projects.get(project_id)
        if project.snapshot is None:
            raise StateError(
                "Cannot create backup: the schema has not been extracted yet"
            )
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ConfigValidationError(
                f"Backup password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )

        backup_id = uuid.uuid4().hex
        created_at = datetime.now(timezone.utc)
        config = project.obfuscation_config or {}
        snapshot = obfuscate_snapshot(project.snapshot, config)

        plaintext = json.dumps(
            {
                "version": BACKUP_FORMAT_VERSION,
                "backup_id": backup_id,
                "created_at": created_at.isoformat(),
                "snapshot": snapshot.model_dump(mode="json"),
                "obfuscation_config": dump_config(config),
            }
        ).encode("utf-8")

        # Scrypt is CPU-bound
        payload = await asyncio.to_thread(
            crypto.encrypt, plaintext, password, backup_id.encode("utf-8")
        )

        ref = f"{project_id}/{backup_id}.bin"
        size = await self._artifacts.write(ref, payload.ciphertext)

        descriptor = BackupDescriptor(
            id=backup_id,
            timestamp=created_at,
            tables=snapshot.table_names,
            record_count=sum(len(t.sample_rows) for t in snapshot.tables.values()),
            size_bytes=size,
            salt=payload.salt.hex(),
            iv=payload.iv.hex(),
            ciphertext_ref=ref,
        )

        project.backups.append(descriptor)
        project.advance(ProjectState.OBFUSCATION, ProjectState.BACKUP)
        try:
            await self._projects.save(project)
        except Exception:
            await self._artifacts.stage_delete(ref)
            await self._artifacts.purge(ref)
            raise

        await self._events.log(
            project_id,
            Severity.INFO,
            "Backup created",
            {
                "backup_id": backup_id,
                "tables": len(descriptor.tables),
                "record_count": descriptor.record_count,
                "size_bytes": descriptor.size_bytes,
            },
        )
        return descriptor

    async def list(self, project_id: str) -> list[BackupDescriptor]:
        """Backups of a project, newest first."""
        project = await self._projects.get(project_id)
        return sorted(project.backups, key=lambda b: b.timestamp, reverse=True)

    async def get(self, project_id: str, backup_id: str) -> BackupDescriptor:
        project = await self._projects.get(project_id)
        return self._require(project, backup_id)

    async def download(self, project_id: str, backup_id: str) -> bytes:
        """Export a backup as a JSON envelope (descriptor + base64 ciphertext).

        The ciphertext is not decrypted.
        """
        descriptor = await self.get(project_id, backup_id)
        ciphertext = await self._artifacts.read(descriptor.ciphertext_ref)
        envelope = {
            "descriptor": descriptor.model_dump(mode="json"),
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
        }
        return json.dumps(envelope, indent=2).encode("utf-8")

    async def delete(self, project_id: str, backup_id: str) -> None:
        """Remove a backup's descriptor and ciphertext together.

        The artifact is staged aside first; if the project cannot be saved
        without the descriptor, the artifact is put back and the error
        re-raised.

        Raises:
            BackupNotFoundError: If the backup is not registered on the project.
        """
        project = await self._projects.get(project_id)
        descriptor = self._require(project, backup_id)
        ref = descriptor.ciphertext_ref

        staged = await self._artifacts.exists(ref)
        if staged:
            await self._artifacts.stage_delete(ref)
        else:
            logger.warning("Backup %s has no artifact at %s", backup_id, ref)

        project.backups = [b for b in project.backups if b.id != backup_id]
        try:
            await self._projects.save(project)
        except Exception:
            if staged:
                await self._artifacts.restore(ref)
            raise

        if staged:
            await self._artifacts.purge(ref)

        await self._events.log(
            project_id, Severity.INFO, "Backup deleted", {"backup_id": backup_id}
        )

    @staticmethod
    def _require(project: Project, backup_id: str) -> BackupDescriptor:
        descriptor = project.find_backup(backup_id)
        if descriptor is None:
            raise BackupNotFoundError(
                f"Backup {backup_id} not found in project {project.code}"
            )
        return descriptor
