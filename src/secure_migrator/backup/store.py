"""Artifact store port and a filesystem implementation.

Deletion is two-phase so the vault can remove a descriptor and its
ciphertext together: ``stage_delete`` moves the artifact aside, then either
``purge`` drops it for good or ``restore`` puts it back.
"""

import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

STAGED_SUFFIX = ".deleting"


@runtime_checkable
class ArtifactStore(Protocol):
    """Blob storage for backup ciphertexts, keyed by reference."""

    async def write(self, ref: str, data: bytes) -> int:
        """Store ``data`` under ``ref``; returns the number of bytes written."""
        ...

    async def read(self, ref: str) -> bytes:
        ...

    async def exists(self, ref: str) -> bool:
        ...

    async def stage_delete(self, ref: str) -> None:
        ...

    async def restore(self, ref: str) -> None:
        ...

    async def purge(self, ref: str) -> None:
        ...


class FileArtifactStore:
    """Artifacts as files under a base directory.

    Args:
        base_dir: Directory holding the artifacts.  Created on first write.
    """

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir)

    def _path(self, ref: str) -> Path:
        path = (self._base_dir / ref).resolve()
        if self._base_dir.resolve() not in path.parents:
            raise ValueError(f"Invalid artifact reference: {ref}")
        return path

    def _staged(self, ref: str) -> Path:
        path = self._path(ref)
        return path.with_name(path.name + STAGED_SUFFIX)

    async def write(self, ref: str, data: bytes) -> int:
        path = self._path(ref)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        with open(tmp_path, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
        return len(data)

    async def read(self, ref: str) -> bytes:
        path = self._path(ref)
        if not path.exists():
            raise FileNotFoundError(f"Artifact not found: {ref}")
        with open(path, "rb") as f:
            return f.read()

    async def exists(self, ref: str) -> bool:
        return self._path(ref).exists()

    async def stage_delete(self, ref: str) -> None:
        os.replace(self._path(ref), self._staged(ref))

    async def restore(self, ref: str) -> None:
        staged = self._staged(ref)
        if staged.exists():
            os.replace(staged, self._path(ref))

    async def purge(self, ref: str) -> None:
        staged = self._staged(ref)
        if staged.exists():
            staged.unlink()
        else:
            logger.warning("Purge of %s found no staged artifact", ref)
