"""Project store port and implementations.

``ProjectStore`` is how the pipeline reads and writes ``Project`` records.
Two implementations ship with the package:

- ``InMemoryProjectStore``: process-local, used by tests and embedders.
- ``JsonFileProjectStore``: one JSON file holding every project, used by
  the CLI.  Source passwords are written redacted.  Projects saved by the
  current process are served from memory with the password intact; a new
  process re-attaches the source descriptor from ``migrator.toml``.

Usage:
    store = JsonFileProjectStore(Path("projects.json"))
    project = await store.get_or_create("crm-2024")
    project.state = ProjectState.EXTRACTION
    await store.save(project)
"""

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from secure_migrator.errors import ConfigValidationError, ProjectNotFoundError
from secure_migrator.project.models import Project

logger = logging.getLogger(__name__)


@runtime_checkable
class ProjectStore(Protocol):
    """Get and save projects by id."""

    async def get(self, project_id: str) -> Project:
        """Return a copy of the project.

        Raises:
            ProjectNotFoundError: If no project has this id.
        """
        ...

    async def save(self, project: Project) -> None:
        ...


class InMemoryProjectStore:
    """Projects held in a dict.  Reads and writes are deep copies."""

    def __init__(self, projects: list[Project] | None = None) -> None:
        self._projects: dict[str, Project] = {}
        for project in projects or []:
            self._projects[project.id] = project.model_copy(deep=True)

    async def get(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(f"Project not found: {project_id}")
        return project.model_copy(deep=True)

    async def save(self, project: Project) -> None:
        self._projects[project.id] = project.model_copy(deep=True)


class JsonFileProjectStore:
    """Projects persisted in a single JSON file.

    Args:
        path: JSON file path.  Created on first save.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        # Projects saved by this process, with their secrets intact
        self._saved: dict[str, Project] = {}

    def _read_all(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(
                f"Project file {self._path} is not valid JSON: {e}"
            )
        return data.get("projects", {})

    def _write_all(self, projects: dict[str, dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump({"projects": projects}, f, indent=2)
        os.replace(tmp_path, self._path)

    async def get(self, project_id: str) -> Project:
        if project_id in self._saved:
            return self._saved[project_id].model_copy(deep=True)
        raw = self._read_all().get(project_id)
        if raw is None:
            raise ProjectNotFoundError(f"Project not found: {project_id}")
        try:
            return Project.model_validate(raw)
        except ValidationError as e:
            raise ConfigValidationError(
                f"Stored project {project_id} is invalid: {e}"
            )

    async def save(self, project: Project) -> None:
        projects = self._read_all()
        projects[project.id] = project.model_dump(mode="json")
        self._write_all(projects)
        self._saved[project.id] = project.model_copy(deep=True)

    async def find_by_code(self, code: str) -> Project | None:
        for project_id, raw in self._read_all().items():
            if raw.get("code") == code:
                return await self.get(project_id)
        return None

    async def get_or_create(self, code: str) -> Project:
        """Project with this code, created in state ``created`` if absent."""
        project = await self.find_by_code(code)
        if project is not None:
            return project

        project = Project(id=uuid.uuid4().hex, code=code)
        await self.save(project)
        logger.info("Created project %s (%s)", code, project.id)
        return project
