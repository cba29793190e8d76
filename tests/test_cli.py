"""Tests for the command-line interface.

Commands that need no database (analyze, obfuscate, backup, status) run
for real against a JSON project file in ``tmp_path``.
"""

import asyncio
import json

import pytest

from secure_migrator.cli import build_parser
from secure_migrator.project.models import Project, ProjectState
from secure_migrator.project.store import JsonFileProjectStore

from conftest import make_snapshot

PASSWORD = "cli-backup-password"


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """migrator.toml plus a project that has an extracted schema."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "migrator.toml").write_text(
        '[storage]\nprojects_file = "projects.json"\nbackups_dir = "backups"\n'
    )
    project = Project(
        id="p1",
        code="crm-2024",
        state=ProjectState.EXTRACTION,
        snapshot=make_snapshot(),
    )
    asyncio.run(JsonFileProjectStore(tmp_path / "projects.json").save(project))
    return tmp_path


def _invoke(*argv: str) -> int:
    args = build_parser().parse_args(list(argv))
    return args.func(args)


def _stored(workspace) -> dict:
    return json.loads((workspace / "projects.json").read_text())["projects"]["p1"]


class TestParser:
    """Argument parsing."""

    def test_extract_requires_source(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["extract", "crm-2024"])

    def test_migrate_arguments(self) -> None:
        args = build_parser().parse_args(
            ["-c", "other.toml", "migrate", "crm-2024", "-s", "crm", "-t", "archive"]
        )
        assert args.config == "other.toml"
        assert args.project == "crm-2024"
        assert args.source == "crm"
        assert args.target == "archive"

    def test_backup_requires_subcommand(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["backup"])

    def test_backup_download_output(self) -> None:
        args = build_parser().parse_args(
            ["backup", "download", "crm-2024", "abc", "--output", "out.json"]
        )
        assert args.backup_id == "abc"
        assert args.output == "out.json"

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestErrors:
    """Errors map to exit code 1."""

    def test_missing_config(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert _invoke("status", "crm-2024") == 1

    def test_unknown_project(self, workspace) -> None:
        assert _invoke("status", "unknown") == 1

    def test_unknown_source(self, workspace) -> None:
        assert _invoke("test-connection", "nope") == 1


class TestCommands:
    """analyze -> obfuscate -> backup against the JSON store."""

    def test_status(self, workspace) -> None:
        assert _invoke("status", "crm-2024") == 0

    def test_analyze_advances_state(self, workspace) -> None:
        assert _invoke("analyze", "crm-2024", "--all") == 0
        assert _stored(workspace)["state"] == "analysis"

    def test_obfuscate_saves_rules(self, workspace) -> None:
        rules = workspace / "rules.json"
        rules.write_text(json.dumps({"users": {"email": {"method": "hash"}}}))
        _invoke("analyze", "crm-2024")

        assert _invoke("obfuscate", "crm-2024", str(rules)) == 0

        stored = _stored(workspace)
        assert stored["state"] == "obfuscation"
        assert stored["obfuscation_config"]["users"]["email"]["method"] == "hash"

    def test_obfuscate_rejects_unknown_column(self, workspace) -> None:
        rules = workspace / "rules.json"
        rules.write_text(json.dumps({"users": {"ssn": {"method": "hash"}}}))

        assert _invoke("obfuscate", "crm-2024", str(rules)) == 1
        assert _stored(workspace)["obfuscation_config"] is None

    def test_obfuscate_missing_rules_file(self, workspace) -> None:
        assert _invoke("obfuscate", "crm-2024", str(workspace / "missing.json")) == 1

    def test_backup_lifecycle(self, workspace) -> None:
        assert _invoke("backup", "create", "crm-2024", "--password", PASSWORD) == 0
        backups = _stored(workspace)["backups"]
        assert len(backups) == 1
        backup_id = backups[0]["id"]

        assert _invoke("backup", "list", "crm-2024") == 0

        output = workspace / "export.json"
        assert _invoke("backup", "download", "crm-2024", backup_id, "-o", str(output)) == 0
        assert json.loads(output.read_text())["descriptor"]["id"] == backup_id

        assert _invoke("backup", "delete", "crm-2024", backup_id) == 0
        assert _stored(workspace)["backups"] == []

    def test_backup_short_password(self, workspace) -> None:
        assert _invoke("backup", "create", "crm-2024", "--password", "short") == 1
        assert _stored(workspace)["backups"] == []
