"""End-to-end tests for a backup run against the in-memory API."""

import json
from datetime import datetime, timezone

import pytest

from conftest import FakeResponse, make_env, make_project
from vercel_backup.api import VercelAPIError
from vercel_backup.orchestrator import BackupOrchestrator, BackupRunError
from vercel_backup.storage import FilesystemStorage, run_id_for

STARTED_AT = datetime(2024, 5, 1, 12, 30, 45, 987654, tzinfo=timezone.utc)
RUN_ID = "2024-05-01T12-30-45"


@pytest.fixture
def backups_dir(tmp_path):
    return tmp_path / "backups"


@pytest.fixture
def acme_account(fake_vercel):
    """One team "acme" with "web" (3 variables) and "api" (0); no personal projects."""
    fake_vercel.teams = [{"id": "team_acme", "slug": "acme", "name": "Acme"}]
    fake_vercel.projects["team_acme"] = [
        make_project("prj_web", "web"),
        make_project("prj_api", "api"),
    ]
    fake_vercel.envs["prj_web"] = {
        "envs": [make_env(f"env_{i}", f"KEY_{i}", f"value-{i}") for i in range(3)]
    }
    fake_vercel.envs["prj_api"] = {"envs": []}
    return fake_vercel


def make_orchestrator(api, backups_dir, **kwargs):
    storage = FilesystemStorage(base_path=backups_dir, file_naming=kwargs.pop("file_naming", "name"))
    return BackupOrchestrator(api=api, storage=storage, clock=lambda: STARTED_AT, **kwargs)


def read_json(path):
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def test_run_id_drops_subseconds_and_colons():
    assert run_id_for(STARTED_AT) == RUN_ID


def test_backs_up_every_project_in_every_scope(acme_account, api, backups_dir):
    root = make_orchestrator(api, backups_dir).run()

    assert root == backups_dir / RUN_ID
    web = read_json(root / "acme" / "web.json")
    assert [record["key"] for record in web] == ["KEY_0", "KEY_1", "KEY_2"]
    assert web[0] == make_env("env_0", "KEY_0", "value-0")
    assert read_json(root / "acme" / "api.json") == []
    assert not (root / "personal").exists()


def test_files_are_two_space_indented(acme_account, api, backups_dir):
    root = make_orchestrator(api, backups_dir).run()

    text = (root / "acme" / "web.json").read_text(encoding="utf-8")
    assert text.startswith('[\n  {\n    "id": "env_0"')


def test_env_requests_are_scope_qualified(acme_account, api, backups_dir):
    make_orchestrator(api, backups_dir).run()

    assert acme_account.calls_to("/v9/projects/prj_web/env") == [{"teamId": "team_acme"}]


def test_missing_env_collection_writes_no_file(acme_account, api, backups_dir):
    acme_account.envs["prj_api"] = {"error": {"code": "unexpected"}}

    root = make_orchestrator(api, backups_dir).run()

    assert (root / "acme" / "web.json").exists()
    assert not (root / "acme" / "api.json").exists()


def test_scope_without_projects_gets_no_directory(fake_vercel, api, backups_dir):
    fake_vercel.teams = [{"id": "team_empty", "slug": "empty"}]

    root = make_orchestrator(api, backups_dir).run()

    assert sorted(path.name for path in root.iterdir()) == ["manifest.json"]


def test_manifest_summarises_run(acme_account, api, backups_dir):
    root = make_orchestrator(api, backups_dir).run()

    manifest = read_json(root / "manifest.json")
    assert manifest["run_id"] == RUN_ID
    assert manifest["scopes"] == {"personal": 0, "acme": 2}
    assert [(p["project_name"], p["variable_count"]) for p in manifest["projects"]] == [("web", 3), ("api", 0)]
    assert manifest["projects"][0]["file_path"] == "acme/web.json"
    assert manifest["errors"] == []


def test_id_file_naming_avoids_name_collisions(fake_vercel, api, backups_dir):
    fake_vercel.teams = [{"id": "team_acme", "slug": "acme"}]
    fake_vercel.projects["team_acme"] = [make_project("prj_1", "web"), make_project("prj_2", "web")]

    root = make_orchestrator(api, backups_dir, file_naming="id").run()

    assert sorted(path.name for path in (root / "acme").iterdir()) == ["web-prj_1.json", "web-prj_2.json"]


def test_unsafe_names_are_sanitised(fake_vercel, api, backups_dir):
    fake_vercel.projects[None] = [make_project("prj_1", "../escape", account_id="user_1")]

    root = make_orchestrator(api, backups_dir).run()

    assert (root / "personal" / ".._escape.json").exists()


def test_team_listing_failure_creates_no_run_directory(fake_vercel, api, backups_dir):
    fake_vercel.teams = FakeResponse(500, {"error": "boom"})

    with pytest.raises(VercelAPIError):
        make_orchestrator(api, backups_dir).run()

    assert not backups_dir.exists()


def test_abort_keeps_written_files_and_stops(acme_account, api, backups_dir):
    acme_account.projects["team_acme"].append(make_project("prj_docs", "docs"))
    acme_account.envs["prj_api"] = FakeResponse(500, {"error": "boom"})

    with pytest.raises(VercelAPIError):
        make_orchestrator(api, backups_dir).run()

    run_root = backups_dir / RUN_ID
    assert (run_root / "acme" / "web.json").exists()
    assert not (run_root / "acme" / "api.json").exists()
    assert not (run_root / "acme" / "docs.json").exists()
    assert not (run_root / "manifest.json").exists()
    assert acme_account.calls_to("/v9/projects/prj_docs/env") == []


def test_continue_mode_records_errors_and_finishes(acme_account, api, backups_dir):
    acme_account.projects["team_acme"].append(make_project("prj_docs", "docs"))
    acme_account.envs["prj_api"] = FakeResponse(500, {"error": "boom"})

    with pytest.raises(BackupRunError) as excinfo:
        make_orchestrator(api, backups_dir, on_error="continue").run()

    assert len(excinfo.value.errors) == 1
    assert "acme/api" in excinfo.value.errors[0]

    run_root = backups_dir / RUN_ID
    assert (run_root / "acme" / "docs.json").exists()
    manifest = read_json(run_root / "manifest.json")
    failed = [p for p in manifest["projects"] if p["backup_status"] == "failed"]
    assert [p["project_name"] for p in failed] == ["api"]
    assert manifest["errors"] == excinfo.value.errors


def test_rejects_unknown_error_mode(api, backups_dir):
    with pytest.raises(ValueError):
        make_orchestrator(api, backups_dir, on_error="retry")


def test_team_named_personal_does_not_overwrite_personal_files(fake_vercel, api, backups_dir):
    fake_vercel.teams = [{"id": "team_p", "slug": "personal"}]
    fake_vercel.projects[None] = [make_project("prj_own", "web", account_id="user_1")]
    fake_vercel.projects["team_p"] = [make_project("prj_team", "web", account_id="team_p")]
    fake_vercel.envs["prj_own"] = {"envs": [make_env("env_own", "OWN")]}
    fake_vercel.envs["prj_team"] = {"envs": [make_env("env_team", "TEAM")]}

    root = make_orchestrator(api, backups_dir).run()

    assert [record["key"] for record in read_json(root / "personal" / "web.json")] == ["OWN"]
    assert [record["key"] for record in read_json(root / "personal-team_p" / "web.json")] == ["TEAM"]
    manifest = read_json(root / "manifest.json")
    assert manifest["scopes"] == {"personal": 1, "personal-team_p": 1}
