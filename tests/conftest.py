"""Shared fixtures: an in-memory stand-in for the Vercel REST endpoints."""

import json
import re
from urllib.parse import urlparse

import pytest

from vercel_backup.api import VercelAPI

ENV_PATH = re.compile(r"^/v9/projects/([^/]+)/env$")


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeVercel:
    """Mimics ``requests.Session`` for the three endpoints the backup uses.

    Listings are paginated with integer offsets as the ``until`` cursor;
    ``envs`` maps a project id to the JSON body (or a ``FakeResponse``).
    """

    def __init__(self):
        self.headers = {}
        self.teams = []
        self.projects = {}
        self.envs = {}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        path = urlparse(url).path
        params = dict(params or {})
        self.calls.append((path, params))

        if path == "/v2/teams":
            return self._paged(self.teams, "teams", params)
        if path == "/v9/projects":
            return self._paged(self.projects.get(params.get("teamId"), []), "projects", params)

        match = ENV_PATH.match(path)
        if match:
            result = self.envs.get(match.group(1), {"envs": []})
            if isinstance(result, FakeResponse):
                return result
            return FakeResponse(payload=result)

        return FakeResponse(404, {"error": {"code": "not_found"}})

    def calls_to(self, path):
        return [params for called, params in self.calls if called == path]

    @staticmethod
    def _paged(items, key, params):
        if isinstance(items, FakeResponse):
            return items
        limit = int(params["limit"])
        start = int(params.get("until") or 0)
        chunk = items[start:start + limit]
        end = start + len(chunk)
        next_cursor = end if end < len(items) else None
        return FakeResponse(
            payload={key: chunk, "pagination": {"count": len(chunk), "next": next_cursor, "prev": None}}
        )


def make_project(project_id, name, account_id="team_acme"):
    return {
        "id": project_id,
        "name": name,
        "accountId": account_id,
        "createdAt": 1700000000000,
        "updatedAt": 1700000500000,
    }


def make_env(env_id, key, value="secret"):
    return {
        "id": env_id,
        "key": key,
        "value": value,
        "type": "encrypted",
        "target": ["production"],
        "createdAt": 1700000000000,
        "updatedAt": 1700000500000,
    }


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Keep .env discovery and relative output paths inside the test's tmp dir."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def fake_vercel():
    return FakeVercel()


@pytest.fixture
def api(fake_vercel):
    return VercelAPI("test-token", session=fake_vercel)
