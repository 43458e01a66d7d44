from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import DEFAULT_API_URL
from .models import Cursor, EnvironmentVariable, Page, Project

TEAMS_PATH = "/v2/teams"
PROJECTS_PATH = "/v9/projects"
PROJECT_ENV_PATH = "/v9/projects/{project_id}/env"


class VercelAPIError(Exception):
    """Raised when a Vercel API request fails."""

    def __init__(
        self,
        message: str,
        *,
        path: str = "",
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.path = path
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"{message} (HTTP {self.status_code})"
            if self.body:
                message = f"{message}: {self.body}"
        return message


class VercelAPI:
    def __init__(
        self,
        token: Optional[str],
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not token:
            raise ValueError("Vercel API token must be provided")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "User-Agent": "vercel-env-backup",
            }
        )
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._log = logging.getLogger(self.__class__.__name__)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self._base_url}/{path.lstrip('/')}"
        query = {key: value for key, value in (params or {}).items() if value is not None}
        try:
            response = self._session.get(url, params=query, timeout=self._timeout)
        except requests.RequestException as exc:
            raise VercelAPIError(f"Request to {path} failed: {exc}", path=path) from exc

        if response.status_code >= 400:
            self._log.error("Vercel API request failed: %s %s %s", path, response.status_code, response.text)
            raise VercelAPIError(
                f"Request to {path} failed",
                path=path,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise VercelAPIError(
                f"Response from {path} is not valid JSON",
                path=path,
                status_code=response.status_code,
                body=response.text,
            ) from exc
        if not isinstance(payload, dict):
            raise VercelAPIError(f"Response from {path} is not a JSON object", path=path)
        return payload

    # Listings --------------------------------------------------------------
    def list_teams_page(self, limit: int, until: Optional[Cursor] = None) -> Page[Dict[str, Any]]:
        payload = self.get(TEAMS_PATH, {"limit": limit, "until": until})
        teams = self._records(payload, "teams", TEAMS_PATH)
        return Page(items=teams, next_cursor=self._next_cursor(payload))

    def list_projects_page(
        self,
        limit: int,
        until: Optional[Cursor] = None,
        team_id: Optional[str] = None,
    ) -> Page[Project]:
        payload = self.get(PROJECTS_PATH, {"limit": limit, "until": until, "teamId": team_id})
        projects = [
            Project.from_api(item)
            for item in self._records(payload, "projects", PROJECTS_PATH)
            if item.get("id")
        ]
        return Page(items=projects, next_cursor=self._next_cursor(payload))

    def get_project_env(
        self,
        project_id: str,
        team_id: Optional[str] = None,
    ) -> Optional[List[EnvironmentVariable]]:
        """Return a project's environment variables.

        ``None`` means the response carried no ``envs`` collection at all, which
        is distinct from an empty list.
        """
        path = PROJECT_ENV_PATH.format(project_id=project_id)
        payload = self.get(path, {"teamId": team_id})
        envs = payload.get("envs")
        if not isinstance(envs, list):
            return None
        return [EnvironmentVariable.from_api(item) for item in self._records(payload, "envs", path)]

    def _records(self, payload: Dict[str, Any], key: str, path: str) -> List[Dict[str, Any]]:
        collection = payload.get(key)
        if collection is None:
            return []
        if not isinstance(collection, list):
            raise VercelAPIError(f"Response from {path} has a non-list '{key}' field", path=path)
        records = [item for item in collection if isinstance(item, dict)]
        if len(records) != len(collection):
            self._log.warning(
                "Ignoring %d malformed '%s' entries from %s", len(collection) - len(records), key, path
            )
        return records

    @staticmethod
    def _next_cursor(payload: Dict[str, Any]) -> Optional[Cursor]:
        pagination = payload.get("pagination")
        if not isinstance(pagination, dict):
            return None
        return pagination.get("next")
