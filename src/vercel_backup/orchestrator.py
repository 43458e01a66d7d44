from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .api import VercelAPI, VercelAPIError
from .config import MAX_PAGE_SIZE
from .manifest import Manifest, ProjectManifest
from .models import Project, Scope
from .pagination import PaginationError
from .projects import list_projects
from .scopes import list_scopes
from .storage import FilesystemStorage

LOG = logging.getLogger(__name__)

RECOVERABLE_ERRORS = (VercelAPIError, PaginationError, OSError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BackupRunError(Exception):
    """Raised at the end of a best-effort run that recorded failures."""

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or [message]


class BackupOrchestrator:
    """Backs up every project's environment variables across all scopes.

    Scopes are resolved before anything touches the filesystem, so a failing
    team listing leaves no run directory behind. With ``on_error="abort"`` the
    first failure propagates and whatever was written stays on disk; with
    ``on_error="continue"`` failures are collected, written to the manifest
    and raised together as :class:`BackupRunError`.
    """

    def __init__(
        self,
        api: VercelAPI,
        storage: FilesystemStorage,
        page_size: int = MAX_PAGE_SIZE,
        on_error: str = "abort",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if on_error not in ("abort", "continue"):
            raise ValueError(f"Unsupported on_error mode '{on_error}'")
        self._api = api
        self._storage = storage
        self._page_size = page_size
        self._on_error = on_error
        self._clock = clock

    def run(self) -> Path:
        scopes = list_scopes(self._api, self._page_size)

        started_at = self._clock()
        paths = self._storage.prepare_run(started_at)
        LOG.info("Backing up %d scope(s) into %s", len(scopes), paths.root)

        scope_counts: Dict[str, int] = {}
        entries: List[ProjectManifest] = []
        errors: List[str] = []

        for scope in scopes:
            try:
                projects = list_projects(self._api, scope, self._page_size)
            except RECOVERABLE_ERRORS as exc:
                if self._on_error == "abort":
                    raise
                self._record_failure(errors, f"Scope {scope.name} project listing failed: {exc}")
                continue

            scope_counts[scope.name] = len(projects)
            LOG.info("Scope %s: %d project(s)", scope.name, len(projects))
            if not projects:
                continue

            for project in projects:
                entry = self._backup_project(paths.root, scope, project, errors)
                if entry is not None:
                    entries.append(entry)

        manifest = Manifest(
            run_id=paths.run_id,
            started_at=started_at,
            completed_at=self._clock(),
            scopes=scope_counts,
            projects=entries,
            errors=errors,
        )
        manifest.write(paths.root / "manifest.json")

        if errors:
            raise BackupRunError(f"Backup {paths.run_id} completed with {len(errors)} error(s)", errors=errors)

        LOG.info("Backup completed: %d project file(s) in %s", len(entries), paths.root)
        return paths.root

    def _backup_project(
        self,
        run_root: Path,
        scope: Scope,
        project: Project,
        errors: List[str],
    ) -> Optional[ProjectManifest]:
        entry = ProjectManifest(scope=scope.name, project_id=project.id, project_name=project.name)
        try:
            variables = self._api.get_project_env(project.id, team_id=scope.team_id)
            if variables is None:
                LOG.debug("Project %s/%s returned no env collection; skipping", scope.name, project.name)
                return None
            path = self._storage.write_project(run_root, scope, project, variables)
        except RECOVERABLE_ERRORS as exc:
            if self._on_error == "abort":
                raise
            entry.backup_status = "failed"
            entry.error = str(exc)
            self._record_failure(errors, f"Project {scope.name}/{project.name} backup failed: {exc}")
            return entry

        entry.variable_count = len(variables)
        entry.file_path = str(path.relative_to(run_root))
        LOG.info("  %s: %d variable(s)", project.name, len(variables))
        return entry

    @staticmethod
    def _record_failure(errors: List[str], message: str) -> None:
        LOG.error(message)
        errors.append(message)
