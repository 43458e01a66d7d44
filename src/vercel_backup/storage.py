from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List

from .models import EnvironmentVariable, Project, Scope

UNSAFE_PATH_CHARS = ("/", "\\", "\x00")


@dataclass
class RunPaths:
    run_id: str
    root: Path


def run_id_for(started_at: datetime) -> str:
    """Whole-second timestamp with colons replaced so it is usable as a directory name."""
    return started_at.replace(microsecond=0, tzinfo=None).isoformat().replace(":", "-")


def safe_component(name: str) -> str:
    for char in UNSAFE_PATH_CHARS:
        name = name.replace(char, "_")
    if name in ("", ".", ".."):
        name = name.replace(".", "_") or "_"
    return name


@dataclass
class FilesystemStorage:
    """Writes one JSON file per project under ``<base_path>/<run-id>/<scope>/``."""

    base_path: Path
    file_naming: str = "name"

    def prepare_run(self, started_at: datetime) -> RunPaths:
        run_id = run_id_for(started_at)
        root = self.base_path / run_id
        root.mkdir(parents=True, exist_ok=True)
        return RunPaths(run_id=run_id, root=root)

    def project_path(self, run_root: Path, scope: Scope, project: Project) -> Path:
        if self.file_naming == "id":
            stem = f"{project.name}-{project.id}"
        else:
            stem = project.name
        return run_root / safe_component(scope.name) / f"{safe_component(stem)}.json"

    def write_project(
        self,
        run_root: Path,
        scope: Scope,
        project: Project,
        variables: List[EnvironmentVariable],
    ) -> Path:
        path = self.project_path(run_root, scope, project)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            json.dump([variable.raw for variable in variables], fh, ensure_ascii=False, indent=2)
        return path
