from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List


@dataclass
class ProjectManifest:
    scope: str
    project_id: str
    project_name: str
    variable_count: int = 0
    file_path: str = ""
    backup_status: str = "success"
    error: str = ""


@dataclass
class Manifest:
    run_id: str
    started_at: datetime
    completed_at: datetime
    scopes: Dict[str, int]
    projects: List[ProjectManifest]
    errors: List[str] = field(default_factory=list)
    schema_version: str = "1.0.0"

    def to_dict(self) -> Dict:
        return {
            "schema_version": self.schema_version,
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "scopes": self.scopes,
            "projects": [dataclasses.asdict(project) for project in self.projects],
            "errors": self.errors,
        }

    def write(self, path: Path) -> None:
        with path.open("w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh, indent=2)
