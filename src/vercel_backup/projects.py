from __future__ import annotations

import logging
from typing import List, Set

from .api import VercelAPI
from .config import MAX_PAGE_SIZE
from .models import Project, Scope
from .pagination import fetch_all_pages

LOG = logging.getLogger(__name__)


def list_projects(api: VercelAPI, scope: Scope, page_size: int = MAX_PAGE_SIZE) -> List[Project]:
    """Return every project in ``scope`` in API page order.

    A team scope without an id is a misconfigured entry and yields nothing
    without touching the network.
    """
    if not scope.personal and scope.id is None:
        LOG.debug("Scope %s has no team id; skipping project listing", scope.name)
        return []

    team_id = scope.team_id
    projects = fetch_all_pages(
        lambda limit, until: api.list_projects_page(limit, until, team_id=team_id),
        page_size,
    )

    unique: List[Project] = []
    seen: Set[str] = set()
    for project in projects:
        if project.id in seen:
            LOG.debug("Dropping duplicate project %s in scope %s", project.id, scope.name)
            continue
        seen.add(project.id)
        unique.append(project)
    return unique
