from __future__ import annotations

import logging
from typing import List, Set

from .api import VercelAPI
from .config import MAX_PAGE_SIZE
from .models import Scope
from .pagination import fetch_all_pages
from .storage import safe_component

LOG = logging.getLogger(__name__)


def list_scopes(api: VercelAPI, page_size: int = MAX_PAGE_SIZE) -> List[Scope]:
    """Return the personal scope followed by one scope per team, in API order.

    Scope names double as output directory names, so a team whose name
    clashes with an earlier scope (including ``personal``) gets its id
    appended. Any failure while listing teams propagates; no partial list is
    returned.
    """
    teams = fetch_all_pages(api.list_teams_page, page_size)

    personal = Scope.personal_scope()
    scopes: List[Scope] = [personal]
    seen_ids: Set[str] = set()
    taken_names: Set[str] = {_directory_key(personal.name)}
    for team in teams:
        scope = Scope.from_team(team)
        if scope.id is not None:
            if scope.id in seen_ids:
                LOG.debug("Skipping duplicate team %s", scope.id)
                continue
            seen_ids.add(scope.id)

        name = _unique_name(scope, taken_names)
        if name != scope.name:
            LOG.info("Team %s name '%s' is already in use; writing it as '%s'", scope.id, scope.name, name)
            scope = Scope(id=scope.id, name=name)
        taken_names.add(_directory_key(name))
        scopes.append(scope)

    LOG.debug("Resolved %d scope(s) from %d team(s)", len(scopes), len(teams))
    return scopes


def _directory_key(name: str) -> str:
    return safe_component(name).lower()


def _unique_name(scope: Scope, taken: Set[str]) -> str:
    if _directory_key(scope.name) not in taken:
        return scope.name
    base = f"{scope.name}-{scope.id}" if scope.id else scope.name
    candidate = base
    suffix = 2
    while _directory_key(candidate) in taken:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate
