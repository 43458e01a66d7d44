from __future__ import annotations

import logging
from typing import Callable, List, Optional, Set, TypeVar

from .models import Cursor, Page

LOG = logging.getLogger(__name__)

T = TypeVar("T")

PageFetcher = Callable[[int, Optional[Cursor]], Page[T]]


class PaginationError(Exception):
    """Raised when a paginated listing stops advancing its cursor."""


def fetch_all_pages(fetch_page: PageFetcher[T], page_size: int) -> List[T]:
    """Drain a cursor-paginated listing into a list.

    ``fetch_page(limit, cursor)`` returns one page. Only a null cursor ends the
    listing; short or empty pages that still carry a cursor are followed.
    """
    if not isinstance(page_size, int) or page_size < 1:
        raise ValueError(f"page_size must be a positive integer, got {page_size!r}")

    items: List[T] = []
    cursor: Optional[Cursor] = None
    seen_cursors: Set[Cursor] = set()
    pages = 0

    while True:
        page = fetch_page(page_size, cursor)
        pages += 1
        items.extend(page.items)

        next_cursor = page.next_cursor
        if next_cursor is None:
            break
        if next_cursor in seen_cursors:
            raise PaginationError(
                f"Cursor {next_cursor!r} repeated after page {pages}; listing would not terminate"
            )
        seen_cursors.add(next_cursor)
        cursor = next_cursor

    LOG.debug("Collected %d item(s) across %d page(s)", len(items), pages)
    return items
