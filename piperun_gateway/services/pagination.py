"""
Bounded aggregation over PipeRun's paginated listing endpoints.
"""

import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200
MAX_PAGES = 20

ListPage = Callable[[dict[str, Any]], Awaitable[Any]]


def _clamp(value: Any, low: int, high: int, default: int) -> int:
    if value is None or isinstance(value, bool):
        value = default
    try:
        value = int(value)
    except (TypeError, ValueError):
        value = default
    return max(low, min(high, value))


def _page_items(response: Any) -> list | None:
    """Items of one page, from {data: [...]} or a bare list; None if neither."""
    if isinstance(response, dict) and isinstance(response.get("data"), list):
        return response["data"]
    if isinstance(response, list):
        return response
    return None


async def fetch_all(
    list_page: ListPage,
    params: dict[str, Any] | None = None,
    page_size: int | None = MAX_PAGE_SIZE,
    max_pages: int | None = 5,
) -> list[Any]:
    """
    Fetch pages 1..max_pages and flatten them into one list.

    Stops early on a short page (fewer items than page_size) or on a response
    that is neither a list nor a {data: [...]} envelope. Page size is clamped
    to [1, 200] and the page count to [1, 20].

    Args:
        list_page: Coroutine taking the query params of one page
        params: Filters sent with every page
        page_size: Items requested per page ("show")
        max_pages: Maximum number of pages to request

    Returns:
        All items in upstream order
    """
    show = _clamp(page_size, 1, MAX_PAGE_SIZE, MAX_PAGE_SIZE)
    pages = _clamp(max_pages, 1, MAX_PAGES, 5)

    items: list[Any] = []
    for page in range(1, pages + 1):
        response = await list_page({**(params or {}), "page": page, "show": show})
        page_items = _page_items(response)
        if page_items is None:
            logger.debug(f"Unrecognized listing shape on page {page}; stopping")
            break

        items.extend(page_items)
        if len(page_items) < show:
            break

    return items
