"""
Pagination strategies for CRM listing endpoints.

Each strategy walks one remote listing protocol to completion behind the
same contract: drain(path, items_key, extra) -> list of raw records, in
server order, deduplicated by id. Pages are requested strictly in
sequence since every request depends on the previous response.
"""

from abc import ABC, abstractmethod
from typing import Any

from app.infrastructure.observability.logging import get_logger
from app.services.crm.client import CrmApiClient

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100


class Paginator(ABC):
    """Base class for listing protocols."""

    def __init__(self, client: CrmApiClient, page_size: int = DEFAULT_PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    @abstractmethod
    async def _collect(self, path: str, items_key: str, extra: dict[str, Any]) -> list[dict]:
        """Fetch every page and return the raw concatenated items."""

    async def drain(
        self, path: str, items_key: str, extra: dict[str, Any] | None = None
    ) -> list[dict]:
        items = await self._collect(path, items_key, dict(extra or {}))
        unique = _dedupe_by_id(items)

        logger.info(
            "Listing drained",
            path=path,
            strategy=type(self).__name__,
            item_count=len(unique),
            duplicates_dropped=len(items) - len(unique),
        )
        return unique


class CursorPaginator(Paginator):
    """
    v1 cursor pagination over GET.

    The cursor is the id of the last item on the previous page; the walk
    continues while the page was non-empty and meta reports a next page.
    """

    async def _collect(self, path: str, items_key: str, extra: dict[str, Any]) -> list[dict]:
        all_items: list[dict] = []
        start_after_id = None
        page = 0

        while True:
            params = {"limit": self.page_size, **extra}
            if start_after_id:
                params["startAfterId"] = start_after_id

            response = await self.client.send("GET", path, params=params)
            items = _page_items(response, items_key)
            all_items.extend(items)
            page += 1

            logger.debug("Fetched cursor page", path=path, page=page, page_items=len(items))

            if not items or not self._has_next_page(response):
                break
            start_after_id = items[-1].get("id")
            if not start_after_id:
                logger.warning("Cursor page ended without an id, stopping", path=path, page=page)
                break

        return all_items

    def _has_next_page(self, response: dict) -> bool:
        meta = response.get("meta") or {}
        return bool(meta.get("nextPageUrl"))


class CursorTokenPaginator(CursorPaginator):
    """v2 cursor pagination: a next-page URL or a next-page token both mean more data."""

    def _has_next_page(self, response: dict) -> bool:
        meta = response.get("meta") or {}
        return bool(meta.get("nextPageUrl") or meta.get("nextPage"))


class PagePostPaginator(Paginator):
    """
    v2 page-indexed pagination over POST.

    Stops once the running item count reaches the reported total or a page
    comes back empty, so a missing or inconsistent total cannot loop forever.
    """

    async def _collect(self, path: str, items_key: str, extra: dict[str, Any]) -> list[dict]:
        all_items: list[dict] = []
        page = 1

        while True:
            body = {"page": page, "limit": self.page_size, **extra}

            response = await self.client.send("POST", path, json=body)
            items = _page_items(response, items_key)
            all_items.extend(items)

            total = _reported_total(response)
            logger.debug(
                "Fetched page",
                path=path,
                page=page,
                page_items=len(items),
                total=total,
            )

            if not items or len(all_items) >= total:
                break
            page += 1

        return all_items


class SingleRequestPaginator(Paginator):
    """Unpaginated listing: one GET returns everything."""

    async def _collect(self, path: str, items_key: str, extra: dict[str, Any]) -> list[dict]:
        response = await self.client.send("GET", path, params=extra)
        return _page_items(response, items_key)


def _page_items(response: dict, items_key: str) -> list[dict]:
    items = response.get(items_key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def _reported_total(response: dict) -> int:
    meta = response.get("meta") or {}
    total = meta.get("total")
    if total is None:
        total = response.get("total")
    try:
        return int(total or 0)
    except (TypeError, ValueError):
        return 0


def _dedupe_by_id(items: list[dict]) -> list[dict]:
    seen: set = set()
    unique = []
    for item in items:
        item_id = item.get("id")
        if isinstance(item_id, (str, int)):
            if item_id in seen:
                continue
            seen.add(item_id)
        unique.append(item)
    return unique
