"""Browse every scheduled route, with exact-match filters and paging."""

from __future__ import annotations

import dataclasses
from typing import Any, Iterable

from busbooker.models import ListingCriteria, OperationResult, Route
from busbooker.services.api import BusApi
from busbooker.services.base import BaseService
from busbooker.services.search import PAGE_SIZE, page_count, paginate
from busbooker.services.session import SessionTokenManager
from busbooker.utils.text import UNKNOWN

TIME_TOLERANCE_MINUTES = 60


def unique_options(routes: Iterable[Route], attr: str) -> list[str]:
    """Sorted distinct display names for *attr* ("origin_name", ...)."""
    names = {getattr(r, attr) for r in routes}
    return sorted(n for n in names if n and n != UNKNOWN)


def _minutes(hhmm: str) -> int | None:
    try:
        h, m = hhmm.split(":")[:2]
        return int(h) * 60 + int(m)
    except ValueError:
        return None


def _same_name(name: str, wanted: str) -> bool:
    return name.lower() == wanted.lower()


def listing_matches(route: Route, c: ListingCriteria) -> bool:
    if c.origin and not _same_name(route.origin_name, c.origin):
        return False
    if c.destination and not _same_name(route.destination_name, c.destination):
        return False
    if c.company and not _same_name(route.company_name, c.company):
        return False
    if c.day:
        if route.departure_date is None or route.departure_date.isoformat() != c.day:
            return False
    if c.departure_time:
        wanted = _minutes(c.departure_time)
        actual = _minutes(route.departure_time or "")
        if wanted is not None:
            if actual is None or abs(actual - wanted) > TIME_TOLERANCE_MINUTES:
                return False
    return True


def filter_listing(routes: Iterable[Route], criteria: ListingCriteria) -> list[Route]:
    return [r for r in routes if listing_matches(r, criteria)]


class RouteListing(BaseService):

    def __init__(self, api: BusApi, session: SessionTokenManager | None = None) -> None:
        super().__init__("listing", session)
        self.api = api
        self.routes: list[Route] = []
        self.criteria = ListingCriteria()
        self.page = 1
        self.error: str | None = None

    async def load(self) -> OperationResult:
        result = await self._call(
            "get_all_routes", self.api.get_all_routes, fallback="Could not load routes."
        )
        if not result.success:
            self.error = result.message
            return result

        raw = result.data.get("data") if isinstance(result.data, dict) else None
        self.routes = [Route.from_dict(r) for r in raw or () if isinstance(r, dict)]
        self.error = None
        self.page = 1
        self.logger.info("Loaded %d routes", len(self.routes))
        return OperationResult.ok(data=self.routes)

    # ── Options ───────────────────────────────────────────────────────

    @property
    def origins(self) -> list[str]:
        return unique_options(self.routes, "origin_name")

    @property
    def destinations(self) -> list[str]:
        return unique_options(self.routes, "destination_name")

    @property
    def companies(self) -> list[str]:
        return unique_options(self.routes, "company_name")

    # ── Criteria & paging ─────────────────────────────────────────────

    def update_criteria(self, **changes: Any) -> ListingCriteria:
        self.criteria = dataclasses.replace(self.criteria, **changes)
        self.page = 1
        return self.criteria

    def clear_criteria(self) -> None:
        self.criteria = ListingCriteria()
        self.page = 1

    @property
    def visible(self) -> list[Route]:
        return filter_listing(self.routes, self.criteria)

    @property
    def page_count(self) -> int:
        return page_count(len(self.visible), PAGE_SIZE)

    def go_to_page(self, page: int) -> int:
        self.page = min(max(1, page), max(1, self.page_count))
        return self.page

    def current_page_items(self) -> list[Route]:
        return paginate(self.visible, self.page, PAGE_SIZE)
