"""Trip search: request building, past-departure exclusion, local filters.

Pure data transforms (no I/O): build_request, apply_temporal_exclusion,
filter_routes, sort_routes, group_by_date, paginate/page_count.

SearchFilterEngine wraps them around the network: it issues searches,
discards responses superseded by a newer search, loads the filter
vocabularies best-effort and gates trip selection behind the session.
"""

from __future__ import annotations

import dataclasses
import itertools
import math
from datetime import date, datetime
from typing import Any, Iterable, Mapping

import pytz

from busbooker.models import (
    Amenity,
    AuthDecision,
    FilterCriteria,
    OperationResult,
    PriceBand,
    Route,
    SearchQuery,
    TimeBand,
)
from busbooker.services.api import BusApi
from busbooker.services.base import BaseService
from busbooker.services.session import SessionTokenManager
from busbooker.utils.cache import cached, invalidate
from busbooker.utils.http import ServiceError
from busbooker.utils.text import display_name, leading_int

ALL = "all"
PAGE_SIZE = 10

# Optional request fields the search form pre-fills; never forwarded as-is.
PLACEHOLDER_DEFAULTS = {"departureTime": frozenset({"08:00"}), "companyName": frozenset({""})}

LOW_PRICE_MAX = 15_000
MEDIUM_PRICE_MAX = 30_000

_TIME_BANDS = {
    TimeBand.MORNING: (6, 12),
    TimeBand.AFTERNOON: (12, 18),
    TimeBand.EVENING: (18, 24),
    TimeBand.NIGHT: (0, 6),
}

_AMENITY_TAGS = {
    Amenity.WIFI: frozenset({"wifi"}),
    Amenity.POWER: frozenset({"power"}),
    Amenity.AC: frozenset({"ac", "climatisation"}),
}

FALLBACK_COMPANIES = ["SOTRA", "UTB", "CTA", "TCV"]
FALLBACK_CITIES = ["Abidjan", "Yamoussoukro", "Bouaké", "San-Pédro", "Daloa"]

UNDATED = "undated"
SEAT_SELECTION_PATH = "/select-seat"


# ── Request building ──────────────────────────────────────────────────────────

def build_request(raw_params: Mapping[str, Any]) -> SearchQuery:
    """Normalize raw form values into the query actually sent to the API."""
    passengers = leading_int(raw_params.get("passengers"), default=1)
    return_date = _optional(raw_params, "returnDate")
    if raw_params.get("tripType") == "oneWay":
        return_date = None
    return SearchQuery(
        origin=str(raw_params.get("from") or ""),
        destination=str(raw_params.get("to") or ""),
        departure_date=str(raw_params.get("departureDate") or ""),
        passengers=max(1, passengers),
        return_date=return_date,
        departure_time=_optional(raw_params, "departureTime"),
        company_name=_optional(raw_params, "companyName"),
    )


def _optional(raw_params: Mapping[str, Any], key: str) -> str | None:
    value = raw_params.get(key)
    if value is None:
        return None
    value = str(value).strip()
    if not value or value == ALL or value in PLACEHOLDER_DEFAULTS.get(key, ()):
        return None
    return value


# ── Temporal exclusion ────────────────────────────────────────────────────────

def apply_temporal_exclusion(routes: Iterable[Route], now: datetime) -> list[Route]:
    """Drop departures that already left.

    *now* is wall-clock time in the operator's timezone; an aware datetime is
    read as-is, its offset is not converted.
    """
    wall = now.replace(tzinfo=None)
    today = wall.date()
    kept: list[Route] = []
    for route in routes:
        day = route.departure_date
        if day is None or day > today:
            kept.append(route)
        elif day == today and route.departure_at() > wall:
            kept.append(route)
    return kept


# ── Filters ───────────────────────────────────────────────────────────────────

def filter_routes(routes: Iterable[Route], criteria: FilterCriteria) -> list[Route]:
    return [r for r in routes if matches(r, criteria)]


def matches(route: Route, c: FilterCriteria) -> bool:
    if _is_set(c.from_city) and not _contains(route.origin_name, c.from_city):
        return False
    if _is_set(c.to_city) and not _contains(route.destination_name, c.to_city):
        return False
    if c.day is not None and route.departure_date != c.day:
        return False
    if _is_set(c.time_band) and not in_time_band(route, c.time_band):
        return False
    if _is_set(c.company) and not _contains(route.company_name, c.company):
        return False
    if _is_set(c.price_band) and not in_price_band(route.price, c.price_band):
        return False
    if _is_set(c.amenity) and not has_amenity(route, c.amenity):
        return False
    return True


def in_time_band(route: Route, band: str) -> bool:
    try:
        start, end = _TIME_BANDS[TimeBand(band)]
    except ValueError:
        return True
    return start <= route.departure_hour < end


def in_price_band(price: float, band: str) -> bool:
    price = price or 0
    if band == PriceBand.LOW:
        return price <= LOW_PRICE_MAX
    if band == PriceBand.MEDIUM:
        return LOW_PRICE_MAX < price <= MEDIUM_PRICE_MAX
    if band == PriceBand.HIGH:
        return price > MEDIUM_PRICE_MAX
    return True


def has_amenity(route: Route, amenity: str) -> bool:
    try:
        tags = _AMENITY_TAGS[Amenity(amenity)]
    except ValueError:
        return True
    return bool(tags & route.amenities)


def _is_set(value: str | None) -> bool:
    return bool(value) and value != ALL


def _contains(name: str, needle: str) -> bool:
    return needle.lower() in name.lower()


# ── Ordering & grouping ───────────────────────────────────────────────────────

def _sort_key(route: Route) -> tuple[bool, date, str]:
    # HH:MM is zero-padded 24h, so text order is chronological order.
    return (
        route.departure_date is None,
        route.departure_date or date.max,
        route.departure_time or "00:00",
    )


def sort_routes(routes: Iterable[Route]) -> list[Route]:
    return sorted(routes, key=_sort_key)


def group_by_date(routes: Iterable[Route]) -> dict[str, list[Route]]:
    """ISO date → routes, keys ascending, each group ordered by time."""
    grouped: dict[str, list[Route]] = {}
    for route in sort_routes(routes):
        key = route.departure_date.isoformat() if route.departure_date else UNDATED
        grouped.setdefault(key, []).append(route)
    return grouped


# ── Pagination ────────────────────────────────────────────────────────────────

def page_count(total: int, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(total / page_size)


def paginate(items: list[Any], page: int, page_size: int = PAGE_SIZE) -> list[Any]:
    start = (max(1, page) - 1) * page_size
    return items[start:start + page_size]


# ── Result view ───────────────────────────────────────────────────────────────

class SearchResults:
    """Last fetched result sets plus the criteria currently applied to them.

    Refinement is a pure recomputation over the stored sets; it never
    re-fetches. Any criteria change sends the listing back to page 1.
    """

    def __init__(self, outbound: list[Route] | None = None, return_: list[Route] | None = None) -> None:
        self.outbound = list(outbound or [])
        self.return_ = list(return_ or [])
        self.criteria = FilterCriteria()
        self.page = 1

    def update_criteria(self, **changes: Any) -> FilterCriteria:
        self.criteria = dataclasses.replace(self.criteria, **changes)
        self.page = 1
        return self.criteria

    def clear_criteria(self) -> None:
        self.criteria = FilterCriteria()
        self.page = 1

    @property
    def has_active_filters(self) -> bool:
        return self.criteria.is_active

    @property
    def visible_outbound(self) -> list[Route]:
        return sort_routes(filter_routes(self.outbound, self.criteria))

    @property
    def visible_return(self) -> list[Route]:
        return sort_routes(filter_routes(self.return_, self.criteria))

    def grouped_outbound(self) -> dict[str, list[Route]]:
        return group_by_date(self.visible_outbound)

    def grouped_return(self) -> dict[str, list[Route]]:
        return group_by_date(self.visible_return)

    @property
    def page_count(self) -> int:
        return page_count(len(self.visible_outbound))

    def go_to_page(self, page: int) -> int:
        self.page = min(max(1, page), max(1, self.page_count))
        return self.page

    def current_page_items(self) -> list[Route]:
        return paginate(self.visible_outbound, self.page)

    @property
    def is_empty(self) -> bool:
        return not self.visible_outbound and not self.visible_return


# ── Engine ────────────────────────────────────────────────────────────────────

class SearchFilterEngine(BaseService):

    def __init__(
        self,
        api: BusApi,
        session: SessionTokenManager,
        *,
        timezone: str = "Africa/Abidjan",
    ) -> None:
        super().__init__("search", session)
        self.api = api
        self.tz = pytz.timezone(timezone)
        self.results = SearchResults()
        self.query: SearchQuery | None = None
        self.error: str | None = None
        self.companies: list[str] = list(FALLBACK_COMPANIES)
        self.cities: list[Any] = list(FALLBACK_CITIES)
        self._sequence = itertools.count(1)
        self._latest = 0

    def now(self) -> datetime:
        return datetime.now(tz=self.tz)

    async def search(self, raw_params: Mapping[str, Any]) -> OperationResult:
        """Fetch routes; a response overtaken by a newer search is dropped."""
        query = build_request(raw_params)
        seq = next(self._sequence)
        self._latest = seq
        self.logger.info("Search #%d %s → %s on %s", seq, query.origin,
                         query.destination, query.departure_date)

        result = await self._call(
            "search", lambda: self.api.search_routes(query.to_params()),
            fallback="Search failed.",
        )
        if seq != self._latest:
            self.logger.debug("Search #%d superseded by #%d, response dropped", seq, self._latest)
            return OperationResult.failure("Search superseded by a newer one.")

        if not result.success:
            self.error = result.message
            return result

        data = result.data.get("data") if isinstance(result.data, dict) else None
        data = data if isinstance(data, dict) else {}
        now = self.now()
        outbound = apply_temporal_exclusion(_parse_routes(data.get("outbound")), now)
        inbound = apply_temporal_exclusion(_parse_routes(data.get("return")), now)

        self.query = query
        self.error = None
        self.results = SearchResults(outbound, inbound)
        self.logger.info("Search #%d: %d outbound, %d return", seq, len(outbound), len(inbound))
        return OperationResult.ok(data=self.results)

    @property
    def cache_scope(self) -> str:
        return getattr(self.api, "base_url", "")

    async def load_vocabularies(self, *, refresh: bool = False) -> None:
        """Companies and cities for the filter pickers; each falls back to built-ins on its own."""
        if refresh:
            invalidate("companies", self.cache_scope)
            invalidate("cities", self.cache_scope)
        try:
            self.companies = await self._fetch_companies()
        except ServiceError as exc:
            self.logger.warning("Companies unavailable, using built-ins: %s", exc)
            self.companies = list(FALLBACK_COMPANIES)
        try:
            self.cities = await self._fetch_cities()
        except ServiceError as exc:
            self.logger.warning("Cities unavailable, using built-ins: %s", exc)
            self.cities = list(FALLBACK_CITIES)

    @cached("companies")
    async def _fetch_companies(self) -> list[str]:
        return [display_name(c) for c in _envelope_list(await self.api.get_companies())]

    @cached("cities")
    async def _fetch_cities(self) -> list[Any]:
        return _envelope_list(await self.api.get_all_cities())

    def select_route(self, route_id: str, *, is_return: bool = False) -> AuthDecision:
        """Seat selection needs a session; anonymous users are sent to log in."""
        state = {
            "selectedRouteId": route_id,
            "isReturnRoute": is_return,
            "searchParams": self.query.to_params() if self.query else {},
        }
        if self.session.is_authenticated:
            return self.session.authorize(SEAT_SELECTION_PATH, state)
        return self.session.authorize(SEAT_SELECTION_PATH, {"bookingData": state})


def _parse_routes(raw: Any) -> list[Route]:
    if not isinstance(raw, list):
        return []
    return [Route.from_dict(r) for r in raw if isinstance(r, dict)]


def _envelope_list(payload: Any) -> list[Any]:
    if not isinstance(payload, dict) or not payload.get("success"):
        raise ServiceError("vocabulary request refused")
    data = payload.get("data")
    if not isinstance(data, list):
        raise ServiceError("vocabulary payload is not a list")
    return data
