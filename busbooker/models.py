"""Domain models: pure dataclasses, no framework dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from busbooker.utils.text import display_name, leading_int, parse_day


class TimeBand(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class PriceBand(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Amenity(str, Enum):
    WIFI = "wifi"
    POWER = "power"
    AC = "ac"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    PENDING = "pending"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> BookingStatus:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    RESTORING = "restoring"
    AUTHENTICATED = "authenticated"


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Route:
    id: str
    origin: Any                    # "Abidjan" or {"name": "Abidjan", ...}
    destination: Any
    departure_date: date | None
    departure_time: str | None     # "HH:MM", zero-padded 24h
    arrival_time: str | None = None
    duration: str | None = None
    price: float = 0.0
    company: Any = None            # "UTB" or {"name": "UTB"}
    available_seats: int = 0
    amenities: frozenset[str] = frozenset()
    stops: Any = 0

    @property
    def origin_name(self) -> str:
        return display_name(self.origin)

    @property
    def destination_name(self) -> str:
        return display_name(self.destination)

    @property
    def company_name(self) -> str:
        return display_name(self.company)

    @property
    def departure_hour(self) -> int:
        try:
            return int((self.departure_time or "0").split(":")[0])
        except ValueError:
            return 0

    def departure_at(self) -> datetime | None:
        """Naive local date+time of departure; None when the date is unknown."""
        return departure_datetime(self.departure_date, self.departure_time)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Route:
        seats = raw.get("availableSeats") or 0
        try:
            seats = max(0, int(seats))
        except (TypeError, ValueError):
            seats = 0
        try:
            price = float(raw.get("price") or 0)
        except (TypeError, ValueError):
            price = 0.0
        return cls(
            id=str(raw.get("_id") or raw.get("id") or ""),
            origin=raw.get("from"),
            destination=raw.get("to"),
            departure_date=parse_day(raw.get("departureDate")),
            departure_time=raw.get("departureTime") or None,
            arrival_time=raw.get("arrivalTime") or None,
            duration=raw.get("duration"),
            price=price,
            company=raw.get("companyName"),
            available_seats=seats,
            amenities=_tags(raw.get("amenities")),
            stops=raw.get("stops") or 0,
        )


@dataclass(frozen=True)
class SearchQuery:
    origin: str
    destination: str
    departure_date: str
    passengers: int = 1
    return_date: str | None = None
    departure_time: str | None = None
    company_name: str | None = None

    def to_params(self) -> dict[str, str]:
        params = {
            "from": self.origin,
            "to": self.destination,
            "departureDate": self.departure_date,
            "passengers": str(self.passengers),
        }
        if self.departure_time:
            params["departureTime"] = self.departure_time
        if self.company_name:
            params["companyName"] = self.company_name
        if self.return_date:
            params["returnDate"] = self.return_date
        return params


@dataclass(frozen=True)
class FilterCriteria:
    """Client-side refinements; "all" / None means no constraint."""

    from_city: str = "all"
    to_city: str = "all"
    day: date | None = None
    time_band: str = "all"
    company: str = "all"
    price_band: str = "all"
    amenity: str = "all"

    @property
    def is_active(self) -> bool:
        return self != FilterCriteria()


@dataclass(frozen=True)
class ListingCriteria:
    """Exact-match filters of the all-routes listing; empty means no constraint."""

    origin: str = ""
    destination: str = ""
    company: str = ""
    day: str = ""              # "YYYY-MM-DD"
    departure_time: str = ""   # "HH:MM", matched within a tolerance


@dataclass
class UserProfile:
    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    date_of_birth: str | None = None
    role: str = "user"

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> UserProfile:
        return cls(
            id=str(raw.get("_id") or raw.get("id") or ""),
            first_name=raw.get("firstName") or "",
            last_name=raw.get("lastName") or "",
            email=raw.get("email") or "",
            phone=raw.get("phone") or "",
            date_of_birth=raw.get("dateOfBirth"),
            role=raw.get("role") or "user",
        )


@dataclass(frozen=True)
class Booking:
    id: str
    status: BookingStatus
    outbound_route: Route
    selected_seats: tuple[str, ...]
    return_route: Route | None = None
    total_price: float | None = None
    passengers: int = 1

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Booking:
        outbound = raw.get("outboundRoute")
        ret = raw.get("returnRoute")
        total = raw.get("totalPrice")
        seats = raw.get("selectedSeats")
        passengers = raw.get("passengers")
        if isinstance(passengers, list):
            passengers = len(passengers)
        return cls(
            id=str(raw.get("_id") or raw.get("id") or ""),
            status=BookingStatus.parse(raw.get("status")),
            outbound_route=_route_ref(outbound),
            selected_seats=tuple(str(s) for s in seats) if isinstance(seats, list) else (),
            return_route=_route_ref(ret) if ret else None,
            total_price=float(total) if isinstance(total, (int, float)) else None,
            passengers=max(1, leading_int(passengers, default=1)),
        )


@dataclass
class RegistrationDraft:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    date_of_birth: date | None = None
    password: str = ""
    confirm_password: str = ""
    accept_terms: bool = False
    current_step: int = 1
    field_errors: dict[str, str] = field(default_factory=dict)


@dataclass
class OperationResult:
    success: bool
    message: str = ""
    data: Any = None
    level: NoticeLevel = NoticeLevel.SUCCESS
    field_errors: dict[str, str] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = "", data: Any = None) -> OperationResult:
        return cls(success=True, message=message, data=data)

    @classmethod
    def failure(
        cls, message: str, field_errors: dict[str, str] | None = None
    ) -> OperationResult:
        return cls(
            success=False,
            message=message,
            level=NoticeLevel.ERROR,
            field_errors=dict(field_errors or {}),
        )

    @classmethod
    def info(cls, message: str) -> OperationResult:
        return cls(success=False, message=message, level=NoticeLevel.INFO)


@dataclass(frozen=True)
class AuthDecision:
    allowed: bool
    target: str
    redirect_to: str | None = None
    state: dict[str, Any] = field(default_factory=dict)


def departure_datetime(day: date | None, hhmm: str | None) -> datetime | None:
    """Naive local datetime for a date and an "HH:MM" time (missing time = midnight)."""
    if day is None:
        return None
    try:
        h, m = (hhmm or "00:00").split(":")[:2]
        return datetime(day.year, day.month, day.day, int(h), int(m))
    except ValueError:
        return datetime(day.year, day.month, day.day)


def _route_ref(value: Any) -> Route:
    """Embedded route record, or a bare route id when the server did not populate it."""
    if isinstance(value, dict):
        return Route.from_dict(value)
    return Route(
        id=str(value or ""), origin=None, destination=None,
        departure_date=None, departure_time=None,
    )


def _tags(value: Any) -> frozenset[str]:
    if not isinstance(value, (list, tuple)):
        return frozenset()
    return frozenset(str(a).lower() for a in value)
