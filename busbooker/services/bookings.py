"""Booking lifecycle: listing, the 24h cancellation window, tickets.

Stored status is confirmed / cancelled / completed; "past" is derived from
the departure time and never stored.
"""

from __future__ import annotations

import dataclasses
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterable

import pytz

from busbooker.models import Booking, BookingStatus, OperationResult, departure_datetime
from busbooker.services.api import BusApi
from busbooker.services.base import BaseService
from busbooker.services.session import SessionTokenManager
from busbooker.utils.text import ticket_filename

CANCELLATION_WINDOW = timedelta(hours=24)

MODIFY_NOT_AVAILABLE = "Ticket modification is not available yet."


def _wall(now: datetime) -> datetime:
    return now.replace(tzinfo=None)


def is_cancellable_or_modifiable(
    departure_date: date | None, departure_time: str | None, now: datetime
) -> bool:
    """True strictly before departure − 24h; unknown departures are not eligible."""
    departure = departure_datetime(departure_date, departure_time)
    if departure is None:
        return False
    return _wall(now) < departure - CANCELLATION_WINDOW


def is_upcoming(booking: Booking, now: datetime) -> bool:
    departure = booking.outbound_route.departure_at()
    return (
        booking.status == BookingStatus.CONFIRMED
        and departure is not None
        and departure > _wall(now)
    )


def partition(
    bookings: Iterable[Booking], now: datetime
) -> tuple[list[Booking], list[Booking]]:
    """Split into (upcoming, history); history covers cancelled, completed and past."""
    upcoming: list[Booking] = []
    history: list[Booking] = []
    for booking in bookings:
        (upcoming if is_upcoming(booking, now) else history).append(booking)
    return upcoming, history


class BookingLifecycleManager(BaseService):

    def __init__(
        self,
        api: BusApi,
        session: SessionTokenManager,
        *,
        timezone: str = "Africa/Abidjan",
        tickets_dir: Path | str = ".",
    ) -> None:
        super().__init__("bookings", session)
        self.api = api
        self.tz = pytz.timezone(timezone)
        self.tickets_dir = Path(tickets_dir)
        self.bookings: list[Booking] = []

    def now(self) -> datetime:
        return datetime.now(tz=self.tz)

    @property
    def upcoming(self) -> list[Booking]:
        return partition(self.bookings, self.now())[0]

    @property
    def history(self) -> list[Booking]:
        return partition(self.bookings, self.now())[1]

    def can_cancel(self, booking: Booking, now: datetime | None = None) -> bool:
        route = booking.outbound_route
        return booking.status == BookingStatus.CONFIRMED and is_cancellable_or_modifiable(
            route.departure_date, route.departure_time, now or self.now()
        )

    def _require_session(self) -> OperationResult | None:
        if self.session is not None and not self.session.is_authenticated:
            return OperationResult.failure("Please sign in to manage your bookings.")
        return None

    async def fetch_bookings(self) -> OperationResult:
        denied = self._require_session()
        if denied:
            return denied
        result = await self._call(
            "get_user_bookings", self.api.get_user_bookings,
            fallback="Could not load your bookings.",
        )
        if not result.success:
            return result
        raw = result.data.get("data") if isinstance(result.data, dict) else None
        self.bookings = [Booking.from_dict(b) for b in raw or () if isinstance(b, dict)]
        self.logger.info("Loaded %d bookings", len(self.bookings))
        return OperationResult.ok(data=self.bookings)

    async def cancel(self, booking: Booking) -> OperationResult:
        denied = self._require_session()
        if denied:
            return denied
        if booking.status != BookingStatus.CONFIRMED:
            return OperationResult.failure(f"Booking {booking.id} is not confirmed and cannot be cancelled.")
        if not self.can_cancel(booking):
            return OperationResult.failure(
                "Bookings can only be cancelled more than 24 hours before departure."
            )

        result = await self._call(
            "update_booking_status",
            lambda: self.api.update_booking_status(booking.id, {"status": BookingStatus.CANCELLED.value}),
            fallback="Could not cancel the booking.",
        )
        if not result.success:
            return result

        cancelled = dataclasses.replace(booking, status=BookingStatus.CANCELLED)
        self.bookings = [cancelled if b.id == booking.id else b for b in self.bookings]
        self.logger.info("Booking %s cancelled", booking.id)
        return OperationResult.ok(f"Booking {booking.id} cancelled.", data=cancelled)

    async def download_ticket(
        self, booking_id: str, directory: Path | str | None = None
    ) -> OperationResult:
        denied = self._require_session()
        if denied:
            return denied
        target = Path(directory) if directory is not None else self.tickets_dir
        result = await self._call(
            "download_ticket", lambda: self.api.download_ticket(booking_id),
            fallback="Could not download the ticket.",
        )
        if not result.success:
            return result

        path = target / ticket_filename(booking_id)
        try:
            target.mkdir(parents=True, exist_ok=True)
            path.write_bytes(result.data)
        except OSError as exc:
            self.logger.error("Cannot write ticket to %s: %s", path, exc)
            return OperationResult.failure(f"Could not save the ticket: {exc}")

        self.logger.info("Ticket for %s saved to %s", booking_id, path)
        return OperationResult.ok("Ticket downloaded.", data=path)

    def modify(self, booking: Booking) -> OperationResult:
        return OperationResult.info(MODIFY_NOT_AVAILABLE)
