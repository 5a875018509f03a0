from __future__ import annotations

import asyncio
from typing import Any

from busbooker.models import SessionState
from busbooker.services.session import SessionTokenManager
from busbooker.utils.storage import StateStore


class StubApi:
    """Stands in for BusApi: canned responses per method, optional gates.

    A response that is an exception instance is raised instead of returned.
    A list of responses is consumed one call at a time.
    """

    base_url = "http://stub.local"

    def __init__(self, **responses: Any):
        self.responses = responses
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.gates: dict[str, asyncio.Event] = {}

    async def _respond(self, name: str, *args: Any) -> Any:
        self.calls.append((name, args))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        response = self.responses.get(name, {"success": True})
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for n, args in self.calls if n == name]

    async def login(self, credentials):
        return await self._respond("login", credentials)

    async def register(self, user_data):
        return await self._respond("register", user_data)

    async def get_profile(self):
        return await self._respond("get_profile")

    async def update_profile(self, fields):
        return await self._respond("update_profile", fields)

    async def logout(self):
        return await self._respond("logout")

    async def search_routes(self, params):
        return await self._respond("search_routes", params)

    async def get_all_routes(self):
        return await self._respond("get_all_routes")

    async def get_companies(self):
        return await self._respond("get_companies")

    async def get_all_cities(self):
        return await self._respond("get_all_cities")

    async def get_user_bookings(self):
        return await self._respond("get_user_bookings")

    async def update_booking_status(self, booking_id, status_data):
        return await self._respond("update_booking_status", booking_id, status_data)

    async def download_ticket(self, booking_id):
        return await self._respond("download_ticket", booking_id)


def route_dict(
    rid: str = "r1",
    day: str | None = "2025-06-01",
    time: str | None = "08:00",
    *,
    origin: Any = "Abidjan",
    destination: Any = "Yamoussoukro",
    company: Any = "UTB",
    price: float = 10_000,
    amenities: list[str] | None = None,
    seats: int = 20,
) -> dict[str, Any]:
    return {
        "_id": rid,
        "from": origin,
        "to": destination,
        "departureDate": day,
        "departureTime": time,
        "arrivalTime": "11:00",
        "price": price,
        "companyName": company,
        "availableSeats": seats,
        "amenities": amenities or [],
    }


USER = {"_id": "u1", "firstName": "Awa", "lastName": "Koné", "email": "awa@example.ci", "phone": "0701020304"}


def signed_in_session(api: StubApi, tmp_path, token: str = "tok-1") -> SessionTokenManager:
    store = StateStore(tmp_path / "state.json")
    store.save_token(token)
    session = SessionTokenManager(api, store)
    session._token = token
    session.state = SessionState.AUTHENTICATED
    return session
