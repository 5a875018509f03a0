"""Endpoint table of the bus booking API.

Every method returns the decoded JSON envelope ``{success, data?, token?,
user?, message?}`` (or raw bytes for tickets) and raises ServiceError
subclasses from busbooker.utils.http on transport or HTTP failures.
"""

from __future__ import annotations

from typing import Any

from busbooker.utils.http import ApiClient


class BusApi:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    @property
    def base_url(self) -> str:
        return self.client.base_url

    # ── Auth ──────────────────────────────────────────────────────────

    async def login(self, credentials: dict[str, str]) -> Any:
        return await self.client.post_json("/users/login", credentials)

    async def register(self, user_data: dict[str, str]) -> Any:
        return await self.client.post_json("/users/register", user_data)

    async def get_profile(self) -> Any:
        return await self.client.get_json("/users/profile")

    async def update_profile(self, fields: dict[str, Any]) -> Any:
        return await self.client.put_json("/users/profile", fields)

    async def logout(self) -> Any:
        return await self.client.post_json("/users/logout")

    # ── Travel ────────────────────────────────────────────────────────

    async def search_routes(self, params: dict[str, str]) -> Any:
        return await self.client.get_json("/travel/routes/search", params=params)

    async def get_all_routes(self) -> Any:
        return await self.client.get_json("/travel/routes/all")

    async def get_companies(self) -> Any:
        return await self.client.get_json("/travel/companies")

    async def get_all_cities(self) -> Any:
        return await self.client.get_json("/travel/cities/all")

    # ── Bookings ──────────────────────────────────────────────────────

    async def get_user_bookings(self) -> Any:
        return await self.client.get_json("/travel/bookings/my")

    async def update_booking_status(self, booking_id: str, status_data: dict[str, str]) -> Any:
        return await self.client.put_json(f"/travel/bookings/{booking_id}/status", status_data)

    async def download_ticket(self, booking_id: str) -> bytes:
        return await self.client.get_bytes(f"/travel/bookings/{booking_id}/ticket")
