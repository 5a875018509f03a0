"""Application factory.

Builds the API client, the persisted state store and every service around
one shared session, and closes the shared aiohttp session on shutdown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from busbooker.config import Settings
from busbooker.services.api import BusApi
from busbooker.services.bookings import BookingLifecycleManager
from busbooker.services.listing import RouteListing
from busbooker.services.registration import RegistrationWizardValidator
from busbooker.services.search import SearchFilterEngine
from busbooker.services.session import SessionTokenManager
from busbooker.utils.cache import configure_cache
from busbooker.utils.http import ApiClient, close_session
from busbooker.utils.storage import StateStore

logger = logging.getLogger(__name__)


@dataclass
class Application:
    settings: Settings
    api: BusApi
    session: SessionTokenManager
    search: SearchFilterEngine
    listing: RouteListing
    bookings: BookingLifecycleManager
    registration: RegistrationWizardValidator

    async def shutdown(self) -> None:
        await close_session()
        logger.info("HTTP session closed.")


def create_application(settings: Settings) -> Application:
    configure_cache(settings.cache_ttl_seconds)

    client = ApiClient(settings.api_url, timeout_seconds=settings.request_timeout_seconds)
    api = BusApi(client)
    session = SessionTokenManager(api, StateStore(settings.state_file))
    client.set_token_provider(lambda: session.token)

    app = Application(
        settings=settings,
        api=api,
        session=session,
        search=SearchFilterEngine(api, session, timezone=settings.timezone),
        listing=RouteListing(api, session),
        bookings=BookingLifecycleManager(
            api, session, timezone=settings.timezone, tickets_dir=settings.tickets_dir
        ),
        registration=RegistrationWizardValidator(session),
    )
    logger.info("Application ready (api=%s).", settings.api_url)
    return app
