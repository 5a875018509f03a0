"""Command-line front end for the bus booking client.

    busbooker search Abidjan Yamoussoukro 2025-06-01 --passengers "2 passagers"
    busbooker routes --origin Abidjan --time 08:30
    busbooker login user@example.com --remember
    busbooker bookings
    busbooker cancel <booking-id>
    busbooker ticket <booking-id> --dir ./tickets
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
from datetime import date
from typing import Sequence

from busbooker.application import Application, create_application
from busbooker.config import get_settings, setup_logging
from busbooker.models import AuthDecision
from busbooker.services import formatter

logger = logging.getLogger("busbooker")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="busbooker", description="Intercity bus booking client.")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL.")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search trips between two cities.")
    search.add_argument("origin")
    search.add_argument("destination")
    search.add_argument("departure_date", help="YYYY-MM-DD")
    search.add_argument("--passengers", default="1")
    search.add_argument("--return-date", default=None)
    search.add_argument("--time", dest="departure_time", default=None, help="HH:MM")
    search.add_argument("--company", default=None)
    search.add_argument("--time-band", default="all",
                        choices=["all", "morning", "afternoon", "evening", "night"])
    search.add_argument("--price-band", default="all", choices=["all", "low", "medium", "high"])
    search.add_argument("--amenity", default="all", choices=["all", "wifi", "power", "ac"])
    search.add_argument("--filter-company", default="all",
                        help="Refine results by company name (substring).")
    search.add_argument("--on", dest="day", type=date.fromisoformat, default=None,
                        help="Only show trips on this date.")
    search.add_argument("--select", metavar="ROUTE_ID", default=None,
                        help="Select a trip for seat booking.")

    routes = sub.add_parser("routes", help="Browse every scheduled route.")
    routes.add_argument("--origin", default="")
    routes.add_argument("--destination", default="")
    routes.add_argument("--company", default="")
    routes.add_argument("--date", dest="day", default="")
    routes.add_argument("--time", dest="departure_time", default="",
                        help="HH:MM, matched within one hour.")
    routes.add_argument("--page", type=int, default=1)

    login = sub.add_parser("login", help="Sign in with an email or phone number.")
    login.add_argument("identifier", nargs="?", default=None)
    login.add_argument("--password", default=None)
    login.add_argument("--remember", action="store_true")

    sub.add_parser("logout", help="Sign out.")
    sub.add_parser("whoami", help="Show the signed-in user.")
    sub.add_parser("bookings", help="List upcoming bookings and history.")

    cancel = sub.add_parser("cancel", help="Cancel a confirmed booking.")
    cancel.add_argument("booking_id")

    ticket = sub.add_parser("ticket", help="Download a booking's ticket as PDF.")
    ticket.add_argument("booking_id")
    ticket.add_argument("--dir", dest="directory", default=None)

    return parser.parse_args(argv)


# ── Commands ──────────────────────────────────────────────────────────────────

async def _search(app: Application, args: argparse.Namespace) -> int:
    await app.search.load_vocabularies()
    result = await app.search.search({
        "from": args.origin,
        "to": args.destination,
        "departureDate": args.departure_date,
        "passengers": args.passengers,
        "returnDate": args.return_date,
        "tripType": "roundTrip" if args.return_date else "oneWay",
        "departureTime": args.departure_time,
        "companyName": args.company,
    })
    if not result.success:
        print(formatter.format_result(result))
        return 1

    app.search.results.update_criteria(
        time_band=args.time_band,
        price_band=args.price_band,
        amenity=args.amenity,
        company=args.filter_company,
        day=args.day,
    )
    print(formatter.format_search_results(app.search.results))

    if args.select:
        await app.session.restore()
        print(_describe_decision(app.search.select_route(args.select)))
    return 0


async def _routes(app: Application, args: argparse.Namespace) -> int:
    result = await app.listing.load()
    if not result.success:
        print(formatter.format_result(result))
        return 1
    app.listing.update_criteria(
        origin=args.origin,
        destination=args.destination,
        company=args.company,
        day=args.day,
        departure_time=args.departure_time,
    )
    page = app.listing.go_to_page(args.page)
    print(formatter.format_route_page(app.listing.current_page_items(), page, app.listing.page_count))
    return 0


async def _login(app: Application, args: argparse.Namespace) -> int:
    identifier = args.identifier or app.session.remembered_identifier
    if not identifier:
        identifier = input("Email or phone: ")
    password = args.password or getpass.getpass("Password: ")
    result = await app.session.login(identifier, password, remember=args.remember)
    print(formatter.format_result(result))
    return 0 if result.success else 1


async def _logout(app: Application, args: argparse.Namespace) -> int:
    await app.session.restore()
    await app.session.logout()
    print("Signed out.")
    return 0


async def _whoami(app: Application, args: argparse.Namespace) -> int:
    await app.session.restore()
    if not app.session.is_authenticated:
        print("Not signed in.")
        return 1
    print(formatter.format_user(app.session.user))
    return 0


async def _bookings(app: Application, args: argparse.Namespace) -> int:
    if not await _require_login(app, "/profile"):
        return 1
    result = await app.bookings.fetch_bookings()
    if not result.success:
        print(formatter.format_result(result))
        return 1
    print(formatter.format_bookings(app.bookings.upcoming, app.bookings.history))
    return 0


async def _cancel(app: Application, args: argparse.Namespace) -> int:
    if not await _require_login(app, "/profile"):
        return 1
    result = await app.bookings.fetch_bookings()
    if result.success:
        booking = next((b for b in app.bookings.bookings if b.id == args.booking_id), None)
        if booking is None:
            print(f"❌ No booking {args.booking_id}.")
            return 1
        result = await app.bookings.cancel(booking)
    print(formatter.format_result(result))
    return 0 if result.success else 1


async def _ticket(app: Application, args: argparse.Namespace) -> int:
    if not await _require_login(app, "/profile"):
        return 1
    result = await app.bookings.download_ticket(args.booking_id, args.directory)
    print(formatter.format_result(result))
    if result.success:
        print(f"  → {result.data}")
    return 0 if result.success else 1


COMMANDS = {
    "search": _search,
    "routes": _routes,
    "login": _login,
    "logout": _logout,
    "whoami": _whoami,
    "bookings": _bookings,
    "cancel": _cancel,
    "ticket": _ticket,
}


async def _require_login(app: Application, target: str) -> bool:
    await app.session.restore()
    decision = app.session.authorize(target)
    if not decision.allowed:
        print(_describe_decision(decision))
    return decision.allowed


def _describe_decision(decision: AuthDecision) -> str:
    if decision.allowed:
        return f"→ {decision.target}"
    return f"🔒 Please sign in first (busbooker login). Redirect: {decision.redirect_to}"


async def _run(args: argparse.Namespace) -> int:
    app = create_application(get_settings())
    try:
        return await COMMANDS[args.command](app, args)
    finally:
        await app.shutdown()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level)
    logger.debug("Running %s", args.command)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
