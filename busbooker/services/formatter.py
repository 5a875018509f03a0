from __future__ import annotations

from busbooker.models import Booking, BookingStatus, OperationResult, Route, UserProfile
from busbooker.services.search import UNDATED, SearchResults
from busbooker.utils.text import UNKNOWN

NO_ROUTES = "⚠️ No trips match your search."


def format_search_results(results: SearchResults) -> str:
    if results.is_empty:
        return NO_ROUTES
    lines = [f"🚌 Outbound: {len(results.visible_outbound)} trips"]
    lines.extend(_fmt_groups(results.grouped_outbound()))
    if results.return_:
        lines.append("")
        lines.append(f"🔁 Return: {len(results.visible_return)} trips")
        lines.extend(_fmt_groups(results.grouped_return()))
    if results.has_active_filters:
        lines.append("")
        lines.append("🔎 Filters active")
    return "\n".join(lines)


def format_route_page(routes: list[Route], page: int, pages: int) -> str:
    if not routes:
        return NO_ROUTES
    lines = [format_route(r) for r in routes]
    lines.append(f"  page {page}/{max(pages, 1)}")
    return "\n".join(lines)


def format_route(r: Route) -> str:
    day = r.departure_date.isoformat() if r.departure_date else "?"
    time = r.departure_time or "--:--"
    arrival = f"–{r.arrival_time}" if r.arrival_time else ""
    company = r.company_name or UNKNOWN
    seats = f"{r.available_seats} seats" if r.available_seats else "full"
    extras = f" [{', '.join(sorted(r.amenities))}]" if r.amenities else ""
    return (
        f"  {day} {time}{arrival}  {r.origin_name or UNKNOWN} → {r.destination_name or UNKNOWN}"
        f"  {company}  {_fmt_price(r.price)}  {seats}{extras}  #{r.id}"
    )


def format_bookings(upcoming: list[Booking], history: list[Booking]) -> str:
    lines = [f"🎫 Upcoming ({len(upcoming)})"]
    lines.extend(format_booking(b) for b in upcoming)
    if not upcoming:
        lines.append("  none")
    lines.append("")
    lines.append(f"🗂 History ({len(history)})")
    lines.extend(format_booking(b) for b in history)
    if not history:
        lines.append("  none")
    return "\n".join(lines)


def format_booking(b: Booking) -> str:
    icon = {
        BookingStatus.CONFIRMED: "✅",
        BookingStatus.CANCELLED: "❌",
        BookingStatus.COMPLETED: "🏁",
    }.get(b.status, "•")
    seats = ", ".join(b.selected_seats) or "-"
    price = f"  {_fmt_price(b.total_price)}" if b.total_price is not None else ""
    line = f"  {icon} #{b.id} {b.status.value}  seats {seats}{price}\n  {format_route(b.outbound_route)}"
    if b.return_route is not None:
        line += f"\n  {format_route(b.return_route)}"
    return line


def format_user(user: UserProfile | None) -> str:
    if user is None:
        return "Signed in (profile not loaded yet)."
    contact = " / ".join(c for c in (user.email, user.phone) if c)
    return f"👤 {user.name or user.id}  {contact}".rstrip()


def format_result(result: OperationResult) -> str:
    icon = {"success": "✅", "info": "ℹ️", "error": "❌"}[result.level.value]
    lines = [f"{icon} {result.message or ('Done.' if result.success else 'Failed.')}"]
    for field, message in result.field_errors.items():
        lines.append(f"  {field}: {message}")
    return "\n".join(lines)


def _fmt_groups(grouped: dict[str, list[Route]]) -> list[str]:
    lines: list[str] = []
    for day, routes in grouped.items():
        lines.append(f"📅 {'Date unknown' if day == UNDATED else day}")
        lines.extend(format_route(r) for r in routes)
    return lines


def _fmt_price(price: float | None) -> str:
    return f"{price or 0:,.0f} FCFA".replace(",", " ")
