from __future__ import annotations

from busbooker.utils.http import (
    ApiClient,
    ApiError,
    AuthorizationError,
    ServiceError,
    TransportError,
    describe_error,
    extract_message,
)
from busbooker.utils.text import display_name, leading_int, parse_day, ticket_filename


def test_error_hierarchy():
    assert issubclass(AuthorizationError, ApiError)
    assert issubclass(ApiError, ServiceError)
    assert issubclass(TransportError, ServiceError)


def test_describe_error_priority():
    assert describe_error(ApiError(500, "Serveur indisponible"), "fallback") == "Serveur indisponible"
    assert describe_error(TransportError("Connection reset"), "fallback") == "Connection reset"
    assert describe_error(ServiceError(), "fallback") == "fallback"
    assert describe_error(ApiError(502), "fallback") == "HTTP 502"


def test_extract_message():
    assert extract_message({"success": False, "message": " Email déjà utilisé "}) == "Email déjà utilisé"
    assert extract_message({"message": ""}) is None
    assert extract_message(["not", "a", "dict"]) is None


def test_bearer_header_follows_token_provider():
    client = ApiClient("http://localhost:5000/api/")
    assert client.base_url == "http://localhost:5000/api"
    assert client._headers() == {}

    token = {"value": "tok-1"}
    client.set_token_provider(lambda: token["value"])
    assert client._headers() == {"Authorization": "Bearer tok-1"}
    token["value"] = None
    assert client._headers() == {}


def test_text_helpers():
    assert display_name({"name": "Abidjan"}) == "Abidjan"
    assert display_name(None, "N/A") == "N/A"
    assert parse_day("2025-06-01T00:00:00.000Z").isoformat() == "2025-06-01"
    assert parse_day("demain") is None
    assert leading_int("2 passagers") == 2
    assert ticket_filename("abc") == "ticket-reservation-abc.pdf"
