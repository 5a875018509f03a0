from __future__ import annotations

import asyncio

from busbooker.models import SessionState, UserProfile
from busbooker.services.session import SessionTokenManager
from busbooker.utils.http import ApiError, AuthorizationError, TransportError
from busbooker.utils.storage import StateStore

from stubs import USER, StubApi, signed_in_session


def _session(api, tmp_path) -> SessionTokenManager:
    return SessionTokenManager(api, StateStore(tmp_path / "state.json"))


def test_restore_without_token_is_anonymous(tmp_path):
    api = StubApi()
    session = _session(api, tmp_path)
    assert asyncio.run(session.restore()) == SessionState.ANONYMOUS
    assert api.calls == []


def test_restore_with_valid_token(tmp_path):
    api = StubApi(get_profile={"success": True, "user": USER})
    session = _session(api, tmp_path)
    session.store.save_token("tok-1")

    assert asyncio.run(session.restore()) == SessionState.AUTHENTICATED
    assert session.user.name == "Awa Koné"
    assert session.token == "tok-1"


def test_restore_failure_logs_out_fully(tmp_path):
    api = StubApi(get_profile=AuthorizationError(401, "Token invalide"), logout=TransportError("down"))
    session = _session(api, tmp_path)
    session.store.save_token("tok-1")

    assert asyncio.run(session.restore()) == SessionState.ANONYMOUS
    assert session.user is None
    assert session.store.load_token() is None


def test_login_persists_token_and_user(tmp_path):
    api = StubApi(login={"success": True, "token": "tok-9", "user": USER})
    session = _session(api, tmp_path)

    result = asyncio.run(session.login(" 07 01 02 03 04 ", "Secret#2025", remember=True))

    assert result.success
    assert api.called("login") == [({"emailOrPhone": "07 01 02 03 04", "password": "Secret#2025"},)]
    assert session.store.load_token() == "tok-9"
    assert session.remembered_identifier == "07 01 02 03 04"
    assert session.user.email == "awa@example.ci"


def test_login_without_remember_clears_identifier(tmp_path):
    api = StubApi(login={"success": True, "token": "tok-9", "user": USER})
    session = _session(api, tmp_path)
    session.store.save_identifier("old@example.ci")

    asyncio.run(session.login("awa@example.ci", "Secret#2025"))

    assert session.remembered_identifier is None


def test_login_failure_leaves_state_untouched(tmp_path):
    api = StubApi(login=ApiError(400, "Identifiants invalides"))
    session = _session(api, tmp_path)

    result = asyncio.run(session.login("awa@example.ci", "nope"))

    assert not result.success
    assert result.message == "Identifiants invalides"
    assert session.state == SessionState.ANONYMOUS
    assert session.store.load_token() is None


def test_register_returns_usable_session(tmp_path):
    api = StubApi(register={"success": True, "token": "tok-new", "user": USER})
    session = _session(api, tmp_path)

    result = asyncio.run(session.register("Awa", "Koné", "awa@example.ci", "", "1990-01-01", "Secret#2025"))

    assert result.success
    assert session.is_authenticated
    assert api.called("register")[0][0]["dateOfBirth"] == "1990-01-01"


def test_logout_clears_locally_even_when_remote_fails(tmp_path):
    api = StubApi(logout=TransportError("timeout"))
    session = signed_in_session(api, tmp_path)

    asyncio.run(session.logout())

    assert session.state == SessionState.ANONYMOUS
    assert session.store.load_token() is None
    assert len(api.called("logout")) == 1


def test_stale_profile_cannot_resurrect_session(tmp_path):
    api = StubApi(get_profile={"success": True, "user": USER})
    api.gates["get_profile"] = asyncio.Event()
    session = _session(api, tmp_path)
    session.store.save_token("tok-1")

    async def scenario():
        restoring = asyncio.create_task(session.restore())
        await asyncio.sleep(0)
        assert session.state == SessionState.RESTORING
        await session.logout()
        api.gates["get_profile"].set()
        return await restoring

    state = asyncio.run(scenario())

    assert state == SessionState.ANONYMOUS
    assert session.user is None
    assert session.token is None
    assert session.store.load_token() is None


def test_profile_for_replaced_token_is_discarded(tmp_path):
    api = StubApi(
        get_profile={"success": True, "user": {"_id": "old", "firstName": "Old"}},
        login={"success": True, "token": "tok-2", "user": USER},
    )
    api.gates["get_profile"] = asyncio.Event()
    session = _session(api, tmp_path)
    session.store.save_token("tok-1")

    async def scenario():
        restoring = asyncio.create_task(session.restore())
        await asyncio.sleep(0)
        await session.login("awa@example.ci", "Secret#2025")
        api.gates["get_profile"].set()
        await restoring

    asyncio.run(scenario())

    assert session.token == "tok-2"
    assert session.user.id == "u1"


def test_expire_ignores_old_token(tmp_path):
    session = signed_in_session(StubApi(), tmp_path, token="tok-2")
    session.expire("tok-1")
    assert session.is_authenticated
    session.expire("tok-2")
    assert not session.is_authenticated


def test_update_profile_replaces_user(tmp_path):
    updated = dict(USER, phone="0501020304")
    api = StubApi(update_profile={"success": True, "user": updated})
    session = signed_in_session(api, tmp_path)

    result = asyncio.run(session.update_profile({"phone": "0501020304"}))

    assert result.success
    assert session.user.phone == "0501020304"


def test_authorize_guard(tmp_path):
    anonymous = _session(StubApi(), tmp_path)
    decision = anonymous.authorize("/profile")
    assert not decision.allowed
    assert decision.redirect_to == "/login"
    assert decision.state == {"redirectTo": "/profile"}

    signed_in = signed_in_session(StubApi(), tmp_path)
    assert signed_in.authorize("/profile").allowed


def _signed_in_with_user(api, tmp_path) -> SessionTokenManager:
    session = signed_in_session(api, tmp_path, token="tok-1")
    session._user = UserProfile.from_dict(USER)
    return session


def test_update_profile_failure_keeps_current_user(tmp_path):
    api = StubApi(update_profile=[
        ApiError(400, "Téléphone invalide"),
        {"success": False, "message": "Profil verrouillé"},
    ])
    session = _signed_in_with_user(api, tmp_path)
    before = session.user

    first = asyncio.run(session.update_profile({"phone": "123"}))
    second = asyncio.run(session.update_profile({"phone": "0501020304"}))

    assert (first.message, second.message) == ("Téléphone invalide", "Profil verrouillé")
    assert session.user is before
    assert session.user.phone == "0701020304"
    assert session.token == "tok-1"


def test_update_profile_unauthorized_expires_session(tmp_path):
    api = StubApi(update_profile=AuthorizationError(401, "Token expiré"))
    session = _signed_in_with_user(api, tmp_path)

    result = asyncio.run(session.update_profile({"phone": "0501020304"}))

    assert not result.success
    assert session.state == SessionState.ANONYMOUS
    assert session.store.load_token() is None


def test_failed_login_keeps_existing_session(tmp_path):
    api = StubApi(login=[
        ApiError(400, "Identifiants invalides"),
        AuthorizationError(401, "Mot de passe incorrect"),
    ])
    session = _signed_in_with_user(api, tmp_path)
    before = session.user

    for _ in range(2):
        result = asyncio.run(session.login("other@example.ci", "wrong"))
        assert not result.success

    assert session.token == "tok-1"
    assert session.user is before
    assert session.state == SessionState.AUTHENTICATED
    assert session.store.load_token() == "tok-1"
