"""Authentication session: token, user projection and their lifecycle.

States: anonymous → restoring → authenticated → anonymous.

The token is the single source of truth. Any response that arrives for a
token which is no longer current (logged out, or replaced by a newer login)
is discarded, so a slow profile fetch can never resurrect a closed session.
"""

from __future__ import annotations

from typing import Any

from busbooker.models import AuthDecision, OperationResult, SessionState, UserProfile
from busbooker.services.api import BusApi
from busbooker.services.base import BaseService
from busbooker.utils.http import ServiceError
from busbooker.utils.storage import StateStore

LOGIN_PATH = "/login"


class SessionTokenManager(BaseService):

    def __init__(self, api: BusApi, store: StateStore) -> None:
        super().__init__("session")
        self.session = self
        self.api = api
        self.store = store
        self._token: str | None = None
        self._user: UserProfile | None = None
        self.state = SessionState.ANONYMOUS

    # ── Read-only view ────────────────────────────────────────────────

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def user(self) -> UserProfile | None:
        """May be None right after a token is acquired; the profile lags the token."""
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def remembered_identifier(self) -> str | None:
        return self.store.load_identifier()

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def restore(self) -> SessionState:
        """Resume a persisted session, or settle anonymous."""
        token = self.store.load_token()
        if not token:
            self._clear_local()
            return self.state
        self._token = token
        self._user = None
        self.state = SessionState.RESTORING
        return await self.load_profile()

    async def load_profile(self) -> SessionState:
        token = self._token
        if token is None:
            self._clear_local()
            return self.state

        result = await self._call(
            "get_profile", self.api.get_profile, fallback="Could not load your profile."
        )
        if self._token != token:
            self.logger.info("Discarding profile response for a superseded token")
            return self.state

        profile = _user_payload(result.data) if result.success else None
        if profile is None:
            self.logger.warning("Profile load failed (%s), logging out", result.message)
            await self.logout()
            return self.state

        self._user = UserProfile.from_dict(profile)
        self.state = SessionState.AUTHENTICATED
        return self.state

    async def login(
        self, identifier: str, password: str, *, remember: bool = False
    ) -> OperationResult:
        """Sign in with an email address or a phone number."""
        identifier = identifier.strip()
        credentials = {"emailOrPhone": identifier, "password": password}
        result = await self._call(
            "login", lambda: self.api.login(credentials),
            fallback="Login failed.", expires_session=False,
        )
        if not result.success:
            return result
        data = result.data if isinstance(result.data, dict) else {}
        token = data.get("token")
        if not token:
            return OperationResult.failure("Login failed.")

        self._establish(token, data.get("user"))
        if remember:
            self.store.save_identifier(identifier)
        else:
            self.store.clear_identifier()
        self.logger.info("Signed in as %s", identifier)
        return OperationResult.ok("Signed in.", data=self._user)

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        date_of_birth: str,
        password: str,
    ) -> OperationResult:
        """Create an account; success leaves the user signed in."""
        user_data = {
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "phone": phone,
            "dateOfBirth": date_of_birth,
            "password": password,
        }
        result = await self._call(
            "register", lambda: self.api.register(user_data),
            fallback="Registration failed.", expires_session=False,
        )
        if not result.success:
            return result
        data = result.data if isinstance(result.data, dict) else {}
        token = data.get("token")
        if not token:
            return OperationResult.failure("Registration failed.")

        self._establish(token, data.get("user"))
        self.logger.info("Registered and signed in")
        return OperationResult.ok("Account created.", data=self._user)

    async def logout(self) -> None:
        """Best-effort remote logout, then unconditional local clearing."""
        try:
            if self._token is not None:
                await self.api.logout()
        except ServiceError as exc:
            self.logger.warning("Remote logout failed: %s", exc)
        finally:
            self._clear_local()

    async def update_profile(self, fields: dict[str, Any]) -> OperationResult:
        token = self._token
        if token is None:
            return OperationResult.failure("Please sign in first.")

        result = await self._call(
            "update_profile",
            lambda: self.api.update_profile(fields),
            fallback="Could not update your profile.",
        )
        if not result.success:
            return result
        if self._token != token:
            return OperationResult.failure("Your session changed, please try again.")

        profile = _user_payload(result.data)
        if profile is not None:
            self._user = UserProfile.from_dict(profile)
        return OperationResult.ok("Profile updated.", data=self._user)

    def expire(self, token: str | None) -> None:
        """Force anonymous after an authorization failure observed for *token*."""
        if token is None or token != self._token:
            return
        self.logger.warning("Session token rejected by the server")
        self._clear_local()

    # ── Guard ─────────────────────────────────────────────────────────

    def authorize(self, target: str, state: dict[str, Any] | None = None) -> AuthDecision:
        """Decide whether *target* may be entered, without navigating anywhere."""
        if self.is_authenticated:
            return AuthDecision(allowed=True, target=target, state=dict(state or {}))
        return AuthDecision(
            allowed=False,
            target=target,
            redirect_to=LOGIN_PATH,
            state={"redirectTo": target, **(state or {})},
        )

    # ── Internals ─────────────────────────────────────────────────────

    def _establish(self, token: str, user: Any) -> None:
        self.store.save_token(token)
        self._token = token
        self._user = UserProfile.from_dict(user) if isinstance(user, dict) else None
        self.state = SessionState.AUTHENTICATED

    def _clear_local(self) -> None:
        self.store.clear_token()
        self._token = None
        self._user = None
        self.state = SessionState.ANONYMOUS


def _user_payload(envelope: Any) -> dict[str, Any] | None:
    if not isinstance(envelope, dict):
        return None
    for key in ("user", "data"):
        value = envelope.get(key)
        if isinstance(value, dict):
            return value
    return None
