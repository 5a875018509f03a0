from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from busbooker.models import OperationResult
from busbooker.utils.http import AuthorizationError, ServiceError, describe_error

if TYPE_CHECKING:
    from busbooker.services.session import SessionTokenManager


class BaseService:
    """Operation boundary shared by every service.

    Rules:
    - Network and session failures never escape an operation; they come back
      as an OperationResult carrying the most specific message available.
    - An authorization failure forces the session anonymous and is not retried.
    - An envelope with ``success: false`` is a failure even on HTTP 200.
    """

    def __init__(self, name: str, session: SessionTokenManager | None = None) -> None:
        self.name = name
        self.session = session
        self.logger = logging.getLogger(f"service.{name}")

    async def _call(
        self,
        label: str,
        call: Callable[[], Awaitable[Any]],
        *,
        fallback: str,
        expires_session: bool = True,
    ) -> OperationResult:
        token = self.session.token if self.session is not None else None
        try:
            payload = await call()
        except AuthorizationError as exc:
            self.logger.warning("'%s': %s rejected (401)", self.name, label)
            if expires_session and self.session is not None:
                self.session.expire(token)
            return OperationResult.failure(describe_error(exc, fallback))
        except ServiceError as exc:
            self.logger.error("'%s': %s failed: %s", self.name, label, exc)
            return OperationResult.failure(describe_error(exc, fallback))

        if isinstance(payload, dict) and not payload.get("success", False):
            message = payload.get("message") or fallback
            self.logger.warning("'%s': %s refused: %s", self.name, label, message)
            return OperationResult.failure(message)
        return OperationResult.ok(data=payload)
