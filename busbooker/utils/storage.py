"""Persisted client state: the access token and the remembered identifier.

Both values live in one small JSON file, keyed independently, and survive
process restarts.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TOKEN_KEY = "accessToken"
IDENTIFIER_KEY = "rememberedUser"


class StateStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    # ── Token ─────────────────────────────────────────────────────────

    def load_token(self) -> str | None:
        return self._get(TOKEN_KEY)

    def save_token(self, token: str) -> None:
        self._set(TOKEN_KEY, token)

    def clear_token(self) -> None:
        self._set(TOKEN_KEY, None)

    # ── Remembered identifier ("remember me") ─────────────────────────

    def load_identifier(self) -> str | None:
        return self._get(IDENTIFIER_KEY)

    def save_identifier(self, identifier: str) -> None:
        self._set(IDENTIFIER_KEY, identifier)

    def clear_identifier(self) -> None:
        self._set(IDENTIFIER_KEY, None)

    # ── File access ───────────────────────────────────────────────────

    def _read(self) -> dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("State file %s unreadable, starting empty: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _get(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if isinstance(value, str) and value else None

    def _set(self, key: str, value: str | None) -> None:
        data = self._read()
        if value is None:
            if key not in data:
                return
            data.pop(key)
        else:
            data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp, self.path)
