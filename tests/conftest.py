from __future__ import annotations

import pytest

from busbooker.utils.cache import invalidate_all


@pytest.fixture(autouse=True)
def _clear_cache():
    invalidate_all()
    yield
    invalidate_all()
