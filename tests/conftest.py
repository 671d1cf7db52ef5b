import os
import sys

import pytest

# Ensure repo root on sys.path for imports like `academy...`
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from academy.common import cache  # noqa: E402
from fakesupabase import FakeSupabase  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_db(monkeypatch):
    """Route every DocumentStore and auth call to an in-memory fake."""
    db = FakeSupabase()

    async def _get_supabase():
        return db

    monkeypatch.setattr("academy.db.store.get_supabase", _get_supabase)
    monkeypatch.setattr("academy.common.deps.get_supabase", _get_supabase)
    cache.clear()
    yield db
    cache.clear()

