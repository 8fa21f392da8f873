import pytest

from answer_cache.services.matcher import HistoryMatcher
from answer_cache.services.store import SessionStore


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "history")


@pytest.fixture
def matcher(store):
    return HistoryMatcher(store)
