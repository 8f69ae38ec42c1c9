import pytest

from utils.config import Profile
from utils.data_tracker import TestDataTracker
from utils.session_cache import SessionCache, StateStore

from fakes import Clock, FakeBrowser, FakeLogin, FakeProbe


@pytest.fixture
def admin_profile():
    return Profile(key="admin", email="admin@example.com", password="secret", display_name="Admin")


@pytest.fixture
def fake_browser():
    return FakeBrowser()


@pytest.fixture
def fake_login():
    return FakeLogin()


@pytest.fixture
def fake_probe():
    return FakeProbe(True)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def state_store(tmp_path):
    return StateStore(str(tmp_path / ".auth"))


@pytest.fixture
def make_cache(fake_browser, state_store, fake_login, fake_probe, clock):
    def _make(**kwargs):
        options = {
            "login": fake_login,
            "probe": fake_probe,
            "max_age": 300,
            "verify_ttl": 300,
            "logout_url": "",
            "clock": clock,
        }
        options.update(kwargs)
        return SessionCache(fake_browser, state_store, **options)
    return _make


@pytest.fixture
def tracker():
    return TestDataTracker()
