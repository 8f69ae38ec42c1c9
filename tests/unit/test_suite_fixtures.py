from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

import Candidly_Conftest
from Candidly_Conftest import build_deleters, check_network_connectivity
from utils.config import DEFAULT_PROFILE, get_profile
from utils.data_tracker import ResourceType
from utils.performance_monitor import PerformanceMonitor


@pytest.fixture
def no_cached_net_check(monkeypatch):
    monkeypatch.setitem(Candidly_Conftest._NET_CHECK_CACHE, "result", None)
    monkeypatch.setitem(Candidly_Conftest._NET_CHECK_CACHE, "timestamp", 0.0)


class TestNetworkCheck:
    def test_auth_required_counts_as_reachable_and_is_cached(self, monkeypatch, no_cached_net_check):
        calls = []

        def fake_head(url, timeout=None, allow_redirects=True):
            calls.append(url)
            return SimpleNamespace(status_code=401)

        monkeypatch.setattr(requests, "head", fake_head)

        assert check_network_connectivity("https://app.example.com") is True
        assert check_network_connectivity("https://app.example.com") is True
        assert calls == ["https://app.example.com"]

    def test_server_error_is_unreachable(self, monkeypatch, no_cached_net_check):
        monkeypatch.setattr(requests, "head", lambda url, **kwargs: SimpleNamespace(status_code=503))

        assert check_network_connectivity("https://app.example.com") is False
        assert Candidly_Conftest._NET_CHECK_CACHE["result"] is None

    def test_connection_errors_fall_back_to_get(self, monkeypatch, no_cached_net_check):
        def refuse(url, **kwargs):
            raise requests.ConnectionError("connection refused")

        get_calls = []

        def fake_get(url, **kwargs):
            get_calls.append(url)
            raise requests.ConnectionError("connection refused")

        monkeypatch.setattr(requests, "head", refuse)
        monkeypatch.setattr(requests, "get", fake_get)

        assert check_network_connectivity("https://app.example.com", timeout=0.1) is False
        assert get_calls == ["https://app.example.com"]


def test_deleters_cover_every_resource_type():
    page = MagicMock()

    table = build_deleters(page)
    table[ResourceType.JOB_POSTING]("Role_123456")

    assert set(table) == set(ResourceType)
    page.get_by_role.assert_any_call("heading", name="Postings")


def test_default_profile_is_registered():
    assert get_profile(DEFAULT_PROFILE).key == DEFAULT_PROFILE


def test_unknown_profile_lists_known_keys():
    with pytest.raises(KeyError, match="admin"):
        get_profile("superuser")


class TestRetries:
    @pytest.fixture
    def monitor(self, monkeypatch, tmp_path):
        fresh = PerformanceMonitor()
        monkeypatch.setattr(Candidly_Conftest, "_PERFORMANCE_MONITOR", fresh)
        monkeypatch.setattr(Candidly_Conftest, "REPORTS_DIR", str(tmp_path / "reports"))
        monkeypatch.setattr(Candidly_Conftest, "AUTH_DIR", str(tmp_path / ".auth"))
        return fresh

    def test_fail_then_pass_is_reported_flaky(self, pytester, monitor):
        pytester.makeconftest("from Candidly_Conftest import *\n")
        pytester.makepyfile(test_flaky="""
            attempts = []

            def test_sometimes():
                attempts.append(1)
                assert len(attempts) > 1
        """)

        result = pytester.runpytest_inprocess("--reruns", "1", "-p", "no:cacheprovider")

        outcomes = result.parseoutcomes()
        assert outcomes["passed"] == 1
        assert outcomes["rerun"] == 1
        assert [(r.status, r.attempt) for r in monitor.results] == [("failed", 0), ("passed", 1)]
        assert monitor.generate_report()["flakyTests"] == ["test_flaky.py::test_sometimes"]

    def test_rerun_count_defaults_from_environment(self, pytester, monitor, monkeypatch):
        monkeypatch.setattr(Candidly_Conftest, "TEST_RERUNS", 2)
        pytester.makeconftest("from Candidly_Conftest import *\n")
        pytester.makepyfile(test_broken="""
            def test_always_fails():
                assert False
        """)

        result = pytester.runpytest_inprocess("-p", "no:cacheprovider")

        outcomes = result.parseoutcomes()
        assert outcomes["failed"] == 1
        assert outcomes["rerun"] == 2
        assert monitor.flaky_tests() == []
