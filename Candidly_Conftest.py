"""
Pytest configuration and fixtures for Candidly automation tests
"""
import logging
import os
import re
import time
from datetime import datetime
from typing import Optional

import pytest
import requests
from playwright.sync_api import Page as PWPage
from playwright.sync_api import sync_playwright

from pages import ApplicantsPage, DashboardPage, InterviewPage, JobPostingPage, LoginPage
from utils.cleanup import CleanupLedger, CleanupOptions, perform_test_cleanup, sweep_stale_auth_state, validate_deleters
from utils.config import (
    AUTH_DIR,
    BASE_URL,
    CLEANUP_VERBOSE,
    DEFAULT_PROFILE,
    DEFAULT_TIMEOUT,
    DELETE_CREATED_RECORDS,
    HEADLESS,
    LOG_DIR,
    LOGOUT_AFTER_TEST,
    NAVIGATION_TIMEOUT,
    NET_CHECK_CACHE_TTL,
    NET_CHECK_TIMEOUT,
    PROJECT_ROOT,
    REPORTS_DIR,
    SLOW_MO,
    STALE_AUTH_MAX_AGE,
    TEST_RERUNS,
    get_profile,
)
from utils.data_tracker import ResourceType, TestDataTracker
from utils.performance_monitor import PerformanceMonitor
from utils.session_cache import SessionCache, StateStore
from utils.test_logger import get_test_logger

SUITE_NAME = "Candidly E2E"

CONTEXT_OPTIONS = {
    "ignore_https_errors": True,
    "viewport": {"width": 1280, "height": 720},
    "locale": "en-US",
}


def setup_logging():
    """Setup logging configuration similar to Robot Framework"""
    os.makedirs(LOG_DIR, exist_ok=True)
    log_file = os.path.join(LOG_DIR, "candidly_test.log")

    file_formatter = logging.Formatter(
        '%(message)s',  # test_logger handles formatting
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)8s] %(filename)s:%(lineno)d - %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    return log_file


LOG_FILE = setup_logging()
logger = logging.getLogger(__name__)

# Run-wide collectors, read back in pytest_sessionfinish
_PERFORMANCE_MONITOR = PerformanceMonitor()
_CLEANUP_LEDGER = CleanupLedger()
_NET_CHECK_CACHE = {"result": None, "timestamp": 0.0}


def check_network_connectivity(url: Optional[str] = None, timeout: Optional[float] = None) -> bool:
    """
    Check that the app under test answers at all.

    Any non-5xx status counts as reachable (login redirects and 401/403 are fine).
    Only successful checks are cached, for NET_CHECK_CACHE_TTL seconds.
    """
    test_logger = get_test_logger()
    now = time.time()
    cached_ts = float(_NET_CHECK_CACHE.get("timestamp") or 0.0)
    if _NET_CHECK_CACHE.get("result") is True and (now - cached_ts) <= NET_CHECK_CACHE_TTL:
        logger.debug(f"Network connectivity check: using cached PASS (age={now - cached_ts:.2f}s)")
        return True

    target = url or BASE_URL
    timeout = float(timeout if timeout is not None else NET_CHECK_TIMEOUT)
    test_logger.log_keyword_start("Check Network Connectivity", [target])
    try:
        try:
            resp = requests.head(target, timeout=timeout, allow_redirects=True)
        except requests.RequestException:
            resp = requests.get(target, timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        logger.warning(f"Network connectivity check failed for {target}: {e}")
        test_logger.log_keyword_end("Check Network Connectivity", "FAIL")
        return False

    reachable = resp.status_code < 500
    logger.info(f"Network connectivity check: {'Connected' if reachable else 'Failed'} "
                f"(Target: {target}, Status: {resp.status_code})")
    if reachable:
        _NET_CHECK_CACHE["result"] = True
        _NET_CHECK_CACHE["timestamp"] = time.time()
    test_logger.log_keyword_end("Check Network Connectivity", "PASS" if reachable else "FAIL")
    return reachable


def _safe_filename(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name)[:120]


def _capture_playwright_artifacts(page: PWPage, test_name: str):
    """Save screenshot + HTML + URL for easier debugging on failures."""
    reports_dir = os.path.join(PROJECT_ROOT, "reports", "failures")
    os.makedirs(reports_dir, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    base = os.path.join(reports_dir, f"{_safe_filename(test_name)}_{ts}")
    screenshot_path, html_path, url_path = f"{base}.png", f"{base}.html", f"{base}.url.txt"

    current_url = page.url
    page.screenshot(path=screenshot_path, full_page=True, timeout=8000)
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(page.content())
    with open(url_path, "w", encoding="utf-8") as f:
        f.write(current_url)
    return screenshot_path, html_path, url_path, current_url


def login_profile(page, profile):
    """Full login flow used by the session cache; fails when the dashboard never shows up."""
    LoginPage(page).login_as(profile)
    DashboardPage(page).postings_button.wait_for(state="visible", timeout=NAVIGATION_TIMEOUT)


def probe_dashboard(page, timeout):
    return DashboardPage(page).is_authenticated(timeout)


def build_deleters(page):
    """Deleter table for the resource types tests create, bound to `page`."""
    dashboard = DashboardPage(page)
    job_postings = JobPostingPage(page)
    applicants = ApplicantsPage(page)
    interviews = InterviewPage(page)

    def delete_job_posting(title):
        dashboard.navigate_to_postings()
        job_postings.delete_job_posting_by_title(title)

    def delete_applicant(identifier):
        dashboard.navigate_to_applicants()
        applicants.delete_applicant_by_identifier(identifier)

    def delete_interview(identifier):
        dashboard.navigate_to_interviews()
        interviews.delete_interview(identifier)

    return validate_deleters({
        ResourceType.JOB_POSTING: delete_job_posting,
        ResourceType.APPLICANT: delete_applicant,
        ResourceType.INTERVIEW: delete_interview,
    })


@pytest.fixture(scope="session")
def playwright_instance():
    pw = sync_playwright().start()
    yield pw
    pw.stop()


@pytest.fixture(scope="session")
def pw_browser(playwright_instance):
    browser = playwright_instance.chromium.launch(headless=HEADLESS, slow_mo=SLOW_MO)
    logger.info(f"Browser launched (headless={HEADLESS})")
    yield browser
    try:
        browser.close()
    except Exception as e:
        logger.debug(f"Error closing browser: {e}")


@pytest.fixture(scope="function")
def page(pw_browser):
    """Unauthenticated page in a fresh context."""
    context = pw_browser.new_context(**CONTEXT_OPTIONS)
    context.set_default_timeout(DEFAULT_TIMEOUT)
    pw_page = context.new_page()
    yield pw_page
    try:
        context.close()
    except Exception as e:
        logger.debug(f"Error closing context: {e}")


@pytest.fixture(scope="session")
def session_cache(pw_browser):
    cache = SessionCache(
        pw_browser,
        StateStore(AUTH_DIR),
        login=login_profile,
        probe=probe_dashboard,
        context_options=CONTEXT_OPTIONS,
    )
    yield cache
    logger.info(f"Session cache stats: {cache.stats()}")


@pytest.fixture(scope="session")
def data_tracker():
    return TestDataTracker()


@pytest.fixture(scope="session")
def cleanup_ledger():
    return _CLEANUP_LEDGER


@pytest.fixture(scope="session")
def performance_monitor():
    return _PERFORMANCE_MONITOR


@pytest.fixture
def test_id(request):
    return request.node.nodeid


@pytest.fixture
def track_resource(data_tracker, test_id):
    """Record a created record so teardown deletes it: track_resource("jobPosting", title)."""
    def _track(resource_type, identifier, **metadata):
        return data_tracker.record(test_id, resource_type, identifier, metadata=metadata or None)
    return _track


@pytest.fixture(scope="function")
def authenticated_session(request, session_cache, data_tracker, cleanup_ledger, test_id):
    """
    Authenticated SessionHandle for the profile named by @pytest.mark.profile (default admin).

    Teardown deletes the test's tracked records, tidies the UI and then either
    persists the session for the next test or logs out (CANDIDLY_LOGOUT_AFTER_TEST).
    """
    if not check_network_connectivity(BASE_URL):
        pytest.skip(f"Candidly is not reachable at {BASE_URL}")

    marker = request.node.get_closest_marker("profile")
    profile = get_profile(marker.args[0] if marker and marker.args else DEFAULT_PROFILE)
    handle = session_cache.acquire(profile)
    handle.context.set_default_timeout(DEFAULT_TIMEOUT)
    request.node._pw_page = handle.page
    get_test_logger().log_info(
        f"Session for '{profile.key}' ready ({'fresh login' if handle.fresh_login else 'cached state'})"
    )

    yield handle

    report = perform_test_cleanup(
        handle.page,
        test_id=test_id,
        deleters=build_deleters(handle.page),
        tracker=data_tracker,
        options=CleanupOptions(
            delete_created_records=DELETE_CREATED_RECORDS,
            logout=LOGOUT_AFTER_TEST,
            verbose=CLEANUP_VERBOSE,
        ),
        session=handle,
        session_cache=session_cache,
        ui_logout=lambda p: DashboardPage(p).logout(),
        ledger=cleanup_ledger,
    )
    get_test_logger().log_cleanup_summary(report)


@pytest.fixture(scope="function")
def authenticated_page(authenticated_session):
    return authenticated_session.page


@pytest.fixture
def login_page(page):
    return LoginPage(page)


@pytest.fixture
def dashboard_page(authenticated_page):
    return DashboardPage(authenticated_page)


@pytest.fixture
def job_posting_page(authenticated_page):
    return JobPostingPage(authenticated_page)


@pytest.fixture
def applicants_page(authenticated_page):
    return ApplicantsPage(authenticated_page)


@pytest.fixture
def interview_page(authenticated_page):
    return InterviewPage(authenticated_page)


@pytest.fixture
def deleters(authenticated_page):
    return build_deleters(authenticated_page)


def _reruns(config) -> int:
    return int(config.getoption("reruns", default=0) or 0)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Write test end lines to the run log and feed the performance monitor"""
    test_logger = get_test_logger()

    outcome = yield
    rep = outcome.get_result()

    test_name = item.name
    suite = item.module.__name__ if getattr(item, "module", None) else item.parent.name
    # pytest-rerunfailures numbers runs from 1
    attempt = max(0, getattr(item, "execution_count", 1) - 1)
    # A retried attempt is a failure as far as the log and flaky detection go
    result = "failed" if rep.outcome == "rerun" else rep.outcome

    if rep.when == "setup" and result != "passed":
        status = "FAIL" if result == "failed" else "SKIP"
        message = str(rep.longrepr) if rep.longrepr else "Test setup failed"
        test_logger.log_test_end(test_name, status, message=message, elapsed=rep.duration)
        _PERFORMANCE_MONITOR.record(item.nodeid, test_name, suite, rep.duration, result, attempt)
        return

    if rep.when != "call":
        return

    if result == "passed":
        test_logger.log_test_end(test_name, "PASS", elapsed=rep.duration)
    elif result == "failed":
        if attempt < _reruns(item.config):
            test_logger.log_info(f"Attempt {attempt + 1} failed, retrying")
        test_logger.log_test_end(test_name, "FAIL", message=str(rep.longrepr), elapsed=rep.duration)
        pw_page = getattr(item, "_pw_page", None) or getattr(item, "funcargs", {}).get("page")
        if isinstance(pw_page, PWPage):
            try:
                screenshot_path, html_path, _, current_url = _capture_playwright_artifacts(pw_page, test_name)
                test_logger.log_info("Failure artifacts saved:")
                test_logger.log_info(f"  URL: {current_url}")
                test_logger.log_info(f"  Screenshot: {screenshot_path}")
                test_logger.log_info(f"  HTML: {html_path}")
            except Exception as e:
                logger.debug(f"Could not capture Playwright failure artifacts: {e}")
    else:
        test_logger.log_test_end(test_name, "SKIP", message=str(rep.longrepr), elapsed=rep.duration)
    _PERFORMANCE_MONITOR.record(item.nodeid, test_name, suite, rep.duration, result, attempt)


@pytest.fixture(autouse=True)
def log_test_start_end(request):
    """Automatically log test start; the end is logged by pytest_runtest_makereport"""
    marker = request.node.get_closest_marker("profile")
    profile = None
    if "authenticated_session" in request.fixturenames:
        profile = marker.args[0] if marker and marker.args else DEFAULT_PROFILE
    get_test_logger().log_test_start(request.node.name, str(request.node.path), profile=profile)
    yield


def pytest_configure(config):
    config.addinivalue_line("markers", "e2e: drives the live Candidly app")
    config.addinivalue_line("markers", "profile(key): credential profile for authenticated_session")
    # --reruns on the command line wins over CANDIDLY_RERUNS
    if config.pluginmanager.hasplugin("rerunfailures") and not config.getoption("reruns", default=None):
        config.option.reruns = TEST_RERUNS


def pytest_sessionstart(session):
    get_test_logger().log_suite_start(SUITE_NAME, str(session.config.rootpath))
    logger.info(f"Session start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")


def pytest_sessionfinish(session, exitstatus):
    """Called after whole test run finished"""
    get_test_logger().log_suite_end(SUITE_NAME)

    if _PERFORMANCE_MONITOR.results:
        stats = _PERFORMANCE_MONITOR.get_stats()
        logger.info(f"Performance: {stats}")
        report_path = _PERFORMANCE_MONITOR.save_report(REPORTS_DIR)
        if report_path:
            logger.info(f"Performance report saved to {report_path}")

    ledger = _CLEANUP_LEDGER.as_dict()
    if ledger["succeeded"] or ledger["failed"] or ledger["step_failures"]:
        logger.info(f"Cleanup totals: {ledger['succeeded']} deleted, {ledger['failed']} failed")
        for leaked in ledger["leaked"]:
            logger.warning(f"Leaked record (manual cleanup needed): {leaked}")

    removed = sweep_stale_auth_state(AUTH_DIR, STALE_AUTH_MAX_AGE)
    if removed:
        logger.info(f"Removed {len(removed)} stale auth state file(s)")
