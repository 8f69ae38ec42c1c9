"""
Test Cleanup Utility
Teardown for tests that create records in the application.

Cleanup never fails a test. Every step reports a StepResult, deletion failures are
collected into a CleanupSummary and leaked resources end up in the run's
CleanupLedger for human follow-up.
"""
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from utils.config import CLEANUP_ACTION_TIMEOUT, STALE_AUTH_MAX_AGE
from utils.data_tracker import ResourceType, TestDataTracker, TrackedResource
from utils.errors import CleanupStepFailure, DeletionFailure, UnknownResourceTypeError

logger = logging.getLogger(__name__)

Deleter = Callable[[str], Any]

CLOSE_BUTTON_SELECTORS = [
    "role=button[name='Close']",
    "role=button[name='Cancel']",
    "[aria-label='Close']",
    "[data-testid='close-button']",
]

NOTIFICATION_CLOSE_SELECTORS = [
    ".ant-notification-notice-close",
    ".toast-close-button",
    "[data-testid='notification-close']",
    ".notification-close",
    "[aria-label='Close notification']",
]


@dataclass
class StepResult:
    name: str
    ok: bool
    value: Any = None
    failure: Optional[CleanupStepFailure] = None
    elapsed: float = 0.0


def run_step(name: str, fn: Callable[..., Any], *args, **kwargs) -> StepResult:
    """Run one best-effort step and turn its outcome into a StepResult."""
    start_time = time.time()
    try:
        value = fn(*args, **kwargs)
    except Exception as e:
        elapsed = time.time() - start_time
        logger.warning(f"[Cleanup] Step '{name}' failed: {e}")
        return StepResult(name, False, failure=CleanupStepFailure(name, str(e) or type(e).__name__), elapsed=elapsed)
    return StepResult(name, True, value=value, elapsed=time.time() - start_time)


@dataclass
class CleanupSummary:
    test_id: str
    succeeded: int = 0
    failed: int = 0
    failures: List[DeletionFailure] = field(default_factory=list)
    attempted: List[TrackedResource] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failed == 0


@dataclass
class CleanupReport:
    test_id: Optional[str]
    summary: Optional[CleanupSummary] = None
    steps: List[StepResult] = field(default_factory=list)

    @property
    def failed_steps(self) -> List[StepResult]:
        return [s for s in self.steps if not s.ok]


@dataclass
class CleanupOptions:
    # Delete records tracked for the test
    delete_created_records: bool = True
    close_dialogs: bool = True
    dismiss_notifications: bool = True
    # End the server session instead of persisting it for reuse
    logout: bool = False
    logout_via_api: bool = True
    verbose: bool = False


def validate_deleters(deleters: Mapping[Union[ResourceType, str], Deleter]) -> Dict[ResourceType, Deleter]:
    """
    Build the resource type -> delete function table.

    Raises UnknownResourceTypeError for a type outside ResourceType and
    TypeError for a value that is not callable.
    """
    table: Dict[ResourceType, Deleter] = {}
    for key, fn in (deleters or {}).items():
        resource_type = ResourceType.parse(key)
        if not callable(fn):
            raise TypeError(f"Deleter for '{resource_type.value}' is not callable: {fn!r}")
        table[resource_type] = fn
    return table


def cleanup(tracker: TestDataTracker, test_id: str,
            deleters: Mapping[Union[ResourceType, str], Deleter], verbose: bool = False) -> CleanupSummary:
    """
    Delete everything tracked for `test_id`, newest first.

    Later records may reference earlier ones (interview -> applicant -> job posting),
    so deletion runs in reverse creation order. Each deletion is independent and the
    tracker holds nothing for `test_id` afterwards, whatever the outcome.
    """
    start_time = time.time()
    resources = tracker.drain(test_id)
    try:
        table = validate_deleters(deleters)
    except (UnknownResourceTypeError, TypeError):
        if resources:
            logger.error(
                f"[Cleanup] Deleter table rejected, leaving {len(resources)} resource(s) undeleted for test: {test_id}: "
                f"{', '.join(str(r) for r in resources)}"
            )
        raise
    summary = CleanupSummary(test_id=test_id)

    if not resources:
        if verbose:
            logger.info(f"[Cleanup] No tracked resources to delete for test: {test_id}")
        return summary

    logger.info(f"[Cleanup] Starting deletion of {len(resources)} tracked resource(s) for test: {test_id}")
    if verbose:
        logger.info(f"   Resources to delete: {', '.join(str(r) for r in resources)}")

    for resource in reversed(resources):
        summary.attempted.append(resource)
        deleter = table.get(resource.resource_type)
        if deleter is None:
            error = "no deleter registered"
            logger.warning(f"[Cleanup] Cannot delete {resource.resource_type.value} \"{resource.identifier}\": {error}")
            summary.failed += 1
            summary.failures.append(DeletionFailure(resource.resource_type.value, resource.identifier, error))
            continue
        deletion_start = time.time()
        try:
            if verbose:
                logger.info(f"   -> Deleting {resource.resource_type.value}: \"{resource.identifier}\"")
            deleter(resource.identifier)
        except Exception as e:
            summary.failed += 1
            summary.failures.append(
                DeletionFailure(resource.resource_type.value, resource.identifier, str(e) or type(e).__name__)
            )
            logger.warning(f"[Cleanup] Failed to delete {resource.resource_type.value} \"{resource.identifier}\": {e}")
            continue
        summary.succeeded += 1
        if verbose:
            logger.info(
                f"   Deleted {resource.resource_type.value}: \"{resource.identifier}\" "
                f"({(time.time() - deletion_start) * 1000:.0f}ms)"
            )

    summary.elapsed = time.time() - start_time
    if summary.failed == 0:
        logger.info(f"[Cleanup] Successfully deleted {summary.succeeded} resource(s) for test: {test_id}")
    elif summary.succeeded > 0:
        logger.warning(
            f"[Cleanup] Deleted {summary.succeeded} resource(s), failed {summary.failed} resource(s) for test: {test_id}"
        )
    else:
        logger.error(f"[Cleanup] Failed to delete all {summary.failed} resource(s) for test: {test_id}")
    for failure in summary.failures:
        logger.debug(f"   - {failure}")
    return summary


def close_dialogs(page, timeout: int = CLEANUP_ACTION_TIMEOUT) -> bool:
    """Close an open modal: Escape first, then the first visible close/cancel button."""
    page.keyboard.press("Escape")
    try:
        page.wait_for_load_state("domcontentloaded", timeout=timeout)
    except Exception:
        pass
    for selector in CLOSE_BUTTON_SELECTORS:
        try:
            button = page.locator(selector).first
            if button.is_visible(timeout=timeout):
                button.click(timeout=timeout)
                logger.debug(f"Closed dialog via {selector}")
                return True
        except Exception:
            continue
    return False


def dismiss_notifications(page, timeout: int = CLEANUP_ACTION_TIMEOUT) -> int:
    """Click every visible toast/notification close button. Returns how many were dismissed."""
    dismissed = 0
    for selector in NOTIFICATION_CLOSE_SELECTORS:
        try:
            buttons = page.locator(selector)
            for i in range(buttons.count()):
                buttons.nth(i).click(timeout=timeout)
                dismissed += 1
        except Exception:
            continue
    if dismissed:
        logger.debug(f"Dismissed {dismissed} notification(s)")
    return dismissed


def perform_test_cleanup(
    page,
    test_id: Optional[str] = None,
    deleters: Optional[Mapping[Union[ResourceType, str], Deleter]] = None,
    tracker: Optional[TestDataTracker] = None,
    options: Optional[CleanupOptions] = None,
    session=None,
    session_cache=None,
    ui_logout: Optional[Callable[[Any], Any]] = None,
    ledger: Optional["CleanupLedger"] = None,
) -> CleanupReport:
    """
    Teardown sequence for one test. Never raises.

    1. delete tracked records (while still authenticated)
    2. close dialogs and dismiss notifications
    3. end the session: logout (API first, UI fallback) when `options.logout`,
       otherwise persist it through the session cache for reuse
    """
    opts = options or CleanupOptions()
    report = CleanupReport(test_id=test_id)
    try:
        if opts.delete_created_records and test_id and tracker is not None:
            step = run_step("delete_records", cleanup, tracker, test_id, deleters or {}, verbose=opts.verbose)
            report.steps.append(step)
            if step.ok:
                report.summary = step.value
        elif opts.delete_created_records and not test_id:
            logger.warning("[Cleanup] delete_created_records is enabled but test_id is not provided. Records will not be deleted.")

        if page is not None and opts.close_dialogs:
            report.steps.append(run_step("close_dialogs", close_dialogs, page))
        if page is not None and opts.dismiss_notifications:
            report.steps.append(run_step("dismiss_notifications", dismiss_notifications, page))

        if session is not None and session_cache is not None:
            if opts.logout:
                report.steps.append(run_step(
                    "logout", session_cache.logout, session, ui_logout=ui_logout, via_api=opts.logout_via_api
                ))
            else:
                report.steps.append(run_step("release_session", session_cache.release, session))
        elif opts.logout and ui_logout is not None and page is not None:
            report.steps.append(run_step("logout", ui_logout, page))

        if ledger is not None:
            ledger.add(report)
    except Exception as e:
        logger.warning(f"[Cleanup] Encountered unexpected error during cleanup: {e}")
    return report


class CleanupLedger:
    """Run-wide totals of cleanup outcomes."""

    def __init__(self):
        self.succeeded = 0
        self.failed = 0
        self.leaked: List[DeletionFailure] = []
        self.step_failures: List[CleanupStepFailure] = []
        self._lock = threading.Lock()

    def add(self, report: CleanupReport) -> None:
        with self._lock:
            if report.summary is not None:
                self.succeeded += report.summary.succeeded
                self.failed += report.summary.failed
                self.leaked.extend(report.summary.failures)
            self.step_failures.extend(s.failure for s in report.failed_steps if s.failure is not None)

    def as_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "succeeded": self.succeeded,
                "failed": self.failed,
                "leaked": [str(f) for f in self.leaked],
                "step_failures": [str(f) for f in self.step_failures],
            }


def sweep_stale_auth_state(auth_dir: str, max_age: float = STALE_AUTH_MAX_AGE) -> List[str]:
    """
    Remove session state files older than `max_age` seconds.

    Recent files are kept so parallel runs are not disrupted. Never raises.
    """
    removed: List[str] = []
    try:
        if not os.path.isdir(auth_dir):
            return removed
        now = time.time()
        for name in os.listdir(auth_dir):
            if not name.endswith(".storage_state.json"):
                continue
            path = os.path.join(auth_dir, name)
            try:
                age = now - os.path.getmtime(path)
                if age > max_age:
                    os.remove(path)
                    removed.append(path)
                    logger.info(f"Removed stale auth state: {name} (age: {age / 3600:.0f}h)")
                else:
                    logger.debug(f"Auth state {name} is recent (age: {age / 60:.0f}min), keeping")
            except OSError as e:
                logger.warning(f"Could not check {name}: {e}")
    except Exception as e:
        logger.warning(f"Stale auth state sweep failed: {e}")
    return removed
