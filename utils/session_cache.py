"""
Session Cache
Hands out authenticated browser contexts per profile while keeping live logins rare.

Each profile owns one storage_state file under the auth directory. A cached state
is trusted without checks while the file is younger than `max_age` and the last
liveness probe for that file is younger than `verify_ttl`. Otherwise the state is
probed (one navigation to an authenticated-only view); a failed probe, a missing
file or a corrupted file leads to a full login whose state is written back to disk.

Concurrent workers share the state files. Reads are optimistic and writes replace
the whole file, so a torn or foreign read only costs an extra login.
"""
import json
import logging
import os
import tempfile
import time
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from utils.errors import SessionAcquisitionError, StateCorruptionError, StateCorruptionWarning
from utils.config import (
    LOGOUT_API_METHOD,
    LOGOUT_API_URL,
    PROBE_TIMEOUT,
    SESSION_MAX_AGE,
    VERIFY_CACHE_TTL,
    Profile,
)

logger = logging.getLogger(__name__)


class VerificationResult(Enum):
    UNKNOWN = "unknown"
    VALID = "valid"
    INVALID = "invalid"


@dataclass
class SessionRecord:
    """Cached authentication state for one profile."""
    profile_key: str
    state_path: str
    persisted_at: Optional[float] = None
    verified_at: Optional[float] = None
    verification: VerificationResult = VerificationResult.UNKNOWN


@dataclass
class SessionHandle:
    """A ready-to-use authenticated context handed to a test."""
    profile: Profile
    context: Any
    page: Any
    _release: Callable[["SessionHandle"], None] = field(repr=False)
    fresh_login: bool = False
    released: bool = False

    def release(self) -> None:
        self._release(self)


@dataclass
class _VerificationEntry:
    result: VerificationResult
    verified_at: float


class StateStore:
    """One JSON storage_state file per profile."""

    def __init__(self, auth_dir: str):
        self.auth_dir = auth_dir
        os.makedirs(auth_dir, exist_ok=True)

    def path_for(self, profile_key: str) -> str:
        return os.path.join(self.auth_dir, f"{profile_key}.storage_state.json")

    def age(self, profile_key: str, now: Optional[float] = None) -> Optional[float]:
        """Seconds since the state file was last written, None when there is no file."""
        try:
            mtime = os.path.getmtime(self.path_for(profile_key))
        except OSError:
            return None
        now = time.time() if now is None else now
        return max(0.0, now - mtime)

    def load(self, profile_key: str) -> Optional[Dict[str, Any]]:
        """
        Read the persisted state.

        Returns None when the file does not exist and raises StateCorruptionError
        when it exists but is not a usable storage_state payload.
        """
        path = self.path_for(profile_key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise StateCorruptionError(f"{path}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("cookies"), list):
            raise StateCorruptionError(f"{path}: payload has no 'cookies' list")
        return data

    def save(self, context, profile_key: str) -> str:
        """Write the context's storage_state, replacing the previous file wholesale."""
        path = self.path_for(profile_key)
        state = context.storage_state()
        fd, tmp_path = tempfile.mkstemp(prefix=f".{profile_key}.", suffix=".tmp", dir=self.auth_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state, f)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return path

    def discard(self, profile_key: str) -> bool:
        try:
            os.remove(self.path_for(profile_key))
            return True
        except FileNotFoundError:
            return False


class SessionCache:
    """
    Per-profile authenticated session cache.

    Args:
        browser: Playwright Browser (anything with `new_context(**kwargs)`)
        store: StateStore holding the persisted states
        login: `login(page, profile)` performing the full login flow
        probe: `probe(page, timeout_ms) -> bool` liveness check
        max_age: persisted state older than this (seconds) is re-verified
        verify_ttl: how long (seconds) a successful probe/login is trusted
        context_options: extra keyword arguments for `browser.new_context`
    """

    def __init__(
        self,
        browser,
        store: StateStore,
        login: Callable[[Any, Profile], None],
        probe: Callable[[Any, int], bool],
        max_age: float = SESSION_MAX_AGE,
        verify_ttl: float = VERIFY_CACHE_TTL,
        context_options: Optional[Dict[str, Any]] = None,
        probe_timeout: int = PROBE_TIMEOUT,
        logout_url: str = LOGOUT_API_URL,
        logout_method: str = LOGOUT_API_METHOD,
        clock: Callable[[], float] = time.time,
    ):
        self.browser = browser
        self.store = store
        self.login = login
        self.probe = probe
        self.max_age = max_age
        self.verify_ttl = verify_ttl
        self.context_options = dict(context_options or {})
        self.probe_timeout = probe_timeout
        self.logout_url = logout_url
        self.logout_method = logout_method
        self.clock = clock
        self._records: Dict[str, SessionRecord] = {}
        # Keyed by state file path
        self._verified: Dict[str, _VerificationEntry] = {}
        self._stats = {
            "acquired": 0,
            "reused": 0,
            "probes": 0,
            "logins": 0,
            "login_failures": 0,
            "corrupted": 0,
        }

    def record_for(self, profile_key: str) -> SessionRecord:
        record = self._records.get(profile_key)
        if record is None:
            record = SessionRecord(profile_key=profile_key, state_path=self.store.path_for(profile_key))
            self._records[profile_key] = record
        return record

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def clear(self) -> None:
        """Forget all in-memory records and verification results (files are kept)."""
        self._records.clear()
        self._verified.clear()

    def acquire(self, profile: Profile) -> SessionHandle:
        """
        Return a verified session for `profile`.

        Raises SessionAcquisitionError when a live login is needed and fails.
        """
        record = self.record_for(profile.key)
        now = self.clock()
        age = self.store.age(profile.key, now=now)
        should_verify = age is None or age > self.max_age or not self._is_verified(record.state_path, now)

        state = None
        if age is not None:
            record.persisted_at = now - age
            try:
                state = self.store.load(profile.key)
            except StateCorruptionError as e:
                self._on_corrupted_state(record, e)
                should_verify = True

        context = None
        if state is not None:
            try:
                context = self.browser.new_context(storage_state=state, **self.context_options)
            except Exception as e:
                self._on_corrupted_state(record, e)
                state = None
                should_verify = True
        if context is None:
            try:
                context = self.browser.new_context(**self.context_options)
            except Exception as e:
                raise SessionAcquisitionError(profile.key, f"could not open a browser context: {e}") from e
        # File vanished between the age check and the read (another worker), nothing to reuse
        should_verify = should_verify or state is None

        fresh_login = False
        try:
            page = context.new_page()
            if not should_verify:
                self._stats["reused"] += 1
                logger.debug(f"Reusing cached session for '{profile.key}' (state age {age:.1f}s)")
            elif state is not None and self._run_probe(page, record):
                pass
            else:
                self._login(context, page, profile, record)
                fresh_login = True
        except SessionAcquisitionError:
            self._close_context(context, profile.key)
            raise
        except Exception as e:
            self._close_context(context, profile.key)
            raise SessionAcquisitionError(profile.key, f"could not prepare session: {e}") from e

        self._stats["acquired"] += 1
        return SessionHandle(profile=profile, context=context, page=page,
                             _release=self.release, fresh_login=fresh_login)

    def release(self, handle: SessionHandle) -> None:
        """Persist the handle's state for later reuse and close its context. Never raises."""
        if handle.released:
            return
        handle.released = True
        key = handle.profile.key
        record = self.record_for(key)
        try:
            self.store.save(handle.context, key)
            record.persisted_at = self.clock()
            logger.debug(f"Persisted session state for '{key}' to {record.state_path}")
        except Exception as e:
            logger.warning(f"Could not persist session state for '{key}': {e}")
        finally:
            self._close_context(handle.context, key)

    def logout(self, handle: SessionHandle, ui_logout: Optional[Callable[[Any], None]] = None,
               via_api: bool = True) -> bool:
        """
        End the session on the server and drop its cached state.

        The logout API is tried first when configured; `ui_logout(page)` is the
        fallback. Returns True when one of them succeeded. Never raises.
        """
        if handle.released:
            return False
        handle.released = True
        key = handle.profile.key
        logged_out = False
        try:
            if via_api and self.logout_url:
                logged_out = self._logout_via_api(handle)
            elif via_api:
                logger.debug("Logout API not configured, falling back to UI logout")
            if not logged_out and ui_logout is not None:
                try:
                    ui_logout(handle.page)
                    logged_out = True
                    logger.info(f"UI logout successful for '{key}'")
                except Exception as e:
                    logger.warning(f"UI logout failed for '{key}': {e}")
        finally:
            self.invalidate(key)
            self._close_context(handle.context, key)
        return logged_out

    def invalidate(self, profile_key: str, discard_state: bool = True) -> None:
        record = self.record_for(profile_key)
        self._mark(record, VerificationResult.INVALID)
        if discard_state:
            try:
                self.store.discard(profile_key)
            except OSError as e:
                logger.warning(f"Could not remove session state for '{profile_key}': {e}")

    def _is_verified(self, state_path: str, now: float) -> bool:
        entry = self._verified.get(state_path)
        return (
            entry is not None
            and entry.result is VerificationResult.VALID
            and now - entry.verified_at <= self.verify_ttl
        )

    def _mark(self, record: SessionRecord, result: VerificationResult) -> None:
        record.verification = result
        if result is VerificationResult.VALID:
            now = self.clock()
            record.verified_at = now
            self._verified[record.state_path] = _VerificationEntry(result, now)
        else:
            self._verified.pop(record.state_path, None)

    def _run_probe(self, page, record: SessionRecord) -> bool:
        self._stats["probes"] += 1
        try:
            ok = bool(self.probe(page, self.probe_timeout))
        except Exception as e:
            logger.info(f"Liveness probe for '{record.profile_key}' raised: {e}")
            ok = False
        if ok:
            self._mark(record, VerificationResult.VALID)
            logger.info(f"Cached session for '{record.profile_key}' passed liveness probe")
        else:
            self._mark(record, VerificationResult.INVALID)
            logger.info(f"Cached session for '{record.profile_key}' failed liveness probe, logging in again")
        return ok

    def _login(self, context, page, profile: Profile, record: SessionRecord) -> None:
        self._stats["logins"] += 1
        start_time = time.time()
        try:
            self.login(page, profile)
        except Exception as e:
            self._stats["login_failures"] += 1
            self._mark(record, VerificationResult.INVALID)
            raise SessionAcquisitionError(profile.key, f"live login failed: {e}") from e
        try:
            self.store.save(context, profile.key)
            record.persisted_at = self.clock()
        except Exception as e:
            logger.warning(f"Logged in as '{profile.key}' but could not persist session state: {e}")
        self._mark(record, VerificationResult.VALID)
        logger.info(f"Logged in as '{profile.key}' ({time.time() - start_time:.2f}s)")

    def _logout_via_api(self, handle: SessionHandle) -> bool:
        logger.info(f"Calling logout API: {self.logout_method} {self.logout_url}")
        try:
            response = handle.context.request.fetch(self.logout_url, method=self.logout_method)
        except Exception as e:
            logger.warning(f"Logout API call failed: {e}")
            return False
        if not response.ok:
            logger.warning(f"Logout API returned non-2xx status: {response.status} {response.status_text}")
            return False
        logger.info(f"Logout API successful: {response.status}")
        return True

    def _on_corrupted_state(self, record: SessionRecord, error: Exception) -> None:
        self._stats["corrupted"] += 1
        message = f"Persisted session state for '{record.profile_key}' is unusable, discarding it: {error}"
        logger.warning(message)
        # Recovered here, so never escalated to an error by -W error / filterwarnings
        with warnings.catch_warnings():
            warnings.simplefilter("always", StateCorruptionWarning)
            warnings.warn(message, StateCorruptionWarning, stacklevel=3)
        self._mark(record, VerificationResult.UNKNOWN)
        try:
            self.store.discard(record.profile_key)
        except OSError as e:
            logger.debug(f"Could not remove corrupted state {record.state_path}: {e}")

    def _close_context(self, context, profile_key: str) -> None:
        try:
            for p in list(context.pages):
                try:
                    if not p.is_closed():
                        p.close()
                except Exception:
                    pass
            context.close()
        except Exception as e:
            logger.debug(f"Error closing context for '{profile_key}': {e}")
