"""
Suite Configuration
Centralized configuration for credentials, URLs, timeouts and cache settings.
Every value can be overridden from the environment.
"""
import os
from dataclasses import dataclass
from typing import Dict


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Application under test
BASE_URL = os.getenv("CANDIDLY_BASE_URL", "https://candidly--staging-web-app--fzt5kjl8m2pw.code.run/")
# Authenticated-only view used by the liveness probe
DASHBOARD_PATH = os.getenv("CANDIDLY_DASHBOARD_PATH", "admin/postings")

# Logout API (empty URL = not configured, UI logout is used instead)
LOGOUT_API_URL = os.getenv("CANDIDLY_LOGOUT_API_URL", "").strip()
LOGOUT_API_METHOD = os.getenv("CANDIDLY_LOGOUT_API_METHOD", "POST").strip().upper() or "POST"

# Timeouts (milliseconds)
DEFAULT_TIMEOUT = int(os.getenv("CANDIDLY_TIMEOUT", "15000"))
NAVIGATION_TIMEOUT = int(os.getenv("CANDIDLY_NAVIGATION_TIMEOUT", "30000"))
PROBE_TIMEOUT = int(os.getenv("CANDIDLY_PROBE_TIMEOUT", "10000"))
FILE_UPLOAD_TIMEOUT = int(os.getenv("CANDIDLY_FILE_UPLOAD_TIMEOUT", "30000"))
CLEANUP_ACTION_TIMEOUT = int(os.getenv("CANDIDLY_CLEANUP_ACTION_TIMEOUT", "500"))

# Browser
HEADLESS = _env_flag("CANDIDLY_HEADLESS", "1")
SLOW_MO = int(os.getenv("CANDIDLY_SLOW_MO", "0"))

# Retries (pytest-rerunfailures); a test that fails and then passes is reported as flaky
TEST_RERUNS = int(os.getenv("CANDIDLY_RERUNS", "2" if os.getenv("CI") else "1"))

# Session cache (seconds)
AUTH_DIR = os.getenv("CANDIDLY_AUTH_DIR", os.path.join(PROJECT_ROOT, ".auth"))
SESSION_MAX_AGE = float(os.getenv("CANDIDLY_SESSION_MAX_AGE", "300"))
VERIFY_CACHE_TTL = float(os.getenv("CANDIDLY_VERIFY_CACHE_TTL", "300"))
# State files older than this are removed at the end of the run
STALE_AUTH_MAX_AGE = float(os.getenv("CANDIDLY_STALE_AUTH_MAX_AGE", str(24 * 60 * 60)))

# Test data
RESUME_PATH = os.getenv("CANDIDLY_RESUME_PATH", os.path.join(PROJECT_ROOT, "test-resources", "functionalsample.pdf"))
INTERVIEWER_NAME = os.getenv("CANDIDLY_INTERVIEWER_NAME", "Nishant Bhardwaj")

# Tracker bounds
MAX_TEST_IDS = 500
MAX_RESOURCES_PER_TEST = 50

# Cleanup behavior
DELETE_CREATED_RECORDS = _env_flag("CANDIDLY_DELETE_CREATED_RECORDS", "1")
LOGOUT_AFTER_TEST = _env_flag("CANDIDLY_LOGOUT_AFTER_TEST", "0")
CLEANUP_VERBOSE = _env_flag("CANDIDLY_CLEANUP_VERBOSE", "0")

# Reporting
LOG_DIR = os.path.join(PROJECT_ROOT, "logs")
REPORTS_DIR = os.getenv("CANDIDLY_REPORTS_DIR", os.path.join(PROJECT_ROOT, "performance-reports"))
SLOW_TEST_THRESHOLD = float(os.getenv("CANDIDLY_SLOW_TEST_THRESHOLD", "30"))
FAST_TEST_THRESHOLD = float(os.getenv("CANDIDLY_FAST_TEST_THRESHOLD", "5"))

# Network check (seconds)
NET_CHECK_TIMEOUT = float(os.getenv("NET_CHECK_TIMEOUT", "5"))
NET_CHECK_CACHE_TTL = float(os.getenv("NET_CHECK_CACHE_TTL", "300"))


@dataclass(frozen=True)
class Profile:
    """A named credential set used to log in to the application."""
    key: str
    email: str
    password: str
    display_name: str = ""


def _profile_from_env(key: str, email: str, password: str, display_name: str) -> Profile:
    prefix = f"CANDIDLY_{key.upper()}_"
    return Profile(
        key=key,
        email=os.getenv(prefix + "EMAIL", email),
        password=os.getenv(prefix + "PASSWORD", password),
        display_name=os.getenv(prefix + "NAME", display_name),
    )


# Loaded once per run
PROFILES: Dict[str, Profile] = {
    "admin": _profile_from_env("admin", os.getenv("TEST_EMAIL", "bh.nishant@concret.io"),
                               os.getenv("TEST_PASSWORD", "Candidly@2025"), "Admin"),
    "recruiter": _profile_from_env("recruiter", "recruiter@concret.io", "Candidly@2025", "Recruiter"),
}

DEFAULT_PROFILE = os.getenv("CANDIDLY_DEFAULT_PROFILE", "admin")


def get_profile(key: str) -> Profile:
    """Return the profile registered under `key`."""
    try:
        return PROFILES[key]
    except KeyError:
        raise KeyError(f"Unknown profile '{key}' (known: {', '.join(sorted(PROFILES))})") from None
