"""
Dashboard Page Object
Left navigation, notifications, logout and the authenticated-view probe.
"""
import logging
import re

from playwright.sync_api import Page, TimeoutError as PWTimeoutError

from pages.base_page import BasePage
from utils.config import DASHBOARD_PATH, PROBE_TIMEOUT
from utils.test_logger import log_keyword

logger = logging.getLogger(__name__)


class DashboardPage(BasePage):
    def __init__(self, page: Page, **kwargs):
        super().__init__(page, **kwargs)
        self.postings_button = page.get_by_role("button", name="Postings")
        self.applicants_button = page.get_by_role("button", name="Applicants")
        self.interviews_button = page.get_by_role("button", name="Interviews")
        # Initials avatar, e.g. "NB"
        self.profile_button = page.locator("button").filter(has_text=re.compile(r"^[A-Z]{1,3}$")).first
        self.notifications_button = page.get_by_role("region", name=re.compile("Notifications", re.I)).get_by_role("button")

    def is_authenticated(self, timeout: int = PROBE_TIMEOUT) -> bool:
        """
        Liveness probe: open an authenticated-only view and wait for the left nav.

        False when the app bounces to login or the nav never shows up.
        """
        try:
            self.goto(DASHBOARD_PATH, timeout=timeout)
            if "login" in self.page.url.lower():
                return False
            self.postings_button.wait_for(state="visible", timeout=timeout)
            return True
        except PWTimeoutError:
            return False

    @log_keyword("Navigate To Postings")
    def navigate_to_postings(self):
        self.postings_button.click()
        self.page.get_by_role("heading", name="Postings").wait_for(timeout=10000)

    @log_keyword("Navigate To Applicants")
    def navigate_to_applicants(self):
        # An open Add Applicant dialog blocks the nav
        self.page.keyboard.press("Escape")
        self.applicants_button.wait_for(state="visible", timeout=10000)
        self.applicants_button.click()
        self.page.get_by_role("heading", name="Applicants").wait_for(timeout=10000)

    @log_keyword("Navigate To Interviews")
    def navigate_to_interviews(self):
        self.interviews_button.click()
        self.wait(1000)

    def close_notifications(self):
        if self.is_visible(self.notifications_button, timeout=2000):
            self.notifications_button.click()
            self.wait(500)

    @log_keyword("Logout")
    def logout(self):
        """Profile menu -> Logout -> confirm. The menu closes on mouse-out, so clicks are back to back."""
        self.profile_button.click()
        self.page.wait_for_selector("button:has-text('Logout')", state="visible", timeout=2000)
        self.page.locator("button").filter(has_text="Logout").last.click(timeout=3000)
        self.wait(1000)
        self.page.get_by_role("button", name="Logout").click(timeout=5000)
        self.page.wait_for_url(lambda url: not re.search(r"/(admin|dashboard)", url, re.I), timeout=15000)
