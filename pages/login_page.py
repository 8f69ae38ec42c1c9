"""
Login Page Object
"""
import logging
import time

from playwright.sync_api import Page

from pages.base_page import BasePage
from utils.config import Profile
from utils.test_logger import get_test_logger

logger = logging.getLogger(__name__)

LOGIN_BUTTON_SELECTORS = [
    "xpath=//button[normalize-space()='Login']",
    "button:has-text('Login')",
]
EMAIL_SELECTORS = [
    "input[placeholder='johndoe@business.com']",
    "input[type='email']",
    "input[name='email']",
]
PASSWORD_SELECTORS = [
    "role=textbox[name='Password']",
    "input[type='password']",
]
SIGN_IN_SELECTORS = [
    "xpath=//span[normalize-space()='Sign In']",
    "button:has-text('Sign In')",
    "button[type='submit']",
]


class LoginPage(BasePage):
    def __init__(self, page: Page, **kwargs):
        super().__init__(page, **kwargs)

    def navigate_to_login(self):
        self.goto()
        self.first_visible(LOGIN_BUTTON_SELECTORS, timeout=10000).click()

    def enter_email(self, email: str):
        self.first_visible(EMAIL_SELECTORS).fill(email)
        self.page.get_by_text("Continue", exact=True).click()

    def enter_password(self, password: str):
        self.first_visible(PASSWORD_SELECTORS).fill(password)
        self.first_visible(SIGN_IN_SELECTORS).click()

    def login(self, email: str, password: str):
        """Complete login flow: landing page -> email -> password -> dashboard."""
        test_logger = get_test_logger()
        test_logger.log_keyword_start("Login", [email])
        start_time = time.time()
        try:
            self.navigate_to_login()
            self.enter_email(email)
            self.enter_password(password)
            self.wait_for_network_idle()
        except Exception as e:
            test_logger.log_keyword_end("Login", "FAIL", elapsed=time.time() - start_time)
            logger.error(f"Error during login as {email}: {e}")
            raise
        test_logger.log_keyword_end("Login", "PASS", elapsed=time.time() - start_time)
        logger.info(f"Logged in as {email}")

    def login_as(self, profile: Profile):
        self.login(profile.email, profile.password)

    def is_email_input_visible(self) -> bool:
        return self.is_visible(self.page.locator(EMAIL_SELECTORS[0]))
