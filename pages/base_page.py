"""
Base Page Object
Common navigation, waits and the selector fallback used by all page objects.
"""
import logging
from typing import Optional, Sequence, Union

from playwright.sync_api import Locator, Page, TimeoutError as PWTimeoutError

from utils.config import BASE_URL, DEFAULT_TIMEOUT, FILE_UPLOAD_TIMEOUT, NAVIGATION_TIMEOUT

logger = logging.getLogger(__name__)


class BasePage:
    def __init__(self, page: Page, base_url: str = BASE_URL):
        self.page = page
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"

    def url_for(self, path: str = "") -> str:
        return self.base_url + path.lstrip("/")

    def goto(self, path: str = "", timeout: int = NAVIGATION_TIMEOUT):
        """Navigate relative to the base URL, falling back to 'commit' when DOM load times out."""
        url = self.url_for(path)
        try:
            self.page.goto(url, wait_until="domcontentloaded", timeout=timeout)
        except PWTimeoutError:
            logger.warning(f"goto: 'domcontentloaded' timed out for {url}, trying 'commit'...")
            self.page.goto(url, wait_until="commit", timeout=min(15000, timeout))

    def wait(self, ms: int):
        self.page.wait_for_timeout(ms)

    def wait_for_network_idle(self, timeout: int = DEFAULT_TIMEOUT):
        try:
            self.page.wait_for_load_state("networkidle", timeout=timeout)
        except PWTimeoutError:
            logger.debug("networkidle not reached, continuing")

    def first_visible(self, selectors: Sequence[Union[str, Locator]], timeout: int = 5000) -> Locator:
        """
        Resolve the first selector whose element becomes visible.

        Selectors are tried in order, each with its own `timeout`. Raises
        PWTimeoutError naming every selector tried when none matches.
        """
        tried = []
        for sel in selectors:
            locator = self.page.locator(sel) if isinstance(sel, str) else sel
            tried.append(str(sel))
            try:
                locator.first.wait_for(state="visible", timeout=timeout)
                return locator.first
            except PWTimeoutError:
                continue
        raise PWTimeoutError(f"No visible element for selectors: {', '.join(tried)}")

    def is_visible(self, locator: Locator, timeout: int = 2000) -> bool:
        try:
            locator.wait_for(state="visible", timeout=timeout)
            return True
        except PWTimeoutError:
            return False

    def upload_file(self, file_input: Locator, file_path: str, wait_for: Optional[Locator] = None,
                    timeout: int = FILE_UPLOAD_TIMEOUT):
        file_input.set_input_files(file_path)
        if wait_for is not None:
            wait_for.wait_for(state="visible", timeout=timeout)
        self.wait(1000)

    def confirm_dialog(self, button_name: str, timeout: int = 5000):
        """Click `button_name` inside the topmost open dialog."""
        dialog = self.page.get_by_role("dialog").last
        dialog.get_by_role("button", name=button_name).click(timeout=timeout)
