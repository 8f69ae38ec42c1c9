"""
Applicants Page Object
"""
import logging
import re
from dataclasses import dataclass

from playwright.sync_api import Page

from pages.base_page import BasePage
from utils.test_logger import log_keyword

logger = logging.getLogger(__name__)


@dataclass
class ApplicantData:
    resume_path: str
    phone: str
    role: str
    experience: str = "3"
    notice_period: str = "30"
    current_ctc: str = "10"
    expected_ctc: str = "14"
    skills: str = "Python, SQL"


class ApplicantsPage(BasePage):
    def __init__(self, page: Page, **kwargs):
        super().__init__(page, **kwargs)
        self.dialog = page.get_by_role("dialog", name="Add New Applicant")

    @log_keyword("Add Applicant")
    def add_applicant(self, data: ApplicantData):
        self.page.get_by_role("button", name="Add Applicant").click()
        self.dialog.wait_for(state="visible", timeout=10000)
        # Resume parsing pre-fills name and email
        self.upload_file(
            self.dialog.locator("input[type='file']"),
            data.resume_path,
            wait_for=self.dialog.get_by_role("combobox"),
        )
        self.dialog.get_by_role("combobox").click()
        self.page.get_by_role("option", name=data.role).click()
        self.dialog.get_by_role("spinbutton", name="Experience (in years) *").fill(data.experience)
        self.dialog.get_by_role("textbox", name="Notice Period (in days) *").fill(data.notice_period)
        self.dialog.get_by_role("textbox", name="Current CTC (in Lakhs) *").fill(data.current_ctc)
        self.dialog.get_by_role("textbox", name="Expected CTC (in Lakhs) *").fill(data.expected_ctc)
        self.dialog.get_by_role("textbox", name="Skills *").fill(data.skills)
        self.dialog.get_by_role("textbox", name="Phone *").fill(data.phone)
        self.dialog.get_by_role("button", name="Add Applicant").click()
        self.dialog.wait_for(state="hidden", timeout=15000)

    def read_applicant_identifier(self) -> str:
        """Email shown in the first applicant row, used to track the record for cleanup."""
        first_row = self.page.get_by_role("row").nth(1)
        text = first_row.inner_text(timeout=10000)
        match = re.search(r"[\w.+-]+@[\w-]+\.[\w.]+", text)
        return match.group(0) if match else text.split("\n")[0].strip()

    @log_keyword("Delete Applicant")
    def delete_applicant_by_identifier(self, identifier: str):
        """Delete the applicant whose row mentions `identifier` (email or full name)."""
        self.page.get_by_placeholder(re.compile("search", re.I)).fill(identifier)
        row = self.page.get_by_role("row", name=re.compile(re.escape(identifier), re.I)).first
        row.wait_for(state="visible", timeout=10000)
        row.get_by_label("Delete").click()
        self.confirm_dialog("Delete")
        row.wait_for(state="detached", timeout=10000)
        logger.info(f"Deleted applicant: {identifier}")
