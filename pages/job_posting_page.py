"""
Job Posting Page Object
"""
import logging
import re
from dataclasses import dataclass, field
from typing import List

from playwright.sync_api import Page, TimeoutError as PWTimeoutError

from pages.base_page import BasePage
from utils.test_logger import log_keyword

logger = logging.getLogger(__name__)


@dataclass
class JobPostingData:
    title: str
    department: str = "Engineering"
    experience_level: str = "Senior Level"
    employment_type: str = "Full-time"
    open_positions: str = "1"
    role_summary: str = "Own the design and delivery of core platform services."
    responsibilities: List[str] = field(default_factory=lambda: ["Design services", "Review code"])
    qualification: str = "B.Tech in Computer Science"
    skills: List[str] = field(default_factory=lambda: ["Python", "SQL"])
    compensation: str = "Competitive salary and benefits"
    location: str = "Remote"


class JobPostingPage(BasePage):
    def __init__(self, page: Page, **kwargs):
        super().__init__(page, **kwargs)
        self.dialog = page.get_by_role("dialog", name="Add New Job Posting")

    def _select_combobox(self, index: int, option: str):
        self.dialog.get_by_role("combobox").nth(index).click()
        self.page.get_by_role("option", name=option, exact=True).click()

    def _add_list_item(self, field_name: str, value: str):
        box = self.dialog.get_by_role("textbox", name=field_name)
        box.fill(value)
        box.press("Enter")

    @log_keyword("Create Job Posting")
    def create_job_posting(self, data: JobPostingData):
        self.page.get_by_text("Add New Job", exact=True).click()
        self.dialog.wait_for(state="visible", timeout=10000)
        self.dialog.get_by_role("textbox", name="Job Title *").fill(data.title)
        self._select_combobox(0, data.department)
        self._select_combobox(1, data.experience_level)
        self._select_combobox(2, data.employment_type)
        self.dialog.get_by_role("spinbutton", name="Open Positions Count *").fill(data.open_positions)
        self.dialog.get_by_role("button", name="Continue").click()

        self.dialog.get_by_role("textbox", name="Role Summary *").fill(data.role_summary)
        for item in data.responsibilities:
            self._add_list_item("Add a responsibility", item)
        self._add_list_item("Add a qualification", data.qualification)
        for skill in data.skills:
            self._add_list_item("Add a skill", skill)
        self.dialog.get_by_role("textbox", name="Compensation and Benefits *").fill(data.compensation)
        self.dialog.get_by_role("button", name="Review").click()
        self.dialog.get_by_text(data.location, exact=True).click()
        self.save_as_draft()

    def save_as_draft(self):
        self.page.get_by_role("button", name="Save as Draft").click()
        self.wait_for_network_idle()
        if self.is_visible(self.page.get_by_text("Please enter compensation and benefits"), timeout=1000):
            # Validation keeps the dialog open
            return
        try:
            self.page.get_by_text("Job posting created successfully!").wait_for(timeout=5000)
        except PWTimeoutError:
            self.dialog.wait_for(state="hidden", timeout=30000)

    def job_row(self, title: str):
        return self.page.get_by_role("row", name=re.compile(re.escape(title), re.I))

    @log_keyword("Delete Job Posting")
    def delete_job_posting_by_title(self, title: str):
        """Delete the posting whose row matches `title`. Raises PWTimeoutError when it is not listed."""
        row = self.job_row(title).first
        row.wait_for(state="visible", timeout=10000)
        row.get_by_label("Delete").click()
        self.confirm_dialog("Delete")
        row.wait_for(state="detached", timeout=10000)
        logger.info(f"Deleted job posting: {title}")
