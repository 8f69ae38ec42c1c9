"""
Interview Page Object
"""
import logging
import re
from dataclasses import dataclass

from playwright.sync_api import Page

from pages.base_page import BasePage
from utils.test_logger import log_keyword

logger = logging.getLogger(__name__)


@dataclass
class InterviewData:
    applicant_name: str
    main_interviewer: str
    date: str
    time: str
    round: str = "Technical"


class InterviewPage(BasePage):
    def __init__(self, page: Page, **kwargs):
        super().__init__(page, **kwargs)
        self.schedule_interview_button = page.get_by_role("button", name="Schedule Interview")

    def _pick(self, button_name: str, option_text: str):
        self.page.get_by_role("button", name=button_name).click()
        self.page.get_by_role("button").filter(has_text=option_text).first.click()

    @log_keyword("Schedule Interview")
    def schedule_interview(self, data: InterviewData):
        self.schedule_interview_button.click()
        self._pick("Select an applicant", data.applicant_name)
        self._pick("Select main interviewer", data.main_interviewer)
        self.page.get_by_role("textbox", name="Interview Date *").fill(data.date)
        self.page.get_by_role("textbox", name=re.compile("Time", re.I)).fill(data.time)
        self.page.get_by_role("combobox", name=re.compile("Round", re.I)).select_option(label=data.round)
        self.page.get_by_role("button", name="Schedule", exact=True).click()
        self.verify_interview_scheduled(data.applicant_name)

    def verify_interview_scheduled(self, applicant_name: str):
        self.page.get_by_role("row", name=re.compile(re.escape(applicant_name), re.I)).first.wait_for(timeout=15000)

    @log_keyword("Delete Interview")
    def delete_interview(self, identifier: str, confirm_text: str = None):
        """Delete the interview row matching `identifier`; the confirm box expects `confirm_text`."""
        confirm_text = confirm_text or identifier
        row = self.page.get_by_role("row", name=re.compile(re.escape(identifier), re.I)).first
        row.wait_for(state="visible", timeout=10000)
        row.get_by_label("Delete").click()
        self.page.get_by_role("textbox", name=re.compile(re.escape(confirm_text), re.I)).fill(confirm_text)
        self.page.get_by_role("button", name="Delete Interview").click()
        row.wait_for(state="detached", timeout=10000)
        logger.info(f"Deleted interview: {identifier}")
