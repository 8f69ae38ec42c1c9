"""Page objects for the Candidly web app."""
from pages.applicants_page import ApplicantData, ApplicantsPage
from pages.base_page import BasePage
from pages.dashboard_page import DashboardPage
from pages.interview_page import InterviewData, InterviewPage
from pages.job_posting_page import JobPostingData, JobPostingPage
from pages.login_page import LoginPage

__all__ = [
    "ApplicantData",
    "ApplicantsPage",
    "BasePage",
    "DashboardPage",
    "InterviewData",
    "InterviewPage",
    "JobPostingData",
    "JobPostingPage",
    "LoginPage",
]
