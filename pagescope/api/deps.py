from fastapi import Request

from pagescope.services.browser import BrowserDriver
from pagescope.services.jobs import JobLedger


def get_job_ledger(request: Request) -> JobLedger:
    return request.app.state.job_ledger


def get_browser_driver(request: Request) -> BrowserDriver:
    return request.app.state.browser_driver
