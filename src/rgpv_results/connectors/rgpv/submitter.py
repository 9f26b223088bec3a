"""Result form submission, response classification and result extraction."""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup

from ...config.logger import logger
from ...config.settings import DEFAULT_BASE_URL
from .http import send
from .interfaces import ChallengeContext, SubmissionResult, SubmissionStatus
from .workflow import RESULT_PAGE, VIEW_STATE_FIELDS

FIELD_PREFIX = "ctl00$ContentPlaceHolder1$"
LABEL_PREFIX = "ctl00_ContentPlaceHolder1_"

# Rows of the grade tables that hold student details rather than subjects.
NON_SUBJECT_ROWS = ("Name", "Course", "Semester")

STATUS_MESSAGES = {
    SubmissionStatus.SUCCESS: "Result fetched",
    SubmissionStatus.INVALID_CAPTCHA: "Invalid CAPTCHA code entered",
    SubmissionStatus.RECORD_NOT_FOUND: "Roll number does not exist",
    SubmissionStatus.SERVICE_UNAVAILABLE: "Site is under maintenance",
    SubmissionStatus.UNRECOGNIZED: "Unexpected response from server",
}


def classify_response(html: str) -> SubmissionStatus:
    """Classify the page returned by a result form submission.

    The checks run in a fixed order; the first match wins. A page that
    matches none of them is UNRECOGNIZED.
    """
    if "Invalid Captcha Code" in html:
        return SubmissionStatus.INVALID_CAPTCHA
    if "Roll No does not exist" in html:
        return SubmissionStatus.RECORD_NOT_FOUND
    if "Site Under Construction" in html or "under maintenance" in html:
        return SubmissionStatus.SERVICE_UNAVAILABLE
    if "Result" in html and "Grade" in html:
        return SubmissionStatus.SUCCESS
    return SubmissionStatus.UNRECOGNIZED


def _label(soup: BeautifulSoup, name: str) -> str:
    element = soup.find(id=LABEL_PREFIX + name)
    return element.get_text(strip=True) if element else ""


def extract_result_data(html: str) -> Dict[str, Any]:
    """Extract the result payload from a successful result page.

    Missing elements yield empty strings rather than errors.

    Args:
        html: Page classified as SUCCESS.

    Returns:
        Payload with ``university``, ``session``, ``student``, ``subjects``,
        ``results`` and ``revaluationDates`` keys.
    """
    soup = BeautifulSoup(html, "html.parser")
    header = soup.select_one(".resultheader")

    subjects = []
    tables = soup.select(".gridtable")
    # The first table is the header block, the last three hold totals.
    for table in tables[1:len(tables) - 3]:
        for row in table.find_all("tr"):
            cells = [cell.get_text(strip=True) for cell in row.find_all("td")]
            if not cells:
                continue
            cells += [""] * (4 - len(cells))
            if cells[0] in NON_SUBJECT_ROWS:
                continue
            subjects.append({
                "subject": cells[0],
                "total_credit": cells[1],
                "earned_credit": cells[2],
                "grade": cells[3],
            })

    return {
        "university": header.get_text(strip=True) if header else "",
        "session": _label(soup, "lblSession"),
        "student": {
            "name": _label(soup, "lblNameGrading"),
            "roll_no": _label(soup, "lblRollNoGrading"),
            "course": _label(soup, "lblProgramGrading"),
            "branch": _label(soup, "lblBranchGrading"),
            "semester": _label(soup, "lblSemesterGrading"),
            "status": _label(soup, "lblStatusGrading"),
        },
        "subjects": subjects,
        "results": {
            "description": _label(soup, "lblResultNewGrading"),
            "sgpa": _label(soup, "lblSGPA"),
            "cgpa": _label(soup, "lblcgpa"),
        },
        "revaluationDates": {
            "normal": _label(soup, "Label4NewGrading"),
            "late": _label(soup, "Label5NewGrading"),
        },
    }


class FormSubmitter:
    """Submit the result form for one roll number with a solved CAPTCHA."""

    def __init__(
        self,
        http: aiohttp.ClientSession,
        base_url: str = DEFAULT_BASE_URL,
        debug_dir: Optional[Union[str, Path]] = None,
    ):
        self.http = http
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.debug_dir = Path(debug_dir) if debug_dir else None
        self.logger = logger.bind(component="form_submitter")

    @property
    def result_url(self) -> str:
        return urljoin(self.base_url, RESULT_PAGE)

    def build_form(
        self,
        roll_number: str,
        semester: str,
        context: ChallengeContext,
        solved_text: str,
    ) -> Dict[str, str]:
        """Build the form body for a grading-result submission."""
        form = {
            "__EVENTTARGET": "",
            "__EVENTARGUMENT": "",
        }
        for name in VIEW_STATE_FIELDS:
            form[name] = context.hidden_fields.get(name, "")
        form.update({
            FIELD_PREFIX + "txtrollno": roll_number,
            FIELD_PREFIX + "drpSemester": semester,
            FIELD_PREFIX + "rbtnlstSType": "G",
            FIELD_PREFIX + "TextBox1": solved_text,
            FIELD_PREFIX + "btnviewresult": "View Result",
        })
        return form

    async def _save_debug_page(self, roll_number: str, html: str) -> None:
        path = self.debug_dir / f"{roll_number}_response.html"
        try:
            await asyncio.to_thread(self.debug_dir.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_text, html, encoding="utf-8")
        except OSError as e:
            self.logger.warning("submit_debug_save_failed", path=str(path), error=str(e))

    async def submit(
        self,
        roll_number: str,
        semester: str,
        context: ChallengeContext,
        solved_text: str,
    ) -> SubmissionResult:
        """Submit the form and classify the response.

        Args:
            roll_number: Roll number to look up.
            semester: Semester to look up.
            context: Context captured for this attempt by the session workflow.
            solved_text: CAPTCHA text from the consensus solver.

        Returns:
            SubmissionResult with the extracted payload on SUCCESS.

        Raises:
            TransportError: On network faults, timeouts and HTTP errors.
        """
        page = await send(
            self.http,
            "POST",
            self.result_url,
            session_id=context.session_id,
            data=self.build_form(roll_number, semester, context, solved_text),
            referer=self.result_url,
        )
        html = page.text

        if self.debug_dir:
            await self._save_debug_page(roll_number, html)

        status = classify_response(html)
        self.logger.debug(
            "submit_response_classified",
            roll_number=roll_number,
            status=status.value,
            size=len(html),
        )

        if status != SubmissionStatus.SUCCESS:
            return SubmissionResult(status=status, message=STATUS_MESSAGES[status])

        return SubmissionResult(
            status=status,
            data=extract_result_data(html),
            message=STATUS_MESSAGES[status],
        )
