"""Session workflow for the RGPV result site.

The result form lives behind an ASP.NET program selection page. Reaching it
takes three requests, each of which must replay the view state captured from
the previous page:

1. ``GET ProgramSelect.aspx`` to obtain a session and the initial view state.
2. ``POST ProgramSelect.aspx`` selecting the program (a radio button
   postback), which answers with a redirect to ``BErslt.aspx``.
3. ``GET BErslt.aspx`` to capture the form fields and the CAPTCHA image URL.
"""

from typing import Dict, Optional
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup

from ...config.logger import logger
from ...config.settings import DEFAULT_BASE_URL
from .http import send
from .interfaces import ChallengeContext

PROGRAM_SELECT_PAGE = "ProgramSelect.aspx"
RESULT_PAGE = "BErslt.aspx"
CAPTCHA_IMAGE_MARKER = "CaptchaImage.axd"

VIEW_STATE_FIELDS = ("__VIEWSTATE", "__VIEWSTATEGENERATOR", "__EVENTVALIDATION")


def parse_form_fields(soup: BeautifulSoup) -> Dict[str, str]:
    """Collect every named input of a page.

    Unchecked radio buttons and checkboxes are skipped, as a browser would.
    """
    fields: Dict[str, str] = {}
    for element in soup.select("input[name]"):
        input_type = (element.get("type") or "text").lower()
        if input_type in ("radio", "checkbox") and not element.has_attr("checked"):
            continue
        fields[element["name"]] = element.get("value", "")
    return fields


class SessionWorkflow:
    """Drive the site from a fresh session to a result form with a CAPTCHA."""

    def __init__(
        self,
        http: aiohttp.ClientSession,
        base_url: str = DEFAULT_BASE_URL,
        program_value: str = "24",
    ):
        """Initialize the workflow.

        Args:
            http: Client session created by ``create_http_session``.
            base_url: Root URL of the result site.
            program_value: Value posted for ``radlstProgram``.
        """
        self.http = http
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.program_value = program_value
        self.logger = logger.bind(component="session_workflow")

    @property
    def program_select_url(self) -> str:
        return urljoin(self.base_url, PROGRAM_SELECT_PAGE)

    async def establish(self) -> Optional[ChallengeContext]:
        """Open a new session and navigate to the result form.

        Returns:
            A ChallengeContext for one submission, or None if the site did not
            redirect to the result form or the form has no CAPTCHA image.

        Raises:
            TransportError: On network faults, timeouts and HTTP errors.
        """
        select_url = self.program_select_url

        page = await send(self.http, "GET", select_url)
        session_id = page.session_id
        fields = parse_form_fields(BeautifulSoup(page.text, "html.parser"))
        self.logger.debug(
            "workflow_program_page_loaded",
            has_session=bool(session_id),
            fields=len(fields),
        )

        form = {
            "__EVENTTARGET": "radlstProgram$1",
            "__EVENTARGUMENT": "",
            "__LASTFOCUS": "",
        }
        for name in VIEW_STATE_FIELDS:
            form[name] = fields.get(name, "")
        form["radlstProgram"] = self.program_value

        page = await send(
            self.http,
            "POST",
            select_url,
            session_id=session_id,
            data=form,
            allow_redirects=False,
            referer=select_url,
        )
        session_id = page.session_id

        if RESULT_PAGE not in page.location:
            self.logger.warning(
                "workflow_redirect_unexpected",
                status=page.status,
                location=page.location,
            )
            return None

        result_url = urljoin(select_url, page.location)
        page = await send(
            self.http,
            "GET",
            result_url,
            session_id=session_id,
            referer=select_url,
        )
        session_id = page.session_id

        soup = BeautifulSoup(page.text, "html.parser")
        image = soup.select_one(f'img[src*="{CAPTCHA_IMAGE_MARKER}"]')
        if image is None:
            self.logger.warning("workflow_captcha_missing", url=result_url)
            return None

        context = ChallengeContext(
            session_id=session_id,
            hidden_fields=parse_form_fields(soup),
            captcha_image_url=urljoin(result_url, image["src"]),
        )
        self.logger.debug(
            "workflow_established",
            has_session=bool(session_id),
            fields=len(context.hidden_fields),
        )
        return context

    async def fetch_captcha_image(self, context: ChallengeContext) -> bytes:
        """Download a freshly rendered CAPTCHA image for ``context``.

        Raises:
            TransportError: On network faults, timeouts and HTTP errors.
        """
        page = await send(
            self.http,
            "GET",
            context.captcha_image_url,
            session_id=context.session_id,
        )
        return page.body
