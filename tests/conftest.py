"""
Pytest configuration and shared fixtures for the test suite.
"""
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pytest
import pytest_asyncio
from aiohttp import web

# Add project root to Python path so tests can import tests.fixtures
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from rgpv_results.config.settings import ScraperConfig
from rgpv_results.connectors.rgpv.http import SESSION_COOKIE, create_http_session
from rgpv_results.ocr.engine import IOCREngine
from tests.fixtures.mock_responses import (
    INVALID_CAPTCHA_PAGE,
    MAINTENANCE_PAGE,
    PROGRAM_SELECT_PAGE,
    RECORD_NOT_FOUND_PAGE,
    RESULT_FORM_PAGE,
    VALID_PNG,
)

Reading = Union[str, Exception]


class ScriptedOCREngine(IOCREngine):
    """OCR engine returning scripted readings, then ``default`` forever.

    Several engines may share one ``readings`` list to script a whole pool.
    """

    def __init__(self, readings: Optional[List[Reading]] = None, default: str = ""):
        self.readings = readings if readings is not None else []
        self.default = default
        self.calls = 0
        self.closed = False

    def recognize(self, image_bytes: bytes) -> str:
        self.calls += 1
        if not self.readings:
            return self.default
        reading = self.readings.pop(0)
        if isinstance(reading, Exception):
            raise reading
        return reading

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeRGPVSite:
    """In-process stand-in for the result site.

    Each GET of the program page issues a new session id. The results form
    accepts ``captcha_code`` only; roll numbers missing from ``results`` get
    the "does not exist" page.
    """
    captcha_code: str = "AB3D"
    results: Dict[str, str] = field(default_factory=dict)
    redirect_location: str = "BErslt.aspx"
    form_page: str = RESULT_FORM_PAGE
    maintenance: bool = False
    captcha_status: int = 200
    base_url: str = ""
    sessions_issued: int = 0
    select_posts: List[Tuple[Optional[str], Dict[str, str]]] = field(default_factory=list)
    form_requests: List[Optional[str]] = field(default_factory=list)
    captcha_requests: List[Optional[str]] = field(default_factory=list)
    submissions: List[Dict[str, Any]] = field(default_factory=list)

    async def program_page(self, request: web.Request) -> web.Response:
        self.sessions_issued += 1
        response = web.Response(text=PROGRAM_SELECT_PAGE, content_type="text/html")
        response.set_cookie(SESSION_COOKIE, f"session-{self.sessions_issued}")
        return response

    async def program_postback(self, request: web.Request) -> web.Response:
        form = await request.post()
        self.select_posts.append((request.cookies.get(SESSION_COOKIE), dict(form)))
        return web.Response(status=302, headers={"Location": self.redirect_location})

    async def result_form(self, request: web.Request) -> web.Response:
        session_id = request.cookies.get(SESSION_COOKIE)
        self.form_requests.append(session_id)
        page = self.form_page.format(viewstate=f"VS-{session_id}")
        return web.Response(text=page, content_type="text/html")

    async def captcha_image(self, request: web.Request) -> web.Response:
        self.captcha_requests.append(request.cookies.get(SESSION_COOKIE))
        if self.captcha_status != 200:
            return web.Response(status=self.captcha_status)
        return web.Response(body=VALID_PNG, content_type="image/png")

    async def result_submit(self, request: web.Request) -> web.Response:
        form = dict(await request.post())
        form["session_id"] = request.cookies.get(SESSION_COOKIE)
        self.submissions.append(form)

        if self.maintenance:
            page = MAINTENANCE_PAGE
        elif form.get("ctl00$ContentPlaceHolder1$TextBox1") != self.captcha_code:
            page = INVALID_CAPTCHA_PAGE
        else:
            roll_number = form.get("ctl00$ContentPlaceHolder1$txtrollno")
            page = self.results.get(roll_number, RECORD_NOT_FOUND_PAGE)
        return web.Response(text=page, content_type="text/html")

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/Result/ProgramSelect.aspx", self.program_page)
        app.router.add_post("/Result/ProgramSelect.aspx", self.program_postback)
        app.router.add_get("/Result/BErslt.aspx", self.result_form)
        app.router.add_post("/Result/BErslt.aspx", self.result_submit)
        app.router.add_get("/Result/CaptchaImage.axd", self.captcha_image)
        return app


@pytest_asyncio.fixture
async def fake_site():
    """Serve a FakeRGPVSite on a free localhost port."""
    site = FakeRGPVSite()
    runner = web.AppRunner(site.build_app())
    await runner.setup()
    tcp_site = web.TCPSite(runner, "127.0.0.1", 0)
    await tcp_site.start()

    port = tcp_site._server.sockets[0].getsockname()[1]
    site.base_url = f"http://127.0.0.1:{port}/Result/"

    yield site

    await runner.cleanup()


@pytest_asyncio.fixture
async def http_session():
    """Client session configured like the one used in production."""
    session = create_http_session(request_timeout=5.0)
    yield session
    await session.close()


@pytest.fixture
def scripted_engine_factory():
    """Build an engine factory whose engines share one list of readings."""
    def build(readings: Sequence[Reading] = (), default: str = ""):
        shared = list(readings)
        engines: List[ScriptedOCREngine] = []

        def factory() -> ScriptedOCREngine:
            engine = ScriptedOCREngine(shared, default=default)
            engines.append(engine)
            return engine

        factory.engines = engines
        factory.readings = shared
        return factory

    return build


@pytest.fixture
def test_config(tmp_path):
    """Fast configuration writing results under a temporary directory."""
    return ScraperConfig(
        sample_delay=0.0,
        request_timeout=5.0,
        results_dir=str(tmp_path / "results"),
        concurrency=4,
        ocr_concurrency=2,
    )


@pytest.fixture
def sample_payload():
    """A result payload as produced by extract_result_data."""
    return {
        "university": "Rajiv Gandhi Proudyogiki Vishwavidyalaya, Bhopal",
        "session": "DEC-2024",
        "student": {
            "name": "JOHN DOE",
            "roll_no": "0818CS231001",
            "course": "B.Tech.",
            "branch": "Computer Science & Engineering",
            "semester": "3",
            "status": "Regular",
        },
        "subjects": [
            {"subject": "CS301- [T]", "total_credit": "4", "earned_credit": "4", "grade": "A+"},
            {"subject": "CS303- [P]", "total_credit": "1", "earned_credit": "0", "grade": "F"},
        ],
        "results": {"description": "FAIL", "sgpa": "7.85", "cgpa": "7.60"},
        "revaluationDates": {"normal": "15-01-2025", "late": "22-01-2025"},
    }


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
