"""Tests for the RGPV session workflow."""

import pytest
from bs4 import BeautifulSoup

from rgpv_results.connectors.rgpv.exceptions import TransportError
from rgpv_results.connectors.rgpv.workflow import SessionWorkflow, parse_form_fields
from tests.fixtures.mock_responses import (
    PROGRAM_SELECT_PAGE,
    RESULT_FORM_PAGE,
    RESULT_FORM_WITHOUT_CAPTCHA,
    VALID_PNG,
)


class TestParseFormFields:
    """Test suite for parse_form_fields."""

    def test_collects_hidden_fields(self):
        fields = parse_form_fields(BeautifulSoup(PROGRAM_SELECT_PAGE, "html.parser"))

        assert fields["__VIEWSTATE"] == "VS-SELECT"
        assert fields["__VIEWSTATEGENERATOR"] == "GEN-SELECT"
        assert fields["__EVENTVALIDATION"] == "EV-SELECT"
        assert fields["__LASTFOCUS"] == ""

    def test_skips_unchecked_radios(self):
        fields = parse_form_fields(BeautifulSoup(PROGRAM_SELECT_PAGE, "html.parser"))

        assert "radlstProgram" not in fields

    def test_keeps_checked_radio(self):
        page = RESULT_FORM_PAGE.format(viewstate="VS")
        fields = parse_form_fields(BeautifulSoup(page, "html.parser"))

        assert fields["ctl00$ContentPlaceHolder1$rbtnlstSType"] == "G"
        assert fields["ctl00$ContentPlaceHolder1$txtrollno"] == ""


class TestSessionWorkflow:
    """Test suite for SessionWorkflow against the fake result site."""

    @pytest.mark.asyncio
    async def test_establish_returns_context(self, fake_site, http_session):
        workflow = SessionWorkflow(http_session, fake_site.base_url)

        context = await workflow.establish()

        assert context is not None
        assert context.session_id == "session-1"
        assert context.hidden_fields["__VIEWSTATE"] == "VS-session-1"
        assert context.hidden_fields["__EVENTVALIDATION"] == "EV-RESULT"
        assert context.captcha_image_url == f"{fake_site.base_url}CaptchaImage.axd?guid=VS-session-1"

    @pytest.mark.asyncio
    async def test_program_postback_replays_view_state(self, fake_site, http_session):
        workflow = SessionWorkflow(http_session, fake_site.base_url, program_value="24")

        await workflow.establish()

        session_id, form = fake_site.select_posts[0]
        assert session_id == "session-1"
        assert form["__EVENTTARGET"] == "radlstProgram$1"
        assert form["__EVENTARGUMENT"] == ""
        assert form["__LASTFOCUS"] == ""
        assert form["__VIEWSTATE"] == "VS-SELECT"
        assert form["__VIEWSTATEGENERATOR"] == "GEN-SELECT"
        assert form["__EVENTVALIDATION"] == "EV-SELECT"
        assert form["radlstProgram"] == "24"
        assert fake_site.form_requests == ["session-1"]

    @pytest.mark.asyncio
    async def test_each_establish_uses_new_session(self, fake_site, http_session):
        workflow = SessionWorkflow(http_session, fake_site.base_url)

        first = await workflow.establish()
        second = await workflow.establish()

        assert first.session_id != second.session_id
        assert first.hidden_fields["__VIEWSTATE"] != second.hidden_fields["__VIEWSTATE"]

    @pytest.mark.asyncio
    async def test_unexpected_redirect_returns_none(self, fake_site, http_session):
        fake_site.redirect_location = "ProgramSelect.aspx?error=1"
        workflow = SessionWorkflow(http_session, fake_site.base_url)

        assert await workflow.establish() is None
        assert fake_site.form_requests == []

    @pytest.mark.asyncio
    async def test_missing_captcha_returns_none(self, fake_site, http_session):
        fake_site.form_page = RESULT_FORM_WITHOUT_CAPTCHA
        workflow = SessionWorkflow(http_session, fake_site.base_url)

        assert await workflow.establish() is None

    @pytest.mark.asyncio
    async def test_fetch_captcha_image_sends_session_cookie(self, fake_site, http_session):
        workflow = SessionWorkflow(http_session, fake_site.base_url)
        context = await workflow.establish()

        image = await workflow.fetch_captcha_image(context)

        assert image == VALID_PNG
        assert fake_site.captcha_requests == [context.session_id]

    @pytest.mark.asyncio
    async def test_captcha_http_error_raises_transport_error(self, fake_site, http_session):
        fake_site.captcha_status = 500
        workflow = SessionWorkflow(http_session, fake_site.base_url)
        context = await workflow.establish()

        with pytest.raises(TransportError) as exc_info:
            await workflow.fetch_captcha_image(context)
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_connection_refused_raises_transport_error(self, http_session):
        workflow = SessionWorkflow(http_session, "http://127.0.0.1:9/Result/")

        with pytest.raises(TransportError):
            await workflow.establish()

    @pytest.mark.asyncio
    async def test_base_url_gets_trailing_slash(self, http_session):
        workflow = SessionWorkflow(http_session, "https://result.rgpv.ac.in/Result")

        assert workflow.program_select_url == "https://result.rgpv.ac.in/Result/ProgramSelect.aspx"
