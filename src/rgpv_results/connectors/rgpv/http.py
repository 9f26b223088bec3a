"""HTTP helpers shared by the session workflow and the form submitter.

The shared ``aiohttp.ClientSession`` is created with a ``DummyCookieJar`` so
that concurrent attempts never see each other's cookies. Each request sends
the attempt's own ``ASP.NET_SessionId`` explicitly.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import aiohttp

from .exceptions import TransportError

SESSION_COOKIE = "ASP.NET_SessionId"

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass
class PageResponse:
    """Body and headers of one HTTP response.

    ``session_id`` is the ``ASP.NET_SessionId`` issued by this response, or
    the one sent with the request when the server did not issue a new one.
    """
    url: str
    status: int
    headers: Mapping[str, str]
    body: bytes
    session_id: str
    encoding: str = "utf-8"

    @property
    def text(self) -> str:
        return self.body.decode(self.encoding, errors="replace")

    @property
    def location(self) -> str:
        return self.headers.get("Location", "")


def create_http_session(request_timeout: float = 30.0) -> aiohttp.ClientSession:
    """Create the client session shared by every attempt of a run."""
    return aiohttp.ClientSession(
        cookie_jar=aiohttp.DummyCookieJar(),
        timeout=aiohttp.ClientTimeout(total=request_timeout),
        headers=DEFAULT_HEADERS,
    )


async def send(
    http: aiohttp.ClientSession,
    method: str,
    url: str,
    session_id: str = "",
    data: Optional[Dict[str, str]] = None,
    allow_redirects: bool = True,
    referer: Optional[str] = None,
) -> PageResponse:
    """Send one request carrying the attempt's session cookie.

    Raises:
        TransportError: On connection errors, timeouts and 4xx/5xx statuses.
    """
    headers = {}
    if session_id:
        headers["Cookie"] = f"{SESSION_COOKIE}={session_id}"
    if referer:
        headers["Referer"] = referer

    try:
        async with http.request(
            method,
            url,
            data=data,
            headers=headers,
            allow_redirects=allow_redirects,
        ) as response:
            body = await response.read()
            if response.status >= 400:
                raise TransportError(
                    f"{method} {url} returned HTTP {response.status}",
                    url=url,
                    status=response.status,
                )

            issued = response.cookies.get(SESSION_COOKIE)
            return PageResponse(
                url=str(response.url),
                status=response.status,
                headers=dict(response.headers),
                body=body,
                session_id=issued.value if issued is not None else session_id,
                encoding=response.charset or "utf-8",
            )
    except asyncio.TimeoutError as e:
        raise TransportError(f"{method} {url} timed out", url=url) from e
    except aiohttp.ClientError as e:
        raise TransportError(f"{method} {url} failed: {e}", url=url) from e
