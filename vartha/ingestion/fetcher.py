"""Bounded, timed-out HTTP fetches for feeds, listing pages and article pages.

Guardrails:
- the request timeout is enforced here with asyncio.wait_for, not left to
  the transport default
- non-http(s) URLs, localhost and private/loopback IP literals are refused
  (article links come from third-party markup)
- bodies larger than max_bytes are rejected
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from vartha.errors import FetchError

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml;q=0.9, */*;q=0.8"
HTML_ACCEPT = "text/html,application/xhtml+xml"

_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return any(ip in net for net in _PRIVATE_NETS)


def validate_fetch_url(url: str) -> Optional[str]:
    """Return an error string if URL should not be fetched."""
    try:
        p = urlparse(url or "")
        host = (p.hostname or "").strip().lower()
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    if not host:
        return "missing_host"
    if host in ("localhost", "localhost.localdomain"):
        return "blocked_host"
    if _is_private_ip(host):
        return "blocked_private_ip"
    return None


class SourceFetcher:
    """One aiohttp session per aggregation pass.

    Usage::

        async with SourceFetcher(timeout=10) as fetcher:
            xml = await fetcher.fetch_feed(url)
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        user_agent: str = "VarthaHeadlines/1.2",
        max_bytes: int = 2_000_000,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_bytes = max_bytes
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "SourceFetcher":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch_feed(self, url: str) -> str:
        return await self.fetch_text(url, accept=FEED_ACCEPT)

    async def fetch_html(self, url: str) -> str:
        return await self.fetch_text(url, accept=HTML_ACCEPT)

    async def fetch_text(self, url: str, *, accept: str = HTML_ACCEPT) -> str:
        err = validate_fetch_url(url)
        if err:
            raise FetchError(url, err)
        try:
            return await asyncio.wait_for(self._get(url, accept), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise FetchError(url, "timeout") from e
        except aiohttp.ClientError as e:
            raise FetchError(url, f"{type(e).__name__}: {e}") from e

    async def _get(self, url: str, accept: str) -> str:
        if self._session is None:
            raise RuntimeError("SourceFetcher used outside 'async with'")
        headers = {"User-Agent": self.user_agent, "Accept": accept}
        async with self._session.get(url, headers=headers, allow_redirects=True) as resp:
            if resp.status < 200 or resp.status >= 300:
                raise FetchError(url, f"HTTP {resp.status}", status=resp.status)
            content = b""
            async for chunk in resp.content.iter_chunked(64 * 1024):
                content += chunk
                if len(content) > self.max_bytes:
                    raise FetchError(url, "too_large", status=resp.status)
            try:
                return content.decode(resp.charset or "utf-8", errors="replace")
            except LookupError:
                return content.decode("utf-8", errors="replace")
