import re
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Literal
from urllib.parse import urlparse

import httpx

from config import settings
from core.logging import get_logger
from core.result import Result
from schemas.bookmark import TITLE_MAX_LENGTH, validate_url

logger = get_logger(__name__)

# some sites refuse requests without browser-looking headers
REQUEST_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class TitleResult:
    title: str
    source: Literal["fetched", "fallback"]


class TitleParser(HTMLParser):
    """collects <title> text and the og:title meta content."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.title: str | None = None
        self.og_title: str | None = None
        self._in_title = False
        self._title_parts: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "title" and self.title is None:
            self._in_title = True
            self._title_parts = []
        elif tag == "meta" and self.og_title is None:
            attr_dict = dict(attrs)
            if attr_dict.get("property") == "og:title" and attr_dict.get("content"):
                self.og_title = attr_dict["content"]

    def handle_endtag(self, tag: str) -> None:
        if tag == "title" and self._in_title:
            self._in_title = False
            self.title = "".join(self._title_parts)

    def handle_data(self, data: str) -> None:
        if self._in_title:
            self._title_parts.append(data)


def clean_title(raw: str) -> str:
    title = _WHITESPACE.sub(" ", raw).strip()
    if len(title) > TITLE_MAX_LENGTH:
        title = title[: TITLE_MAX_LENGTH - 3] + "..."
    return title


def extract_title(html: str) -> str | None:
    parser = TitleParser()
    parser.feed(html)
    parser.close()
    for candidate in (parser.title, parser.og_title):
        if candidate and (title := clean_title(candidate)):
            return title
    return None


def hostname_title(url: str) -> str:
    hostname = urlparse(url).hostname or url
    return hostname.removeprefix("www.")


class TitleService:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = settings.TITLE_FETCH_TIMEOUT,
    ):
        self.client = client
        self.timeout = timeout

    async def _get(self, url: str) -> httpx.Response:
        if self.client is not None:
            return await self.client.get(url, headers=REQUEST_HEADERS, timeout=self.timeout)
        async with httpx.AsyncClient(follow_redirects=True, timeout=self.timeout) as client:
            return await client.get(url, headers=REQUEST_HEADERS)

    async def fetch_title(self, url: str) -> Result[TitleResult]:
        try:
            url = validate_url(url)
        except ValueError:
            return Result.failure("Invalid URL")

        fallback = TitleResult(title=hostname_title(url), source="fallback")
        try:
            response = await self._get(url)
        except httpx.HTTPError as e:
            logger.info("title fetch failed for %s: %s", url, e, extra={"operation": "fetch_title"})
            return Result.success(fallback)

        if not response.is_success:
            logger.info(
                "title fetch for %s returned %d",
                url,
                response.status_code,
                extra={"operation": "fetch_title", "status_code": response.status_code},
            )
            return Result.success(fallback)

        title = extract_title(response.text)
        if title is None:
            return Result.success(fallback)
        return Result.success(TitleResult(title=title, source="fetched"))
