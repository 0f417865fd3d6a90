from __future__ import annotations

import json
import logging
import re
from html import unescape
from typing import Any, Protocol, cast
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

LOGGER = logging.getLogger("tweetmind.tweet_fetcher")


class TweetTextFetcher(Protocol):
    def fetch_text(self, tweet_url: str) -> str:
        ...


class DisabledTweetFetcher:
    def fetch_text(self, tweet_url: str) -> str:
        _ = tweet_url
        return ""


class OEmbedTweetFetcher:
    """Reads the text of a linked post through the public oEmbed endpoint.

    Every failure (HTTP status, network, undecodable body) is logged and
    reported as an empty string.
    """

    def __init__(
        self,
        *,
        oembed_url: str = "https://publish.twitter.com/oembed",
        timeout_seconds: float = 10.0,
        user_agent: str = "tweetmind/0.1",
    ) -> None:
        self._oembed_url = oembed_url.rstrip("/")
        self._timeout_seconds = max(1.0, timeout_seconds)
        self._user_agent = user_agent.strip() or "tweetmind/0.1"

    def fetch_text(self, tweet_url: str) -> str:
        payload = self._get_oembed_json(tweet_url)
        if payload is None:
            return ""
        html_value = payload.get("html")
        if not isinstance(html_value, str) or not html_value:
            return ""
        return strip_html(html_value)

    def _get_oembed_json(self, tweet_url: str) -> dict[str, Any] | None:
        query = urlencode({"url": tweet_url, "omit_script": "1"})
        request = Request(
            f"{self._oembed_url}?{query}",
            headers={
                "Accept": "application/json",
                "User-Agent": self._user_agent,
            },
            method="GET",
        )
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                raw = response.read().decode("utf-8", errors="replace")
        except HTTPError as exc:
            LOGGER.warning(
                "oembed fetch rejected http_status=%s url=%s",
                exc.code,
                tweet_url,
            )
            return None
        except (URLError, TimeoutError, OSError) as exc:
            LOGGER.warning(
                "oembed fetch failed error_type=%s url=%s",
                type(exc).__name__,
                tweet_url,
            )
            return None

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning("oembed response was not valid JSON url=%s", tweet_url)
            return None
        if not isinstance(parsed, dict):
            return None
        raw_dict = cast(dict[object, object], parsed)
        return {key: value for key, value in raw_dict.items() if isinstance(key, str)}


def strip_html(html: str) -> str:
    """Plain text of an oEmbed blockquote; entities are decoded exactly once, after tag removal."""
    text = re.sub(r"<br\s*/?>", "\n", html, flags=re.IGNORECASE)
    text = re.sub(r"</p>", "\n\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return unescape(text).strip()
