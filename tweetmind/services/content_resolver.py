from __future__ import annotations

import asyncio
import logging

from tweetmind.errors import MissingContentError
from tweetmind.services.tweet_fetcher import TweetTextFetcher

LOGGER = logging.getLogger("tweetmind.content_resolver")


class ContentResolver:
    """Picks the text to analyze: typed text first, then one fetch of the linked post."""

    def __init__(self, fetcher: TweetTextFetcher) -> None:
        self._fetcher = fetcher

    async def resolve(self, cleaned_text: str, tweet_url: str | None) -> str:
        if cleaned_text:
            return cleaned_text

        if tweet_url:
            fetched = await self._fetch_once(tweet_url)
            if fetched:
                return fetched

        raise MissingContentError()

    async def _fetch_once(self, tweet_url: str) -> str:
        try:
            fetched = await asyncio.to_thread(self._fetcher.fetch_text, tweet_url)
        except Exception:
            LOGGER.warning("tweet text fetch raised; treating as no content", exc_info=True)
            return ""
        return fetched.strip() if isinstance(fetched, str) else ""
