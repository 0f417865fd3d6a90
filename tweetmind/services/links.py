from __future__ import annotations

import re

TWEET_URL_PATTERN = re.compile(
    r"(https?://(?:www\.)?(?:twitter|x)\.com/[A-Za-z0-9_]{1,15}/status/\d+)",
    re.IGNORECASE,
)


def extract_tweet_url(text: str) -> str | None:
    """Return the first post link embedded in `text`, verbatim, or None."""
    match = TWEET_URL_PATTERN.search(text)
    if match is None:
        return None
    return match.group(1)


def remove_tweet_url(text: str, tweet_url: str | None) -> str:
    if not tweet_url:
        return text.strip()
    return text.replace(tweet_url, "", 1).strip()
