"""Decide when a user message should ask the backend for real-time search."""
from __future__ import annotations

import re

from grok_runtime.agent.providers.base import SearchOptions, SearchParameters

SEARCH_KEYWORDS = (
    "today",
    "latest",
    "news",
    "trending",
    "breaking",
    "current",
    "now",
    "recent",
    "x.com",
    "twitter",
    "tweet",
    "what happened",
    "as of",
    "update on",
    "release notes",
    "changelog",
    "price",
    "weather",
)
SEARCH_MODEL_PREFIX = "grok"
_YEAR_PATTERN = re.compile(r"20\d{2}")


def should_use_search_for(message: str) -> bool:
    lowered = message.lower()
    if any(keyword in lowered for keyword in SEARCH_KEYWORDS):
        return True
    return _YEAR_PATTERN.search(lowered) is not None


def search_options_for(model: str, message: str) -> SearchOptions | None:
    if not model.lower().startswith(SEARCH_MODEL_PREFIX):
        return None
    if not should_use_search_for(message):
        return None
    return SearchOptions(search_parameters=SearchParameters(mode="auto"))
