"""Error taxonomy for the headline pipeline.

- ConfigError: missing/malformed source descriptor file (fatal at startup)
- FetchError: network failure, timeout or non-2xx status for one URL
- ParseError: feed document (or source kind) that cannot be turned into items
- RequestTimeout: the outer HTTP request bound was exceeded
"""

from __future__ import annotations

from typing import Optional


class HeadlinesError(Exception):
    """Base class for pipeline errors"""
    pass


class ConfigError(HeadlinesError):
    """Source descriptor file is missing or malformed"""
    pass


class FetchError(HeadlinesError):
    def __init__(self, url: str, reason: str, *, status: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"Failed to fetch {url}: {reason}")


class ParseError(HeadlinesError):
    """Fetched document could not be parsed into headline candidates"""
    pass


class RequestTimeout(HeadlinesError):
    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(f"Aggregation did not finish within {seconds:g}s")
