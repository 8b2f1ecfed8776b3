"""Exception types raised by the scraper and the stream resolver."""

from typing import List, Optional, Tuple


class ScraperError(Exception):
    """Base class for every error surfaced to API and CLI callers."""


class TransportError(ScraperError):
    """HTTP request failed after all retries."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class InvalidEpisodeFormat(ScraperError):
    pass


class ServerNotFound(ScraperError):
    pass


class TokenNotFound(ScraperError):
    pass


class KeyFetchFailed(ScraperError):
    pass


class DecryptFailed(ScraperError):
    pass


class NoSourcesFound(ScraperError):
    pass


class ResolutionTimeout(ScraperError):
    pass


class AllStrategiesExhausted(ScraperError):
    """
    Every extraction strategy failed.

    Args:
        last_error (ScraperError): Error of the last strategy that ran
        errors (List[Tuple[str, Exception]]): (strategy name, error) per attempt
    """

    def __init__(self, last_error: Optional[Exception], errors: Optional[List[Tuple[str, Exception]]] = None):
        self.last_error = last_error
        self.errors = list(errors or [])
        detail = str(last_error) if last_error is not None else "no strategies configured"
        super().__init__(f"all extraction strategies failed, last error: {detail}")
