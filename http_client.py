"""Retrying HTTP client shared by the scrapers, the key provider and the resolver."""

import time
import logging
from typing import Dict, Optional, Any

import requests

from errors import TransportError

logger = logging.getLogger(__name__)

BACKOFF_STEP = 0.5  # Sekunden pro Versuch


class HttpClient:
    """
    Thin wrapper around a requests.Session with default headers and a bounded
    retry loop (linear backoff). Holds no per-request state, so one instance can
    be shared between threads.
    """

    def __init__(self, base_url: str, user_agent: str, timeout: float = 30.0, retries: int = 3,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.user_agent = user_agent
        self.timeout = timeout
        self.retries = max(0, int(retries))
        self.session = session or requests.Session()

    def default_headers(self) -> Dict[str, str]:
        return {
            'User-Agent': self.user_agent,
            'Referer': f"{self.base_url}/",
        }

    def _merge_headers(self, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = self.default_headers()
        if headers:
            merged.update(headers)
        return merged

    def get(self, url: str, headers: Optional[Dict[str, str]] = None,
            timeout: Optional[float] = None, deadline=None) -> requests.Response:
        """GET with default headers; caller headers win over defaults."""
        return self._request('GET', url, headers=headers, timeout=timeout, deadline=deadline,
                             accept=lambda status: status == 200)

    def post(self, url: str, data: Any = None, json: Any = None,
             headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None,
             deadline=None) -> requests.Response:
        return self._request('POST', url, headers=headers, timeout=timeout, deadline=deadline,
                             data=data, json=json, accept=lambda status: 200 <= status < 300)

    def _attempt_timeout(self, timeout: Optional[float], deadline) -> float:
        request_timeout = timeout if timeout is not None else self.timeout
        if deadline is not None:
            left = deadline.remaining()
            if left is not None:
                request_timeout = min(request_timeout, left)
        return request_timeout

    def _request(self, method: str, url: str, headers: Optional[Dict[str, str]], timeout: Optional[float],
                 accept, deadline=None, **kwargs) -> requests.Response:
        """
        Run the retry loop. `deadline` is any object with a `remaining()` method
        (see scrapers.base.Deadline): every attempt is capped by the time left,
        and no backoff is slept that would outlast it.
        """
        merged = self._merge_headers(headers)
        attempts = self.retries + 1

        last_exc: Optional[requests.RequestException] = None
        last_status: Optional[int] = None
        made = 0

        for attempt in range(attempts):
            request_timeout = self._attempt_timeout(timeout, deadline)
            made += 1
            response = None
            try:
                response = self.session.request(method, url, headers=merged, timeout=request_timeout, **kwargs)
            except requests.RequestException as e:
                last_exc, last_status = e, None
                logger.debug(f"{method} {url} failed (attempt {attempt + 1}/{attempts}): {str(e)}")
            else:
                if accept(response.status_code):
                    return response
                last_exc, last_status = None, response.status_code
                logger.debug(f"{method} {url} returned {response.status_code} (attempt {attempt + 1}/{attempts})")
                response.close()

            if attempt < attempts - 1:
                delay = (attempt + 1) * BACKOFF_STEP
                left = deadline.remaining() if deadline is not None else None
                if left is not None and left <= delay:
                    logger.debug(f"{method} {url}: {left:.2f}s left, no time for another attempt")
                    break
                time.sleep(delay)

        if last_exc is not None:
            raise TransportError(
                f"failed to make request after {made} attempts: {str(last_exc)}", url=url
            ) from last_exc
        raise TransportError(
            f"unexpected status code after {made} attempts: {last_status}", url=url, status_code=last_status
        )

    def get_json(self, url: str, headers: Optional[Dict[str, str]] = None,
                 timeout: Optional[float] = None, deadline=None) -> Any:
        """GET and decode a JSON body; undecodable bodies raise TransportError."""
        response = self.get(url, headers=headers, timeout=timeout, deadline=deadline)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"failed to decode JSON response from {url}: {str(e)}", url=url) from e
