"""
requests-based HTTP client
"""

import logging
from typing import Optional

import requests

from . import HttpClient
from ..errors import HttpError

logger = logging.getLogger(__name__)

USER_AGENT = "localdb-sync/1.0"
DEFAULT_TIMEOUT = 300


class RequestsHttpClient(HttpClient):
    """Blocking HTTP client backed by a shared requests session."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': USER_AGENT})
        self.timeout = timeout

    def fetch_text(self, url: str) -> str:
        return self._get(url).text

    def fetch_binary(self, url: str) -> bytes:
        return self._get(url).content

    def _get(self, url: str) -> requests.Response:
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise HttpError(url, f"request to {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise HttpError(
                url,
                f"request to {url} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return response
