"""Base API client with common functionality."""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import HTTP_FORBIDDEN, HTTP_TOO_MANY_REQUESTS, HTTP_UNAUTHORIZED
from .errors import ProviderUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15


class BaseAPIClient:
    """Base class for API clients with common request handling."""

    SERVICE_NAME = "API"

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        headers: Optional[dict] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initialize API client with an optional bearer token."""
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

        # Configure retry strategy for rate limits (429)
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[HTTP_TOO_MANY_REQUESTS],
            allowed_methods=["GET", "POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        default_headers = {"Accept": "application/json"}
        if access_token:
            default_headers["Authorization"] = f"Bearer {access_token}"
        if headers:
            default_headers.update(headers)

        self.session.headers.update(default_headers)

    def _handle_auth_error(self, response: requests.Response) -> None:
        """Handle authentication errors consistently."""
        if response.status_code in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            logger.error(f"{self.SERVICE_NAME} authentication failed (HTTP {response.status_code})")
            logger.error(f"{self.SERVICE_NAME} credentials are invalid or revoked")

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        """GET a JSON resource, raising ProviderUnavailableError on any failure."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            self._handle_auth_error(response)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"{self.SERVICE_NAME} request to {path} failed: {e}")
            raise ProviderUnavailableError(f"{self.SERVICE_NAME} request failed")
        except ValueError as e:
            logger.error(f"{self.SERVICE_NAME} returned invalid JSON for {path}: {e}")
            raise ProviderUnavailableError(f"{self.SERVICE_NAME} returned an invalid response")
