from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


logger = logging.getLogger(__name__)


class APIClientError(RuntimeError):
    """Base error for API client failures."""


class APIClientTimeout(APIClientError):
    """Raised when request times out."""


class APIClientHTTPError(APIClientError):
    """Raised for non-success HTTP responses."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class APIResponse:
    """Decoded response body plus the headers it came with."""

    status_code: int
    body: Any
    headers: Mapping[str, str] = field(default_factory=dict)


class BaseAPIClient:
    """
    Reusable base HTTP client for external APIs.

    Features:
    - Persistent session
    - Default headers
    - Optional retry with exponential backoff (off unless requested)
    - Configurable timeout
    - Safe JSON parsing
    """

    DEFAULT_TIMEOUT = 15  # seconds
    DEFAULT_RETRIES = 0
    DEFAULT_BACKOFF_FACTOR = 0.5

    def __init__(
        self,
        base_url: str,
        default_headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        backoff_factor: Optional[float] = None,
    ) -> None:

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT

        self.session = requests.Session()

        headers = {
            "User-Agent": "AffiliatePipeline/1.0",
            "Accept": "application/json",
        }

        if default_headers:
            headers.update(default_headers)

        self.session.headers.update(headers)

        retry_strategy = Retry(
            total=retries if retries is not None else self.DEFAULT_RETRIES,
            backoff_factor=backoff_factor if backoff_factor is not None else self.DEFAULT_BACKOFF_FACTOR,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _check_status(self, response: requests.Response, url: str) -> None:
        if response.status_code >= 400:
            raise APIClientHTTPError(
                f"HTTP {response.status_code} returned from {url}",
                status_code=response.status_code,
            )

    @staticmethod
    def _decode_json(response: requests.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise APIClientError(
                f"Invalid JSON returned from {url}"
            ) from e

    # ---------------------------------------------------
    # Core request methods
    # ---------------------------------------------------
    def get_response(
        self,
        endpoint: str,
        params: Optional[Union[Dict[str, Any], str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> APIResponse:
        """
        Send GET request and return the parsed JSON body with response headers.

        `params` may be a dict or an already URL-encoded query string.
        Raises clean, structured errors.
        """

        url = self._url(endpoint)

        try:
            response = self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise APIClientTimeout(
                f"Request timed out calling {url}"
            ) from e
        except requests.RequestException as e:
            raise APIClientError(
                f"Request failed calling {url}"
            ) from e

        self._check_status(response, url)

        return APIResponse(
            status_code=response.status_code,
            body=self._decode_json(response, url),
            headers=response.headers,
        )

    def post_json(
        self,
        endpoint: str,
        json_body: Any,
        headers: Optional[Dict[str, str]] = None,
        expect_json: bool = True,
    ) -> APIResponse:
        """
        Send a JSON-encoded POST request.

        With expect_json=False the body is returned as raw text, for endpoints
        whose payload is not a JSON document.
        """

        url = self._url(endpoint)

        try:
            response = self.session.post(
                url,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise APIClientTimeout(
                f"Request timed out calling {url}"
            ) from e
        except requests.RequestException as e:
            raise APIClientError(
                f"Request failed calling {url}"
            ) from e

        self._check_status(response, url)

        body = self._decode_json(response, url) if expect_json else response.text
        return APIResponse(
            status_code=response.status_code,
            body=body,
            headers=response.headers,
        )
