from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .client_base import APIClientError, BaseAPIClient
from .credentials import Credentials
from .errors import DaisyconAuthError


logger = logging.getLogger(__name__)


def _token_from_body(body: Any) -> str:
    """
    The token is opaque. Daisycon sends it either as a bare string or as a
    JSON-encoded string ("..."); unwrap the latter.
    """
    text = str(body or "").strip()
    if text.startswith('"'):
        try:
            decoded = json.loads(text)
        except ValueError:
            return text
        if isinstance(decoded, str):
            return decoded.strip()
    return text


class TokenManager:
    """
    Owns the bearer token for one client session.

    The token is fetched lazily by get_token() and kept until authentication
    fails or invalidate() is called. There is no expiry timer; a stale token
    is only noticed when the server rejects a request.
    """

    AUTH_ENDPOINT = "/authenticate"

    def __init__(self, client: BaseAPIClient, credentials: Credentials) -> None:
        self._client = client
        self._credentials = credentials
        self._token: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def has_token(self) -> bool:
        return self._token is not None

    def authenticate(self) -> str:
        """
        Request a fresh token and cache it.

        Raises DaisyconAuthError on any transport or HTTP error, or when the
        server answers with an empty body. The cached token is cleared first,
        so a failure always leaves no token behind.
        """
        self._token = None

        try:
            response = self._client.post_json(
                self.AUTH_ENDPOINT,
                json_body={
                    "username": self._credentials.username,
                    "password": self._credentials.password.get_secret_value(),
                },
                expect_json=False,
            )
        except APIClientError as e:
            logger.warning(
                "Authentication failed for user %s: %s", self._credentials.username, e
            )
            raise DaisyconAuthError("Auth failure") from e

        token = _token_from_body(response.body)
        if not token:
            raise DaisyconAuthError("Auth failure: empty token returned")

        self._token = token
        logger.debug("Obtained bearer token for user %s", self._credentials.username)
        return token

    def get_token(self) -> str:
        if self._token is None:
            return self.authenticate()
        return self._token

    def invalidate(self) -> None:
        self._token = None
