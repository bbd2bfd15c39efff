from __future__ import annotations

import os
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from .client_base import APIClientError, APIClientHTTPError, APIResponse, BaseAPIClient
from .credentials import Credentials
from .errors import DaisyconApiError, DaisyconConfigError, DaisyconPaginationError
from .normalizer import RevShareRule, normalize_transaction
from .schema import (
    ITEMS_PER_PAGE,
    PageRequest,
    Transaction,
    TransactionPage,
    normalize_media_ids,
)
from .token_manager import TokenManager


logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in headers.items():
        if key.lower() == lowered:
            return val
    return None


def _parse_media_ids(raw: str) -> List[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


class DaisyconClient(BaseAPIClient):
    """
    Client for the Daisycon publisher API.

    Authenticates as soon as it is constructed, then pages through
    /publishers/{publisher_id}/transactions and flattens every transaction
    part into its own Transaction record.

    Uses BaseAPIClient for all HTTP calls (session, timeout, JSON parsing).
    Nothing is retried: a failure on any page fails the whole fetch.
    """

    DEFAULT_ENDPOINT = "https://services.daisycon.com"

    def __init__(
        self,
        credentials: Credentials,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        media_ids: Optional[Iterable[Any]] = None,
        rev_share_enabled: bool = False,
        rev_share_rule: Optional[RevShareRule] = None,
    ) -> None:
        super().__init__(
            base_url=endpoint or self.DEFAULT_ENDPOINT,
            timeout=timeout,
        )

        self.credentials = credentials
        self.items_per_page = ITEMS_PER_PAGE
        self.media_ids: List[str] = list(normalize_media_ids(media_ids))
        self.rev_share_enabled = rev_share_enabled
        self.rev_share_rule = rev_share_rule

        self.token_manager = TokenManager(self, credentials)
        self.token_manager.authenticate()

        logger.info(
            "DaisyconClient initialized for publisher %s at %s.",
            credentials.publisher_id,
            self.base_url,
        )

    @classmethod
    def from_env(cls) -> "DaisyconClient":
        """
        Build a client from the DAISYCON_* environment variables:

            DAISYCON_USERNAME, DAISYCON_PASSWORD, DAISYCON_PUBLISHER_ID (required)
            DAISYCON_ENDPOINT     - API root (default: https://services.daisycon.com)
            DAISYCON_TIMEOUT_SEC  - Request timeout (default: 15)
            DAISYCON_MEDIA_IDS    - Comma-separated media ids to restrict to
            DAISYCON_REV_SHARE    - Enable revenue share processing (1/true/yes/on)
        """
        credentials = Credentials.from_env()

        timeout_raw = os.getenv("DAISYCON_TIMEOUT_SEC", "15").strip()
        try:
            timeout_sec = float(timeout_raw)
        except ValueError as e:
            raise DaisyconConfigError(
                f"DAISYCON_TIMEOUT_SEC must be a number, got '{timeout_raw}'."
            ) from e
        if timeout_sec <= 0:
            raise DaisyconConfigError(
                f"DAISYCON_TIMEOUT_SEC must be greater than 0, got '{timeout_raw}'."
            )

        return cls(
            credentials,
            endpoint=os.getenv("DAISYCON_ENDPOINT") or None,
            timeout=timeout_sec,
            media_ids=_parse_media_ids(os.getenv("DAISYCON_MEDIA_IDS", "")),
            rev_share_enabled=os.getenv("DAISYCON_REV_SHARE", "").strip().lower() in _TRUTHY,
        )

    # -------------------------------------------------
    # Authenticated requests
    # -------------------------------------------------
    def make_request(self, resource: str, query: str = "") -> APIResponse:
        """
        GET `resource` with the bearer token attached.

        A 401/403 drops the cached token so the next request authenticates
        again; the failing request itself is not repeated.
        """
        headers = {"Authorization": f"Bearer {self.token_manager.get_token()}"}

        try:
            return self.get_response(resource, params=query or None, headers=headers)
        except APIClientHTTPError as e:
            if e.status_code in (401, 403):
                logger.warning("Token rejected by Daisycon (HTTP %s); invalidating.", e.status_code)
                self.token_manager.invalidate()
            raise DaisyconApiError("Invalid data") from e
        except APIClientError as e:
            raise DaisyconApiError("Invalid data") from e

    # -------------------------------------------------
    # Pagination
    # -------------------------------------------------
    def _transactions_resource(self) -> str:
        return f"/publishers/{self.credentials.publisher_id}/transactions"

    @staticmethod
    def _total_count(headers: Mapping[str, str]) -> Optional[int]:
        raw = _header(headers, "x-total-count")
        if raw is None:
            return None
        try:
            return int(str(raw).strip())
        except ValueError as e:
            raise DaisyconApiError(
                f"Invalid data: x-total-count header is not an integer ('{raw}')"
            ) from e

    def fetch_page(
        self,
        start_date: datetime,
        end_date: Optional[datetime] = None,
        page: int = 1,
        media_ids: Optional[Iterable[Any]] = None,
        rev_share_enabled: Optional[bool] = None,
    ) -> TransactionPage:
        """Fetch and normalize a single page of transactions."""
        request = PageRequest(
            start_date=start_date,
            end_date=end_date,
            page=page,
            per_page=self.items_per_page,
            media_ids=self.media_ids if media_ids is None else media_ids,
        )
        rev_share = self.rev_share_enabled if rev_share_enabled is None else rev_share_enabled

        response = self.make_request(self._transactions_resource(), request.to_query())

        envelopes = response.body if response.body is not None else []
        if not isinstance(envelopes, list):
            raise DaisyconApiError(
                "Invalid data: expected a JSON array of transactions"
            )

        items: List[Transaction] = []
        for envelope in envelopes:
            items.extend(
                normalize_transaction(
                    envelope,
                    rev_share_enabled=rev_share,
                    rev_share_rule=self.rev_share_rule,
                )
            )

        seen = (page - 1) * self.items_per_page + len(envelopes)
        total = self._total_count(response.headers)
        if total is None:
            logger.warning("No x-total-count header on page %d; assuming last page.", page)
            total = seen

        logger.info(
            "Fetched page %d: %d transactions (%d records), %d/%d seen.",
            page,
            len(envelopes),
            len(items),
            seen,
            total,
        )
        return TransactionPage(
            page=page,
            items=items,
            total_count=total,
            envelope_count=len(envelopes),
        )

    def iter_transaction_pages(
        self,
        start_date: datetime,
        end_date: Optional[datetime] = None,
        media_ids: Optional[Iterable[Any]] = None,
        rev_share_enabled: Optional[bool] = None,
    ) -> Iterator[TransactionPage]:
        """
        Yield pages in order until the server's x-total-count is reached.

        Raises DaisyconPaginationError when a page comes back empty while the
        server still claims more records.
        """
        if media_ids is not None:
            media_ids = normalize_media_ids(media_ids)

        page = 1
        while True:
            result = self.fetch_page(
                start_date,
                end_date=end_date,
                page=page,
                media_ids=media_ids,
                rev_share_enabled=rev_share_enabled,
            )
            yield result

            seen = (page - 1) * self.items_per_page + result.envelope_count
            if result.total_count <= seen:
                return
            if result.envelope_count == 0:
                raise DaisyconPaginationError(
                    f"Page {page} was empty but the server reports "
                    f"{result.total_count} transactions ({seen} seen)."
                )
            page += 1

    # -------------------------------------------------
    # Public methods
    # -------------------------------------------------
    def fetch_transactions(
        self,
        start_date: datetime,
        end_date: Optional[datetime] = None,
        media_ids: Optional[Iterable[Any]] = None,
        rev_share_enabled: Optional[bool] = None,
    ) -> List[Transaction]:
        """
        Get all transactions modified between start_date and end_date.

        Each part of a transaction is returned as a separate Transaction.
        Either every page succeeds or an error is raised; no partial list
        is ever returned.
        """
        transactions: List[Transaction] = []
        for result in self.iter_transaction_pages(
            start_date,
            end_date=end_date,
            media_ids=media_ids,
            rev_share_enabled=rev_share_enabled,
        ):
            transactions.extend(result.items)

        logger.info("Fetched %d transaction records in total.", len(transactions))
        return transactions

    def fetch_as_dicts(
        self,
        start_date: datetime,
        end_date: Optional[datetime] = None,
        media_ids: Optional[Iterable[Any]] = None,
        rev_share_enabled: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """Like fetch_transactions, but JSON-serializable dicts."""
        return [
            t.model_dump(mode="json")
            for t in self.fetch_transactions(
                start_date,
                end_date=end_date,
                media_ids=media_ids,
                rev_share_enabled=rev_share_enabled,
            )
        ]
