"""
Affiliate Pipeline - API Fetcher Module

Client for retrieving publisher transactions from the Daisycon
affiliate network.

Usage:
------
    from datetime import datetime
    from affiliate_pipeline.api_fetcher import Credentials, DaisyconClient

    client = DaisyconClient(Credentials(username="me", password="...", publisher_id="123"))
    transactions = client.fetch_transactions(datetime(2024, 1, 1), media_ids=[7, 9])

    # Or configured from the environment
    client = DaisyconClient.from_env()

Configuration:
--------------
    DAISYCON_USERNAME       - Daisycon username (required)
    DAISYCON_PASSWORD       - Daisycon password (required)
    DAISYCON_PUBLISHER_ID   - Publisher id (required)
    DAISYCON_ENDPOINT       - Override the API root
    DAISYCON_TIMEOUT_SEC    - Request timeout (default: 15)
    DAISYCON_MEDIA_IDS      - Comma-separated media ids to restrict to
    DAISYCON_REV_SHARE      - Enable revenue share processing

Every part of a Daisycon transaction becomes its own Transaction record.
"""

# -----------------------------------------------------------------------------
# Base client
# -----------------------------------------------------------------------------
from .client_base import (
    BaseAPIClient,
    APIResponse,
    APIClientError,
    APIClientHTTPError,
    APIClientTimeout,
)

# -----------------------------------------------------------------------------
# Daisycon client
# -----------------------------------------------------------------------------
from .credentials import Credentials
from .daisycon_api import DaisyconClient
from .errors import (
    DaisyconError,
    DaisyconConfigError,
    DaisyconAuthError,
    DaisyconApiError,
    DaisyconPaginationError,
)
from .token_manager import TokenManager

# -----------------------------------------------------------------------------
# Normalization and schema
# -----------------------------------------------------------------------------
from .normalizer import default_rev_share_rule, normalize_transaction
from .schema import PageRequest, Transaction, TransactionPage


__all__ = [
    # Base client
    "BaseAPIClient",
    "APIResponse",
    "APIClientError",
    "APIClientHTTPError",
    "APIClientTimeout",
    # Daisycon client
    "Credentials",
    "DaisyconClient",
    "TokenManager",
    "DaisyconError",
    "DaisyconConfigError",
    "DaisyconAuthError",
    "DaisyconApiError",
    "DaisyconPaginationError",
    # Normalizer
    "normalize_transaction",
    "default_rev_share_rule",
    # Schema
    "PageRequest",
    "Transaction",
    "TransactionPage",
]
