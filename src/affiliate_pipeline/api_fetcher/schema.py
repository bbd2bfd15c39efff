from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator


DAISYCON_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ITEMS_PER_PAGE = 200


def normalize_media_ids(v: Any) -> Tuple[str, ...]:
    """Media ids as a tuple of strings; sets are sorted so the query is stable."""
    if v is None:
        return ()
    if isinstance(v, (str, int)):
        v = [v]
    if isinstance(v, (set, frozenset)):
        v = sorted(v, key=str)
    return tuple(str(x).strip() for x in v if str(x).strip())


class PageRequest(BaseModel):
    """
    One page of the transactions query. Built fresh for every page.

    Optional filters that are unset are left out of the query string
    entirely rather than sent empty.
    """

    model_config = ConfigDict(frozen=True)

    start_date: datetime
    end_date: Optional[datetime] = None
    page: int = Field(1, ge=1)
    per_page: int = Field(ITEMS_PER_PAGE, ge=1)
    media_ids: Tuple[str, ...] = Field(default_factory=tuple)

    @field_validator("media_ids", mode="before")
    @classmethod
    def validate_media_ids(cls, v):
        return normalize_media_ids(v)

    def query_params(self) -> List[Tuple[str, str]]:
        params = [
            ("page", str(self.page)),
            ("per_page", str(self.per_page)),
            ("date_modified_start", self.start_date.strftime(DAISYCON_DATE_FORMAT)),
        ]
        if self.media_ids:
            params.append(("media_id", ",".join(self.media_ids)))
        if self.end_date is not None:
            params.append(("date_modified_end", self.end_date.strftime(DAISYCON_DATE_FORMAT)))
        return params

    def to_query(self) -> str:
        """URL-encoded query string, e.g. 'page=1&per_page=200&date_modified_start=...'."""
        return urlencode(self.query_params())


class Transaction(BaseModel):
    """
    One commission-bearing part of a Daisycon transaction.

    Envelope-level fields (transaction_id, program_id, dates, ...) repeat on
    every part of the same transaction; part-level fields are unique per record.
    """

    source: str = Field("daisycon", description="Data source name")

    # --- Envelope-level fields ---
    transaction_id: Optional[str] = Field(None, description="Daisycon transaction id")
    affiliatemarketing_id: Optional[str] = Field(None, description="Affiliate marketing id")
    program_id: Optional[str] = Field(None, description="Advertiser program id")
    transaction_date: Optional[datetime] = Field(None, description="When the transaction happened")
    click_date: Optional[datetime] = Field(None, description="When the originating click happened")
    country_code: Optional[str] = Field(None, description="Country of the visitor")
    device_type: Optional[str] = Field(None, description="Device type reported by Daisycon")

    # --- Part-level fields ---
    part_id: Optional[str] = Field(None, description="Id of this part within the transaction")
    status: Optional[str] = Field(None, description="approved / pending / disapproved")
    commission: Optional[float] = Field(None, description="Publisher commission")
    revenue: Optional[float] = Field(None, description="Order revenue")
    currency_code: Optional[str] = Field(None, description="ISO currency code")
    media_id: Optional[str] = Field(None, description="Media the transaction came through")
    media_name: Optional[str] = Field(None, description="Name of that media")
    sub_id: Optional[str] = None
    sub_id_2: Optional[str] = None
    sub_id_3: Optional[str] = None
    approval_date: Optional[datetime] = None
    modified_date: Optional[datetime] = None
    disapproved_reason: Optional[str] = None
    publisher_description: Optional[str] = None

    # Only populated when revenue share processing is enabled
    revenue_share_amount: Optional[float] = Field(
        None, description="Revenue-share adjusted amount"
    )

    raw: Optional[Dict[str, Any]] = Field(
        default=None, description="Raw upstream part payload (for debugging/auditing)"
    )

    @field_validator("commission", "revenue", "revenue_share_amount", mode="before")
    @classmethod
    def validate_numeric_fields(cls, v):
        if v is None or isinstance(v, bool):
            return None
        try:
            if isinstance(v, str):
                v = v.replace(",", ".").strip()
            return float(v)
        except (ValueError, TypeError):
            return None

    @field_validator(
        "transaction_date",
        "click_date",
        "approval_date",
        "modified_date",
        mode="before",
    )
    @classmethod
    def validate_dates(cls, v):
        if v is None or isinstance(v, datetime):
            return v
        if isinstance(v, str):
            v = v.strip()
            if not v or v.startswith("0000-00-00"):
                return None
            for fmt in (DAISYCON_DATE_FORMAT, "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"):
                try:
                    return datetime.strptime(v, fmt)
                except ValueError:
                    continue
        return None

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if v is None:
            return None
        return str(v).strip().lower() or None


class TransactionPage(BaseModel):
    """Normalized contents of one page plus the server's total for the query."""

    page: int = Field(..., ge=1)
    items: List[Transaction] = Field(default_factory=list)
    total_count: int = Field(..., description="x-total-count for the whole query")
    envelope_count: int = Field(0, description="Envelopes on this page, before part expansion")
