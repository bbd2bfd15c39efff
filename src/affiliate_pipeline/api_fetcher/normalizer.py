from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from .errors import DaisyconApiError
from .schema import Transaction


logger = logging.getLogger(__name__)

# (envelope, part) -> adjusted amount, or None when it does not apply
RevShareRule = Callable[[Dict[str, Any], Dict[str, Any]], Optional[float]]


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def default_rev_share_rule(envelope: Dict[str, Any], part: Dict[str, Any]) -> Optional[float]:
    """
    Daisycon reports the revenue-share payout per part under "revenue_share".
    Parts without it have no adjusted amount.
    """
    value = part.get("revenue_share")
    if isinstance(value, dict):
        value = value.get("amount")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace(",", "."))
        except ValueError:
            return None
    return None


def _envelope_fields(envelope: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "transaction_id": _opt_str(envelope.get("id")),
        "affiliatemarketing_id": _opt_str(envelope.get("affiliatemarketing_id")),
        "program_id": _opt_str(envelope.get("program_id")),
        "transaction_date": envelope.get("date"),
        "click_date": envelope.get("date_click"),
        "country_code": _opt_str(envelope.get("country_code")),
        "device_type": _opt_str(envelope.get("device_type")),
    }


def _part_fields(part: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "part_id": _opt_str(part.get("id")),
        "status": part.get("status"),
        "commission": part.get("commission"),
        "revenue": part.get("revenue"),
        "currency_code": _opt_str(part.get("currency_code")),
        "media_id": _opt_str(part.get("media_id")),
        "media_name": _opt_str(part.get("media_name")),
        "sub_id": _opt_str(part.get("subid")),
        "sub_id_2": _opt_str(part.get("subid_2")),
        "sub_id_3": _opt_str(part.get("subid_3")),
        "approval_date": part.get("approval_date"),
        "modified_date": part.get("date_modified"),
        "disapproved_reason": _opt_str(part.get("disapproved_reason")),
        "publisher_description": _opt_str(part.get("publisher_description")),
    }


def normalize_transaction(
    envelope: Dict[str, Any],
    rev_share_enabled: bool = False,
    rev_share_rule: Optional[RevShareRule] = None,
) -> List[Transaction]:
    """
    Expand one Daisycon transaction envelope into one Transaction per part.

    Raw envelope keys include:
      id, affiliatemarketing_id, program_id, date, date_click,
      country_code, device_type, parts

    Raw part keys include:
      id, status, commission, revenue, currency_code, media_id, media_name,
      subid, subid_2, subid_3, approval_date, date_modified,
      disapproved_reason, publisher_description, revenue_share

    Always one record per part: an envelope without parts yields nothing,
    missing ids are left as None. Anything that cannot be represented
    (non-object envelope or part, parts not a list) raises DaisyconApiError
    so a page is never returned with records missing.
    """
    if not isinstance(envelope, dict):
        raise DaisyconApiError("Invalid data: transaction is not an object")

    parts = envelope.get("parts")
    if parts is None:
        return []
    if not isinstance(parts, list):
        raise DaisyconApiError(
            f"Invalid data: parts of transaction {envelope.get('id')} is not a list"
        )

    rule = rev_share_rule or default_rev_share_rule
    shared = _envelope_fields(envelope)

    transactions: List[Transaction] = []
    for position, part in enumerate(parts):
        if not isinstance(part, dict):
            raise DaisyconApiError(
                f"Invalid data: part {position} of transaction "
                f"{shared['transaction_id']} is not an object"
            )
        if part.get("id") is None:
            logger.warning(
                "Part %d of transaction %s has no id", position, shared["transaction_id"]
            )

        fields = dict(shared)
        fields.update(_part_fields(part))
        if rev_share_enabled:
            fields["revenue_share_amount"] = rule(envelope, part)

        try:
            transactions.append(Transaction(**fields, raw=part))
        except ValidationError as e:
            raise DaisyconApiError(
                f"Invalid data: part {position} of transaction {shared['transaction_id']}"
            ) from e

    return transactions
