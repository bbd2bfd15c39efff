from datetime import datetime
from urllib.parse import parse_qs

import pytest
from pydantic import ValidationError

from affiliate_pipeline.api_fetcher.schema import PageRequest, Transaction, TransactionPage


@pytest.mark.unit
def test_query_with_media_ids_and_no_end_date():
    request = PageRequest(start_date=datetime(2024, 1, 1), media_ids=[7, 9])

    query = request.to_query()

    assert "date_modified_start=2024-01-01+00%3A00%3A00" in query
    assert "media_id=7%2C9" in query
    assert "date_modified_end" not in query
    assert query.startswith("page=1&per_page=200&")


@pytest.mark.unit
def test_query_with_end_date_and_no_media_ids():
    request = PageRequest(
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 1, 31, 23, 59, 59),
        page=3,
    )

    params = parse_qs(request.to_query())

    assert params["page"] == ["3"]
    assert params["per_page"] == ["200"]
    assert params["date_modified_end"] == ["2024-01-31 23:59:59"]
    assert "media_id" not in params


@pytest.mark.unit
def test_empty_media_ids_are_omitted():
    request = PageRequest(start_date=datetime(2024, 1, 1), media_ids=set())
    assert "media_id" not in request.to_query()


@pytest.mark.unit
def test_media_id_set_is_ordered_deterministically():
    a = PageRequest(start_date=datetime(2024, 1, 1), media_ids={"9", "7"})
    b = PageRequest(start_date=datetime(2024, 1, 1), media_ids={"7", "9"})

    assert a.media_ids == ("7", "9")
    assert a.to_query() == b.to_query()


@pytest.mark.unit
def test_page_must_be_positive():
    with pytest.raises(ValidationError):
        PageRequest(start_date=datetime(2024, 1, 1), page=0)


@pytest.mark.unit
def test_page_request_is_frozen():
    request = PageRequest(start_date=datetime(2024, 1, 1))
    with pytest.raises(ValidationError):
        request.page = 2


@pytest.mark.unit
def test_transaction_ids_are_optional():
    assert Transaction(part_id="P1").transaction_id is None
    assert Transaction(transaction_id="TX1").part_id is None


@pytest.mark.unit
def test_transaction_page_defaults():
    page = TransactionPage(page=1, total_count=0)
    assert page.items == []
    assert page.envelope_count == 0
