from datetime import datetime

import pytest

from affiliate_pipeline.api_fetcher.normalizer import (
    default_rev_share_rule,
    normalize_transaction,
)
from affiliate_pipeline.api_fetcher.errors import DaisyconApiError
from affiliate_pipeline.api_fetcher.schema import Transaction


def make_envelope(parts):
    return {
        "id": "TX1",
        "affiliatemarketing_id": 9001,
        "program_id": 55,
        "date": "2024-01-02 10:00:00",
        "date_click": "2024-01-02 09:55:00",
        "country_code": "NL",
        "device_type": "mobile",
        "parts": parts,
    }


def make_part(part_id, **overrides):
    part = {
        "id": part_id,
        "status": "Approved",
        "commission": "1,50",
        "revenue": 30,
        "currency_code": "EUR",
        "media_id": 7,
        "media_name": "My Blog",
        "subid": "abc",
        "date_modified": "2024-01-03 08:00:00",
    }
    part.update(overrides)
    return part


@pytest.mark.unit
def test_one_record_per_part_with_shared_envelope_fields():
    envelope = make_envelope([make_part("P1"), make_part("P2"), make_part("P3")])

    records = normalize_transaction(envelope)

    assert len(records) == 3
    assert all(isinstance(r, Transaction) for r in records)
    assert [r.part_id for r in records] == ["P1", "P2", "P3"]
    assert {r.transaction_id for r in records} == {"TX1"}
    assert {r.program_id for r in records} == {"55"}
    assert {r.transaction_date for r in records} == {datetime(2024, 1, 2, 10, 0, 0)}


@pytest.mark.unit
def test_part_fields_are_mapped():
    record = normalize_transaction(make_envelope([make_part("P1", subid_2="x")]))[0]

    assert record.source == "daisycon"
    assert record.status == "approved"
    assert record.commission == 1.5
    assert record.revenue == 30.0
    assert record.currency_code == "EUR"
    assert record.media_id == "7"
    assert record.media_name == "My Blog"
    assert record.sub_id == "abc"
    assert record.sub_id_2 == "x"
    assert record.sub_id_3 is None
    assert record.modified_date == datetime(2024, 1, 3, 8, 0, 0)
    assert record.click_date == datetime(2024, 1, 2, 9, 55, 0)
    assert record.affiliatemarketing_id == "9001"
    assert record.raw["id"] == "P1"


@pytest.mark.unit
def test_zero_parts_yields_zero_records():
    assert normalize_transaction(make_envelope([])) == []


@pytest.mark.unit
def test_missing_parts_key_yields_nothing():
    assert normalize_transaction({"id": "TX1"}) == []
    assert normalize_transaction(make_envelope(None)) == []


@pytest.mark.unit
@pytest.mark.parametrize(
    "envelope",
    [
        "not a dict",
        make_envelope({"id": "P1"}),
        make_envelope([make_part("P1"), "junk"]),
    ],
)
def test_unrepresentable_input_is_invalid_data(envelope):
    with pytest.raises(DaisyconApiError) as e:
        normalize_transaction(envelope)

    assert "Invalid data" in str(e.value)


@pytest.mark.unit
def test_parts_without_id_still_produce_one_record_each():
    envelope = make_envelope([{"commission": 1.0}, make_part("P2"), {"status": "pending"}])

    records = normalize_transaction(envelope)

    assert len(records) == 3
    assert [r.part_id for r in records] == [None, "P2", None]
    assert records[0].commission == 1.0
    assert records[2].status == "pending"
    assert {r.transaction_id for r in records} == {"TX1"}


@pytest.mark.unit
def test_envelope_without_id_still_produces_records():
    envelope = make_envelope([make_part("P1")])
    del envelope["id"]

    records = normalize_transaction(envelope)

    assert len(records) == 1
    assert records[0].transaction_id is None
    assert records[0].part_id == "P1"


@pytest.mark.unit
def test_invalid_dates_and_amounts_become_none():
    part = make_part("P1", commission="n/a", approval_date="0000-00-00 00:00:00")
    record = normalize_transaction(make_envelope([part]))[0]

    assert record.commission is None
    assert record.approval_date is None


@pytest.mark.unit
def test_rev_share_not_applied_when_disabled():
    part = make_part("P1", revenue_share=0.75)
    record = normalize_transaction(make_envelope([part]), rev_share_enabled=False)[0]

    assert record.revenue_share_amount is None


@pytest.mark.unit
def test_rev_share_default_rule_reads_part_amount():
    parts = [make_part("P1", revenue_share=0.75), make_part("P2")]
    records = normalize_transaction(make_envelope(parts), rev_share_enabled=True)

    assert records[0].revenue_share_amount == 0.75
    assert records[1].revenue_share_amount is None


@pytest.mark.unit
def test_rev_share_custom_rule():
    def half_commission(envelope, part):
        return float(str(part["commission"]).replace(",", ".")) / 2

    records = normalize_transaction(
        make_envelope([make_part("P1")]),
        rev_share_enabled=True,
        rev_share_rule=half_commission,
    )

    assert records[0].revenue_share_amount == 0.75


@pytest.mark.unit
def test_default_rev_share_rule_shapes():
    assert default_rev_share_rule({}, {"revenue_share": {"amount": 2}}) == 2.0
    assert default_rev_share_rule({}, {"revenue_share": "1,25"}) == 1.25
    assert default_rev_share_rule({}, {"revenue_share": "abc"}) is None
    assert default_rev_share_rule({}, {"revenue_share": True}) is None
    assert default_rev_share_rule({}, {}) is None
