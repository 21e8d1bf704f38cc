"""Tests for operation template metadata helpers."""

from assethub.core.template_metadata import (
    extract_owner,
    extract_planned_return_date,
    extract_template_metadata,
    first_metadata_value,
    template_values,
)


def test_nested_template():
    metadata = {"operationTemplate": {"values": {"receiver": "Eve"}}}
    assert extract_template_metadata(metadata) == {"values": {"receiver": "Eve"}}
    assert template_values(metadata) == {"receiver": "Eve"}


def test_flat_template():
    metadata = {"values": {"returnPlan": "2024-04-01"}}
    assert extract_planned_return_date(metadata) == "2024-04-01"


def test_no_template():
    assert extract_template_metadata({"foo": 1}) is None
    assert extract_template_metadata(None) is None
    assert template_values("not a mapping") == {}


def test_owner_key_order():
    metadata = {"operationTemplate": {"values": {"borrower": "Bob", "receiver": "Eve"}}}
    assert extract_owner(metadata) == "Eve"


def test_owner_falls_back_to_top_level():
    assert extract_owner({"returner": " Ann "}) == "Ann"
    assert extract_owner({"operationTemplate": {"values": {"borrower": "  "}}}) is None


def test_first_metadata_value():
    assert first_metadata_value(extract_owner, None, {}, {"borrower": "Zed"}) == "Zed"
    assert first_metadata_value(extract_owner, None) is None
