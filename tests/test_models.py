from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from monica_client.api.models import (
    CONTACT_ATTRIBUTES,
    CONTACT_FIELDS,
    Contact,
    ContactsPage,
    format_datetime,
    parse_datetime,
)


def test_parse_datetime_variants():
    utc = timezone.utc
    assert parse_datetime("2024-06-01T12:30:00Z") == datetime(2024, 6, 1, 12, 30, tzinfo=utc)
    assert parse_datetime("2024-06-01T15:30:00+03:00") == datetime(2024, 6, 1, 12, 30, tzinfo=utc)
    assert parse_datetime("2024-06-01T12:30:00") == datetime(2024, 6, 1, 12, 30, tzinfo=utc)
    assert parse_datetime("1990-05-17") == datetime(1990, 5, 17, tzinfo=utc)
    assert parse_datetime(None) is None
    assert parse_datetime("  ") is None


def test_parse_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        parse_datetime("yesterday")
    with pytest.raises(ValueError):
        parse_datetime(12345)


def test_format_datetime_uses_z_suffix():
    dt = datetime(2024, 6, 1, 15, 30, tzinfo=timezone(timedelta(hours=3)))
    assert format_datetime(dt) == "2024-06-01T12:30:00Z"
    assert format_datetime(None) is None


def test_contact_from_wire(contact_factory):
    contact = Contact.model_validate(
        contact_factory(12, job_title="Engineer", birthdate=None, unknown_field="ignored")
    )
    assert contact.id == 12
    assert contact.job_title == "Engineer"
    assert contact.birthdate is None
    assert contact.updated_at == datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc)


def test_contact_to_wire_uses_wire_keys_and_iso_dates(contact_factory):
    contact = Contact.model_validate(contact_factory(3, birthdate="1990-05-17"))
    wire = contact.to_wire()
    assert set(wire) == {key for _, key in CONTACT_FIELDS}
    assert wire["birthdate"] == "1990-05-17T00:00:00Z"
    assert wire["created_at"] == "2024-01-01T10:00:00Z"
    assert Contact.model_validate(wire) == contact


def test_contact_requires_id_and_timestamps(contact_factory):
    raw = contact_factory(1)
    del raw["updated_at"]
    with pytest.raises(ValidationError):
        Contact.model_validate(raw)
    with pytest.raises(ValidationError):
        Contact.model_validate({"first_name": "x", "created_at": "2024-01-01", "updated_at": "2024-01-01"})


def test_field_values_follow_attribute_table(contact_factory):
    contact = Contact.model_validate(contact_factory(4))
    assert tuple(contact.field_values()) == CONTACT_ATTRIBUTES


def test_page_meta_from_alias(contact_factory):
    page = ContactsPage.model_validate(
        {
            "data": [contact_factory(1)],
            "links": {"first": "a", "last": "b", "prev": None, "next": None},
            "meta": {"current_page": 1, "from": 1, "last_page": 1, "per_page": 100, "to": 1, "total": 1},
        }
    )
    assert page.meta is not None
    assert page.meta.from_ == 1
    assert page.links is not None and page.links.first == "a"


def test_page_without_meta_or_links(contact_factory):
    page = ContactsPage.model_validate({"data": [contact_factory(1)], "meta": None})
    assert page.meta is None
    assert page.links is None


def test_page_requires_data():
    with pytest.raises(ValidationError):
        ContactsPage.model_validate({"meta": None})
