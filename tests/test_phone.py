"""Tests for phone normalization, area-code timezones and calling hours."""

from datetime import datetime, timezone

import pytest

from app.utils.phone import (
    extract_area_code,
    is_e164,
    is_within_calling_hours,
    normalize_phone_number,
    normalize_webhook_phone,
    timezone_for_area_code,
    timezone_for_phone,
    validate_phone_number,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("(212) 736-5000", "+12127365000"),
        ("2127365000", "+12127365000"),
        ("1-415-867-5309", "+14158675309"),
        ("+1 312 744 5000", "+13127445000"),
    ],
)
def test_normalize_phone_number_formats_e164(raw, expected):
    assert normalize_phone_number(raw) == expected


def test_normalize_phone_number_rejects_garbage():
    assert normalize_phone_number("") is None
    assert normalize_phone_number(None) is None
    assert normalize_phone_number("12345") is None


def test_validate_phone_number():
    assert validate_phone_number("212-736-5000") == (True, None)

    ok, error = validate_phone_number("")
    assert not ok
    assert error == "Phone number is required"

    ok, error = validate_phone_number("not a phone")
    assert not ok
    assert error

    ok, error = validate_phone_number("+44 20 7219 3000")
    assert not ok
    assert error == "Only US phone numbers are supported"


def test_normalize_webhook_phone_is_lenient():
    assert normalize_webhook_phone("+1 (212) 736-5000") == "+12127365000"
    assert normalize_webhook_phone("12127365000") == "+12127365000"
    assert normalize_webhook_phone("2127365000") == "+12127365000"


def test_is_e164():
    assert is_e164("+12127365000")
    assert not is_e164("2127365000")
    assert not is_e164(None)
    assert not is_e164("+0123")


def test_area_code_and_timezone_lookup():
    assert extract_area_code("+12127365000") == "212"
    assert extract_area_code("(415) 867-5309") == "415"
    assert extract_area_code("12345") is None

    assert timezone_for_area_code("212") == "America/New_York"
    assert timezone_for_area_code("312") == "America/Chicago"
    assert timezone_for_area_code("415") == "America/Los_Angeles"
    assert timezone_for_area_code("999") is None

    # Unknown area codes fall back to Eastern
    assert timezone_for_phone("+13127445000") == "America/Chicago"
    assert timezone_for_phone("+19995550000") == "America/New_York"


def test_is_within_calling_hours_uses_local_time():
    # 15:00 UTC = 11:00 New York (EDT) = 08:00 Los Angeles (PDT)
    now = datetime(2026, 6, 10, 15, 0, tzinfo=timezone.utc)
    assert is_within_calling_hours("America/New_York", 9, 20, now=now)
    assert not is_within_calling_hours("America/Los_Angeles", 9, 20, now=now)


def test_is_within_calling_hours_end_is_exclusive():
    # 00:00 UTC = 20:00 New York (EDT)
    now = datetime(2026, 6, 11, 0, 0, tzinfo=timezone.utc)
    assert not is_within_calling_hours("America/New_York", 9, 20, now=now)


def test_is_within_calling_hours_unknown_timezone_is_outside():
    now = datetime(2026, 6, 10, 15, 0, tzinfo=timezone.utc)
    assert not is_within_calling_hours("Mars/Olympus_Mons", 9, 20, now=now)
