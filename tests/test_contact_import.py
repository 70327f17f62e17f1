"""Tests for outbound contact file parsing, column mapping and validation."""

import io
import uuid

import pytest
from openpyxl import Workbook

from app.db.models import OutboundCampaign, OutboundContact
from app.db.session import SessionLocal
from app.services import contact_import_service
from app.services.contact_import_service import (
    ContactFieldMapping,
    ParsedContact,
    add_contacts,
    detect_encoding,
    parse_csv,
    parse_excel,
    parse_upload,
    process_contacts,
    suggest_field_mappings,
)

CSV_CONTENT = (
    "First Name,Last Name,Mobile Phone,Email,Plan\n"
    "Ada,Lovelace,(212) 736-5000,ada@example.com,Gold\n"
    "\n"
    "Grace,Hopper,415-867-5309,,\n"
    ",NoName,312-744-5000,,\n"
    "Alan,Turing,12345,,\n"
    "Dupe,Person,212.736.5000,,Silver\n"
)


def _mapping() -> ContactFieldMapping:
    return ContactFieldMapping(
        phone_number="Mobile Phone",
        first_name="First Name",
        last_name="Last Name",
        email="Email",
    )


def test_parse_csv_skips_blank_lines_and_trims():
    headers, rows = parse_csv(CSV_CONTENT.encode("utf-8"))
    assert headers == ["First Name", "Last Name", "Mobile Phone", "Email", "Plan"]
    assert len(rows) == 5
    assert rows[0]["Mobile Phone"] == "(212) 736-5000"
    assert rows[1]["Plan"] == ""


def test_parse_csv_strips_utf8_bom():
    headers, _ = parse_csv(b"\xef\xbb\xbfphone,first\n2127365000,Ada\n")
    assert headers == ["phone", "first"]


def test_detect_encoding_falls_back_for_latin1():
    assert detect_encoding("name\nJosé".encode("utf-8")) == "utf-8"
    assert detect_encoding(b"\xef\xbb\xbfabc") == "utf-8-sig"
    assert detect_encoding("name,city\nJos\xe9,M\xfcnchen\n".encode("latin-1")) != "utf-8"


def test_parse_excel_reads_first_sheet():
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Phone", "First"])
    sheet.append([2127365000.0, "Ada"])
    sheet.append([None, None])
    buffer = io.BytesIO()
    workbook.save(buffer)

    headers, rows = parse_excel(buffer.getvalue())
    assert headers == ["Phone", "First"]
    assert rows == [{"Phone": "2127365000", "First": "Ada"}]


def test_parse_upload_rejects_unknown_extension():
    with pytest.raises(ValueError):
        parse_upload("contacts.txt", b"a,b")


def test_suggest_field_mappings():
    mapping = suggest_field_mappings(["First Name", "Last Name", "Mobile Phone", "E-mail", "Company"])
    assert mapping == {
        "first_name": "First Name",
        "last_name": "Last Name",
        "phone_number": "Mobile Phone",
        "email": "E-mail",
        "company": "Company",
    }


def test_process_contacts_classifies_rows():
    headers, rows = parse_csv(CSV_CONTENT)
    result = process_contacts(rows, _mapping(), headers)

    assert result.total_rows == 5
    assert [c.first_name for c in result.valid_contacts] == ["Ada", "Grace"]
    assert len(result.invalid_contacts) == 2
    assert len(result.duplicates) == 1

    ada = result.valid_contacts[0]
    assert ada.row_number == 2
    assert ada.phone_number == "+12127365000"
    assert ada.area_code == "212"
    assert ada.timezone == "America/New_York"
    assert ada.custom_fields == {"Plan": "Gold"}

    grace = result.valid_contacts[1]
    assert grace.timezone == "America/Los_Angeles"
    assert grace.email is None
    assert grace.custom_fields == {}


def test_process_contacts_reports_errors():
    headers, rows = parse_csv(CSV_CONTENT)
    result = process_contacts(rows, _mapping(), headers)

    no_name, bad_phone = result.invalid_contacts
    assert "First name is required" in no_name.errors
    assert no_name.is_valid is False
    assert bad_phone.first_name == "Alan"
    assert bad_phone.errors

    duplicate = result.duplicates[0]
    assert duplicate.errors == ["Duplicate phone number"]
    assert duplicate.row_number == 6


def test_process_contacts_rejects_malformed_email():
    headers, rows = parse_csv(
        b"Mobile Phone,First Name,Email\n2127365000,Ann,ann@\n3122223333,Bob,Bob@Example.com\n"
    )
    mapping = ContactFieldMapping(phone_number="Mobile Phone", first_name="First Name", email="Email")
    result = process_contacts(rows, mapping, headers)

    (bad,) = result.invalid_contacts
    assert bad.first_name == "Ann"
    assert bad.errors == ["Invalid email address"]
    assert [c.email for c in result.valid_contacts] == ["Bob@example.com"]


def test_add_contacts_counts_concurrent_insert_as_duplicate(db, test_org, monkeypatch):
    campaign = OutboundCampaign(organization_id=test_org.id, name="Winback", webhook_uuid=uuid.uuid4())
    db.add(campaign)
    db.commit()

    real_timezone = contact_import_service.timezone_for_area_code
    raced = []

    def timezone_after_other_import(area_code):
        # Another upload commits the same phone after the existing-phone snapshot
        if not raced:
            raced.append(True)
            other = SessionLocal()
            other.add(OutboundContact(campaign_id=campaign.id, phone_number="+13122223333", first_name="Racer"))
            other.commit()
            other.close()
        return real_timezone(area_code)

    monkeypatch.setattr(contact_import_service, "timezone_for_area_code", timezone_after_other_import)

    result = add_contacts(
        db,
        campaign,
        [
            ParsedContact(row_number=2, phone_number="+12127365000", first_name="Ann"),
            ParsedContact(row_number=3, phone_number="+13122223333", first_name="Bob"),
        ],
    )
    db.commit()

    assert result == {"inserted": 1, "duplicates": 1, "total": 2}
    names = {c.first_name for c in db.query(OutboundContact).filter(OutboundContact.campaign_id == campaign.id)}
    assert names == {"Ann", "Racer"}
