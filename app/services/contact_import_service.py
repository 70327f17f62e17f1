"""Contact import for outbound campaigns.

Features:
- Parse CSV (BOM/encoding detection) and Excel (.xlsx via openpyxl)
- Suggest column → field mappings from header names
- Validate/normalize US phone numbers, derive area code and timezone
- Dedupe within the file and against the campaign's stored contacts
"""

import csv
import io
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Iterable

from charset_normalizer import from_bytes
from email_validator import EmailNotValidError, validate_email
from openpyxl import load_workbook
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.enums import OutboundCampaignStatus
from app.db.models import OutboundCampaign, OutboundContact
from app.utils.pagination import PaginationParams, paginate_query
from app.utils.phone import (
    extract_area_code,
    normalize_phone_number,
    timezone_for_area_code,
    validate_phone_number,
)

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 100


# =============================================================================
# Types
# =============================================================================

@dataclass
class ContactFieldMapping:
    """Which file column feeds which contact field."""
    phone_number: str
    first_name: str
    last_name: str | None = None
    email: str | None = None
    company: str | None = None

    def standard_columns(self) -> set[str]:
        return {
            column
            for column in (self.phone_number, self.first_name, self.last_name, self.email, self.company)
            if column
        }


@dataclass
class ParsedContact:
    row_number: int
    phone_number: str
    first_name: str
    last_name: str | None = None
    email: str | None = None
    company: str | None = None
    timezone: str | None = None
    area_code: str | None = None
    custom_fields: dict[str, str] = field(default_factory=dict)
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ContactUploadResult:
    total_rows: int
    valid_contacts: list[ParsedContact]
    invalid_contacts: list[ParsedContact]
    duplicates: list[ParsedContact]
    headers: list[str]


# =============================================================================
# File Parsing
# =============================================================================

def detect_encoding(content: bytes) -> str:
    """
    Detect file encoding.

    Order: BOM, UTF-8, then charset_normalizer, then latin-1.
    """
    if content.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    if content.startswith(b"\xff\xfe"):
        return "utf-16-le"
    if content.startswith(b"\xfe\xff"):
        return "utf-16-be"

    try:
        content.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    best = from_bytes(content).best()
    if best and best.encoding:
        return best.encoding

    # latin-1 accepts any byte sequence
    return "latin-1"


def _decode(content: bytes | str) -> str:
    if isinstance(content, str):
        return content.lstrip("\ufeff")
    text = content.decode(detect_encoding(content))
    return text.lstrip("\ufeff")


def _rows_to_dicts(headers: list[str], raw_rows: Iterable[list[str]]) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for raw in raw_rows:
        values = [value.strip() for value in raw]
        if not any(values):
            continue
        row = {}
        for index, header in enumerate(headers):
            row[header] = values[index] if index < len(values) else ""
        rows.append(row)
    return rows


def parse_csv(content: bytes | str) -> tuple[list[str], list[dict[str, str]]]:
    """
    Parse CSV content into headers and row dicts.

    Returns:
        (headers, rows) with all values trimmed and blank lines skipped
    """
    text = _decode(content)
    if not text.strip():
        return [], []

    reader = csv.reader(io.StringIO(text))
    all_rows = list(reader)
    if not all_rows:
        return [], []

    headers = [header.strip() for header in all_rows[0]]
    return headers, _rows_to_dicts(headers, all_rows[1:])


def _cell_to_str(value: Any) -> str:
    if value is None:
        return ""
    # Spreadsheet apps store phone columns as floats (2015550123.0)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def parse_excel(content: bytes) -> tuple[list[str], list[dict[str, str]]]:
    """Parse the first worksheet of an .xlsx workbook."""
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:
        raise ValueError("Could not read Excel file") from exc

    try:
        if not workbook.worksheets:
            return [], []
        sheet = workbook.worksheets[0]
        rows_iter = sheet.iter_rows(values_only=True)
        header_row = next(rows_iter, None)
        if header_row is None:
            return [], []

        headers = [
            _cell_to_str(cell) or f"Column {index + 1}"
            for index, cell in enumerate(header_row)
        ]
        raw_rows = ([_cell_to_str(cell) for cell in row] for row in rows_iter)
        return headers, _rows_to_dicts(headers, raw_rows)
    finally:
        workbook.close()


def parse_upload(filename: str, content: bytes) -> tuple[list[str], list[dict[str, str]]]:
    """Dispatch on file extension."""
    name = (filename or "").lower()
    if name.endswith(".csv"):
        return parse_csv(content)
    if name.endswith(".xlsx") or name.endswith(".xls"):
        return parse_excel(content)
    raise ValueError("Unsupported file format. Please use CSV or Excel files.")


# =============================================================================
# Column Mapping
# =============================================================================

FIELD_PATTERNS: dict[str, tuple[str, ...]] = {
    "phone_number": ("phone", "mobile", "cell", "telephone", "number", "tel"),
    "first_name": ("first", "firstname", "fname", "given"),
    "last_name": ("last", "lastname", "lname", "surname", "family"),
    "email": ("email", "mail", "emailaddress"),
    "company": ("company", "organization", "business", "employer"),
}


def normalize_header(header: str) -> str:
    """Normalize header for matching."""
    return re.sub(r"[\s_-]", "", header.lower())


def suggest_field_mappings(headers: list[str]) -> dict[str, str]:
    """
    Suggest a column for each contact field.

    The first header containing one of a field's patterns wins.
    """
    mapping: dict[str, str] = {}
    for header in headers:
        normalized = normalize_header(header)
        for field_name, patterns in FIELD_PATTERNS.items():
            if field_name in mapping:
                continue
            if any(pattern in normalized for pattern in patterns):
                mapping[field_name] = header
    return mapping


# =============================================================================
# Row Processing
# =============================================================================

def _optional(row: dict[str, str], column: str | None) -> str | None:
    if not column:
        return None
    value = (row.get(column) or "").strip()
    return value or None


def process_contacts(
    rows: list[dict[str, str]],
    mapping: ContactFieldMapping,
    headers: list[str],
) -> ContactUploadResult:
    """
    Validate and normalize parsed rows.

    Row numbers are spreadsheet rows: the header is row 1.
    """
    valid: list[ParsedContact] = []
    invalid: list[ParsedContact] = []
    duplicates: list[ParsedContact] = []
    seen_phones: set[str] = set()
    standard_columns = mapping.standard_columns()

    for index, row in enumerate(rows):
        raw_phone = (row.get(mapping.phone_number) or "").strip()
        first_name = (row.get(mapping.first_name) or "").strip()

        errors: list[str] = []
        if not first_name:
            errors.append("First name is required")

        phone_ok, phone_error = validate_phone_number(raw_phone)
        if not phone_ok:
            errors.append(phone_error or "Invalid phone")

        email = _optional(row, mapping.email)
        if email:
            try:
                # Same check the contacts endpoint applies through EmailStr
                email = validate_email(email, check_deliverability=False).normalized
            except EmailNotValidError:
                errors.append("Invalid email address")

        phone = (normalize_phone_number(raw_phone) or raw_phone) if phone_ok else raw_phone
        area_code = extract_area_code(raw_phone)

        custom_fields = {
            header: row[header]
            for header in headers
            if header not in standard_columns and row.get(header)
        }

        contact = ParsedContact(
            row_number=index + 2,
            phone_number=phone,
            first_name=first_name,
            last_name=_optional(row, mapping.last_name),
            email=email,
            company=_optional(row, mapping.company),
            timezone=timezone_for_area_code(area_code),
            area_code=area_code,
            custom_fields=custom_fields,
            is_valid=not errors,
            errors=errors,
        )

        if not contact.is_valid:
            invalid.append(contact)
            continue

        if phone in seen_phones:
            contact.errors.append("Duplicate phone number")
            duplicates.append(contact)
            continue

        seen_phones.add(phone)
        valid.append(contact)

    return ContactUploadResult(
        total_rows=len(rows),
        valid_contacts=valid,
        invalid_contacts=invalid,
        duplicates=duplicates,
        headers=headers,
    )


# =============================================================================
# Persistence
# =============================================================================

def count_contacts(db: Session, campaign_id) -> int:
    return (
        db.query(func.count(OutboundContact.id))
        .filter(OutboundContact.campaign_id == campaign_id)
        .scalar()
        or 0
    )


def _require_draft(campaign: OutboundCampaign) -> None:
    if campaign.status != OutboundCampaignStatus.DRAFT.value:
        raise ValueError("Contacts can only be added to draft campaigns")


def _insert_rows(db: Session, rows: list[dict[str, Any]]) -> bool:
    """Insert rows inside a savepoint. False when a unique constraint fires."""
    try:
        with db.begin_nested():
            db.add_all([OutboundContact(**row) for row in rows])
            db.flush()
        return True
    except IntegrityError:
        return False


def add_contacts(db: Session, campaign: OutboundCampaign, contacts: list[Any]) -> dict:
    """
    Insert contacts into a draft campaign.

    ``contacts`` items expose phone_number, first_name, last_name, email,
    company, timezone, area_code and custom_fields (schema objects or
    ParsedContact). Phones already stored or repeated in the batch are
    counted as duplicates.

    Returns:
        {"inserted", "duplicates", "total"}
    """
    _require_draft(campaign)

    existing_phones = {
        phone
        for (phone,) in db.query(OutboundContact.phone_number)
        .filter(OutboundContact.campaign_id == campaign.id)
        .all()
    }

    new_rows: list[dict[str, Any]] = []
    duplicates = 0
    for contact in contacts:
        phone = contact.phone_number
        if phone in existing_phones:
            duplicates += 1
            continue
        existing_phones.add(phone)

        area_code = contact.area_code or extract_area_code(phone)
        new_rows.append(
            {
                "campaign_id": campaign.id,
                "phone_number": phone,
                "first_name": contact.first_name,
                "last_name": contact.last_name or None,
                "email": contact.email or None,
                "company": contact.company or None,
                "area_code": area_code,
                "timezone": contact.timezone or timezone_for_area_code(area_code),
                "custom_fields": dict(contact.custom_fields or {}),
            }
        )

    inserted = 0
    for start in range(0, len(new_rows), INSERT_BATCH_SIZE):
        batch = new_rows[start:start + INSERT_BATCH_SIZE]
        if _insert_rows(db, batch):
            inserted += len(batch)
            continue

        # Another import stored some of these phones since the snapshot above
        for row in batch:
            if _insert_rows(db, [row]):
                inserted += 1
            else:
                duplicates += 1

    campaign.total_contacts = count_contacts(db, campaign.id)
    db.flush()

    logger.info(
        "Outbound contacts added",
        extra={"campaign_id": str(campaign.id), "inserted": inserted, "duplicates": duplicates},
    )
    return {"inserted": inserted, "duplicates": duplicates, "total": campaign.total_contacts}


def list_contacts(
    db: Session,
    campaign: OutboundCampaign,
    pagination: PaginationParams,
    status: str | None = None,
) -> tuple[list[OutboundContact], int]:
    query = db.query(OutboundContact).filter(OutboundContact.campaign_id == campaign.id)
    if status:
        query = query.filter(OutboundContact.status == status)
    query = query.order_by(OutboundContact.created_at.desc(), OutboundContact.id)
    return paginate_query(query, pagination)


def clear_contacts(db: Session, campaign: OutboundCampaign) -> int:
    """Delete every contact of a draft campaign. Returns the deleted count."""
    if campaign.status != OutboundCampaignStatus.DRAFT.value:
        raise ValueError("Contacts can only be cleared from draft campaigns")

    deleted = (
        db.query(OutboundContact)
        .filter(OutboundContact.campaign_id == campaign.id)
        .delete(synchronize_session=False)
    )
    campaign.total_contacts = 0
    db.flush()
    return deleted
