"""Phone number helpers: E.164 normalization, US validation, area-code timezones."""

import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat


DEFAULT_REGION = "US"
DEFAULT_TIMEZONE = "America/New_York"

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


# =============================================================================
# Area codes → IANA timezone
# =============================================================================

_AREA_CODES_BY_TIMEZONE: dict[str, str] = {
    "America/New_York": (
        "201 202 203 207 212 215 216 229 231 234 239 240 248 252 260 267 269 272 "
        "276 278 301 302 304 305 313 315 317 321 330 336 339 347 351 352 364 380 "
        "386 401 404 407 410 412 413 419 423 434 440 443 445 463 470 475 478 484 "
        "502 508 513 516 517 518 540 551 561 567 570 571 574 585 586 603 606 607 "
        "609 610 614 616 617 631 646 667 678 680 681 689 703 704 706 716 717 718 "
        "724 727 732 734 740 743 754 757 762 765 770 772 774 781 786 802 803 804 "
        "810 812 813 814 828 838 843 845 848 854 856 857 859 860 862 863 864 865 "
        "878 904 906 908 910 912 914 917 919 929 930 934 937 941 947 954 959 973 "
        "978 980 984 989"
    ),
    "America/Chicago": (
        "217 218 219 224 225 228 251 254 256 262 270 281 308 309 312 314 316 318 "
        "319 320 325 331 334 337 346 361 402 405 409 414 417 430 432 447 469 479 "
        "501 504 507 512 515 531 534 539 563 573 580 601 605 608 612 615 618 620 "
        "629 630 636 641 651 659 660 662 682 701 708 712 713 715 726 731 737 763 "
        "769 773 779 785 806 815 816 817 830 832 847 850 870 872 901 903 913 918 "
        "920 931 936 938 940 952 956 972 979 985"
    ),
    "America/Denver": "303 307 385 406 435 505 575 719 720 801 915 970 986",
    "America/Phoenix": "480 520 602 623 928",
    "America/Los_Angeles": (
        "253 310 323 360 408 415 424 425 442 458 503 509 510 530 541 559 562 564 "
        "619 626 627 628 650 657 661 669 702 707 714 725 747 760 764 775 805 818 "
        "820 831 858 909 916 925 949 951 971"
    ),
    "America/Anchorage": "907",
    "Pacific/Honolulu": "808",
    "America/Virgin": "340",
    "America/Toronto": "226",
}

US_AREA_CODE_TIMEZONES: dict[str, str] = {
    code: tz
    for tz, codes in _AREA_CODES_BY_TIMEZONE.items()
    for code in codes.split()
}

TIMEZONE_DISPLAY_NAMES = {
    "America/New_York": "Eastern Time (ET)",
    "America/Chicago": "Central Time (CT)",
    "America/Denver": "Mountain Time (MT)",
    "America/Los_Angeles": "Pacific Time (PT)",
    "America/Phoenix": "Arizona (MST)",
    "America/Anchorage": "Alaska Time (AKT)",
    "Pacific/Honolulu": "Hawaii Time (HST)",
    "America/Virgin": "Atlantic Time (AT)",
    "America/Toronto": "Eastern Time (ET)",
}


# =============================================================================
# Normalization & validation
# =============================================================================

def _parse(raw: str, region: str = DEFAULT_REGION) -> phonenumbers.PhoneNumber | None:
    try:
        return phonenumbers.parse(raw, region)
    except NumberParseException:
        return None


def normalize_phone_number(raw: str | None, default_region: str = DEFAULT_REGION) -> str | None:
    """
    Normalize a phone number to E.164.

    Valid numbers are formatted by phonenumbers. Otherwise a bare 10-digit
    or 1-prefixed 11-digit string is treated as NANP. Returns None when
    neither works.
    """
    if not raw or not raw.strip():
        return None

    parsed = _parse(raw, default_region)
    if parsed is not None and phonenumbers.is_valid_number(parsed):
        return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)

    digits = re.sub(r"\D", "", raw)
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return None


def validate_phone_number(raw: str | None) -> tuple[bool, str | None]:
    """Return (is_valid, error_message) for a US phone number."""
    if not raw or not raw.strip():
        return False, "Phone number is required"

    parsed = _parse(raw)
    if parsed is None:
        return False, "Invalid phone number format"
    if not phonenumbers.is_valid_number(parsed):
        return False, "Phone number is not valid"
    if phonenumbers.region_code_for_number(parsed) != DEFAULT_REGION:
        return False, "Only US phone numbers are supported"
    return True, None


def normalize_webhook_phone(raw: str) -> str:
    """
    Lenient normalization for numbers coming from provider payloads.

    Keeps a leading '+', otherwise assumes NANP for 10/11 digit strings.
    """
    cleaned = re.sub(r"[^\d+]", "", raw or "")
    if cleaned.startswith("+"):
        return cleaned
    if len(cleaned) == 11 and cleaned.startswith("1"):
        return f"+{cleaned}"
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    return f"+{cleaned}"


def is_e164(raw: str | None) -> bool:
    return bool(raw) and E164_PATTERN.match(raw) is not None


# =============================================================================
# Timezones
# =============================================================================

def extract_area_code(phone: str | None) -> str | None:
    """Area code of a NANP number, or None."""
    if not phone:
        return None

    parsed = _parse(phone)
    if parsed is not None and parsed.country_code == 1:
        national = str(parsed.national_number)
        if len(national) == 10:
            return national[:3]

    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:4]
    if len(digits) == 10:
        return digits[:3]
    return None


def timezone_for_area_code(area_code: str | None) -> str | None:
    if not area_code:
        return None
    return US_AREA_CODE_TIMEZONES.get(area_code)


def timezone_for_phone(phone: str | None) -> str:
    return timezone_for_area_code(extract_area_code(phone)) or DEFAULT_TIMEZONE


def timezone_display_name(tz: str) -> str:
    return TIMEZONE_DISPLAY_NAMES.get(tz, tz)


def is_within_calling_hours(
    tz: str | None,
    start_hour: int = 9,
    end_hour: int = 20,
    now: datetime | None = None,
) -> bool:
    """
    True when the local hour in ``tz`` is in [start_hour, end_hour).

    Unknown timezones are treated as outside calling hours.
    """
    try:
        zone = ZoneInfo(tz or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return False

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    local_hour = current.astimezone(zone).hour
    return start_hour <= local_hour < end_hour
