"""Utility modules."""

from app.utils.normalization import (
    normalize_email,
    normalize_name,
    normalize_optional_text,
    sanitize_search_input,
)
from app.utils.pagination import (
    PaginationParams,
    clamp_pagination,
    get_pagination,
    paginate_query,
)
from app.utils.phone import (
    is_e164,
    normalize_phone_number,
    normalize_webhook_phone,
    validate_phone_number,
)

__all__ = [
    # Normalization
    "normalize_email",
    "normalize_name",
    "normalize_optional_text",
    "sanitize_search_input",
    # Pagination
    "PaginationParams",
    "clamp_pagination",
    "get_pagination",
    "paginate_query",
    # Phone
    "is_e164",
    "normalize_phone_number",
    "normalize_webhook_phone",
    "validate_phone_number",
]
