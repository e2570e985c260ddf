"""Reusable validation utilities for input sanitization."""

import re

_URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


def sanitize_html(value: str | None) -> str | None:
    """
    Strip/escape HTML tags to prevent XSS.

    Args:
        value: Text that may contain HTML

    Returns:
        Sanitized text or None if empty
    """
    if not value:
        return None

    # Remove all HTML tags
    cleaned = re.sub(r"<[^>]+>", "", value)

    # Escape remaining special chars
    cleaned = (
        cleaned.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
    )

    return cleaned.strip() if cleaned.strip() else None


def validate_meeting_link(value: str | None) -> str | None:
    """
    Validate an optional meeting link.

    Returns:
        Stripped link or None if empty

    Raises:
        ValueError: If the link is not an http(s) URL
    """
    if not value or not value.strip():
        return None

    cleaned = value.strip()
    if not _URL_PATTERN.match(cleaned):
        raise ValueError("Meeting link must be a valid http(s) URL")
    return cleaned


def validate_participant_id(value: str, field_name: str = "Participant ID") -> str:
    """
    Validate an opaque participant identifier.

    Raises:
        ValueError: If empty, too long, or containing whitespace
    """
    if value is None or not str(value).strip():
        raise ValueError(f"{field_name} cannot be empty")

    cleaned = str(value).strip()
    if len(cleaned) > 64:
        raise ValueError(f"{field_name} cannot exceed 64 characters")
    if re.search(r"\s", cleaned):
        raise ValueError(f"{field_name} cannot contain whitespace")
    return cleaned
