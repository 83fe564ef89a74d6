"""
Canonical forms used to compare CRM fields.

Email, phone, domain and name values coming from callers and from PipeRun
records are compared only after passing through these functions. Empty input
always normalizes to an empty string, which never matches anything.
"""

import re
from datetime import date, datetime
from typing import Any

from dateutil import parser as dateutil_parser

from piperun_gateway.services.piperun.base import InvalidParameterError


_NON_PHONE_CHARS = re.compile(r"[^0-9+]")
_SCHEME = re.compile(r"^https?://")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_email(value: Any) -> str:
    return _as_text(value).lower()


def normalize_phone(value: Any) -> str:
    """Keep digits and '+' only; an international '00' prefix becomes '+'."""
    digits = _NON_PHONE_CHARS.sub("", _as_text(value))
    if digits.startswith("00"):
        digits = "+" + digits[2:]
    return digits


def normalize_domain(value: Any) -> str:
    """
    Reduce a website or domain to its bare host form.

    "https://www.Example.com/" -> "example.com"
    """
    domain = _SCHEME.sub("", _as_text(value).lower())
    if domain.startswith("www."):
        domain = domain[4:]
    if domain.endswith("/"):
        domain = domain[:-1]
    return domain


def normalize_name(value: Any) -> str:
    return _as_text(value).lower()


def to_calendar_date(value: Any) -> str:
    """
    Convert a date or timestamp to the YYYY-MM-DD form PipeRun activities expect.

    The time of day is dropped. No timezone conversion is applied, so the
    calendar date is the one written in the input.

    Raises:
        InvalidParameterError: If the value is empty or not a date
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = _as_text(value)
    if not text:
        raise InvalidParameterError("Invalid or empty date.")

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = dateutil_parser.parse(text)
        except (ValueError, OverflowError):
            raise InvalidParameterError(
                f"Invalid date: {text}. Use ISO 8601 or YYYY-MM-DD."
            )
    return parsed.date().isoformat()
