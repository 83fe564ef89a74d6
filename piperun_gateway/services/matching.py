"""
Entity matching for PipeRun people and companies.

PipeRun records are untyped maps and the contact fields come in several
shapes: a scalar ``email``, an ``emails`` list of strings, or a list of
objects carrying ``value``/``email``. Each field family has an extractor that
flattens those shapes into a list of strings before comparison.
"""

from typing import Any, Iterable

from piperun_gateway.services.normalize import (
    normalize_domain,
    normalize_email,
    normalize_name,
    normalize_phone,
)


def _collect(record: Any, scalar_key: str, list_key: str, item_keys: tuple[str, ...]) -> list[str]:
    if not isinstance(record, dict):
        return []

    values: list[str] = []
    scalar = record.get(scalar_key)
    if isinstance(scalar, str):
        values.append(scalar)

    items = record.get(list_key)
    if isinstance(items, list):
        for item in items:
            if isinstance(item, str):
                values.append(item)
            elif isinstance(item, dict):
                for key in item_keys:
                    if isinstance(item.get(key), str):
                        values.append(item[key])
                        break
    return values


def extract_emails(record: Any) -> list[str]:
    return _collect(record, "email", "emails", ("value", "email"))


def extract_phones(record: Any) -> list[str]:
    return _collect(record, "phone", "phones", ("value", "phone"))


def extract_website(record: Any) -> str:
    if not isinstance(record, dict):
        return ""
    return str(record.get("website") or record.get("site") or "")


def person_matches(record: Any, email: str | None = None, phone: str | None = None) -> bool:
    """
    Check whether a person record carries the target email or phone.

    Without a non-empty target email or phone nothing matches.
    """
    target_email = normalize_email(email)
    target_phone = normalize_phone(phone)

    if target_email and target_email in {normalize_email(e) for e in extract_emails(record)}:
        return True
    if target_phone and target_phone in {normalize_phone(p) for p in extract_phones(record)}:
        return True
    return False


def company_matches(record: Any, domain: str | None = None, name: str | None = None) -> bool:
    """
    Check whether a company record matches a domain or an exact name.

    The website matches when it equals the target domain or is a subdomain of it.
    """
    target_domain = normalize_domain(domain)
    target_name = normalize_name(name)

    if target_domain:
        website = normalize_domain(extract_website(record))
        if website == target_domain or website.endswith("." + target_domain):
            return True

    if target_name and isinstance(record, dict):
        if normalize_name(record.get("name")) == target_name:
            return True
    return False


def find_person(records: Iterable[Any], email: str | None = None, phone: str | None = None) -> dict | None:
    """Return the first person record matching email or phone."""
    for record in records:
        if person_matches(record, email, phone):
            return record
    return None


def find_company(records: Iterable[Any], domain: str | None = None, name: str | None = None) -> dict | None:
    """Return the first company record matching domain or name."""
    for record in records:
        if company_matches(record, domain, name):
            return record
    return None
