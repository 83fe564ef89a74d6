"""
Find-or-create for PipeRun people and companies.

Each upsert scans a bounded window of the listing endpoint, matches
client-side and only creates a record when nothing matched. Re-running the
same upsert therefore returns the existing record instead of a duplicate.
"""

import logging
from dataclasses import dataclass
from typing import Any

from piperun_gateway.services.matching import find_company, find_person
from piperun_gateway.services.pagination import MAX_PAGE_SIZE, fetch_all
from piperun_gateway.services.piperun.base import CrmClient, InvalidParameterError
from piperun_gateway.services.piperun.client import extract_id

logger = logging.getLogger(__name__)

MATCHED = "matched"
CREATED = "created"
SKIPPED = "skipped"


@dataclass
class StepOutcome:
    """Outcome of one sub-entity of a workflow."""
    action: str
    id: int | None = None
    record: Any = None

    @classmethod
    def matched(cls, record: dict) -> "StepOutcome":
        return cls(action=MATCHED, id=extract_id(record), record=record)

    @classmethod
    def created(cls, body: Any) -> "StepOutcome":
        return cls(action=CREATED, id=extract_id(body), record=body)

    @classmethod
    def skipped(cls, record_id: int | None = None) -> "StepOutcome":
        return cls(action=SKIPPED, id=record_id)

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "id": self.id, "record": self.record}


@dataclass(frozen=True)
class SearchBounds:
    """How much of a listing endpoint an upsert may scan."""
    max_pages: int = 5
    page_size: int = MAX_PAGE_SIZE


def _clean(value: str | None) -> str:
    return value.strip() if isinstance(value, str) else ""


async def upsert_person(
    client: CrmClient,
    name: str | None = None,
    owner_id: int | None = None,
    email: str | None = None,
    phone: str | None = None,
    company_id: int | None = None,
    bounds: SearchBounds = SearchBounds(),
    prefix: str = "",
) -> StepOutcome:
    """
    Return the person matching email/phone, creating it when none matches.

    Creation needs a name and an owner; neither is needed when a match exists.
    `prefix` is prepended to argument names in error messages (e.g. "person_").

    Raises:
        InvalidParameterError: If no search data is given, or a create is
            needed without name or owner
    """
    name, email, phone = _clean(name), _clean(email), _clean(phone)
    if not (email or phone or name):
        raise InvalidParameterError("Provide at least 'email', 'phone' or 'name' to look up a person.")

    persons = await fetch_all(
        lambda params: client.get("/persons", params=params),
        page_size=bounds.page_size,
        max_pages=bounds.max_pages,
    )
    found = find_person(persons, email or None, phone or None)
    if found is not None and extract_id(found) is not None:
        logger.info(f"Person matched: id={extract_id(found)}")
        return StepOutcome.matched(found)

    if not name:
        raise InvalidParameterError(f"Person not found. Provide '{prefix}name' to create it.")
    if owner_id is None:
        raise InvalidParameterError(f"Person not found. Provide '{prefix}owner_id' to create it.")

    payload: dict[str, Any] = {"name": name, "owner_id": owner_id}
    if email:
        payload["email"] = email
    if phone:
        payload["phone"] = phone
    if company_id is not None:
        payload["company_id"] = company_id

    outcome = StepOutcome.created(await client.post("/persons", json=payload))
    logger.info(f"Person created: id={outcome.id}")
    return outcome


async def upsert_company(
    client: CrmClient,
    name: str | None = None,
    owner_id: int | None = None,
    domain: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    bounds: SearchBounds = SearchBounds(),
    prefix: str = "",
) -> StepOutcome:
    """
    Return the company matching domain/name, creating it when none matches.

    Raises:
        InvalidParameterError: If neither name nor domain is given, or a create
            is needed without name or owner
    """
    name, domain = _clean(name), _clean(domain)
    email, phone = _clean(email), _clean(phone)
    if not (name or domain):
        raise InvalidParameterError("Provide 'name' and/or 'domain' to look up a company.")

    companies = await fetch_all(
        lambda params: client.get("/companies", params=params),
        page_size=bounds.page_size,
        max_pages=bounds.max_pages,
    )
    found = find_company(companies, domain or None, name or None)
    if found is not None and extract_id(found) is not None:
        logger.info(f"Company matched: id={extract_id(found)}")
        return StepOutcome.matched(found)

    if not name:
        raise InvalidParameterError(f"Company not found. Provide '{prefix}name' to create it.")
    if owner_id is None:
        raise InvalidParameterError(f"Company not found. Provide '{prefix}owner_id' to create it.")

    payload: dict[str, Any] = {"name": name, "owner_id": owner_id}
    if email:
        payload["email"] = email
    if phone:
        payload["phone"] = phone
    if domain:
        payload["website"] = domain

    outcome = StepOutcome.created(await client.post("/companies", json=payload))
    logger.info(f"Company created: id={outcome.id}")
    return outcome
