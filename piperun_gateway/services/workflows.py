"""
Composite PipeRun workflows.

Each workflow chains several PipeRun calls strictly in order, because later
steps need ids produced by earlier ones (the deal id for the note, the
company id for the person). A failing step stops the workflow and the error
reaches the caller; records already created upstream are left in place.
Upsert steps are safe to re-run, so the usual recovery is to retry the whole
workflow.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from piperun_gateway.schemas.workflows import (
    ActivitySpec,
    AssignDealOwnerInput,
    CompleteActivityInput,
    MeetingActivityInput,
    OpportunityBundleInput,
    OutboundCallInput,
    ResolveDealOwnerInput,
    RevopsIntakeInput,
    RouteLeadInput,
    SearchWindowInput,
)
from piperun_gateway.services.normalize import normalize_name, to_calendar_date
from piperun_gateway.services.pagination import fetch_all
from piperun_gateway.services.piperun.base import CrmClient, InvalidParameterError, UpstreamError
from piperun_gateway.services.piperun.client import unwrap_record
from piperun_gateway.services.routing import RouteResult, coerce_owner_ids, route
from piperun_gateway.services.upsert import (
    SearchBounds,
    StepOutcome,
    upsert_company,
    upsert_person,
)

logger = logging.getLogger(__name__)

ACTIVITY_STATUS_OPEN = 0
ACTIVITY_STATUS_COMPLETED = 2

ACTIVITY_TYPE_MEETING_ID_DEFAULT = 243787
ACTIVITY_TYPE_CALL_ID_DEFAULT = 243785


@dataclass(frozen=True)
class WorkflowDefaults:
    """Account-specific defaults injected from settings."""
    meeting_activity_type_id: int = ACTIVITY_TYPE_MEETING_ID_DEFAULT
    call_activity_type_id: int = ACTIVITY_TYPE_CALL_ID_DEFAULT
    max_pages: int = 5
    page_size: int = 200

    def bounds_for(self, params: SearchWindowInput) -> SearchBounds:
        return SearchBounds(
            max_pages=params.max_pages if params.max_pages is not None else self.max_pages,
            page_size=params.show if params.show is not None else self.page_size,
        )


@dataclass
class BundleResult:
    """
    Per-entity outcome of one orchestrated operation.

    Entities that do not take part in a workflow stay None and are left out
    of the serialized result.
    """
    company: StepOutcome | None = None
    person: StepOutcome | None = None
    deal: StepOutcome | None = None
    note: StepOutcome | None = None
    call: StepOutcome | None = None
    meeting: StepOutcome | None = None
    followup: StepOutcome | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def deal_id(self) -> int | None:
        return self.deal.id if self.deal else None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = dict(self.extra)
        for name in ("company", "person", "deal", "note", "call", "meeting", "followup"):
            outcome = getattr(self, name)
            if outcome is not None:
                result[name] = outcome.to_dict()
        if self.deal is not None:
            result["deal_id"] = self.deal_id
        return result


def _text(value: str | None) -> str:
    return value.strip() if isinstance(value, str) else ""


def _activity_payload(
    spec: ActivitySpec | MeetingActivityInput,
    default_title: str,
    default_type_id: int,
    default_owner_id: int | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "title": _text(spec.title) or default_title,
        "activity_type_id": spec.activity_type_id if spec.activity_type_id is not None else default_type_id,
        "status": spec.status if spec.status is not None else ACTIVITY_STATUS_OPEN,
    }
    owner_id = spec.owner_id if spec.owner_id is not None else default_owner_id
    if owner_id is not None:
        payload["owner_id"] = owner_id
    if _text(spec.start_at):
        payload["start_at"] = to_calendar_date(spec.start_at)
    if _text(spec.end_at):
        payload["end_at"] = to_calendar_date(spec.end_at)
    if spec.description is not None:
        payload["description"] = spec.description
    return payload


def _note_link(deal_id: int | None, person_id: int | None, company_id: int | None) -> dict[str, int]:
    """A note hangs off exactly one entity: deal, else person, else company."""
    if deal_id:
        return {"deal_id": deal_id}
    if person_id:
        return {"person_id": person_id}
    if company_id:
        return {"company_id": company_id}
    return {}


async def _create(client: CrmClient, path: str, payload: Any, kind: str) -> StepOutcome:
    outcome = StepOutcome.created(await client.post(path, json=payload))
    logger.info(f"{kind} created: id={outcome.id}")
    return outcome


async def _resolve_company(
    client: CrmClient,
    params: OpportunityBundleInput,
    owner_id: int | None,
    bounds: SearchBounds,
) -> StepOutcome:
    if params.company_id is not None:
        return StepOutcome.skipped(params.company_id)
    if not (_text(params.company_name) or _text(params.company_domain)):
        return StepOutcome.skipped()
    return await upsert_company(
        client,
        name=params.company_name,
        owner_id=owner_id,
        domain=params.company_domain,
        email=params.company_email,
        phone=params.company_phone,
        bounds=bounds,
        prefix="company_",
    )


async def _resolve_person(
    client: CrmClient,
    params: OpportunityBundleInput,
    owner_id: int | None,
    company_id: int | None,
    bounds: SearchBounds,
) -> StepOutcome:
    if params.person_id is not None:
        return StepOutcome.skipped(params.person_id)
    if not (_text(params.person_name) or _text(params.person_email) or _text(params.person_phone)):
        return StepOutcome.skipped()
    return await upsert_person(
        client,
        name=params.person_name,
        owner_id=owner_id,
        email=params.person_email,
        phone=params.person_phone,
        company_id=company_id,
        bounds=bounds,
        prefix="person_",
    )


async def _create_deal(
    client: CrmClient,
    params: OpportunityBundleInput,
    owner_id: int | None,
    person_id: int | None,
    company_id: int | None,
) -> StepOutcome:
    payload: dict[str, Any] = {
        "title": params.title.strip(),
        "pipeline_id": params.pipeline_id,
        "stage_id": params.stage_id,
    }
    if params.value is not None:
        payload["value"] = params.value
    if owner_id is not None:
        payload["owner_id"] = owner_id
    if person_id:
        payload["person_id"] = person_id
    if company_id:
        payload["company_id"] = company_id
    return await _create(client, "/deals", payload, "Deal")


def route_lead_to_owner(params: RouteLeadInput) -> RouteResult:
    """Pick an owner for a key from the candidate list."""
    return route(params.key, coerce_owner_ids(params.candidates_owner_ids))


async def assign_deal_owner(client: CrmClient, params: AssignDealOwnerInput) -> Any:
    logger.info(f"Assigning deal {params.deal_id} to owner {params.owner_id}")
    return await client.put(f"/deals/{params.deal_id}", json={"owner_id": params.owner_id})


async def create_meeting_activity_for_deal(
    client: CrmClient,
    params: MeetingActivityInput,
    defaults: WorkflowDefaults = WorkflowDefaults(),
) -> Any:
    """Create a Meeting activity on an existing deal."""
    payload = _activity_payload(params, "Meeting", defaults.meeting_activity_type_id)
    payload["deal_id"] = params.deal_id
    return await client.post("/activities", json=payload)


async def create_opportunity_bundle(
    client: CrmClient,
    params: OpportunityBundleInput,
    defaults: WorkflowDefaults = WorkflowDefaults(),
) -> BundleResult:
    """
    Company upsert -> person upsert -> deal -> note.

    Company and person are optional; a given company_id/person_id skips the
    lookup. The note is only written when a body is given and the deal came
    back with an id.
    """
    bounds = defaults.bounds_for(params)
    result = BundleResult()

    result.company = await _resolve_company(client, params, params.company_owner_id, bounds)
    result.person = await _resolve_person(
        client, params, params.person_owner_id, result.company.id, bounds
    )
    result.deal = await _create_deal(
        client, params, params.owner_id, result.person.id, result.company.id
    )

    note_content = _text(params.note_content)
    if note_content and result.deal_id is not None:
        result.note = await _create(
            client, "/notes", {"content": note_content, "deal_id": result.deal_id}, "Note"
        )
    else:
        result.note = StepOutcome.skipped()

    return result


def resolve_routing_key(params: RevopsIntakeInput) -> str:
    """First non-blank of routing_key, person email/phone, company domain/name, title."""
    for candidate in (
        params.routing_key,
        params.person_email,
        params.person_phone,
        params.company_domain,
        params.company_name,
        params.title,
    ):
        if _text(candidate):
            return _text(candidate)
    return ""


async def revops_intake(
    client: CrmClient,
    params: RevopsIntakeInput,
    defaults: WorkflowDefaults = WorkflowDefaults(),
) -> BundleResult:
    """
    Full inbound lead intake.

    One routed owner (from candidates_owner_ids) backs every owner field that
    was not given explicitly. Steps: company upsert, person upsert, deal,
    optional call, optional note (free text plus call outcome), optional
    meeting, optional follow-up.
    """
    bounds = defaults.bounds_for(params)

    routing_key = resolve_routing_key(params)
    candidates = coerce_owner_ids(params.candidates_owner_ids)
    auto_owner = route(routing_key, candidates).owner_id if candidates else None

    deal_owner_id = params.deal_owner_id if params.deal_owner_id is not None else auto_owner
    person_owner_id = params.person_owner_id if params.person_owner_id is not None else auto_owner
    company_owner_id = params.company_owner_id if params.company_owner_id is not None else auto_owner
    logger.info(f"Intake routed: key={routing_key!r}, auto_owner={auto_owner}")

    result = BundleResult(
        extra={
            "routing_key": routing_key,
            "auto_owner_id": auto_owner,
            "resolved_owners": {
                "deal_owner_id": deal_owner_id,
                "person_owner_id": person_owner_id,
                "company_owner_id": company_owner_id,
            },
        }
    )

    result.company = await _resolve_company(client, params, company_owner_id, bounds)
    result.person = await _resolve_person(
        client, params, person_owner_id, result.company.id, bounds
    )
    result.deal = await _create_deal(
        client, params, deal_owner_id, result.person.id, result.company.id
    )
    deal_id = result.deal_id

    if params.call_body is not None:
        result.call = await _create(client, "/calls", params.call_body, "Call")
    else:
        result.call = StepOutcome.skipped()

    note_parts = []
    if _text(params.note_content):
        note_parts.append(_text(params.note_content))
    if _text(params.call_outcome):
        note_parts.append(f"Outcome: {_text(params.call_outcome)}")
    note_content = "\n\n".join(note_parts)
    if note_content and deal_id is not None:
        result.note = await _create(
            client, "/notes", {"content": note_content, "deal_id": deal_id}, "Note"
        )
    else:
        result.note = StepOutcome.skipped()

    if params.meeting is not None:
        payload = _activity_payload(
            params.meeting, "Meeting", defaults.meeting_activity_type_id, deal_owner_id
        )
        if deal_id is not None:
            payload["deal_id"] = deal_id
        result.meeting = await _create(client, "/activities", payload, "Meeting")
    else:
        result.meeting = StepOutcome.skipped()

    if params.followup is not None:
        payload = _activity_payload(
            params.followup, "Follow-up", defaults.call_activity_type_id, deal_owner_id
        )
        if deal_id is not None:
            payload["deal_id"] = deal_id
        result.followup = await _create(client, "/activities", payload, "Follow-up")
    else:
        result.followup = StepOutcome.skipped()

    return result


async def log_outbound_call_and_outcome(
    client: CrmClient,
    params: OutboundCallInput,
    defaults: WorkflowDefaults = WorkflowDefaults(),
) -> BundleResult:
    """
    Optional call -> outcome note -> optional follow-up.

    The note is linked to one entity (deal, else person, else company). The
    follow-up is linked to every id given.
    """
    link = _note_link(params.deal_id, params.person_id, params.company_id)
    if not link:
        raise InvalidParameterError(
            "To create the note, provide a link: 'deal_id', 'person_id' or 'company_id'."
        )
    if params.followup is not None and not _text(params.followup.title):
        raise InvalidParameterError("followup.title (string) is required.")

    result = BundleResult()

    if params.call_body is not None:
        result.call = await _create(client, "/calls", params.call_body, "Call")
    else:
        result.call = StepOutcome.skipped()

    result.note = await _create(
        client, "/notes", {"content": params.note_content.strip(), **link}, "Note"
    )

    if params.followup is not None:
        payload = _activity_payload(params.followup, "Follow-up", defaults.call_activity_type_id)
        for key in ("deal_id", "person_id", "company_id"):
            if getattr(params, key) is not None:
                payload[key] = getattr(params, key)
        result.followup = await _create(client, "/activities", payload, "Follow-up")
    else:
        result.followup = StepOutcome.skipped()

    return result


async def complete_activity_with_notes(
    client: CrmClient,
    params: CompleteActivityInput,
) -> dict[str, Any]:
    """
    Mark an activity completed and optionally leave a note.

    Without explicit ids the note's link is read from the activity itself.
    No link at all means no note.
    """
    completed = await client.put(
        f"/activities/{params.activity_id}", json={"status": ACTIVITY_STATUS_COMPLETED}
    )
    logger.info(f"Activity completed: id={params.activity_id}")

    note = StepOutcome.skipped()
    note_content = _text(params.note_content)
    if note_content:
        deal_id, person_id, company_id = params.deal_id, params.person_id, params.company_id

        if not (deal_id or person_id or company_id):
            try:
                activity = unwrap_record(await client.get(f"/activities/{params.activity_id}"))
            except UpstreamError as e:
                logger.warning(f"Could not load activity {params.activity_id} to link the note: {e}")
                activity = None
            if isinstance(activity, dict):
                deal_id = _int_or_none(activity.get("deal_id"))
                person_id = _int_or_none(activity.get("person_id"))
                company_id = _int_or_none(activity.get("company_id"))

        link = _note_link(deal_id, person_id, company_id)
        if link:
            note = await _create(client, "/notes", {"content": note_content, **link}, "Note")
        else:
            logger.info(f"No link found for activity {params.activity_id}; note skipped")

    return {"activity": completed, "note": note.to_dict()}


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _find_by_name(records: list[Any], name: str) -> dict | None:
    target = normalize_name(name)
    for record in records:
        if isinstance(record, dict) and normalize_name(record.get("name")) == target:
            return record
    return None


def _find_by_id(records: list[Any], record_id: int) -> dict | None:
    for record in records:
        if isinstance(record, dict) and record.get("id") == record_id:
            return record
    return None


def _title(record: dict) -> str:
    return normalize_name(record.get("title"))


async def resolve_deal_owner(
    client: CrmClient,
    params: ResolveDealOwnerInput,
    defaults: WorkflowDefaults = WorkflowDefaults(),
) -> dict[str, Any]:
    """
    Find a deal and report it with its pipeline and owner names.

    The deal is looked up by id; otherwise by title (exact, then substring,
    then substring within the pipeline), falling back to the owner's first
    deal; otherwise the pipeline's first deal; otherwise the owner's first
    deal. Pipeline and owner names are resolved to ids and back.

    Raises:
        InvalidParameterError: If no deal can be found
    """
    def list_all(path: str, filters: dict[str, Any] | None = None):
        return fetch_all(
            lambda page: client.get(path, params=page),
            params=filters,
            page_size=defaults.page_size,
            max_pages=defaults.max_pages,
        )

    pipelines = await list_all("/pipelines")
    users = await list_all("/users")

    pipeline_id = params.pipeline_id
    pipeline_name = _text(params.pipeline_name) or None
    if pipeline_id is None and pipeline_name:
        found = _find_by_name(pipelines, pipeline_name)
        if found is not None:
            pipeline_id = _int_or_none(found.get("id"))

    owner_id = params.owner_id
    owner_name = _text(params.owner_name) or None
    if owner_id is None and owner_name:
        found = _find_by_name(users, owner_name)
        if found is not None:
            owner_id = _int_or_none(found.get("id"))

    deal = None
    deal_title = _text(params.deal_title)
    if params.deal_id is not None:
        deal = unwrap_record(await client.get(f"/deals/{params.deal_id}"))
    elif deal_title:
        deals = await list_all("/deals")
        target = deal_title.lower()
        deal = next((d for d in deals if isinstance(d, dict) and _title(d) == target), None)
        if deal is None:
            deal = next((d for d in deals if isinstance(d, dict) and target in _title(d)), None)
        if deal is None and pipeline_id is not None:
            deal = next(
                (d for d in deals
                 if isinstance(d, dict) and d.get("pipeline_id") == pipeline_id and target in _title(d)),
                None,
            )
        if deal is None and owner_id is not None:
            deal = next((d for d in deals if isinstance(d, dict) and d.get("owner_id") == owner_id), None)
    elif pipeline_id is not None:
        deals = await list_all("/deals", {"pipeline_id": pipeline_id})
        deal = deals[0] if deals else None
    elif owner_id is not None:
        deals = await list_all("/deals")
        deal = next((d for d in deals if isinstance(d, dict) and d.get("owner_id") == owner_id), None)

    if not isinstance(deal, dict):
        raise InvalidParameterError("Could not find a deal with the given parameters.")

    resolved_pipeline_id = deal.get("pipeline_id") or pipeline_id
    resolved_owner_id = deal.get("owner_id") or owner_id

    if resolved_pipeline_id is not None and not pipeline_name:
        found = _find_by_id(pipelines, resolved_pipeline_id)
        if found is not None:
            pipeline_name = str(found.get("name") or "").strip()
    if resolved_owner_id is not None and not owner_name:
        found = _find_by_id(users, resolved_owner_id)
        if found is not None:
            owner_name = str(found.get("name") or "").strip()

    return {
        "deal": {
            "id": deal.get("id", params.deal_id),
            "title": deal.get("title") or deal.get("name"),
            "pipeline_id": resolved_pipeline_id,
            "owner_id": resolved_owner_id,
        },
        "pipeline": {"id": resolved_pipeline_id, "name": pipeline_name},
        "owner": {"id": resolved_owner_id, "name": owner_name},
    }
