"""
Tool definitions for the PipeRun CRUD passthroughs.

Each definition maps one tool onto one PipeRun endpoint. The arguments are
forwarded as query parameters (list/get) or as the JSON body (create/update).
"""

import logging
from typing import Any

from piperun_gateway.schemas.base import PassthroughInput
from piperun_gateway.schemas.resources import (
    ActivityCreateInput,
    CompanyCreateInput,
    DealCreateInput,
    GenericRequestInput,
    ListInput,
    NoteCreateInput,
    PersonCreateInput,
    id_input,
)
from piperun_gateway.services.normalize import to_calendar_date
from piperun_gateway.services.piperun.base import CrmClient, InvalidParameterError
from piperun_gateway.services.piperun.client import ALLOWED_METHODS, normalize_request_path
from piperun_gateway.tools.base import ResourceTool, ToolKind, ToolRegistry

logger = logging.getLogger(__name__)

ACTIVITY_DATE_FIELDS = ("start_at", "end_at")


def _list(name: str, endpoint: str, what: str, aliases: tuple[str, ...] = ()) -> ResourceTool:
    return ResourceTool(
        name=name,
        description=f"List {what} from PipeRun CRM.",
        kind=ToolKind.LIST,
        endpoint=endpoint,
        input_model=ListInput,
        aliases=aliases,
    )


def _by_id(
    kind: ToolKind,
    name: str,
    endpoint: str,
    id_field: str,
    description: str,
    aliases: tuple[str, ...] = (),
    date_fields: tuple[str, ...] = (),
) -> ResourceTool:
    return ResourceTool(
        name=name,
        description=description,
        kind=kind,
        endpoint=endpoint,
        input_model=id_input(id_field),
        id_field=id_field,
        aliases=aliases,
        date_fields=date_fields,
    )


# Deals (aliased with sales wording: opportunities)
DEAL_TOOLS = [
    _list("list_deals", "/deals", "deals (opportunities); filter with pipeline_id, person_id", ("list_opportunities",)),
    _by_id(ToolKind.GET, "get_deal", "/deals", "deal_id", "Get one deal (opportunity) by id.", ("get_opportunity",)),
    ResourceTool(
        name="create_deal",
        description="Create a deal (opportunity). Requires title, pipeline_id and stage_id.",
        kind=ToolKind.CREATE,
        endpoint="/deals",
        input_model=DealCreateInput,
        aliases=("create_opportunity",),
    ),
    _by_id(ToolKind.UPDATE, "update_deal", "/deals", "deal_id", "Update a deal (opportunity).", ("update_opportunity",)),
    _by_id(ToolKind.DELETE, "delete_deal", "/deals", "deal_id", "Delete a deal (opportunity).", ("delete_opportunity",)),
]

PERSON_TOOLS = [
    _list("list_persons", "/persons", "people"),
    _by_id(ToolKind.GET, "get_person", "/persons", "person_id", "Get one person by id."),
    ResourceTool(
        name="create_person",
        description="Create a person. Requires name and owner_id.",
        kind=ToolKind.CREATE,
        endpoint="/persons",
        input_model=PersonCreateInput,
        trim_fields=("name", "email", "phone"),
    ),
    _by_id(ToolKind.UPDATE, "update_person", "/persons", "person_id", "Update a person."),
    _by_id(ToolKind.DELETE, "delete_person", "/persons", "person_id", "Delete a person."),
]

COMPANY_TOOLS = [
    _list("list_companies", "/companies", "companies"),
    _by_id(ToolKind.GET, "get_company", "/companies", "company_id",
           "Get one company by id. Extra arguments are sent as query parameters."),
    ResourceTool(
        name="create_company",
        description="Create a company. Requires name and owner_id.",
        kind=ToolKind.CREATE,
        endpoint="/companies",
        input_model=CompanyCreateInput,
        trim_fields=("name", "email", "phone"),
    ),
    _by_id(ToolKind.UPDATE, "update_company", "/companies", "company_id", "Update a company."),
]

ACTIVITY_TOOLS = [
    _list("list_activities", "/activities", "activities; filter with deal_id, owner_id, status, date ranges"),
    _by_id(ToolKind.GET, "get_activity", "/activities", "activity_id", "Get one activity by id."),
    ResourceTool(
        name="create_activity",
        description="Create an activity. Requires title, activity_type_id and status; dates are sent as YYYY-MM-DD.",
        kind=ToolKind.CREATE,
        endpoint="/activities",
        input_model=ActivityCreateInput,
        date_fields=ACTIVITY_DATE_FIELDS,
    ),
    _by_id(ToolKind.UPDATE, "update_activity", "/activities", "activity_id",
           "Update an activity; dates are sent as YYYY-MM-DD.", date_fields=ACTIVITY_DATE_FIELDS),
    _by_id(ToolKind.DELETE, "delete_activity", "/activities", "activity_id", "Delete an activity."),
]

CALL_TOOLS = [
    _list("list_calls", "/calls", "call history"),
    _by_id(ToolKind.GET, "get_call", "/calls", "call_id", "Get one call by id."),
    ResourceTool(
        name="create_call",
        description="Log a call. The arguments are sent as the request body.",
        kind=ToolKind.CREATE,
        endpoint="/calls",
        input_model=PassthroughInput,
    ),
    _by_id(ToolKind.UPDATE, "update_call", "/calls", "call_id", "Update a call."),
    _by_id(ToolKind.DELETE, "delete_call", "/calls", "call_id", "Delete a call."),
]

NOTE_TOOLS = [
    _list("list_notes", "/notes", "notes; filter with deal_id, person_id, company_id"),
    _by_id(ToolKind.GET, "get_note", "/notes", "note_id", "Get one note by id."),
    ResourceTool(
        name="create_note",
        description="Create a note. Requires content and one of deal_id, person_id or company_id.",
        kind=ToolKind.CREATE,
        endpoint="/notes",
        input_model=NoteCreateInput,
    ),
    _by_id(ToolKind.UPDATE, "update_note", "/notes", "note_id", "Update a note."),
    _by_id(ToolKind.DELETE, "delete_note", "/notes", "note_id", "Delete a note."),
]

LOOKUP_TOOLS = [
    _list("list_pipelines", "/pipelines", "pipelines"),
    _list("list_stages", "/stages", "pipeline stages; filter with pipeline_id"),
    _list("list_items", "/items", "products"),
    _list("list_users", "/users", "users (sales reps)"),
    _list("list_tags", "/tags", "tags"),
    _list("list_loss_reasons", "/loss-reasons", "loss reasons"),
    _list("list_deal_sources", "/deal-sources", "deal sources"),
    _list("list_activity_types", "/activityTypes", "activity types"),
    _list("list_custom_fields", "/customFields", "custom fields; filter with type"),
]

REQUEST_TOOL = ResourceTool(
    name="piperun_request",
    description=(
        "Generic PipeRun request for endpoints without a dedicated tool. "
        "Path is relative to /v1; absolute URLs are rejected."
    ),
    kind=ToolKind.REQUEST,
    endpoint="/",
    input_model=GenericRequestInput,
)

RESOURCE_TOOLS = (
    DEAL_TOOLS + PERSON_TOOLS + COMPANY_TOOLS + ACTIVITY_TOOLS
    + CALL_TOOLS + NOTE_TOOLS + LOOKUP_TOOLS + [REQUEST_TOOL]
)


def get_default_tools() -> ToolRegistry:
    """Get a registry with every CRUD passthrough tool."""
    registry = ToolRegistry()
    for tool in RESOURCE_TOOLS:
        registry.register(tool)
    return registry


def _normalize_dates(tool: ResourceTool, payload: dict[str, Any]) -> dict[str, Any]:
    for key in tool.date_fields:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            payload[key] = to_calendar_date(value)
    return payload


def _trim(tool: ResourceTool, payload: dict[str, Any]) -> dict[str, Any]:
    for key in tool.trim_fields:
        if isinstance(payload.get(key), str):
            payload[key] = payload[key].strip()
    return payload


async def run_resource_tool(client: CrmClient, tool: ResourceTool, arguments: dict[str, Any]) -> Any:
    """
    Execute one CRUD passthrough.

    Raises:
        InvalidParameterError: On an update with nothing to change, or a
            malformed generic request
    """
    args = dict(arguments)

    if tool.kind == ToolKind.REQUEST:
        return await _run_request(client, args)

    if tool.kind == ToolKind.LIST:
        return await client.get(tool.endpoint, params=args)

    if tool.kind == ToolKind.CREATE:
        payload = _normalize_dates(tool, _trim(tool, args))
        return await client.post(tool.endpoint, json=payload)

    record_id = args.pop(tool.id_field)
    path = f"{tool.endpoint}/{record_id}"

    if tool.kind == ToolKind.GET:
        return await client.get(path, params=args)
    if tool.kind == ToolKind.DELETE:
        return await client.delete(path)

    if not args:
        raise InvalidParameterError(f"Nothing to update besides '{tool.id_field}'.")
    return await client.put(path, json=_normalize_dates(tool, args))


async def _run_request(client: CrmClient, args: dict[str, Any]) -> Any:
    method = str(args.get("method") or "").strip().upper()
    if method not in ALLOWED_METHODS:
        raise InvalidParameterError("Invalid method. Use GET | POST | PUT | DELETE.")

    path = normalize_request_path(args.get("path"))
    logger.info(f"Generic request: {method} {path}")
    return await client.request(method, path, params=args.get("query"), json=args.get("body"))
