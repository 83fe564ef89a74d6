"""
PipeRun CRM MCP Server.

Exposes PipeRun resources (deals, people, companies, activities, calls, notes
and lookups) as MCP tools, plus composite RevOps workflows: upserts,
deterministic lead routing and multi-step intake bundles.

Usage:
    python -m mcp_servers.piperun_mcp

Set PIPERUN_API_TOKEN in the environment (or .env), or pass api_token on each
tool call. All logging goes to stderr; stdout carries the protocol.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any

from mcp import types
from mcp.server.fastmcp import FastMCP
from mcp.shared.exceptions import McpError

from piperun_gateway.config import get_settings
from piperun_gateway.schemas import (
    AssignDealOwnerInput,
    CompleteActivityInput,
    MeetingActivityInput,
    OpportunityBundleInput,
    OutboundCallInput,
    ResolveDealOwnerInput,
    RevopsIntakeInput,
    RouteLeadInput,
    ToolInput,
    UpsertCompanyInput,
    UpsertPersonInput,
)
from piperun_gateway.services import workflows
from piperun_gateway.services.piperun import ClientConfig, to_mcp_error
from piperun_gateway.services.upsert import upsert_company, upsert_person
from piperun_gateway.tools import ResourceTool, ToolExecutor, get_default_tools, to_json_text

logger = logging.getLogger("piperun_mcp")

# Holds the McpError of the tool call being dispatched, if it failed with one
_tool_failures: ContextVar[list[McpError] | None] = ContextVar("piperun_tool_failures", default=None)


def _protocol_error(exc: BaseException) -> McpError | None:
    """The McpError behind a failed tool call, if FastMCP wrapped one."""
    while exc is not None:
        if isinstance(exc, McpError):
            return exc
        exc = exc.__cause__
    return None


class PipeRunMCP(FastMCP):
    """
    FastMCP server that reports tool failures as JSON-RPC errors.

    FastMCP turns every exception raised by a tool into an isError text
    result. Failures carrying an McpError are re-raised from the CallTool
    request handler instead, so the peer receives the mapped error code.
    """

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        try:
            return await super().call_tool(name, arguments)
        except Exception as e:
            error = _protocol_error(e)
            failures = _tool_failures.get()
            if error is not None and failures is not None:
                failures.append(error)
            raise

    def _setup_handlers(self) -> None:
        super()._setup_handlers()
        handlers = self._mcp_server.request_handlers
        wrapped = handlers[types.CallToolRequest]

        async def call_tool_handler(request: types.CallToolRequest) -> types.ServerResult:
            failures: list[McpError] = []
            token = _tool_failures.set(failures)
            try:
                result = await wrapped(request)
            finally:
                _tool_failures.reset(token)
            if failures:
                raise failures[0]
            return result

        handlers[types.CallToolRequest] = call_tool_handler


settings = get_settings()

executor = ToolExecutor(
    ClientConfig(base_url=settings.piperun_api_base_url, timeout=settings.piperun_timeout),
    default_token=settings.piperun_api_token,
)

defaults = workflows.WorkflowDefaults(
    meeting_activity_type_id=settings.activity_type_meeting_id,
    call_activity_type_id=settings.activity_type_call_id,
    max_pages=settings.search_max_pages,
    page_size=settings.search_page_size,
)

# Initialize MCP server
mcp = PipeRunMCP("piperun_mcp")


# =============================================================================
# Workflow Tools
# =============================================================================


@mcp.tool(
    name="upsert_person_by_email_or_phone",
    annotations={
        "title": "Find or Create Person",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def upsert_person_by_email_or_phone(params: UpsertPersonInput) -> str:
    """
    Find a person by email or phone; create it when nothing matches.

    Creating requires name and owner_id. Re-running with the same data returns
    the existing person instead of a duplicate.

    Returns:
        str: JSON with "action" (matched | created) and "person"
    """
    async def operation(client, p: UpsertPersonInput):
        outcome = await upsert_person(
            client,
            name=p.name,
            owner_id=p.owner_id,
            email=p.email,
            phone=p.phone,
            company_id=p.company_id,
            bounds=defaults.bounds_for(p),
        )
        return {"action": outcome.action, "person": outcome.record}

    return await executor.run("upsert_person_by_email_or_phone", params, operation)


@mcp.tool(
    name="upsert_company_by_domain_or_name",
    annotations={
        "title": "Find or Create Company",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def upsert_company_by_domain_or_name(params: UpsertCompanyInput) -> str:
    """
    Find a company by website domain (subdomains included) or exact name;
    create it when nothing matches.

    Returns:
        str: JSON with "action" (matched | created) and "company"
    """
    async def operation(client, p: UpsertCompanyInput):
        outcome = await upsert_company(
            client,
            name=p.name,
            owner_id=p.owner_id,
            domain=p.domain,
            email=p.email,
            phone=p.phone,
            bounds=defaults.bounds_for(p),
        )
        return {"action": outcome.action, "company": outcome.record}

    return await executor.run("upsert_company_by_domain_or_name", params, operation)


@mcp.tool(
    name="route_lead_to_owner",
    annotations={
        "title": "Route Lead to Owner",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def route_lead_to_owner(params: RouteLeadInput) -> str:
    """
    Pick an owner for a routing key (email, phone, domain...).

    The same key and candidate list always give the same owner. No PipeRun
    call is made.

    Returns:
        str: JSON with key, owner_id, index and candidates_owner_ids
    """
    try:
        result = workflows.route_lead_to_owner(params)
    except Exception as e:
        raise to_mcp_error(e) from e
    return to_json_text(result)


@mcp.tool(
    name="assign_deal_owner",
    annotations={
        "title": "Assign Deal Owner",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def assign_deal_owner(params: AssignDealOwnerInput) -> str:
    """Change the owner of a deal (opportunity)."""
    return await executor.run("assign_deal_owner", params, workflows.assign_deal_owner)


@mcp.tool(
    name="create_meeting_activity_for_deal",
    annotations={
        "title": "Create Meeting for Deal",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True
    }
)
async def create_meeting_activity_for_deal(params: MeetingActivityInput) -> str:
    """
    Schedule a Meeting activity on a deal.

    Type defaults to the account's Meeting type and status to 0 (Open). Dates
    are sent as YYYY-MM-DD.
    """
    return await executor.run(
        "create_meeting_activity_for_deal",
        params,
        lambda client, p: workflows.create_meeting_activity_for_deal(client, p, defaults),
    )


@mcp.tool(
    name="create_opportunity_bundle",
    annotations={
        "title": "Create Opportunity Bundle",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True
    }
)
async def create_opportunity_bundle(params: OpportunityBundleInput) -> str:
    """
    Company upsert, person upsert, deal and note in one call.

    Company and person are optional and reuse existing records when they
    match. The note is attached to the new deal when note_content is given.

    Returns:
        str: JSON with company, person, deal, note outcomes and deal_id
    """
    return await executor.run(
        "create_opportunity_bundle",
        params,
        lambda client, p: workflows.create_opportunity_bundle(client, p, defaults),
    )


@mcp.tool(
    name="revops_intake",
    annotations={
        "title": "RevOps Lead Intake",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True
    }
)
async def revops_intake(params: RevopsIntakeInput) -> str:
    """
    Full inbound lead intake.

    Routes the lead to one of candidates_owner_ids (unless owners are given),
    upserts company and person, creates the deal, then optionally logs a call,
    a note with the call outcome, a meeting and a follow-up.

    Returns:
        str: JSON with every step outcome, routing_key, auto_owner_id and
        resolved_owners
    """
    return await executor.run(
        "revops_intake",
        params,
        lambda client, p: workflows.revops_intake(client, p, defaults),
    )


@mcp.tool(
    name="log_outbound_call_and_outcome",
    annotations={
        "title": "Log Outbound Call and Outcome",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True
    }
)
async def log_outbound_call_and_outcome(params: OutboundCallInput) -> str:
    """
    Log a call, its outcome note and an optional follow-up activity.

    The note needs one of deal_id, person_id or company_id.
    """
    return await executor.run(
        "log_outbound_call_and_outcome",
        params,
        lambda client, p: workflows.log_outbound_call_and_outcome(client, p, defaults),
    )


@mcp.tool(
    name="complete_activity_with_notes",
    annotations={
        "title": "Complete Activity with Notes",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True
    }
)
async def complete_activity_with_notes(params: CompleteActivityInput) -> str:
    """
    Mark an activity completed (status 2) and optionally leave a note.

    Without explicit ids the note is linked to the activity's own deal,
    person or company.
    """
    return await executor.run(
        "complete_activity_with_notes", params, workflows.complete_activity_with_notes
    )


@mcp.tool(
    name="resolve_deal_owner",
    annotations={
        "title": "Resolve Deal, Pipeline and Owner",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def resolve_deal_owner(params: ResolveDealOwnerInput) -> str:
    """
    Find a deal by id, title, pipeline or owner and report it with its
    pipeline and owner names.
    """
    return await executor.run(
        "resolve_deal_owner",
        params,
        lambda client, p: workflows.resolve_deal_owner(client, p, defaults),
    )


# =============================================================================
# CRUD Passthrough Tools
# =============================================================================


def _resource_handler(tool: ResourceTool, name: str):
    async def handler(params: ToolInput) -> str:
        return await executor.run_resource(tool, params)

    # FastMCP builds the tool's input schema from this annotation
    handler.__annotations__["params"] = tool.input_model
    handler.__name__ = name
    handler.__doc__ = tool.description
    return handler


def register_resource_tools(server: FastMCP) -> list[str]:
    """Register every CRUD passthrough (aliases included) on the server."""
    registry = get_default_tools()
    names = registry.list_names()
    for name in names:
        tool = registry.get(name)
        server.tool(
            name=name,
            description=tool.description,
            annotations=tool.annotations(),
        )(_resource_handler(tool, name))
    return names


register_resource_tools(mcp)


# =============================================================================
# Main Entry Point
# =============================================================================


def main() -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not settings.api_token_configured:
        logger.warning("PIPERUN_API_TOKEN is not set; every call must pass api_token")
    logger.info(f"Starting PipeRun MCP server against {settings.piperun_api_base_url}")
    mcp.run()


if __name__ == "__main__":
    main()
