"""
Tests for the tool registry, CRUD passthroughs, executor and MCP server wiring.
"""

import json

import httpx
import pytest
from mcp.shared.exceptions import McpError
from mcp.shared.memory import create_connected_server_and_client_session
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST

from piperun_gateway.schemas import AssignDealOwnerInput, ListInput, RouteLeadInput, id_input
from piperun_gateway.services.piperun import ClientConfig, InvalidParameterError
from piperun_gateway.tools import (
    RESOURCE_TOOLS,
    ToolExecutor,
    ToolKind,
    get_default_tools,
    run_resource_tool,
    to_json_text,
)


class TestToolRegistry:
    """Test ToolRegistry class."""

    def test_default_tools_registered(self):
        registry = get_default_tools()

        for name in (
            "list_deals", "get_deal", "create_deal", "update_deal", "delete_deal",
            "list_persons", "create_person", "list_companies", "get_company",
            "create_activity", "update_activity", "list_calls", "create_note",
            "list_pipelines", "list_stages", "list_users", "list_custom_fields",
            "piperun_request",
        ):
            assert name in registry

    def test_aliases_share_definition(self):
        registry = get_default_tools()

        assert registry.get("list_opportunities") is registry.get("list_deals")
        assert registry.get("create_opportunity") is registry.get("create_deal")
        assert registry.get("delete_opportunity") is registry.get("delete_deal")

    def test_distinct_tools(self):
        registry = get_default_tools()

        assert len(registry.list_tools()) == len(RESOURCE_TOOLS)
        assert len(registry) == len(RESOURCE_TOOLS) + 5
        assert all(t.kind == ToolKind.DELETE for t in registry.list_tools(ToolKind.DELETE))

    def test_unknown_tool(self):
        assert get_default_tools().get("drop_database") is None

    def test_annotations(self):
        registry = get_default_tools()

        listing = registry.get("list_deals").annotations()
        assert listing["readOnlyHint"] is True
        assert listing["destructiveHint"] is False

        deletion = registry.get("delete_note").annotations()
        assert deletion["readOnlyHint"] is False
        assert deletion["destructiveHint"] is True
        assert deletion["idempotentHint"] is True


class TestRunResourceTool:
    """Test the CRUD passthrough execution."""

    @pytest.mark.asyncio
    async def test_list_forwards_filters(self, fake_client):
        tool = get_default_tools().get("list_deals")

        await run_resource_tool(fake_client, tool, {"pipeline_id": 3, "show": 20})

        assert fake_client.calls == [("GET", "/deals", {"pipeline_id": 3, "show": 20}, None)]

    @pytest.mark.asyncio
    async def test_get_uses_id_and_extra_query(self, fake_client):
        tool = get_default_tools().get("get_company")

        await run_resource_tool(fake_client, tool, {"company_id": 7, "with": "persons"})

        assert fake_client.calls == [("GET", "/companies/7", {"with": "persons"}, None)]

    @pytest.mark.asyncio
    async def test_create_person_trims(self, fake_client):
        tool = get_default_tools().get("create_person")

        await run_resource_tool(fake_client, tool, {"name": " Jane ", "owner_id": 1, "email": " j@x.com "})

        assert fake_client.payloads("POST", "/persons") == [
            {"name": "Jane", "owner_id": 1, "email": "j@x.com"}
        ]

    @pytest.mark.asyncio
    async def test_activity_dates_normalized(self, fake_client):
        registry = get_default_tools()

        await run_resource_tool(fake_client, registry.get("create_activity"), {
            "title": "Call", "activity_type_id": 1, "status": 0, "start_at": "2024-03-05T14:30:00Z",
        })
        await run_resource_tool(fake_client, registry.get("update_activity"), {
            "activity_id": 9, "end_at": "2024-03-06T08:00:00Z",
        })

        assert fake_client.payloads("POST", "/activities")[0]["start_at"] == "2024-03-05"
        assert fake_client.payloads("PUT", "/activities/9") == [{"end_at": "2024-03-06"}]

    @pytest.mark.asyncio
    async def test_update_needs_fields(self, fake_client):
        tool = get_default_tools().get("update_deal")

        with pytest.raises(InvalidParameterError):
            await run_resource_tool(fake_client, tool, {"deal_id": 5})

        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_delete(self, fake_client):
        tool = get_default_tools().get("delete_opportunity")

        await run_resource_tool(fake_client, tool, {"deal_id": 5})

        assert fake_client.calls == [("DELETE", "/deals/5", None, None)]

    @pytest.mark.asyncio
    async def test_generic_request(self, fake_client):
        tool = get_default_tools().get("piperun_request")

        await run_resource_tool(fake_client, tool, {"method": "get", "path": "/v1/me", "query": {"a": 1}})

        assert fake_client.calls == [("GET", "/me", {"a": 1}, None)]

    @pytest.mark.asyncio
    async def test_generic_request_rejects_method_and_url(self, fake_client):
        tool = get_default_tools().get("piperun_request")

        with pytest.raises(InvalidParameterError):
            await run_resource_tool(fake_client, tool, {"method": "PATCH", "path": "/deals"})
        with pytest.raises(InvalidParameterError):
            await run_resource_tool(fake_client, tool, {"method": "GET", "path": "https://evil.com"})

        assert fake_client.calls == []


class TestToolExecutor:
    """Test ToolExecutor against a mocked PipeRun."""

    def _executor(self, handler, default_token="env-token") -> ToolExecutor:
        return ToolExecutor(ClientConfig(), default_token, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_resource_call_returns_json_text(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {"id": 5, "title": "Ação"}})

        executor = self._executor(handler)
        tool = get_default_tools().get("get_deal")

        text = await executor.run_resource(tool, id_input("deal_id")(deal_id=5))

        assert json.loads(text) == {"data": {"id": 5, "title": "Ação"}}
        assert "Ação" in text
        assert seen[0].url.path == "/v1/deals/5"
        assert seen[0].headers["token"] == "env-token"

    @pytest.mark.asyncio
    async def test_call_token_overrides_default(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["token"])
            return httpx.Response(200, json={"data": []})

        executor = self._executor(handler)
        tool = get_default_tools().get("list_deals")

        await executor.run_resource(tool, ListInput(api_token="call-token"))

        assert seen == ["call-token"]

    @pytest.mark.asyncio
    async def test_missing_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        executor = self._executor(handler, default_token="")
        tool = get_default_tools().get("list_deals")

        with pytest.raises(McpError) as exc_info:
            await executor.run_resource(tool, ListInput())

        assert exc_info.value.error.code == INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_upstream_error_mapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Deal not found"})

        executor = self._executor(handler)
        tool = get_default_tools().get("get_deal")

        with pytest.raises(McpError) as exc_info:
            await executor.run_resource(tool, id_input("deal_id")(deal_id=1))

        assert exc_info.value.error.code == INVALID_REQUEST
        assert "Deal not found" in exc_info.value.error.message

    @pytest.mark.asyncio
    async def test_workflow_operation(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"success": True})

        async def operation(client, params):
            return await client.put(f"/deals/{params.deal_id}", json={"owner_id": params.owner_id})

        executor = self._executor(handler)

        text = await executor.run("assign_deal_owner", AssignDealOwnerInput(deal_id=3, owner_id=4), operation)

        assert json.loads(text) == {"success": True}
        assert seen == [("PUT", "/v1/deals/3", {"owner_id": 4})]

    def test_to_json_text_expands_to_dict(self):
        class Result:
            def to_dict(self):
                return {"a": 1}

        assert json.loads(to_json_text(Result())) == {"a": 1}


class TestMcpServer:
    """Test the FastMCP server wiring."""

    @pytest.fixture
    def server(self, monkeypatch):
        from mcp_servers import piperun_mcp

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json={"data": {"id": 5}})
            return httpx.Response(200, json={"data": {"id": 77}})

        monkeypatch.setattr(
            piperun_mcp,
            "executor",
            ToolExecutor(ClientConfig(), "test-token", transport=httpx.MockTransport(handler)),
        )
        return piperun_mcp

    @pytest.mark.asyncio
    async def test_tools_listed(self, server):
        tools = {tool.name: tool for tool in await server.mcp.list_tools()}

        for name in (
            "upsert_person_by_email_or_phone",
            "upsert_company_by_domain_or_name",
            "route_lead_to_owner",
            "assign_deal_owner",
            "create_meeting_activity_for_deal",
            "create_opportunity_bundle",
            "revops_intake",
            "log_outbound_call_and_outcome",
            "complete_activity_with_notes",
            "resolve_deal_owner",
            "list_deals",
            "list_opportunities",
            "piperun_request",
        ):
            assert name in tools

        assert "params" in tools["get_deal"].inputSchema["properties"]

    @pytest.mark.asyncio
    async def test_route_tool_needs_no_token(self, server):
        text = await server.route_lead_to_owner(
            RouteLeadInput(key="a", candidates_owner_ids=[10, 20, 30])
        )

        assert json.loads(text)["owner_id"] == 20

    @pytest.mark.asyncio
    async def test_upsert_tool_result_shape(self, server):
        from piperun_gateway.schemas import UpsertPersonInput

        text = await server.upsert_person_by_email_or_phone(
            UpsertPersonInput(name="Jane", email="jane@acme.com", owner_id=1)
        )

        data = json.loads(text)
        assert data["action"] == "created"
        assert data["person"] == {"data": {"id": 77}}

    @pytest.mark.asyncio
    async def test_resource_tool_through_server(self, server):
        result = await server.mcp.call_tool("get_deal", {"params": {"deal_id": "5"}})

        if isinstance(result, tuple):
            result = result[0]
        assert json.loads(result[0].text) == {"data": {"id": 5}}


class TestMcpProtocolErrors:
    """Test the error codes a connected MCP client receives."""

    @pytest.fixture
    def use_upstream(self, monkeypatch):
        from mcp_servers import piperun_mcp

        def install(handler, default_token="test-token"):
            monkeypatch.setattr(
                piperun_mcp,
                "executor",
                ToolExecutor(ClientConfig(), default_token, transport=httpx.MockTransport(handler)),
            )

        return install

    async def _call(self, name, arguments):
        from mcp_servers import piperun_mcp

        error = None
        async with create_connected_server_and_client_session(piperun_mcp.mcp._mcp_server) as client:
            try:
                return await client.call_tool(name, arguments)
            except McpError as exc:
                error = exc
        raise error

    @pytest.mark.asyncio
    async def test_success_is_text_result(self, use_upstream):
        use_upstream(lambda request: httpx.Response(200, json={"data": {"id": 5}}))

        result = await self._call("get_deal", {"params": {"deal_id": 5}})

        assert not result.isError
        assert json.loads(result.content[0].text) == {"data": {"id": 5}}

    @pytest.mark.asyncio
    async def test_upstream_not_found(self, use_upstream):
        use_upstream(lambda request: httpx.Response(404, json={"message": "Deal not found"}))

        with pytest.raises(McpError) as exc_info:
            await self._call("get_deal", {"params": {"deal_id": 5}})

        assert exc_info.value.error.code == INVALID_REQUEST
        assert "Deal not found" in exc_info.value.error.message

    @pytest.mark.asyncio
    async def test_upstream_unprocessable(self, use_upstream):
        use_upstream(lambda request: httpx.Response(422, json={"message": "stage_id is invalid"}))

        with pytest.raises(McpError) as exc_info:
            await self._call("create_deal", {"params": {"title": "Deal", "pipeline_id": 1, "stage_id": 2}})

        assert exc_info.value.error.code == INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_missing_token(self, use_upstream):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        use_upstream(handler, default_token="")

        with pytest.raises(McpError) as exc_info:
            await self._call("list_deals", {"params": {}})

        assert exc_info.value.error.code == INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_transport_fault(self, use_upstream):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        use_upstream(handler)

        with pytest.raises(McpError) as exc_info:
            await self._call("get_deal", {"params": {"deal_id": 5}})

        assert exc_info.value.error.code == INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_route_tool_bad_candidates(self, use_upstream):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        use_upstream(handler)

        with pytest.raises(McpError) as exc_info:
            await self._call("route_lead_to_owner", {"params": {"key": "a", "candidates_owner_ids": ["x"]}})

        assert exc_info.value.error.code == INVALID_PARAMS
