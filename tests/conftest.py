"""
Pytest configuration and fixtures for the PipeRun gateway tests.
"""

from typing import Any

import pytest


# Configure pytest-asyncio for the async tests
pytest_plugins = ('pytest_asyncio',)


class FakePipeRunClient:
    """
    In-memory stand-in for PipeRunClient that records every call.

    Responses are scripted per (method, path). A scripted value can be:
    - a plain value, returned on every call
    - a list, consumed one item per call (the last item repeats)
    - a callable taking (params, json)
    - an Exception instance, which is raised

    Unscripted POSTs answer {"data": {"id": <next id>, ...payload}}, unscripted
    GETs answer an empty listing and PUT/DELETE answer {"success": True}.
    """

    def __init__(self, responses: dict[tuple[str, str], Any] | None = None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, str, dict | None, Any]] = []
        self._next_id = 1000

    def script(self, method: str, path: str, response: Any) -> None:
        self.responses[(method.upper(), path)] = response

    def calls_to(self, method: str, path: str) -> list[tuple[str, str, dict | None, Any]]:
        return [c for c in self.calls if c[0] == method.upper() and c[1] == path]

    def payloads(self, method: str, path: str) -> list[Any]:
        return [c[3] for c in self.calls_to(method, path)]

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        method = method.upper()
        self.calls.append((method, path, params, json))

        key = (method, path)
        if key not in self.responses:
            return self._default(method, json)

        response = self.responses[key]
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params, json)
        return response

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    def _default(self, method: str, json: Any) -> Any:
        if method == "POST":
            self._next_id += 1
            data = dict(json) if isinstance(json, dict) else {}
            data["id"] = self._next_id
            return {"data": data}
        if method == "GET":
            return {"data": []}
        return {"success": True}


@pytest.fixture
def fake_client() -> FakePipeRunClient:
    """Provide a fresh recording client."""
    return FakePipeRunClient()
