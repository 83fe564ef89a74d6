"""
Base classes for the PipeRun API client.

Holds the error taxonomy shared by the client, the workflow services and the
MCP tool layer, the immutable client configuration and credential resolution.
"""

import json
from dataclasses import dataclass
from typing import Any, Protocol

from mcp.shared.exceptions import McpError
from mcp.types import ErrorData, INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST


DEFAULT_BASE_URL = "https://api.pipe.run/v1"


class PipeRunError(Exception):
    """Base exception for PipeRun errors."""
    pass


class InvalidParameterError(PipeRunError):
    """A required argument is missing or malformed (detected locally)."""
    pass


class UpstreamError(PipeRunError):
    """PipeRun answered with a 4xx/5xx status."""

    def __init__(self, status_code: int, body: Any = None, reason: str = ""):
        self.status_code = status_code
        self.body = body
        detail = ""
        if body not in (None, ""):
            detail = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False, default=str)
        super().__init__(f"PipeRun API error ({status_code}): {detail or reason}")


class UpstreamRequestError(PipeRunError):
    """The request never got a response (network or transport fault)."""
    pass


class CrmClient(Protocol):
    """The calls the services make; PipeRunClient and test fakes provide them."""

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any: ...

    async def post(self, path: str, json: Any = None) -> Any: ...

    async def put(self, path: str, json: Any = None) -> Any: ...

    async def delete(self, path: str) -> Any: ...

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any: ...


@dataclass(frozen=True)
class ClientConfig:
    """
    Request shaping shared by every PipeRun call.

    Built once at process start and passed by reference; never mutated.
    """
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0


def resolve_api_token(explicit: str | None, default: str | None) -> str:
    """
    Pick the credential for one invocation.

    The per-call token wins over the process-wide default.

    Raises:
        InvalidParameterError: If neither is set.
    """
    for candidate in (explicit, default):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    raise InvalidParameterError(
        "Missing token: pass 'api_token' in the tool arguments or set "
        "PIPERUN_API_TOKEN in the environment."
    )


def to_mcp_error(exc: Exception) -> McpError:
    """Convert any failure into the protocol's structured error."""
    if isinstance(exc, McpError):
        return exc
    if isinstance(exc, InvalidParameterError):
        return McpError(ErrorData(code=INVALID_PARAMS, message=str(exc)))
    if isinstance(exc, UpstreamError):
        if exc.status_code in (401, 403, 404):
            code = INVALID_REQUEST
        elif exc.status_code in (400, 422):
            code = INVALID_PARAMS
        else:
            code = INTERNAL_ERROR
        return McpError(ErrorData(code=code, message=str(exc)))
    if isinstance(exc, UpstreamRequestError):
        return McpError(ErrorData(code=INTERNAL_ERROR, message=str(exc)))
    return McpError(ErrorData(code=INTERNAL_ERROR, message=f"Internal server error: {exc}"))
