"""
PipeRun REST API client.

API Documentation: https://developers.pipe.run/reference
"""

import logging
from typing import Any
from urllib.parse import unquote

import httpx

from piperun_gateway.services.piperun.base import (
    ClientConfig,
    InvalidParameterError,
    UpstreamError,
    UpstreamRequestError,
)

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE")


def normalize_request_path(path: str) -> str:
    """
    Normalize a caller-supplied path relative to the /v1 base.

    Absolute URLs are rejected so a request can never leave the PipeRun host.
    """
    path_str = str(path or "").strip()
    if not path_str:
        raise InvalidParameterError("'path' is required.")
    if path_str.startswith("//") or "://" in path_str:
        raise InvalidParameterError(
            "Invalid path. Use paths relative to /v1 only (e.g. /deals, /me)."
        )

    normalized = path_str if path_str.startswith("/") else f"/{path_str}"
    if normalized.startswith("/v1/"):
        normalized = normalized[3:]
    elif normalized == "/v1":
        normalized = "/"

    # dot segments are resolved by the HTTP client and would climb out of /v1
    segments = unquote(normalized.split("?", 1)[0]).split("/")
    if ".." in segments:
        raise InvalidParameterError(
            "Invalid path. '..' segments are not allowed."
        )
    return normalized


def extract_id(body: Any) -> int | None:
    """Return the record id of a PipeRun response ({data: {id}} or {id})."""
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    candidate = data.get("id") if isinstance(data, dict) else None
    if candidate is None:
        candidate = body.get("id")
    if isinstance(candidate, int) and not isinstance(candidate, bool) and candidate > 0:
        return candidate
    return None


def unwrap_record(body: Any) -> Any:
    """Return the record inside a {data: ...} envelope, or the body itself."""
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return body


class PipeRunClient:
    """
    Async PipeRun client bound to one credential.

    Usage:
        async with PipeRunClient(config, token) as client:
            deals = await client.get("/deals", params={"show": 20})
    """

    def __init__(
        self,
        config: ClientConfig,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "PipeRunClient":
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={
                "token": self._token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=self.config.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """
        Send one request and decode the response.

        Raises:
            UpstreamError: On a 4xx/5xx response
            UpstreamRequestError: If the request could not be sent
        """
        if self._client is None:
            raise RuntimeError("PipeRunClient must be used as an async context manager")

        method = method.upper()
        url = path if path.startswith("/") else f"/{path}"
        # httpx joins base_url and url by concatenation; keep the path relative
        url = url.lstrip("/")
        logger.debug(f"PipeRun {method} /{url}")

        try:
            response = await self._client.request(
                method,
                url,
                params=params or None,
                json=json,
            )
        except httpx.RequestError as e:
            raise UpstreamRequestError(f"PipeRun request failed: {str(e)}") from e

        body = self._decode(response)
        if response.status_code >= 400:
            raise UpstreamError(response.status_code, body, response.reason_phrase)
        return body

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text
