"""
PipeRun API client and error taxonomy.
"""

from piperun_gateway.services.piperun.base import (
    ClientConfig,
    CrmClient,
    PipeRunError,
    InvalidParameterError,
    UpstreamError,
    UpstreamRequestError,
    resolve_api_token,
    to_mcp_error,
)
from piperun_gateway.services.piperun.client import (
    PipeRunClient,
    extract_id,
    normalize_request_path,
    unwrap_record,
)

__all__ = [
    # Config
    "ClientConfig",
    "CrmClient",
    "resolve_api_token",
    # Errors
    "PipeRunError",
    "InvalidParameterError",
    "UpstreamError",
    "UpstreamRequestError",
    "to_mcp_error",
    # Client
    "PipeRunClient",
    "extract_id",
    "normalize_request_path",
    "unwrap_record",
]
