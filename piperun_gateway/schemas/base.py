"""
Base input models shared by every PipeRun tool.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


NUMERIC_KEYS = {"page", "show", "status"}


def _is_numeric_key(key: str) -> bool:
    return key.endswith("_id") or key in NUMERIC_KEYS


def _to_number(value: str) -> int | float | None:
    text = value.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def coerce_numeric_strings(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Convert numeric-looking strings to numbers for id/page/show/status keys.

    Agents and low-code runners often send "94766" instead of 94766.
    """
    coerced = dict(arguments)
    for key, value in arguments.items():
        if isinstance(value, str) and _is_numeric_key(key):
            number = _to_number(value)
            if number is not None:
                coerced[key] = number
    return coerced


class ToolInput(BaseModel):
    """Arguments common to all tools."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    api_token: Optional[str] = Field(
        default=None,
        description="(Optional) PipeRun API token. Defaults to PIPERUN_API_TOKEN from the environment.",
    )

    @model_validator(mode="before")
    @classmethod
    def _coerce_numbers(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return coerce_numeric_strings(data)
        return data

    def to_arguments(self) -> dict[str, Any]:
        """Arguments forwarded upstream: everything set except the token."""
        return self.model_dump(exclude_none=True, exclude={"api_token"})


class PassthroughInput(ToolInput):
    """Input for thin CRUD tools; unknown keys are forwarded verbatim."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")
