"""
Input models for the thin PipeRun CRUD tools.

These models only enforce what PipeRun needs to accept a request; every other
key is forwarded as-is.
"""

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field, create_model, model_validator

from piperun_gateway.schemas.base import PassthroughInput, ToolInput


class ListInput(PassthroughInput):
    """Listing filters; any extra key is sent as a query parameter."""

    page: Optional[int] = Field(default=None, description="(Optional) Page number (default: 1)")
    show: Optional[int] = Field(default=None, description="(Optional) Items per page (max: 200)")


@lru_cache
def id_input(id_field: str) -> type[PassthroughInput]:
    """Model with one required integer id, e.g. deal_id for get_deal."""
    model_name = "".join(part.capitalize() for part in id_field.split("_")) + "Input"
    return create_model(
        model_name,
        __base__=PassthroughInput,
        **{id_field: (int, Field(..., description=f"'{id_field}' (number)"))},
    )


class DealCreateInput(PassthroughInput):
    """Deal creation: title, pipeline and stage are mandatory."""

    title: str = Field(..., description="Deal title", min_length=1)
    pipeline_id: int = Field(..., description="Pipeline id")
    stage_id: int = Field(..., description="Stage id")


class PersonCreateInput(PassthroughInput):
    """Person creation: name and owner are mandatory."""

    name: str = Field(..., description="Person name", min_length=1)
    owner_id: int = Field(..., description="Owner id")
    email: Optional[str] = None
    phone: Optional[str] = None
    company_id: Optional[int] = None


class CompanyCreateInput(PassthroughInput):
    """Company creation: name and owner are mandatory."""

    name: str = Field(..., description="Company name", min_length=1)
    owner_id: int = Field(..., description="Owner id")
    email: Optional[str] = None
    phone: Optional[str] = None


class ActivityCreateInput(PassthroughInput):
    """Activity creation; start_at/end_at are sent as YYYY-MM-DD."""

    title: str = Field(..., description="Activity title", min_length=1)
    activity_type_id: int = Field(..., description="Activity type id")
    status: int = Field(..., description="0=Open, 2=Completed, 4=No Show")
    start_at: Optional[str] = None
    end_at: Optional[str] = None


class NoteCreateInput(PassthroughInput):
    """Note creation: content plus at least one of deal/person/company."""

    content: str = Field(..., description="Note text", min_length=1)
    deal_id: Optional[int] = None
    person_id: Optional[int] = None
    company_id: Optional[int] = None

    @model_validator(mode="after")
    def _require_link(self) -> "NoteCreateInput":
        if self.deal_id is None and self.person_id is None and self.company_id is None:
            raise ValueError("Provide at least one of 'deal_id', 'person_id' or 'company_id'.")
        return self


class GenericRequestInput(ToolInput):
    """Raw request against any /v1 endpoint."""

    method: str = Field(..., description="GET | POST | PUT | DELETE")
    path: str = Field(..., description="Path relative to /v1, e.g. /deals or /me")
    query: Optional[dict[str, Any]] = Field(default=None, description="(Optional) Query parameters")
    body: Optional[Any] = Field(default=None, description="(Optional) JSON body for POST/PUT")
