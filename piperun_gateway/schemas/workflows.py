"""
Pydantic input models for the composite workflow tools.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from piperun_gateway.schemas.base import ToolInput


class SearchWindowInput(ToolInput):
    """Controls how much of a listing endpoint an upsert may scan."""

    max_pages: Optional[int] = Field(
        default=None,
        description="(Optional) Max pages scanned when searching (default 5, max 20)",
    )
    show: Optional[int] = Field(
        default=None,
        description="(Optional) Items per page when searching (default 200, max 200)",
    )


class ActivitySpec(BaseModel):
    """Meeting or follow-up activity attached to a workflow."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: Optional[str] = None
    owner_id: Optional[int] = None
    start_at: Optional[str] = Field(default=None, description="Date or ISO timestamp; sent as YYYY-MM-DD")
    end_at: Optional[str] = Field(default=None, description="Date or ISO timestamp; sent as YYYY-MM-DD")
    description: Optional[str] = None
    status: Optional[int] = Field(default=None, description="0=Open, 2=Completed, 4=No Show")
    activity_type_id: Optional[int] = None


class UpsertPersonInput(SearchWindowInput):
    """Input model for finding or creating a person."""

    name: Optional[str] = Field(default=None, description="Person name (required to create)")
    email: Optional[str] = Field(default=None, description="Email used for matching")
    phone: Optional[str] = Field(default=None, description="Phone used for matching")
    owner_id: Optional[int] = Field(default=None, description="Owner id (required to create)")
    company_id: Optional[int] = Field(default=None, description="Company linked on create")


class UpsertCompanyInput(SearchWindowInput):
    """Input model for finding or creating a company."""

    name: Optional[str] = Field(default=None, description="Company name (matching and create)")
    domain: Optional[str] = Field(default=None, description="Website/domain used for matching, e.g. acme.com")
    email: Optional[str] = None
    phone: Optional[str] = None
    owner_id: Optional[int] = Field(default=None, description="Owner id (required to create)")


class RouteLeadInput(ToolInput):
    """Input model for deterministic owner routing."""

    key: str = Field(
        ...,
        description="Routing key, e.g. lead email, phone or company domain",
        min_length=1,
    )
    candidates_owner_ids: list[Any] = Field(
        ...,
        description="Ordered list of eligible owner ids",
        min_length=1,
    )


class AssignDealOwnerInput(ToolInput):
    """Input model for changing a deal's owner."""

    deal_id: int = Field(..., description="Deal id")
    owner_id: int = Field(..., description="New owner id")


class MeetingActivityInput(ToolInput):
    """Input model for scheduling a meeting on a deal."""

    deal_id: int = Field(..., description="Deal id")
    title: str = Field(..., description="Meeting title", min_length=1)
    owner_id: Optional[int] = None
    start_at: Optional[str] = None
    end_at: Optional[str] = None
    description: Optional[str] = None
    status: Optional[int] = Field(default=None, description="Defaults to 0 (Open)")
    activity_type_id: Optional[int] = Field(default=None, description="Defaults to the Meeting type")


class OpportunityBundleInput(SearchWindowInput):
    """Input model for company + person + deal + note in one call."""

    # deal
    title: str = Field(..., description="Deal title", min_length=1)
    pipeline_id: int = Field(..., description="Pipeline id")
    stage_id: int = Field(..., description="Stage id")
    value: Optional[float] = Field(default=None, description="Deal value")
    owner_id: Optional[int] = Field(default=None, description="Deal owner id")

    # company
    company_id: Optional[int] = Field(default=None, description="Existing company id (skips the upsert)")
    company_name: Optional[str] = None
    company_domain: Optional[str] = None
    company_email: Optional[str] = None
    company_phone: Optional[str] = None
    company_owner_id: Optional[int] = None

    # person
    person_id: Optional[int] = Field(default=None, description="Existing person id (skips the upsert)")
    person_name: Optional[str] = None
    person_email: Optional[str] = None
    person_phone: Optional[str] = None
    person_owner_id: Optional[int] = None

    note_content: Optional[str] = Field(default=None, description="Note attached to the new deal")


class RevopsIntakeInput(OpportunityBundleInput):
    """Input model for the full RevOps intake."""

    routing_key: Optional[str] = Field(
        default=None,
        description="Routing key; defaults to person email > phone > company domain > name > title",
    )
    candidates_owner_ids: Optional[list[Any]] = Field(
        default=None,
        description="Owner ids eligible for automatic assignment",
    )
    deal_owner_id: Optional[int] = Field(default=None, description="Deal owner (defaults to the routed owner)")
    call_body: Optional[dict[str, Any]] = Field(default=None, description="Raw body for POST /calls")
    call_outcome: Optional[str] = Field(default=None, description="Call outcome appended to the note")
    meeting: Optional[ActivitySpec] = None
    followup: Optional[ActivitySpec] = None


class OutboundCallInput(ToolInput):
    """Input model for logging an outbound call and its outcome."""

    call_body: Optional[dict[str, Any]] = Field(default=None, description="Raw body for POST /calls")
    note_content: str = Field(..., description="Outcome note", min_length=1)
    deal_id: Optional[int] = None
    person_id: Optional[int] = None
    company_id: Optional[int] = None
    followup: Optional[ActivitySpec] = None


class CompleteActivityInput(ToolInput):
    """Input model for completing an activity with an optional note."""

    activity_id: int = Field(..., description="Activity id")
    note_content: Optional[str] = None
    deal_id: Optional[int] = None
    person_id: Optional[int] = None
    company_id: Optional[int] = None


class ResolveDealOwnerInput(ToolInput):
    """Input model for resolving a deal with its pipeline and owner names."""

    deal_id: Optional[int] = None
    deal_title: Optional[str] = None
    pipeline_id: Optional[int] = None
    pipeline_name: Optional[str] = None
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None
