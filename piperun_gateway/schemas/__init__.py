"""
Pydantic input models for the PipeRun tools.
"""

from piperun_gateway.schemas.base import (
    ToolInput,
    PassthroughInput,
    coerce_numeric_strings,
)
from piperun_gateway.schemas.resources import (
    ListInput,
    DealCreateInput,
    PersonCreateInput,
    CompanyCreateInput,
    ActivityCreateInput,
    NoteCreateInput,
    GenericRequestInput,
    id_input,
)
from piperun_gateway.schemas.workflows import (
    ActivitySpec,
    SearchWindowInput,
    UpsertPersonInput,
    UpsertCompanyInput,
    RouteLeadInput,
    AssignDealOwnerInput,
    MeetingActivityInput,
    OpportunityBundleInput,
    RevopsIntakeInput,
    OutboundCallInput,
    CompleteActivityInput,
    ResolveDealOwnerInput,
)

__all__ = [
    # Base
    "ToolInput",
    "PassthroughInput",
    "coerce_numeric_strings",
    # CRUD
    "ListInput",
    "DealCreateInput",
    "PersonCreateInput",
    "CompanyCreateInput",
    "ActivityCreateInput",
    "NoteCreateInput",
    "GenericRequestInput",
    "id_input",
    # Workflows
    "ActivitySpec",
    "SearchWindowInput",
    "UpsertPersonInput",
    "UpsertCompanyInput",
    "RouteLeadInput",
    "AssignDealOwnerInput",
    "MeetingActivityInput",
    "OpportunityBundleInput",
    "RevopsIntakeInput",
    "OutboundCallInput",
    "CompleteActivityInput",
    "ResolveDealOwnerInput",
]
