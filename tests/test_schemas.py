"""
Tests for the tool input models.
"""

import pytest
from pydantic import ValidationError

from piperun_gateway.schemas import (
    AssignDealOwnerInput,
    GenericRequestInput,
    ListInput,
    NoteCreateInput,
    RevopsIntakeInput,
    RouteLeadInput,
    coerce_numeric_strings,
    id_input,
)


class TestCoerceNumericStrings:
    """Test numeric-string coercion."""

    def test_id_and_paging_keys(self):
        coerced = coerce_numeric_strings({
            "deal_id": "94766",
            "show": " 20 ",
            "page": "2",
            "status": "0",
            "owner_id": "1.5",
        })

        assert coerced == {"deal_id": 94766, "show": 20, "page": 2, "status": 0, "owner_id": 1.5}

    def test_other_keys_untouched(self):
        coerced = coerce_numeric_strings({"value": "5", "title": "123"})

        assert coerced == {"value": "5", "title": "123"}

    def test_non_numeric_left_alone(self):
        coerced = coerce_numeric_strings({"deal_id": "abc", "stage_id": "", "person_id": "nan"})

        assert coerced == {"deal_id": "abc", "stage_id": "", "person_id": "nan"}


class TestToolInput:
    """Test the shared input behaviour."""

    def test_numeric_strings_accepted(self):
        params = AssignDealOwnerInput(deal_id="12", owner_id="7")

        assert params.deal_id == 12
        assert params.owner_id == 7

    def test_api_token_not_forwarded(self):
        params = AssignDealOwnerInput(deal_id=1, owner_id=2, api_token="secret")

        assert params.api_token == "secret"
        assert params.to_arguments() == {"deal_id": 1, "owner_id": 2}

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            AssignDealOwnerInput(deal_id=1, owner_id=2, colour="red")

    def test_passthrough_keeps_extra_keys(self):
        params = ListInput(pipeline_id="3", show="50", api_token="t")

        assert params.to_arguments() == {"pipeline_id": 3, "show": 50}

    def test_strings_stripped(self):
        params = RouteLeadInput(key="  lead@x.com ", candidates_owner_ids=[1])

        assert params.key == "lead@x.com"

    def test_route_requires_candidates(self):
        with pytest.raises(ValidationError):
            RouteLeadInput(key="a", candidates_owner_ids=[])


class TestResourceInputs:
    """Test the CRUD input models."""

    def test_id_input_model(self):
        model = id_input("deal_id")

        assert model.__name__ == "DealIdInput"
        assert model is id_input("deal_id")
        assert model(deal_id="5", title="x").to_arguments() == {"deal_id": 5, "title": "x"}

    def test_id_input_requires_id(self):
        with pytest.raises(ValidationError):
            id_input("note_id")(content="x")

    def test_note_requires_link(self):
        with pytest.raises(ValidationError):
            NoteCreateInput(content="x")

        assert NoteCreateInput(content="x", company_id="3").company_id == 3

    def test_generic_request_body(self):
        params = GenericRequestInput(method="post", path="/deals", body={"title": "x"})

        assert params.to_arguments() == {"method": "post", "path": "/deals", "body": {"title": "x"}}


class TestWorkflowInputs:
    """Test nested workflow models."""

    def test_activity_blocks(self):
        params = RevopsIntakeInput(
            title="Deal",
            pipeline_id="1",
            stage_id="2",
            meeting={"title": "Demo", "owner_id": 3},
        )

        assert params.pipeline_id == 1
        assert params.meeting.title == "Demo"
        assert params.followup is None

    def test_activity_block_rejects_unknown_keys(self):
        with pytest.raises(ValidationError):
            RevopsIntakeInput(title="Deal", pipeline_id=1, stage_id=2, meeting={"when": "now"})
