"""Tests for LLM field extraction used by procedure and team member templates."""

import json

from pulse.services.field_extractor import PROCEDURE_FIELDS, FieldExtractor, normalize_value
from pulse.services.llm_client import LLMError


class TestNormalizeValue:
    def test_nothing_values(self):
        for value in (None, "", "  ", "null", "None", "N/A", "unknown"):
            assert normalize_value(value) is None

    def test_lists(self):
        assert normalize_value(["Face", "n/a", None, " Neck "]) == ["Face", "Neck"]
        assert normalize_value(["none"]) is None

    def test_passthrough(self):
        assert normalize_value(True) is True
        assert normalize_value("Forehead") == "Forehead"


class TestProcedureFields:
    def test_extracts_known_fields(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply(json.dumps({
            "bodyLocation": "Face",
            "procedureType": "N/A",
            "howPerformed": "Small injections into targeted muscles.",
            "followup": ["none", "Avoid rubbing the area for 24 hours"],
            "price": "$12/unit",
        }))

        fields = FieldExtractor(mock_llm).extract_procedure_fields(make_page())

        assert fields == {
            "bodyLocation": "Face",
            "procedureType": None,
            "howPerformed": "Small injections into targeted muscles.",
            "preparation": None,
            "followup": ["Avoid rubbing the area for 24 hours"],
        }
        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["action"] == "schema_procedure_fields"
        assert kwargs["json_mode"] is True

    def test_content_truncated(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply("{}")
        FieldExtractor(mock_llm).extract_procedure_fields(make_page(main_content="z" * 5000))
        prompt = mock_llm.complete.call_args.args[0]
        assert "z" * 3000 in prompt
        assert "z" * 3001 not in prompt

    def test_llm_error_gives_empty_fields(self, mock_llm, make_page):
        mock_llm.complete.side_effect = LLMError("quota")
        fields = FieldExtractor(mock_llm).extract_procedure_fields(make_page())
        assert fields == {name: None for name in PROCEDURE_FIELDS}

    def test_non_object_response(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply('["Face"]')
        fields = FieldExtractor(mock_llm).extract_procedure_fields(make_page())
        assert all(value is None for value in fields.values())


class TestTeamMemberFields:
    def test_physician_flag_must_be_true(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply(json.dumps({"name": "Jane Smith", "isPhysician": "yes"}))
        fields = FieldExtractor(mock_llm).extract_team_member_fields(make_page(path="/team/jane"))
        assert fields["name"] == "Jane Smith"
        assert fields["isPhysician"] is False

    def test_physician(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply(json.dumps({"name": "Dr. Jane Smith", "isPhysician": True, "education": ["UT"]}))
        fields = FieldExtractor(mock_llm).extract_team_member_fields(make_page())
        assert fields["isPhysician"] is True
        assert fields["education"] == ["UT"]

    def test_failure_is_not_physician(self, mock_llm, make_page):
        mock_llm.complete.side_effect = LLMError("down")
        fields = FieldExtractor(mock_llm).extract_team_member_fields(make_page())
        assert fields["isPhysician"] is False
        assert fields["name"] is None
