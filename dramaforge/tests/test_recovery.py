"""
Unit tests for output recovery.

Tests cover:
- JSON candidate location (fences, balanced objects, arrays)
- Envelope parsing and save request normalization
- Field-level extraction from broken JSON
- Raw text fallback
"""

import json

import pytest

from dramaforge.core.recovery import (
    clean_json_output,
    extract_json_candidate,
    extract_message_field,
    extract_save_request_field,
    find_balanced_object,
    normalize_save_request,
    parse_agent_response,
    parse_json_value,
)
from dramaforge.models import RecoveryPath, ResponseType


class TestCandidateLocation:
    """Tests for locating the JSON value in model text."""

    def test_fenced_block_wins(self):
        """Test a ```json fence is preferred over surrounding text."""
        text = 'Sure! {"not": "this"}\n```json\n{"message": "hi"}\n```'
        assert extract_json_candidate(text) == '{"message": "hi"}'

    def test_balanced_object_ignores_braces_in_strings(self):
        """Test braces inside string literals do not close the object."""
        text = 'Here: {"message": "a } brace", "x": {"y": 1}} trailing'
        assert find_balanced_object(text) == '{"message": "a } brace", "x": {"y": 1}}'

    def test_unclosed_object_returns_none(self):
        """Test an object that never closes is not a candidate."""
        assert find_balanced_object('{"message": "still streaming') is None

    def test_array_candidate(self):
        """Test a bare JSON array is accepted as a candidate."""
        assert extract_json_candidate('  [1, 2, 3]  ') == '[1, 2, 3]'

    def test_prose_has_no_candidate(self):
        """Test plain prose yields no candidate."""
        assert extract_json_candidate("Just a friendly reply.") is None
        assert extract_json_candidate("") is None

    def test_clean_json_output_strips_fences(self):
        """Test fences and surrounding prose are removed."""
        assert clean_json_output('```json\n[1, 2]\n``` done') == "[1, 2]"


class TestNormalizeSaveRequest:
    """Tests for normalizing alternate save request field names."""

    def test_canonical_fields(self):
        """Test targetFile/content map straight through."""
        request = normalize_save_request({"targetFile": "world.md", "content": "# World", "summary": "s"})
        assert request.target_file == "world.md"
        assert request.content == "# World"
        assert request.summary == "s"

    def test_alternate_fields(self):
        """Test fileName/fileContent are accepted."""
        request = normalize_save_request({"fileName": "outline.md", "fileContent": "Acts"})
        assert request.target_file == "outline.md"
        assert request.content == "Acts"

    def test_missing_target_is_rejected(self):
        """Test a request without a target file is dropped."""
        assert normalize_save_request({"content": "x"}) is None
        assert normalize_save_request("world.md") is None


class TestParseAgentResponse:
    """Tests for the full recovery pipeline."""

    def test_structured_chat(self):
        """Test a well-formed chat envelope."""
        response = parse_agent_response('{"type": "chat", "message": "Tell me about the era."}')
        assert response.type == ResponseType.CHAT
        assert response.message == "Tell me about the era."
        assert response.save_request is None
        assert response.recovery == RecoveryPath.STRUCTURED

    def test_structured_save_with_stage_complete(self):
        """Test a save envelope carries its normalized request."""
        raw = json.dumps({
            "type": "save",
            "message": "Saving.",
            "saveRequest": {"fileName": "world.md", "fileContent": "# World\n\nTides."},
            "stageComplete": True,
        })
        response = parse_agent_response(raw)
        assert response.type == ResponseType.SAVE
        assert response.save_request.target_file == "world.md"
        assert response.save_request.content == "# World\n\nTides."
        assert response.stage_complete is True

    def test_unknown_type_with_save_request_becomes_save(self):
        """Test an invalid type is replaced according to the save request."""
        raw = '{"type": "draft", "message": "m", "saveRequest": {"targetFile": "a.md", "content": "c"}}'
        assert parse_agent_response(raw).type == ResponseType.SAVE

    def test_object_without_envelope_fields_falls_back_to_raw(self):
        """Test JSON without message or saveRequest is treated as prose."""
        raw = '{"answer": 42}'
        response = parse_agent_response(raw)
        assert response.type == ResponseType.CHAT
        assert response.message == raw
        assert response.recovery == RecoveryPath.RAW_TEXT

    def test_field_extraction_recovers_save(self):
        """Test a stray token breaks the JSON but the save is still recovered."""
        raw = (
            '{"type": "save", "message": "Done", "saveRequest": '
            '{"targetFile": "characters.md", "content": "Mara\\nThe tide priest", "summary": "cast"}'
            ', "stageComplete": true, oops}'
        )
        response = parse_agent_response(raw)
        assert response.recovery == RecoveryPath.FIELD_EXTRACTION
        assert response.type == ResponseType.SAVE
        assert response.save_request.target_file == "characters.md"
        assert response.save_request.content == "Mara\nThe tide priest"
        assert response.message == "Done"
        assert response.stage_complete is True

    def test_field_extraction_message_only(self):
        """Test a truncated reply still yields its complete message."""
        raw = '{"type": "chat", "message": "Quote: \\"hi\\" \\u00e9", "stageComp'
        response = parse_agent_response(raw)
        assert response.recovery == RecoveryPath.FIELD_EXTRACTION
        assert response.message == 'Quote: "hi" é'

    def test_plain_prose_is_preserved(self):
        """Test non-JSON output becomes a chat message unchanged."""
        response = parse_agent_response("Of course, here are three ideas.")
        assert response.type == ResponseType.CHAT
        assert response.message == "Of course, here are three ideas."
        assert response.recovery == RecoveryPath.RAW_TEXT

    def test_empty_output(self):
        """Test empty output never raises."""
        response = parse_agent_response("   ")
        assert response.message == ""
        assert response.save_request is None


class TestFieldHelpers:
    """Tests for the field-level extractors."""

    def test_unterminated_message_is_none(self):
        """Test a message string that never closes is not returned."""
        assert extract_message_field('{"message": "half a thou') is None

    def test_save_request_regex_fallback(self):
        """Test the regex fallback when the saveRequest object never closes."""
        text = '{"saveRequest": {"targetFile": "outline.md", "content": "Act \\"one\\"'
        assert extract_save_request_field(text) is None
        text += '", "summary": "acts"'
        request = extract_save_request_field(text)
        assert request.target_file == "outline.md"
        assert request.content == 'Act "one"'
        assert request.summary == "acts"


class TestParseJsonValue:
    """Tests for strict JSON parsing of agent output."""

    def test_fenced_json(self):
        """Test fenced JSON parses after cleaning."""
        assert parse_json_value('```json\n{"a": [1]}\n```') == {"a": [1]}

    def test_garbage_raises(self):
        """Test unparsable output raises JSONDecodeError."""
        with pytest.raises(json.JSONDecodeError):
            parse_json_value("no json here")


class TestTruncatedOutput:
    """Tests for output cut off mid-message."""

    def test_unterminated_message_with_preamble_is_raw_chat(self):
        """Test truncated output falls through to a plain chat message."""
        raw = 'Sure! {"message": "Hi'
        response = parse_agent_response(raw)
        assert response.type == ResponseType.CHAT
        assert response.message == raw
        assert response.save_request is None
        assert response.recovery == RecoveryPath.RAW_TEXT
