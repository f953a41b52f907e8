"""
Tests for two-stage envelope validation.
"""

import json

import pytest

from lifesync.validation import EnvelopeValidationError, EnvelopeValidator

from conftest import T0, make_envelope, tasks_payload


def raw(payload, **overrides) -> str:
    record = {
        "version": "2.0.0",
        "lastModified": "2024-01-15T10:00:00Z",
        "created": "2024-01-01T00:00:00Z",
        "data": payload,
    }
    record.update(overrides)
    return json.dumps(record)


class TestSchemaStage:
    """Tests for stage 1."""

    def test_valid_record(self):
        result = EnvelopeValidator().validate(raw(tasks_payload({"id": "t1"})))
        assert result.is_valid
        assert result.issues == []
        assert result.envelope.last_modified == T0

    def test_not_json(self):
        result = EnvelopeValidator().validate("{oops")
        assert not result.is_valid
        assert result.envelope is None
        assert result.issues[0].issue_type == "schema"

    def test_missing_field_names_the_field(self):
        record = json.loads(raw({}))
        del record["lastModified"]

        result = EnvelopeValidator().validate(record)

        assert not result.is_valid
        assert result.issues[0].field == "lastModified"

    def test_envelope_instances_skip_parsing(self):
        envelope = make_envelope(tasks_payload({"id": "t1"}))
        assert EnvelopeValidator().validate(envelope).envelope is envelope


class TestSemanticStage:
    """Tests for stage 2."""

    def test_duplicate_ids(self):
        result = EnvelopeValidator().validate(raw(tasks_payload({"id": "t1"}, {"id": "t1"})))
        assert not result.is_valid
        assert [i.issue_type for i in result.issues] == ["duplicate_id"]

    def test_missing_id_in_entity_collection(self):
        result = EnvelopeValidator().validate(raw(tasks_payload({"id": "t1"}, {"title": "no id"})))
        assert not result.is_valid
        assert result.issues[0].issue_type == "missing_id"
        assert result.issues[0].field == "home.tasks"

    def test_duplicate_ids_in_nested_profile_collection(self):
        payload = {"freelancing": {"profile": {"platforms": [{"id": "p1"}, {"id": "p1"}]}}}

        result = EnvelopeValidator().validate(raw(payload))

        assert not result.is_valid
        assert result.issues[0].issue_type == "duplicate_id"
        assert result.issues[0].field == "freelancing.profile.platforms"

    def test_unhashable_id(self):
        result = EnvelopeValidator().validate(raw(tasks_payload({"id": ["t1"]})))
        assert result.issues[0].issue_type == "invalid_id"

    def test_objects_without_ids_are_not_collections(self):
        """Test that lists of plain objects (e.g. platform links) pass."""
        payload = {"freelancing": {"platforms": [{"url": "a"}, {"url": "b"}]}}
        assert EnvelopeValidator().validate(raw(payload)).is_valid

    def test_created_after_modified_is_a_warning(self):
        result = EnvelopeValidator().validate(raw({}, created="2025-01-01T00:00:00Z"))
        assert result.is_valid
        assert result.issues[0].issue_type == "created_after_modified"
        assert result.issues[0].severity == "warning"

    def test_version_mismatch_is_a_warning(self):
        result = EnvelopeValidator(expected_schema_version="2.0.0").validate(
            raw({}, version="1.0.0")
        )
        assert result.is_valid
        assert result.issues[0].issue_type == "schema_version_mismatch"


class TestValidateOrRaise:
    def test_returns_envelope(self):
        envelope = EnvelopeValidator().validate_or_raise(raw(tasks_payload({"id": "t1"})))
        assert envelope.payload == tasks_payload({"id": "t1"})

    def test_raises_with_issues(self):
        with pytest.raises(EnvelopeValidationError) as excinfo:
            EnvelopeValidator().validate_or_raise(
                raw(tasks_payload({"id": "t1"}, {"id": "t1"})), side="remote"
            )
        assert "remote" in str(excinfo.value)
        assert excinfo.value.issues[0].issue_type == "duplicate_id"
