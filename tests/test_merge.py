"""
Tests for the local-wins merge.
"""

from datetime import datetime, timedelta, timezone

import pytest

from lifesync.models import canonical_json, create_default_app_data
from lifesync.sync.merge import (
    MergeError,
    merge_entities,
    merge_envelopes,
    merge_identifiers,
    merge_objects,
    merge_payloads,
)

from conftest import T0, make_envelope, tasks_payload


class TestMergeEntities:
    """Tests for entity collections."""

    def test_local_wins_on_overlap(self):
        """Test the conflict scenario: t1 from local, t2 added from remote."""
        local = [{"id": "t1", "title": "A"}]
        remote = [{"id": "t1", "title": "B"}, {"id": "t2", "title": "C"}]

        assert merge_entities(local, remote) == [
            {"id": "t1", "title": "A"},
            {"id": "t2", "title": "C"},
        ]

    def test_size_is_union_of_ids(self):
        """Test that the merged size equals the number of distinct ids."""
        local = [{"id": i, "side": "local"} for i in range(0, 10)]
        remote = [{"id": i, "side": "remote"} for i in range(5, 15)]

        merged = merge_entities(local, remote)

        assert len(merged) == 15
        by_id = {item["id"]: item for item in merged}
        for i in range(0, 10):
            assert by_id[i]["side"] == "local"
        for i in range(10, 15):
            assert by_id[i]["side"] == "remote"

    def test_order_is_local_then_remote_only(self):
        merged = merge_entities(
            [{"id": "b"}, {"id": "a"}],
            [{"id": "c"}, {"id": "a"}, {"id": "d"}],
        )
        assert [item["id"] for item in merged] == ["b", "a", "c", "d"]

    def test_unhashable_id_raises(self):
        """Test that an id that cannot be keyed aborts the merge."""
        with pytest.raises(MergeError):
            merge_entities([{"id": ["x"]}], [], path="home.tasks")


class TestMergeIdentifiersAndObjects:
    """Tests for preference lists and singleton objects."""

    def test_identifier_union_is_deduplicated(self):
        assert merge_identifiers(["n1", "n2"], ["n2", "n3"]) == ["n1", "n2", "n3"]

    def test_object_remote_base_local_override(self):
        """Test settings-like objects: remote fills gaps, local wins."""
        merged = merge_objects(
            {"theme": "light", "userName": "Me"},
            {"theme": "dark", "email": "me@example.com"},
        )
        assert merged == {"theme": "light", "userName": "Me", "email": "me@example.com"}

    def test_nested_objects_merge_recursively(self):
        merged = merge_objects(
            {"backup": {"frequency": "daily"}},
            {"backup": {"frequency": "weekly", "maxBackups": 3}},
        )
        assert merged == {"backup": {"frequency": "daily", "maxBackups": 3}}


class TestMergePayloads:
    """Tests for whole-payload merge."""

    def test_merge_with_itself_is_identity(self):
        """Test that merging a payload with itself changes nothing, byte for byte."""
        payload = create_default_app_data()
        payload["home"]["tasks"] = [{"id": "t1", "title": "A"}, {"id": "t2", "title": "B"}]
        payload["notificationSettings"]["dismissedNotifications"] = ["n1"]
        payload["freelancing"]["profile"]["cvVersions"] = [{"id": "cv1", "name": "A"}]

        merged = merge_payloads(payload, payload)

        assert canonical_json(merged) == canonical_json(payload)
        assert list(merged) == list(payload)

    def test_modules_from_both_sides_survive(self):
        local = {"home": {"tasks": [{"id": "t1"}]}}
        remote = {"misc": {"notes": [{"id": "n1"}]}}

        merged = merge_payloads(local, remote)

        assert merged == {
            "home": {"tasks": [{"id": "t1"}]},
            "misc": {"notes": [{"id": "n1"}]},
        }

    def test_fields_only_remote_has_are_kept(self):
        merged = merge_payloads(
            {"home": {"tasks": []}},
            {"home": {"tasks": [{"id": "t1"}], "habits": [{"id": "h1"}]}},
        )
        assert merged["home"]["tasks"] == [{"id": "t1"}]
        assert merged["home"]["habits"] == [{"id": "h1"}]

    def test_scalar_fields_prefer_local(self):
        merged = merge_payloads(
            {"university": {"currentYearId": "y2"}},
            {"university": {"currentYearId": "y1"}},
        )
        assert merged["university"]["currentYearId"] == "y2"

    def test_nested_settings_objects_merge(self):
        merged = merge_payloads(
            {"finance": {"settings": {"defaultCurrency": "EUR"}}},
            {"finance": {"settings": {"defaultCurrency": "USD", "monthStartDay": 5}}},
        )
        assert merged["finance"]["settings"] == {"defaultCurrency": "EUR", "monthStartDay": 5}

    def test_collections_inside_profile_are_unioned(self):
        """Test that CVs and platforms nested in the profile keep remote-only entries."""
        local = {"freelancing": {"profile": {
            "name": "Me",
            "cvVersions": [{"id": "cv1", "name": "A"}],
            "platforms": [{"id": "p1", "name": "Upwork"}],
        }}}
        remote = {"freelancing": {"profile": {
            "name": "Old",
            "title": "Developer",
            "cvVersions": [{"id": "cv1", "name": "B"}, {"id": "cv2", "name": "C"}],
            "platforms": [{"id": "p2", "name": "Fiverr"}],
        }}}

        profile = merge_payloads(local, remote)["freelancing"]["profile"]

        assert profile["cvVersions"] == [{"id": "cv1", "name": "A"}, {"id": "cv2", "name": "C"}]
        assert [p["id"] for p in profile["platforms"]] == ["p1", "p2"]
        assert profile["name"] == "Me"
        assert profile["title"] == "Developer"

    def test_unusable_nested_id_names_the_path(self):
        local = {"freelancing": {"profile": {"cvVersions": [{"id": ["cv1"]}]}}}
        remote = {"freelancing": {"profile": {"cvVersions": [{"id": "cv2"}]}}}

        with pytest.raises(MergeError, match="freelancing.profile.cvVersions"):
            merge_payloads(local, remote)


class TestMergeEnvelopes:
    """Tests for envelope-level merge metadata."""

    def test_created_is_minimum_and_modified_is_now(self):
        earlier = T0 - timedelta(days=30)
        now = T0 + timedelta(hours=1)
        local = make_envelope(tasks_payload({"id": "t1"}), last_modified=T0, created=T0)
        remote = make_envelope(tasks_payload({"id": "t2"}), last_modified=T0, created=earlier)

        merged = merge_envelopes(local, remote, now=now)

        assert merged.created == earlier
        assert merged.last_modified == now
        assert merged.schema_version == local.schema_version
        assert [t["id"] for t in merged.payload["home"]["tasks"]] == ["t1", "t2"]

    def test_defaults_to_current_time(self):
        local = make_envelope({}, last_modified=T0)
        merged = merge_envelopes(local, local)
        assert merged.last_modified > T0
        assert merged.last_modified.utcoffset() == timedelta(0)

    def test_identical_envelopes_keep_payload(self):
        """Test merge(E, E) yields E's payload for any timestamps."""
        payload = tasks_payload({"id": "t1", "title": "A"})
        a = make_envelope(payload, last_modified=T0)
        b = make_envelope(payload, last_modified=datetime(2020, 1, 1, tzinfo=timezone.utc))

        merged = merge_envelopes(a, b, now=T0)

        assert canonical_json(merged.payload) == canonical_json(payload)
