"""
Tests for import and export.
"""

import json

import pytest

from lifesync.sync.transfer import (
    ImportFormatError,
    detect_export_format,
    export_envelope,
    import_payload,
)

from conftest import make_envelope, tasks_payload


class TestExport:
    def test_export_writes_envelope_json(self, tmp_path):
        envelope = make_envelope(tasks_payload({"id": "t1"}))

        path = export_envelope(envelope, tmp_path / "exports" / "lifeos-backup.json")

        stored = json.loads(path.read_text(encoding="utf-8"))
        assert stored["version"] == "2.0.0"
        assert stored["data"] == tasks_payload({"id": "t1"})
        assert "\n" in path.read_text(encoding="utf-8")


class TestDetectFormat:
    @pytest.mark.parametrize("obj,expected", [
        ({"version": "2.0.0", "data": {}}, "v2"),
        ({"version": "1.0.0", "data": {}}, "legacy"),
        ({"version": "2.0.0", "data": []}, "legacy"),
        ({"home": {"tasks": []}}, "legacy"),
        ([], "legacy"),
    ])
    def test_formats(self, obj, expected):
        assert detect_export_format(obj) == expected


class TestImport:
    """Tests for import_payload."""

    def test_round_trip_fills_defaults(self, tmp_path):
        envelope = make_envelope(tasks_payload({"id": "t1"}))
        path = export_envelope(envelope, tmp_path / "export.json")

        payload = import_payload(path)

        assert payload["home"]["tasks"] == [{"id": "t1"}]
        assert payload["home"]["habits"] == []
        assert "finance" in payload

    def test_legacy_bare_payload(self, tmp_path):
        path = tmp_path / "old.json"
        path.write_text(json.dumps({"misc": {"notes": [{"id": "n1"}]}}), encoding="utf-8")

        payload = import_payload(path)

        assert payload["misc"]["notes"] == [{"id": "n1"}]
        assert payload["misc"]["bookmarks"] == []

    def test_not_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{nope", encoding="utf-8")
        with pytest.raises(ImportFormatError):
            import_payload(path)

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ImportFormatError):
            import_payload(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImportFormatError):
            import_payload(tmp_path / "absent.json")
