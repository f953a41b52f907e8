"""
Import / Export

Export writes the current envelope to a file the user can keep. Import
accepts two shapes:

- "v2": a full envelope ({"version": "2.0.0", "lastModified": ..., "data": {...}})
- "legacy": an older export holding the bare payload object

Either way the payload is filled with defaults before it is handed back,
so missing modules never reach the consumer. Import does not save; the
caller passes the payload to SyncEngine.save().
"""

import json
from pathlib import Path
from typing import Any, Literal, Union

import structlog

from lifesync.models.app_data import merge_with_defaults
from lifesync.models.envelope import Envelope


logger = structlog.get_logger(__name__)

ExportFormat = Literal["v2", "legacy"]

CURRENT_EXPORT_VERSION = "2.0.0"


class ImportFormatError(Exception):
    """The file is not a recognizable export."""
    pass


def export_envelope(envelope: Envelope, path: Union[str, Path]) -> Path:
    """Write envelope as indented JSON. Returns the written path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        envelope.model_dump_json(by_alias=True, indent=2),
        encoding="utf-8",
    )
    logger.info("envelope_exported", path=str(path))
    return path


def detect_export_format(obj: Any) -> ExportFormat:
    if (
        isinstance(obj, dict)
        and obj.get("version") == CURRENT_EXPORT_VERSION
        and isinstance(obj.get("data"), dict)
    ):
        return "v2"
    return "legacy"


def import_payload(path: Union[str, Path]) -> dict[str, Any]:
    """
    Read an export file and return a complete payload.

    Raises:
        ImportFormatError: If the file is missing, is not JSON, or does not
            hold an object
    """
    path = Path(path)
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ImportFormatError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(obj, dict):
        raise ImportFormatError(f"{path} does not contain a JSON object")

    export_format = detect_export_format(obj)
    payload = obj["data"] if export_format == "v2" else obj

    logger.info("payload_imported", path=str(path), format=export_format)
    return merge_with_defaults(payload)
