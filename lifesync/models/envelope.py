"""
Envelope Models for LifeSync

The Envelope is the unit of persistence: one versioned wrapper around the
whole application payload. Exactly one Envelope is "current" per backend
(local slot, remote file). Writes always replace the whole record.

DESIGN DECISION: The JSON keys on disk and in Drive are the ones the
existing clients already write ("version", "lastModified", "created",
"data"). The Python side uses snake_case names through aliases.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def canonical_json(payload: Any) -> str:
    """
    Serialize a payload into its comparison form.

    Keys are sorted and separators are compact, so two payloads holding
    the same data always produce the same string.
    """
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


class StorageMetadata(BaseModel):
    """What we know about one side without looking at its payload."""

    last_modified: datetime
    size: int = Field(..., ge=0, description="Serialized size in bytes")


class Envelope(BaseModel):
    """
    Versioned wrapper around the persisted payload.

    `created` is set once and carried forward on every write.
    `last_modified` is updated on every successful write and is the only
    signal used to decide which side is ahead.
    """

    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field(
        default="2.0.0",
        alias="version",
        min_length=1,
        description="Version tag of the payload shape"
    )
    last_modified: datetime = Field(
        ...,
        alias="lastModified",
        description="When this record was last written (UTC)"
    )
    created: datetime = Field(
        ...,
        description="When this record was first created (UTC)"
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        alias="data",
        description="Application data: named modules of entity collections"
    )

    @field_validator("last_modified", "created")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are taken to be UTC so comparisons never fail."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @classmethod
    def new(
        cls,
        payload: dict[str, Any],
        schema_version: str = "2.0.0",
        now: Optional[datetime] = None,
    ) -> "Envelope":
        """Create the first envelope for a payload."""
        now = now or utc_now()
        return cls(
            schema_version=schema_version,
            last_modified=now,
            created=now,
            payload=payload,
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Envelope":
        """Parse a stored record. Raises pydantic.ValidationError if malformed."""
        return cls.model_validate_json(raw)

    def to_json(self) -> str:
        """Serialize using the on-disk key names."""
        return self.model_dump_json(by_alias=True)

    def to_bytes(self) -> bytes:
        return self.to_json().encode("utf-8")

    def payload_digest(self) -> str:
        """Canonical payload form; ignores all metadata fields."""
        return canonical_json(self.payload)

    def metadata(self) -> StorageMetadata:
        return StorageMetadata(
            last_modified=self.last_modified,
            size=len(self.to_bytes()),
        )

    def same_payload(self, other: "Envelope") -> bool:
        return self.payload_digest() == other.payload_digest()


class ValidationIssue(BaseModel):
    """A single problem found in an envelope."""

    field: str = Field(..., description="Path of the offending field")
    issue_type: str = Field(..., description="Machine-readable issue kind")
    message: str = Field(..., description="Human-readable explanation")
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Errors block a merge, warnings do not"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one stored record."""

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    envelope: Optional[Envelope] = None

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")
