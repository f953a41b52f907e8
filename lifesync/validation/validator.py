"""
Two-Stage Envelope Validation

DESIGN DECISION: A stored record is checked in two distinct stages before
the merge touches it:

STAGE 1 - SCHEMA VALIDATION:
- Parses as JSON
- Has version, lastModified, created and a data object
- Timestamps are real timestamps

STAGE 2 - SEMANTIC VALIDATION:
- Every entity in an entity collection has an id
- Ids are hashable and unique within their collection
- created is not after lastModified (warning)
- Version matches what this client writes (warning)

IMPORTANT: Validation NEVER repairs a record. A malformed side aborts the
merge and both sides stay as they were.
"""

from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from lifesync.models.app_data import iter_collections
from lifesync.models.envelope import Envelope, ValidationIssue, ValidationResult


logger = structlog.get_logger(__name__)

RawRecord = Union[str, bytes, dict, Envelope]


class EnvelopeValidationError(Exception):
    """A record failed validation."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []


class EnvelopeValidator:
    """Validates stored records through a two-stage pipeline."""

    def __init__(self, expected_schema_version: Optional[str] = None):
        """
        Args:
            expected_schema_version: Version this client writes. If None,
                the version check is skipped.
        """
        self._expected_version = expected_schema_version

    def _validate_schema(
        self,
        raw: RawRecord,
    ) -> tuple[Optional[Envelope], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (envelope_or_none, list_of_issues)
        """
        if isinstance(raw, Envelope):
            return raw, []

        try:
            if isinstance(raw, dict):
                envelope = Envelope.model_validate(raw)
            else:
                envelope = Envelope.from_json(raw)
        except ValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "record",
                    issue_type="schema",
                    message=error["msg"],
                )
                for error in e.errors()
            ]
            return None, issues

        return envelope, []

    def _validate_semantics(self, envelope: Envelope) -> list[ValidationIssue]:
        """Stage 2: Semantic validation."""
        issues: list[ValidationIssue] = []

        for path, items in iter_collections(envelope.payload):
            objects = [item for item in items if isinstance(item, dict)]
            if not objects:
                continue
            with_id = [item for item in objects if "id" in item]
            if not with_id:
                # A list of plain objects without ids is not an entity collection
                continue

            if len(with_id) != len(items):
                issues.append(ValidationIssue(
                    field=path,
                    issue_type="missing_id",
                    message=f"{len(items) - len(with_id)} item(s) in {path} have no id",
                ))

            seen: set[Any] = set()
            for item in with_id:
                entity_id = item["id"]
                try:
                    hash(entity_id)
                except TypeError:
                    issues.append(ValidationIssue(
                        field=path,
                        issue_type="invalid_id",
                        message=f"Id {entity_id!r} in {path} is not a plain value",
                    ))
                    continue
                if entity_id in seen:
                    issues.append(ValidationIssue(
                        field=path,
                        issue_type="duplicate_id",
                        message=f"Id {entity_id!r} appears more than once in {path}",
                    ))
                seen.add(entity_id)

        if envelope.created > envelope.last_modified:
            issues.append(ValidationIssue(
                field="created",
                issue_type="created_after_modified",
                message="created is later than lastModified",
                severity="warning",
            ))

        if self._expected_version and envelope.schema_version != self._expected_version:
            issues.append(ValidationIssue(
                field="version",
                issue_type="schema_version_mismatch",
                message=(
                    f"Record version {envelope.schema_version} differs from "
                    f"{self._expected_version}"
                ),
                severity="warning",
            ))

        return issues

    def validate(self, raw: RawRecord) -> ValidationResult:
        """Run both stages. Stage 2 is skipped if stage 1 fails."""
        envelope, issues = self._validate_schema(raw)
        if envelope is None:
            return ValidationResult(is_valid=False, issues=issues)

        issues.extend(self._validate_semantics(envelope))
        result = ValidationResult(is_valid=True, issues=issues, envelope=envelope)
        result.is_valid = not result.has_errors
        return result

    def validate_or_raise(self, raw: RawRecord, side: str = "record") -> Envelope:
        """
        Validate and return the envelope.

        Raises:
            EnvelopeValidationError: If any error-level issue was found
        """
        result = self.validate(raw)
        for issue in result.issues:
            if issue.severity == "warning":
                logger.warning("envelope_validation_warning", side=side, **issue.model_dump())

        if not result.is_valid:
            summary = "; ".join(i.message for i in result.issues if i.severity == "error")
            raise EnvelopeValidationError(
                f"Invalid {side} envelope: {summary}",
                issues=result.issues,
            )
        return result.envelope
