"""
Envelope Merge

Combines a local and a remote payload into one when the user picks "merge"
for a conflict.

DESIGN DECISION: The merge is device-centric, not commutative. Where both
sides hold the same entity (same id), the local version wins: the edits
made on this device are the ones the user is looking at, and an older
remote copy must not clobber them. Entities only one side has are kept.

Per module (top-level object of the payload), per field:
- entity collections (lists of objects with an "id") -> union by id, local wins
- identifier lists (dismissed / never-show-again ids) -> union, deduplicated
- nested objects (settings, profile) -> merged key by key with the same
  rules, so collections inside them are unioned too
- scalars -> local if present, else remote
- anything else -> local if present, else remote

Order is deterministic: local items first, then remote-only items.
"""

from datetime import datetime
from typing import Any, Optional

from lifesync.models.app_data import is_entity_list, is_identifier_list
from lifesync.models.envelope import Envelope, utc_now


class MergeError(Exception):
    """One side holds data the merge cannot combine safely."""
    pass


def merge_entities(local: list, remote: list, path: str = "") -> list:
    """Union two entity collections by id. Local wins on overlap."""
    merged: dict[Any, Any] = {}
    for side, items in (("local", local), ("remote", remote)):
        for item in items:
            entity_id = item["id"]
            try:
                hash(entity_id)
            except TypeError:
                raise MergeError(f"Unusable id in {side} {path}: {entity_id!r}")
            if entity_id not in merged:
                merged[entity_id] = item
    return list(merged.values())


def merge_identifiers(local: list, remote: list) -> list:
    """Union two identifier lists. Local order is kept as-is; remote-only values follow."""
    seen = set(local)
    merged = list(local)
    for value in remote:
        if value not in seen:
            seen.add(value)
            merged.append(value)
    return merged


def merge_objects(local: dict, remote: dict, path: str = "") -> dict:
    """
    Merge two objects key by key. Local key order first.

    Keys both sides hold go through the field rules, so an entity
    collection nested in a profile is unioned like a top-level one.
    """
    merged: dict[str, Any] = {}
    for key, value in local.items():
        if key in remote:
            child = f"{path}.{key}" if path else key
            merged[key] = _merge_field(value, remote[key], child)
        else:
            merged[key] = value
    for key, value in remote.items():
        if key not in merged:
            merged[key] = value
    return merged


def _merge_field(local: Any, remote: Any, path: str) -> Any:
    if isinstance(local, list) and isinstance(remote, list):
        if is_entity_list(local) and is_entity_list(remote):
            return merge_entities(local, remote, path)
        if is_identifier_list(local) and is_identifier_list(remote):
            return merge_identifiers(local, remote)
        return local
    if isinstance(local, dict) and isinstance(remote, dict):
        return merge_objects(local, remote, path)
    return local


def merge_payloads(local: dict[str, Any], remote: dict[str, Any]) -> dict[str, Any]:
    """
    Merge two payloads module by module.

    merge_payloads(p, p) reproduces p exactly, key order included.
    """
    merged: dict[str, Any] = {}
    for module_name, module in local.items():
        other = remote.get(module_name)
        if isinstance(module, dict) and isinstance(other, dict):
            merged[module_name] = merge_objects(module, other, module_name)
        else:
            merged[module_name] = module
    for module_name, module in remote.items():
        if module_name not in merged:
            merged[module_name] = module
    return merged


def merge_envelopes(
    local: Envelope,
    remote: Envelope,
    now: Optional[datetime] = None,
) -> Envelope:
    """
    Merge two envelopes.

    created is the earlier of the two; last_modified is the merge time.
    """
    return Envelope(
        schema_version=local.schema_version,
        created=min(local.created, remote.created),
        last_modified=now or utc_now(),
        payload=merge_payloads(local.payload, remote.payload),
    )
