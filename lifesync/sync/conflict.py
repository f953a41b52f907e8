"""
Conflict Detection

DESIGN DECISION: A conflict exists only when THIS device holds unsynced
edits that the remote side has never seen. The checks run in order and the
first one that applies decides:

1. Either side has no record        -> adopt the side that exists
2. Local has no meaningful data     -> adopt remote
3. Timestamps equal                 -> nothing to do
4. Remote is newer                  -> pull remote (another device synced)
5. Local is newer:
   - payloads identical             -> re-stamp remote by pushing local
   - payloads differ                -> real conflict, ask the caller

Cloud-ahead is never a conflict. The assumption is one active device at a
time; the most recent writer wins unless that would destroy local edits.
"""

from typing import Optional

from lifesync.models.app_data import has_meaningful_data
from lifesync.models.envelope import Envelope
from lifesync.models.sync import ConflictReport, SyncOutcome


def detect_conflict(
    local: Optional[Envelope],
    remote: Optional[Envelope],
) -> ConflictReport:
    """Compare the two current records. Pure function, no IO."""
    local_meta = local.metadata() if local else None
    remote_meta = remote.metadata() if remote else None

    def report(outcome: SyncOutcome) -> ConflictReport:
        return ConflictReport(
            has_conflict=outcome == SyncOutcome.CONFLICT,
            outcome=outcome,
            local_meta=local_meta,
            remote_meta=remote_meta,
        )

    if remote is None:
        return report(SyncOutcome.NO_REMOTE)
    if local is None:
        return report(SyncOutcome.NO_LOCAL)
    if not has_meaningful_data(local.payload):
        return report(SyncOutcome.LOCAL_EMPTY)
    if local.last_modified == remote.last_modified:
        return report(SyncOutcome.IN_SYNC)
    if remote.last_modified > local.last_modified:
        return report(SyncOutcome.REMOTE_NEWER)
    if local.same_payload(remote):
        return report(SyncOutcome.TIMESTAMP_ONLY)
    return report(SyncOutcome.CONFLICT)
