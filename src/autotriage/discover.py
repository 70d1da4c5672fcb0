"""Auto-discover queue ordering and change detection."""

from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Sequence

from autotriage.integrations.github import Issue, TimelineEvent
from autotriage.storage import TriageRecord


def parse_timestamp_ms(value: Optional[str]) -> int:
    """Parse an ISO-8601 timestamp into epoch milliseconds; 0 when unparsable."""
    if not value or not isinstance(value, str):
        return 0
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def last_updated_ms(issue: Issue) -> int:
    return max(parse_timestamp_ms(issue.updated_at), parse_timestamp_ms(issue.created_at))


def _triaged_ms(record: Optional[TriageRecord]) -> int:
    return parse_timestamp_ms(record.last_triaged) if record else 0


def needs_attention(issue: Issue, record: Optional[TriageRecord]) -> bool:
    """Whether an issue is new or changed since its last triage."""
    triaged_ms = _triaged_ms(record)
    if triaged_ms == 0:
        return True
    return last_updated_ms(issue) > triaged_ms


def build_auto_discover_queue(
    issues: Sequence[Issue],
    records: Mapping[str, TriageRecord],
    skip_unchanged: bool = False,
) -> list[int]:
    """Order auto-discover targets so new or updated work is processed first.

    Prioritized issues keep the tracker's recency order. The rest follow,
    oldest triage first, so repeated runs cycle through the whole backlog.

    Args:
        issues: Open issues, most recently updated first
        records: Triage records keyed by issue number string
        skip_unchanged: Drop issues that have not changed since their last triage

    Returns:
        Issue numbers in processing order
    """
    prioritized: list[int] = []
    secondary: list[tuple[int, int]] = []

    for issue in issues:
        record = records.get(str(issue.number))
        if needs_attention(issue, record):
            prioritized.append(issue.number)
        else:
            secondary.append((_triaged_ms(record), issue.number))

    if skip_unchanged:
        return prioritized

    secondary.sort(key=lambda item: item[0])
    return prioritized + [number for _, number in secondary]


def find_reactivated_issues(
    issues: Iterable[Issue], records: Mapping[str, TriageRecord]
) -> list[int]:
    """Previously triaged issues with activity after both triage and closing."""
    reactivated = []
    for issue in issues:
        triaged_ms = _triaged_ms(records.get(str(issue.number)))
        if triaged_ms == 0:
            continue
        closed_ms = parse_timestamp_ms(issue.closed_at)
        if parse_timestamp_ms(issue.updated_at) > max(triaged_ms, closed_ms):
            reactivated.append(issue.number)
    return reactivated


def last_activity_ms(
    issue: Issue,
    timeline: Sequence[TimelineEvent],
    previous_reactions: Optional[int] = None,
    now_ms: Optional[int] = None,
) -> int:
    """Latest activity on an issue, counting timeline events and reactions."""
    issue_updated_ms = parse_timestamp_ms(issue.updated_at)
    latest = max(
        [issue_updated_ms] + [parse_timestamp_ms(event.created_at) for event in timeline]
    )

    # Reactions bump neither updated_at nor the timeline
    if previous_reactions is not None and issue.reactions != previous_reactions:
        if now_ms is None:
            now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
        latest = max(latest, now_ms)

    return latest


def has_updated(
    issue: Issue,
    timeline: Sequence[TimelineEvent],
    record: Optional[TriageRecord],
) -> bool:
    """Whether an issue changed since it was last triaged."""
    triaged_ms = _triaged_ms(record)
    if triaged_ms == 0:
        return True
    return last_activity_ms(issue, timeline, record.reactions) > triaged_ms
