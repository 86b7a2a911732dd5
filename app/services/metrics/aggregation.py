"""
Metrics aggregation.

Pure reducers over fully materialized CRM records. No I/O, deterministic for
a given input order, and total over empty input: every ratio has an explicit
zero-denominator policy and malformed values fall back to 0 / "Unknown".
"""

from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import ValidationError

from app.models.api.metrics_response import (
    BreakdownEntry,
    ContactMetrics,
    ConversationMetrics,
    OpportunityMetrics,
    RecentContact,
)
from app.models.domain.crm_domain import (
    Contact,
    Conversation,
    Opportunity,
    Pipeline,
    parse_timestamp,
)

UNKNOWN = "Unknown"
NOT_AVAILABLE = "N/A"
NEW_CONTACT_WINDOW_DAYS = 30
RECENT_CONVERSATION_WINDOW_DAYS = 30
RECENT_CONTACTS_LIMIT = 10

_EARLIEST = datetime.min.replace(tzinfo=UTC)


class AggregationError(Exception):
    """A computed metric object violated its own invariants."""


def _field(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)


def group_by(items: Iterable[Any], key: str) -> dict[str, list[Any]]:
    """
    Partition items by a field value.

    Missing or empty values are grouped under "Unknown". Groups keep the
    order in which their key first appeared.
    """
    groups: dict[str, list[Any]] = {}
    for item in items:
        value = _field(item, key)
        label = str(value) if value not in (None, "") else UNKNOWN
        groups.setdefault(label, []).append(item)
    return groups


def to_breakdown(groups: dict[str, list[Any]]) -> list[BreakdownEntry]:
    return [BreakdownEntry(name=name, value=len(members)) for name, members in groups.items()]


def build_stage_map(pipelines: Iterable[Pipeline]) -> dict[str, str]:
    """stage id -> stage name across all pipelines."""
    stage_map: dict[str, str] = {}
    for pipeline in pipelines:
        for stage in pipeline.stages:
            if stage.id:
                stage_map[stage.id] = stage.name
    return stage_map


def stage_breakdown(
    opportunities: Iterable[Opportunity], stage_map: dict[str, str]
) -> list[BreakdownEntry]:
    """Opportunity count per resolved stage name; unresolved ids count as "Unknown"."""
    counts: dict[str, int] = {}
    for opportunity in opportunities:
        name = stage_map.get(opportunity.pipeline_stage_id) or UNKNOWN
        counts[name] = counts.get(name, 0) + 1
    return [BreakdownEntry(name=name, value=count) for name, count in counts.items()]


def win_rate(won: int, lost: int) -> float:
    """won / (won + lost), or exactly 0 when nothing is closed."""
    closed = won + lost
    if closed <= 0:
        return 0.0
    return won / closed


def average_deal_size(opportunities: Iterable[Opportunity]) -> float:
    """Mean monetary value over opportunities worth strictly more than 0."""
    values = [o.monetary_value for o in opportunities if o.monetary_value > 0]
    if not values:
        return 0.0
    return sum(values) / len(values)


def is_within_days(timestamp: Any, days: int, now: datetime | None = None) -> bool:
    """
    True when the timestamp parses and falls strictly after now - days.

    Unparseable or absent timestamps never pass.
    """
    moment = parse_timestamp(timestamp)
    if moment is None:
        return False
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return moment > now - timedelta(days=days)


def recent_contacts(
    contacts: Sequence[Contact], limit: int = RECENT_CONTACTS_LIMIT
) -> list[RecentContact]:
    """Newest contacts first; contacts with unparseable dates sort last."""
    ordered = sorted(contacts, key=lambda c: c.date_added or _EARLIEST, reverse=True)
    return [_project_contact(contact) for contact in ordered[:limit]]


def _project_contact(contact: Contact) -> RecentContact:
    date_added = contact.date_added_raw
    if not isinstance(date_added, str):
        date_added = contact.date_added.isoformat() if contact.date_added else None

    return RecentContact(
        id=str(contact.id) if contact.id is not None else None,
        name=contact.display_name or UNKNOWN,
        email=contact.email or NOT_AVAILABLE,
        phone=contact.phone or NOT_AVAILABLE,
        source=contact.source or UNKNOWN,
        date_added=date_added,
        tags=[str(tag) for tag in contact.tags],
    )


def count_open(conversations: Iterable[Conversation]) -> int:
    return sum(1 for c in conversations if c.is_open())


def response_rate(conversations: Sequence[Conversation]) -> float:
    """Share of conversations whose latest message was an outbound reply."""
    if not conversations:
        return 0.0
    replied = sum(1 for c in conversations if c.has_business_reply())
    return replied / len(conversations)


@contextmanager
def _validated(metrics_name: str) -> Iterator[None]:
    """Report any invariant violation while assembling a metric object as AggregationError."""
    try:
        yield
    except ValidationError as e:
        raise AggregationError(f"Invalid {metrics_name}: {e}") from e


def build_contact_metrics(
    contacts: Sequence[Contact], now: datetime | None = None
) -> ContactMetrics:
    new_this_month = sum(
        1 for c in contacts if is_within_days(c.date_added, NEW_CONTACT_WINDOW_DAYS, now)
    )
    with _validated("ContactMetrics"):
        return ContactMetrics(
            total=len(contacts),
            new_this_month=new_this_month,
            source_breakdown=to_breakdown(group_by(contacts, "source")),
            recent_contacts=recent_contacts(contacts),
        )


def build_opportunity_metrics(
    opportunities: Sequence[Opportunity], stage_map: dict[str, str]
) -> OpportunityMetrics:
    won_count = sum(1 for o in opportunities if o.is_won())
    lost_count = sum(1 for o in opportunities if o.is_lost())

    with _validated("OpportunityMetrics"):
        return OpportunityMetrics(
            total=len(opportunities),
            total_value=sum(o.monetary_value for o in opportunities),
            stage_breakdown=stage_breakdown(opportunities, stage_map),
            win_rate=win_rate(won_count, lost_count),
            won_count=won_count,
            lost_count=lost_count,
            avg_deal_size=average_deal_size(opportunities),
        )


def build_conversation_metrics(
    conversations: Sequence[Conversation], now: datetime | None = None
) -> ConversationMetrics:
    total = len(conversations)
    open_count = count_open(conversations)
    recent_count = sum(
        1
        for c in conversations
        if is_within_days(c.last_activity, RECENT_CONVERSATION_WINDOW_DAYS, now)
    )

    with _validated("ConversationMetrics"):
        return ConversationMetrics(
            total=total,
            open_count=open_count,
            # derived so open + closed always equals total
            closed_count=total - open_count,
            recent_count=recent_count,
            response_rate=response_rate(conversations),
        )
