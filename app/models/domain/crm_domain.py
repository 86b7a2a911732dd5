# app/models/domain/crm_domain.py
"""
CRM Domain Models
Read-only views over raw CRM API records. Built once per request by the
fetchers and discarded after aggregation.
"""

import math
from datetime import UTC, datetime
from typing import Any


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a CRM timestamp.

    Accepts ISO-8601 strings (date-only allowed, trailing Z allowed), epoch
    milliseconds as numbers or digit strings, and datetimes. Naive values are
    taken as UTC. Returns None for anything else.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = _from_epoch_ms(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.isdigit():
            parsed = _from_epoch_ms(int(text))
        else:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
    else:
        return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _from_epoch_ms(value: float) -> datetime | None:
    try:
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def coerce_amount(value: Any) -> float:
    """Monetary value as a float; missing or non-numeric values become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(amount) or math.isinf(amount):
        return 0.0
    return amount


def coerce_text(value: Any) -> str | None:
    """Scalar field as text; missing, empty or structured values become None."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    text = str(value).strip()
    return text or None


def coerce_count(value: Any) -> int:
    """Non-negative integer counter; anything unparseable becomes 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        count = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(count, 0)


class Contact:
    """Domain model for a CRM contact."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.first_name = coerce_text(data.get("firstName")) or ""
        self.last_name = coerce_text(data.get("lastName")) or ""
        self.email = coerce_text(data.get("email"))
        self.phone = coerce_text(data.get("phone"))
        self.source = coerce_text(data.get("source"))
        self.date_added_raw = data.get("dateAdded")
        self.date_added = parse_timestamp(self.date_added_raw)
        tags = data.get("tags")
        tags = tags if isinstance(tags, list) else []
        self.tags = tuple(text for text in map(coerce_text, tags) if text)
        self.raw_data = data

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Opportunity:
    """Domain model for a sales opportunity."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.name = data.get("name", "")
        self.monetary_value = coerce_amount(data.get("monetaryValue"))
        self.status = coerce_text(data.get("status")) or ""
        self.pipeline_id = data.get("pipelineId")
        stage_id = data.get("pipelineStageId")
        self.pipeline_stage_id = str(stage_id) if stage_id is not None else None
        self.raw_data = data

    def is_won(self) -> bool:
        return self.status == "won"

    def is_lost(self) -> bool:
        return self.status == "lost"


class Stage:
    """A named step of a pipeline."""

    def __init__(self, data: dict):
        stage_id = data.get("id")
        self.id = str(stage_id) if stage_id is not None else None
        self.name = coerce_text(data.get("name")) or ""


class Pipeline:
    """Domain model for a pipeline and its ordered stages."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.name = data.get("name", "")
        stages = data.get("stages")
        self.stages = [
            Stage(stage) for stage in (stages if isinstance(stages, list) else [])
            if isinstance(stage, dict)
        ]
        self.raw_data = data


class Conversation:
    """Domain model for a conversation thread."""

    OUTBOUND_MESSAGE_TYPE = "TYPE_OUTBOUND"

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.status = coerce_text(data.get("status"))
        self.unread_count = coerce_count(data.get("unreadCount"))
        self.last_message_type = coerce_text(data.get("lastMessageType"))
        self.last_message_date = parse_timestamp(data.get("lastMessageDate"))
        self.date_added = parse_timestamp(data.get("dateAdded"))
        self.raw_data = data

    def is_open(self) -> bool:
        """Unread messages or an explicit open status mark a thread as open."""
        return self.unread_count > 0 or self.status == "open"

    def has_business_reply(self) -> bool:
        return self.last_message_type == self.OUTBOUND_MESSAGE_TYPE

    @property
    def last_activity(self) -> datetime | None:
        return self.last_message_date or self.date_added
