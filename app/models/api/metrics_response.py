# app/models/api/metrics_response.py
"""
Dashboard metrics response models.
Produced by the aggregation engine and serialized by the metrics routes
using camelCase aliases (newThisMonth, winRate, ...).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MetricsModel(BaseModel):
    """Base for metric payloads: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class BreakdownEntry(MetricsModel):
    """One chart segment."""

    name: str = Field(..., description="Group label")
    value: int = Field(..., ge=0, description="Number of records in the group")


class RecentContact(MetricsModel):
    """Display row for the recent contacts table."""

    id: str | None = Field(None, description="Contact ID")
    name: str = Field(..., description="Full name or 'Unknown'")
    email: str = Field(..., description="Email or 'N/A'")
    phone: str = Field(..., description="Phone or 'N/A'")
    source: str = Field(..., description="Lead source or 'Unknown'")
    date_added: str | None = Field(None, description="Date added as returned by the CRM")
    tags: list[str] = Field(default_factory=list, description="Contact tags")


class ContactMetrics(MetricsModel):
    total: int = Field(..., ge=0)
    new_this_month: int = Field(..., ge=0, description="Contacts added in the last 30 days")
    source_breakdown: list[BreakdownEntry]
    recent_contacts: list[RecentContact]


class OpportunityMetrics(MetricsModel):
    total: int = Field(..., ge=0)
    total_value: float = Field(..., description="Sum of all monetary values")
    stage_breakdown: list[BreakdownEntry]
    win_rate: float = Field(..., ge=0, le=1, description="won / (won + lost)")
    won_count: int = Field(..., ge=0)
    lost_count: int = Field(..., ge=0)
    avg_deal_size: float = Field(..., ge=0, description="Mean of positive monetary values")


class ConversationMetrics(MetricsModel):
    total: int = Field(..., ge=0)
    open_count: int = Field(..., ge=0)
    closed_count: int = Field(..., ge=0)
    recent_count: int = Field(..., ge=0, description="Conversations active in the last 30 days")
    response_rate: float = Field(..., ge=0, le=1)


class SummaryMeta(MetricsModel):
    generated_at: datetime
    location_id: str | None = None
    agency_name: str | None = None
    client_name: str | None = None


class DashboardSummary(MetricsModel):
    """Unified response for the dashboard landing page."""

    contacts: ContactMetrics
    opportunities: OpportunityMetrics
    conversations: ConversationMetrics
    meta: SummaryMeta


class MetricsErrorResponse(BaseModel):
    error: str = Field(..., description="Human summary of the failure")
    details: str = Field(..., description="Underlying error message")
