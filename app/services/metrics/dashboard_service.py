"""
Dashboard service.
Runs the resource fetchers concurrently and reduces their results into the
metric payloads served by the metrics routes.
"""

import asyncio
from datetime import UTC, datetime

from app.config import Settings
from app.infrastructure.observability.logging import get_logger
from app.models.api.metrics_response import (
    ContactMetrics,
    ConversationMetrics,
    DashboardSummary,
    OpportunityMetrics,
    SummaryMeta,
)
from app.services.crm.fetchers import CrmFetchers
from app.services.metrics.aggregation import (
    build_contact_metrics,
    build_conversation_metrics,
    build_opportunity_metrics,
    build_stage_map,
)

logger = get_logger(__name__)


class DashboardService:
    """
    Pull-and-reduce compositor for the dashboard.

    All fetches of one call are joined all-or-nothing: the first failure
    propagates and the results of sibling fetches are discarded.
    """

    def __init__(self, fetchers: CrmFetchers, config: Settings):
        self.fetchers = fetchers
        self.config = config

    async def get_contact_metrics(self) -> ContactMetrics:
        contacts = await self.fetchers.contacts.fetch()
        return build_contact_metrics(contacts)

    async def get_opportunity_metrics(self) -> OpportunityMetrics:
        opportunities, pipelines = await asyncio.gather(
            self.fetchers.opportunities.fetch(),
            self.fetchers.pipelines.fetch(),
        )
        return build_opportunity_metrics(opportunities, build_stage_map(pipelines))

    async def get_conversation_metrics(self) -> ConversationMetrics:
        conversations = await self.fetchers.conversations.fetch()
        return build_conversation_metrics(conversations)

    async def get_summary(self) -> DashboardSummary:
        """
        Fetch every resource concurrently and assemble the unified summary.

        Raises:
            CrmTransportError: If any single fetch fails
        """
        started = datetime.now(UTC)

        # First failure wins; fetches still in flight are left to finish and their
        # results dropped. Fetchers hold nothing that needs releasing.
        contacts, opportunities, conversations, pipelines = await asyncio.gather(
            self.fetchers.contacts.fetch(),
            self.fetchers.opportunities.fetch(),
            self.fetchers.conversations.fetch(),
            self.fetchers.pipelines.fetch(),
        )

        stage_map = build_stage_map(pipelines)
        now = datetime.now(UTC)

        summary = DashboardSummary(
            contacts=build_contact_metrics(contacts, now),
            opportunities=build_opportunity_metrics(opportunities, stage_map),
            conversations=build_conversation_metrics(conversations, now),
            meta=SummaryMeta(
                generated_at=now,
                location_id=self.config.GHL_LOCATION_ID or None,
                agency_name=self.config.AGENCY_NAME,
                client_name=self.config.CLIENT_NAME,
            ),
        )

        logger.info(
            "Dashboard summary generated",
            generation=self.fetchers.generation.value,
            contacts=len(contacts),
            opportunities=len(opportunities),
            conversations=len(conversations),
            pipelines=len(pipelines),
            duration_ms=round((now - started).total_seconds() * 1000, 2),
        )
        return summary
