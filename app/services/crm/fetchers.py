"""
Resource fetchers for the CRM API.

Each fetcher binds one entity type to one paginator and endpoint shape and
injects the location id the API requires. The protocol generation is chosen
once in build_fetchers() and never mixed within a deployment.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

from app.config import Settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.crm_domain import Contact, Conversation, Opportunity, Pipeline
from app.services.crm.client import CrmApiClient, CrmTransportError
from app.services.crm.pagination import (
    CursorPaginator,
    CursorTokenPaginator,
    PagePostPaginator,
    Paginator,
    SingleRequestPaginator,
)

logger = get_logger(__name__)

T = TypeVar("T")


class ApiGeneration(StrEnum):
    V1 = "v1"
    V2 = "v2"


class ResourceFetcher(Generic[T]):
    """Fetch one resource type to completion."""

    resource: str = ""
    items_key: str = ""
    model: type

    def __init__(self, paginator: Paginator, path: str, location_id: str):
        self.paginator = paginator
        self.path = path
        self.location_id = location_id

    def _request_extra(self) -> dict[str, Any]:
        """Fixed parameters sent with every page; the location id goes here."""
        return {"locationId": self.location_id}

    async def fetch(self) -> list[T]:
        """
        Drain the listing and convert records to domain models.

        Raises:
            CrmTransportError: If any page fails; no partial result is returned
        """
        try:
            records = await self.paginator.drain(self.path, self.items_key, self._request_extra())
        except CrmTransportError as e:
            logger.error(
                "Resource fetch failed",
                resource=self.resource,
                path=self.path,
                status_code=e.status_code,
                error=e.message,
            )
            raise

        return [self.model(record) for record in records]


class ContactsFetcher(ResourceFetcher[Contact]):
    resource = "contacts"
    items_key = "contacts"
    model = Contact


class OpportunitiesFetcher(ResourceFetcher[Opportunity]):
    resource = "opportunities"
    items_key = "opportunities"
    model = Opportunity


class ConversationsFetcher(ResourceFetcher[Conversation]):
    resource = "conversations"
    items_key = "conversations"
    model = Conversation


class PipelinesFetcher(ResourceFetcher[Pipeline]):
    resource = "pipelines"
    items_key = "pipelines"
    model = Pipeline


@dataclass(frozen=True)
class CrmFetchers:
    """The four fetchers of one deployment, all on the same protocol generation."""

    generation: ApiGeneration
    contacts: ContactsFetcher
    opportunities: OpportunitiesFetcher
    conversations: ConversationsFetcher
    pipelines: PipelinesFetcher


def build_fetchers(config: Settings, client: CrmApiClient) -> CrmFetchers:
    """Select the protocol generation from configuration and wire every fetcher."""
    generation = ApiGeneration(config.api_generation())
    location_id = config.GHL_LOCATION_ID
    page_size = config.GHL_PAGE_SIZE

    if generation is ApiGeneration.V1:
        cursor = CursorPaginator(client, page_size)
        fetchers = CrmFetchers(
            generation=generation,
            contacts=ContactsFetcher(cursor, "/contacts/", location_id),
            opportunities=OpportunitiesFetcher(cursor, "/opportunities/search", location_id),
            conversations=ConversationsFetcher(cursor, "/conversations/search", location_id),
            pipelines=PipelinesFetcher(SingleRequestPaginator(client), "/pipelines/", location_id),
        )
    else:
        page_post = PagePostPaginator(client, page_size)
        fetchers = CrmFetchers(
            generation=generation,
            contacts=ContactsFetcher(page_post, "/contacts/search", location_id),
            opportunities=OpportunitiesFetcher(page_post, "/opportunities/search", location_id),
            conversations=ConversationsFetcher(
                CursorTokenPaginator(client, page_size), "/conversations/search", location_id
            ),
            pipelines=PipelinesFetcher(
                SingleRequestPaginator(client), "/opportunities/pipelines", location_id
            ),
        )

    logger.info("CRM fetchers configured", generation=generation.value, location_id=location_id)
    return fetchers
