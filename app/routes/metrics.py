"""
Metrics API Routes
HTTP endpoints that serve dashboard metrics computed from live CRM data.
Every failure is reported as {"error": ..., "details": ...} with status 500.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from app.infrastructure.observability.logging import get_logger
from app.models.api.metrics_response import (
    ContactMetrics,
    ConversationMetrics,
    DashboardSummary,
    MetricsErrorResponse,
    OpportunityMetrics,
)
from app.services.crm.client import CrmTransportError
from app.services.metrics.aggregation import AggregationError
from app.services.metrics.dashboard_service import DashboardService

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["metrics"])

ERROR_RESPONSES = {500: {"model": MetricsErrorResponse}}


def get_dashboard_service(request: Request) -> DashboardService:
    """Dashboard service created during application startup."""
    return request.app.state.dashboard_service


def _error_response(resource: str, error: Exception, unexpected: bool = False) -> JSONResponse:
    if unexpected:
        logger.error(
            "Unexpected error serving metrics",
            resource=resource,
            error=str(error),
            exc_info=True,
        )
    else:
        logger.error("Metrics request failed", resource=resource, error=str(error))
    body = MetricsErrorResponse(error=f"Failed to fetch {resource}", details=str(error))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump()
    )


@router.get("/contacts", response_model=ContactMetrics, responses=ERROR_RESPONSES)
async def contact_metrics(service: DashboardService = Depends(get_dashboard_service)):
    """Contact totals, lead source breakdown and the most recent contacts."""
    try:
        return await service.get_contact_metrics()
    except (CrmTransportError, AggregationError) as e:
        return _error_response("contacts", e)
    except Exception as e:
        return _error_response("contacts", e, unexpected=True)


@router.get("/opportunities", response_model=OpportunityMetrics, responses=ERROR_RESPONSES)
async def opportunity_metrics(service: DashboardService = Depends(get_dashboard_service)):
    """Pipeline value, stage breakdown, win rate and average deal size."""
    try:
        return await service.get_opportunity_metrics()
    except (CrmTransportError, AggregationError) as e:
        return _error_response("opportunities", e)
    except Exception as e:
        return _error_response("opportunities", e, unexpected=True)


@router.get("/conversations", response_model=ConversationMetrics, responses=ERROR_RESPONSES)
async def conversation_metrics(service: DashboardService = Depends(get_dashboard_service)):
    """Open/closed split and response rate."""
    try:
        return await service.get_conversation_metrics()
    except (CrmTransportError, AggregationError) as e:
        return _error_response("conversations", e)
    except Exception as e:
        return _error_response("conversations", e, unexpected=True)


@router.get("/summary", response_model=DashboardSummary, responses=ERROR_RESPONSES)
async def dashboard_summary(service: DashboardService = Depends(get_dashboard_service)):
    """All metric groups in one response."""
    try:
        return await service.get_summary()
    except (CrmTransportError, AggregationError) as e:
        return _error_response("summary", e)
    except Exception as e:
        return _error_response("summary", e, unexpected=True)
