"""
Metrics API endpoint for observability.

Provides:
- Summary statistics for metrics
- Recent metric events with filtering
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from folio.core.metrics import metrics

router = APIRouter()


class MetricsSummary(BaseModel):
    """Summary of metrics over a time period."""
    period_hours: int
    total_events: int
    by_category: dict
    by_event: dict
    cache_hit_rate: Optional[float]
    batches_processed: int
    symbol_failures: int
    contract_violations: int
    degraded_valuations: int


class MetricEventResponse(BaseModel):
    """Single metric event for API response."""
    timestamp: str
    category: str
    event_type: str
    symbol: Optional[str]
    region: Optional[str]
    value: float
    metadata: dict


@router.get("/summary", response_model=MetricsSummary)
async def get_metrics_summary(
    hours: int = Query(default=24, ge=1, le=168, description="Hours of history to include")
) -> MetricsSummary:
    """
    Get aggregated summary of recent metrics.

    Returns cache hit rate and counts for batches, failures, contract
    violations and degraded valuations.
    """
    summary = metrics.get_summary(hours=hours)
    return MetricsSummary(**summary)


@router.get("/events", response_model=List[MetricEventResponse])
async def get_recent_events(
    category: Optional[str] = Query(default=None, description="Filter by category"),
    event_type: Optional[str] = Query(default=None, description="Filter by event type"),
    symbol: Optional[str] = Query(default=None, description="Filter by symbol"),
    region: Optional[str] = Query(default=None, description="Filter by region"),
    limit: int = Query(default=100, ge=1, le=1000, description="Max events to return"),
    hours: int = Query(default=24, ge=1, le=168, description="Hours of history")
) -> List[MetricEventResponse]:
    """
    Get recent metric events with optional filtering, most recent first.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)

    events = []
    for event in reversed(metrics.get_buffer()):
        if event.timestamp < cutoff:
            continue
        if category and event.category != category:
            continue
        if event_type and event.event_type != event_type:
            continue
        if symbol and event.symbol != symbol.upper():
            continue
        if region and event.region != region.upper():
            continue

        events.append(MetricEventResponse(**event.to_dict()))
        if len(events) >= limit:
            break

    return events
