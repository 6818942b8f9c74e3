"""Analytics query collaborator."""
from __future__ import annotations

from budgetwatch.query.service import (
    AnalyticsQueryService,
    QueryRequest,
    StaticQueryService,
    build_query_request,
)

__all__ = ["AnalyticsQueryService", "QueryRequest", "StaticQueryService", "build_query_request"]
