"""
Resolver HTTP router

FastAPI APIRouter exposing the resolver entry points.

Endpoints:
    GET /resolve   — query -> knowledge record
    GET /search    — autocomplete suggestions
    GET /trending  — today's most-read articles
    GET /health    — cache / in-flight / enrichment counters
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Query

from wiki_resolver import service

logger = logging.getLogger(__name__)

resolver_router = APIRouter(tags=["resolver"])


@resolver_router.get("/resolve")
async def resolve_endpoint(
    query: str = Query(..., description="Free-text subject to resolve"),
    include_full_content: bool = Query(False, description="Load sanitized article markup before returning"),
) -> Dict[str, Any]:
    record = await service.resolve(query, include_full_content=include_full_content)
    return record.to_dict()


@resolver_router.get("/search")
async def search_endpoint(
    query: str = Query(..., description="Prefix or phrase to search for"),
    limit: int = Query(10, ge=1, le=50),
) -> List[Dict[str, str]]:
    return await service.search(query, limit=limit)


@resolver_router.get("/trending")
async def trending_endpoint(limit: int = Query(5, ge=1, le=20)) -> List[Dict[str, Any]]:
    records = await service.trending(limit=limit)
    return [record.to_dict() for record in records]


@resolver_router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", **service.get_resolver().stats()}
