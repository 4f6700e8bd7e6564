"""Pydantic schemas for admin API payloads."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class IndexStats(BaseModel):
    """Primary-shard statistics of one search index."""

    index: str
    document_count: int
    store_size: int
    indexing_total: int
    search_total: int


class DependencyStatus(BaseModel):
    """Reachability of the SQL and search backends."""

    database: Literal["ok", "unreachable"]
    elasticsearch: Literal["ok", "unreachable"]


class AdminHealth(BaseModel):
    success: bool
    message: str
    status: Literal["OK", "DEGRADED"]
    dependencies: DependencyStatus


class IndexStatsResponse(BaseModel):
    success: Literal[True] = True
    data: IndexStats
