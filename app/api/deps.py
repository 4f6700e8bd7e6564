"""Request-scoped accessors for the clients created at application startup."""

from __future__ import annotations

from elasticsearch import Elasticsearch
from fastapi import Request
from sqlalchemy.engine import Engine

from app.core.config import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_search_client(request: Request) -> Elasticsearch:
    return request.app.state.search_client
