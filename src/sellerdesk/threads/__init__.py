"""Seller thread lifecycle, aggregate views, and consolidation."""

from sellerdesk.threads.consolidation import ConsolidationEngine, select_parent_thread
from sellerdesk.threads.store import ThreadStore
from sellerdesk.threads.views import (
    build_thread_view,
    build_thread_views,
    display_name,
    has_meaningful_name,
    list_thread_views,
    preview,
)

__all__ = [
    "ConsolidationEngine",
    "ThreadStore",
    "build_thread_view",
    "build_thread_views",
    "display_name",
    "has_meaningful_name",
    "list_thread_views",
    "preview",
    "select_parent_thread",
]
