"""Retry policy for transient storage failures."""

from sellerdesk.resilience.retry import retry_on_storage_error

__all__ = ["retry_on_storage_error"]
