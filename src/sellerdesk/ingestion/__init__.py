"""Inbound message ingestion: body cleanup, deduplication, routing, webhooks."""

from sellerdesk.ingestion.cleaning import clean_body, clean_email_body, extract_latest_reply
from sellerdesk.ingestion.pipeline import IngestionPipeline

__all__ = ["IngestionPipeline", "clean_body", "clean_email_body", "extract_latest_reply"]
