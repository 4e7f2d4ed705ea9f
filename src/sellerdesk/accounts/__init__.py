"""Receiving-address to user resolution for inbound webhooks."""

from sellerdesk.accounts.directory import UserDirectory

__all__ = ["UserDirectory"]
