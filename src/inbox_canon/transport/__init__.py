"""Transport adapters for external mailbox providers."""

from .gmail_api import GmailApiClient, GmailApiError
from .imap_client import ImapClient, ImapError, ImapRawMessageFetcher

__all__ = [
    "GmailApiClient",
    "GmailApiError",
    "ImapClient",
    "ImapError",
    "ImapRawMessageFetcher",
]
