"""Web application entry point for Inbox Canon."""

from .app import create_app

__all__ = ["create_app"]
