"""
HTTP API for the news hub.

Public read endpoints under /api and admin endpoints under /admin/api.
"""

from newshub.api.app import create_app

__all__ = ["create_app"]
