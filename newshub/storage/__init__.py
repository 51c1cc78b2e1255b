"""Storage layer for article persistence."""

from newshub.storage.database import Database
from newshub.storage.repository import ArticleRepository

__all__ = ["Database", "ArticleRepository"]
