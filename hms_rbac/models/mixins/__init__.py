"""
Model mixins for SQLAlchemy models.
"""

from .timestamp_mixin import TimestampMixin, as_utc

__all__ = ["TimestampMixin", "as_utc"]
