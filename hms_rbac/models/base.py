"""
Base SQLAlchemy models with common fields and utilities.
"""

from sqlalchemy import Column, Integer
from sqlalchemy.orm import declared_attr

from hms_rbac.core.database import Base


class BaseModel(Base):
    """Base model with common fields."""

    __abstract__ = True

    @declared_attr
    def id(cls):
        return Column(Integer, primary_key=True, index=True)
