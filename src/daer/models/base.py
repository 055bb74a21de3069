# src/daer/models/base.py
"""SQLAlchemy Base class for declarative models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


__all__ = ["Base"]
