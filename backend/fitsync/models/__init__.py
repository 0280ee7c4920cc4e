"""Database Models."""

from fitsync.models.base import Base

__all__ = ["Base"]
