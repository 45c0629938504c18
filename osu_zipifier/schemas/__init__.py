"""Request schemas."""

from .request import IdType, ServeMapsRequest

__all__ = ["IdType", "ServeMapsRequest"]
