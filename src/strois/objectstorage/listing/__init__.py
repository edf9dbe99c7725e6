"""Object storage listing operations."""

from .object_listing import ListingState, ObjectListing

__all__ = ["ListingState", "ObjectListing"]
