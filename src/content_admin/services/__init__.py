"""Services layer."""

from content_admin.services.collection_service import CollectionInfo, CollectionService

__all__ = ["CollectionInfo", "CollectionService"]
