from cipherdocs.db.models.registry import DocumentModel, AccessEntryModel

__all__ = [
    "DocumentModel",
    "AccessEntryModel"
]
