from cipherdocs.domains.registry.entities import (
    AccessEntry, Document, DocumentPreview, Principal, ZERO_PRINCIPAL, is_zero_principal,
    normalize_principal
)
from cipherdocs.domains.registry.errors import (
    RegistryError, NotFoundError, AuthorizationError, RegistryValidationError,
    StateConflictError, DocumentNotFoundError, NotDocumentOwnerError,
    NotAuthorizedEditorError, NameRequiredError, NameTooLongError,
    InvalidCollaboratorError, AlreadyAuthorizedError, CollaboratorNotFoundError
)
from cipherdocs.domains.registry.events import EventLog, EventType, RegistryEvent
from cipherdocs.domains.registry.services import RegistryService

__all__ = [
    "AccessEntry", "Document", "DocumentPreview", "Principal", "ZERO_PRINCIPAL",
    "is_zero_principal", "normalize_principal",
    "RegistryError", "NotFoundError", "AuthorizationError", "RegistryValidationError",
    "StateConflictError", "DocumentNotFoundError", "NotDocumentOwnerError",
    "NotAuthorizedEditorError", "NameRequiredError", "NameTooLongError",
    "InvalidCollaboratorError", "AlreadyAuthorizedError", "CollaboratorNotFoundError",
    "EventLog", "EventType", "RegistryEvent",
    "RegistryService"
]
