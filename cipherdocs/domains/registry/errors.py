"""
Ошибки реестра документов.

Четыре категории: not-found, authorization, validation, state-conflict.
Каждая ошибка несет стабильный код и идентифицирующие поля (id документа,
участники), которые API отдает клиенту как есть.
"""

from typing import Any, Dict


class RegistryError(Exception):
    """Базовая ошибка реестра"""

    code = "registry_error"
    category = "registry"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def fields(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data = {"error": self.code, "category": self.category, "detail": self.message}
        data.update(self.fields())
        return data


class NotFoundError(RegistryError):
    category = "not_found"


class AuthorizationError(RegistryError, PermissionError):
    category = "authorization"


class RegistryValidationError(RegistryError, ValueError):
    category = "validation"


class StateConflictError(RegistryError):
    category = "state_conflict"


class DocumentNotFoundError(NotFoundError):
    code = "DocumentNotFound"

    def __init__(self, document_id: int):
        self.document_id = document_id
        super().__init__(f"Document {document_id} does not exist")

    def fields(self) -> Dict[str, Any]:
        return {"document_id": self.document_id}


class NotDocumentOwnerError(AuthorizationError):
    code = "NotDocumentOwner"

    def __init__(self, document_id: int, caller: str):
        self.document_id = document_id
        self.caller = caller
        super().__init__(f"{caller} is not the owner of document {document_id}")

    def fields(self) -> Dict[str, Any]:
        return {"document_id": self.document_id, "caller": self.caller}


class NotAuthorizedEditorError(AuthorizationError):
    code = "NotAuthorizedEditor"

    def __init__(self, document_id: int, caller: str):
        self.document_id = document_id
        self.caller = caller
        super().__init__(f"{caller} is not allowed to edit document {document_id}")

    def fields(self) -> Dict[str, Any]:
        return {"document_id": self.document_id, "caller": self.caller}


class NameRequiredError(RegistryValidationError):
    code = "NameRequired"

    def __init__(self):
        super().__init__("Document name is required")


class NameTooLongError(RegistryValidationError):
    code = "NameTooLong"

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(f"Document name is {length} code units long, limit is {limit}")

    def fields(self) -> Dict[str, Any]:
        return {"length": self.length, "limit": self.limit}


class InvalidCollaboratorError(RegistryValidationError):
    code = "InvalidCollaborator"

    def __init__(self, collaborator: str):
        self.collaborator = collaborator
        super().__init__(f"Invalid collaborator {collaborator!r}")

    def fields(self) -> Dict[str, Any]:
        return {"collaborator": self.collaborator}


class AlreadyAuthorizedError(StateConflictError):
    code = "AlreadyAuthorized"

    def __init__(self, document_id: int, collaborator: str):
        self.document_id = document_id
        self.collaborator = collaborator
        super().__init__(f"{collaborator} is already authorized for document {document_id}")

    def fields(self) -> Dict[str, Any]:
        return {"document_id": self.document_id, "collaborator": self.collaborator}


class CollaboratorNotFoundError(StateConflictError):
    code = "CollaboratorNotFound"

    def __init__(self, document_id: int, collaborator: str):
        self.document_id = document_id
        self.collaborator = collaborator
        super().__init__(f"{collaborator} is not a collaborator of document {document_id}")

    def fields(self) -> Dict[str, Any]:
        return {"document_id": self.document_id, "collaborator": self.collaborator}
