from typing import Dict, List

from cipherdocs.domains.registry.entities import AccessEntry, Principal, is_zero_principal
from cipherdocs.domains.registry.errors import (
    AlreadyAuthorizedError, CollaboratorNotFoundError, InvalidCollaboratorError
)


class AccessControlList:
    """Соавторы документов, отдельно от владельца.

    Владелец никогда не хранится как запись: права владельца следуют
    из самого документа.
    """

    def __init__(self):
        # dict сохраняет порядок вставки, значения не используются
        self._entries: Dict[int, Dict[Principal, None]] = {}

    def grant(self, document_id: int, principal: Principal, owner: Principal) -> None:
        """Выдача права редактирования"""
        if is_zero_principal(principal):
            raise InvalidCollaboratorError(principal)

        if self.is_authorized(document_id, principal, owner):
            raise AlreadyAuthorizedError(document_id, principal)

        self._entries.setdefault(document_id, {})[principal] = None

    def revoke(self, document_id: int, principal: Principal) -> None:
        """Отзыв права редактирования"""
        entries = self._entries.get(document_id)
        if not entries or principal not in entries:
            raise CollaboratorNotFoundError(document_id, principal)

        del entries[principal]
        if not entries:
            del self._entries[document_id]

    def contains(self, document_id: int, principal: Principal) -> bool:
        return principal in self._entries.get(document_id, {})

    def is_authorized(self, document_id: int, principal: Principal, owner: Principal) -> bool:
        return principal == owner or self.contains(document_id, principal)

    def list_for(self, document_id: int) -> List[Principal]:
        """Соавторы в порядке выдачи прав"""
        return list(self._entries.get(document_id, {}))

    def entries(self) -> List[AccessEntry]:
        return [
            AccessEntry(document_id=document_id, principal=principal)
            for document_id in sorted(self._entries)
            for principal in self._entries[document_id]
        ]
