from enum import Enum
from typing import Dict, List, Tuple, TYPE_CHECKING

from cipherdocs.domains.registry.entities import Principal

if TYPE_CHECKING:
    from cipherdocs.domains.registry.acl import AccessControlList
    from cipherdocs.domains.registry.store import DocumentStore


class Visibility(Enum):
    """Причина, по которой участник видит документ"""
    OWNER = "owner"
    GRANT = "grant"


class ReverseIndex:
    """Производный индекс участник -> видимые документы.

    Не является источником истины: его всегда можно пересобрать из
    DocumentStore и AccessControlList.
    """

    def __init__(self):
        self._visible: Dict[Principal, Dict[int, Visibility]] = {}

    def add_ownership(self, principal: Principal, document_id: int) -> None:
        self._visible.setdefault(principal, {})[document_id] = Visibility.OWNER

    def add_grant(self, principal: Principal, document_id: int) -> None:
        self._visible.setdefault(principal, {})[document_id] = Visibility.GRANT

    def remove_grant(self, principal: Principal, document_id: int) -> None:
        documents = self._visible.get(principal)
        if not documents or documents.get(document_id) is not Visibility.GRANT:
            return

        del documents[document_id]
        if not documents:
            del self._visible[principal]

    def list_for(self, principal: Principal) -> List[Tuple[int, bool]]:
        """Пары (id, can_edit) по возрастанию id.

        Любой видимый документ доступен для редактирования: режима
        "только чтение" нет.
        """
        documents = self._visible.get(principal, {})
        return [(document_id, True) for document_id in sorted(documents)]

    def principals(self) -> List[Principal]:
        return list(self._visible)

    def snapshot(self) -> Dict[Principal, Dict[int, Visibility]]:
        return {principal: dict(documents) for principal, documents in self._visible.items()}

    @classmethod
    def rebuild(cls, store: "DocumentStore", acl: "AccessControlList") -> "ReverseIndex":
        """Пересборка индекса из авторитетных таблиц"""
        index = cls()
        for document in store.all():
            index.add_ownership(document.owner, document.id)
            for principal in acl.list_for(document.id):
                index.add_grant(principal, document.id)
        return index
