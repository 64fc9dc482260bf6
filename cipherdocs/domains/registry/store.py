from datetime import datetime
from typing import Dict, Iterator

from cipherdocs.domains.registry.entities import Document, Principal
from cipherdocs.domains.registry.errors import (
    DocumentNotFoundError, NameRequiredError, NameTooLongError
)

DEFAULT_MAX_NAME_LENGTH = 64


def name_length(name: str) -> int:
    """Длина имени в кодовых единицах UTF-16"""
    return len(name.encode("utf-16-le")) // 2


class DocumentStore:
    """Таблица документов и выдача идентификаторов.

    Идентификаторы идут подряд начиная с 1, поэтому следующий id всегда
    count() + 1. Документы никогда не удаляются.
    """

    def __init__(self, max_name_length: int = DEFAULT_MAX_NAME_LENGTH):
        self.max_name_length = max_name_length
        self._documents: Dict[int, Document] = {}

    def validate_name(self, name: str) -> None:
        """Проверка имени до выделения идентификатора"""
        if not name:
            raise NameRequiredError()

        length = name_length(name)
        if length > self.max_name_length:
            raise NameTooLongError(length, self.max_name_length)

    def create(self, name: str, encrypted_key: bytes, owner: Principal, now: datetime) -> int:
        """Создание документа с пустым телом"""
        self.validate_name(name)

        document_id = self.count() + 1
        self._documents[document_id] = Document(
            id=document_id,
            name=name,
            owner=owner,
            encrypted_key=bytes(encrypted_key),
            created_at=now,
            updated_at=now,
        )
        return document_id

    def get(self, document_id: int) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def exists(self, document_id: int) -> bool:
        return document_id in self._documents

    def set_body(self, document_id: int, body: bytes, now: datetime) -> None:
        """Полная замена тела документа"""
        document = self.get(document_id)
        document.encrypted_body = bytes(body)
        document.updated_at = now

    def count(self) -> int:
        return len(self._documents)

    def all(self) -> Iterator[Document]:
        """Документы в порядке возрастания id"""
        for document_id in range(1, self.count() + 1):
            yield self._documents[document_id]

    def restore(self, document: Document) -> None:
        """Загрузка сохраненного документа; id должны идти подряд"""
        expected = self.count() + 1
        if document.id != expected:
            raise ValueError(f"Expected document id {expected}, got {document.id}")
        if document.updated_at < document.created_at:
            raise ValueError(f"Document {document.id} was updated before it was created")

        self._documents[document.id] = document.copy()
