from datetime import datetime, timezone
from typing import Callable, FrozenSet, Iterable, List, Optional
import logging
import threading

from cipherdocs.domains.registry.acl import AccessControlList
from cipherdocs.domains.registry.entities import AccessEntry, Document, DocumentPreview, Principal
from cipherdocs.domains.registry.errors import (
    NotAuthorizedEditorError, NotDocumentOwnerError, RegistryError
)
from cipherdocs.domains.registry.events import EventListener, EventLog, EventType, RegistryEvent
from cipherdocs.domains.registry.reverse_index import ReverseIndex
from cipherdocs.domains.registry.store import DEFAULT_MAX_NAME_LENGTH, DocumentStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RegistryService:
    """Реестр зашифрованных документов с контролем доступа.

    Все операции выполняются под одной блокировкой на весь реестр: обратный
    индекс охватывает все документы сразу, поэтому блокировки по документам
    недостаточно. Проверки прав выполняются до любой мутации, так что
    неудачная операция не меняет ни таблицы, ни индекс, ни журнал событий.
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
        event_log_size: int = 1000,
    ):
        self._lock = threading.RLock()
        self._clock = clock
        self._last_tick: Optional[datetime] = None

        self.store = DocumentStore(max_name_length=max_name_length)
        self.acl = AccessControlList()
        self.index = ReverseIndex()
        self.events = EventLog(capacity=event_log_size)

    def _now(self) -> datetime:
        """Время не идет назад в пределах одного реестра"""
        now = self._clock()
        if self._last_tick is not None and now < self._last_tick:
            now = self._last_tick
        self._last_tick = now
        return now

    def _audience(self, document: Document) -> FrozenSet[Principal]:
        return frozenset([document.owner, *self.acl.list_for(document.id)])

    def _require_owner(self, document: Document, caller: Principal) -> None:
        if caller != document.owner:
            raise NotDocumentOwnerError(document.id, caller)

    # Мутации

    def create_document(self, caller: Principal, name: str, encrypted_key: bytes) -> int:
        """Создание документа; владельцем становится вызывающий"""
        with self._lock:
            try:
                self.store.validate_name(name)
            except RegistryError as e:
                logger.warning(f"Rejected document creation by {caller}: {e.code}")
                raise

            now = self._now()
            document_id = self.store.create(name, encrypted_key, caller, now)
            self.index.add_ownership(caller, document_id)
            self.events.append(
                EventType.DOCUMENT_CREATED, document_id, caller, now, frozenset([caller]),
                name=name,
            )

        logger.info(f"Document {document_id} created by {caller}")
        return document_id

    def update_document_body(self, caller: Principal, document_id: int, encrypted_body: bytes) -> Document:
        """Замена зашифрованного тела документа"""
        with self._lock:
            try:
                document = self.store.get(document_id)
                if not self.acl.is_authorized(document_id, caller, document.owner):
                    raise NotAuthorizedEditorError(document_id, caller)
            except RegistryError as e:
                logger.warning(f"Rejected body update of document {document_id} by {caller}: {e.code}")
                raise

            now = self._now()
            self.store.set_body(document_id, encrypted_body, now)
            self.events.append(
                EventType.DOCUMENT_UPDATED, document_id, caller, now, self._audience(document)
            )
            updated = document.copy()

        logger.info(f"Document {document_id} body updated by {caller} ({len(encrypted_body)} bytes)")
        return updated

    def grant_document_access(self, caller: Principal, document_id: int, collaborator: Principal) -> None:
        """Выдача соавтору права редактирования; только владелец"""
        with self._lock:
            try:
                document = self.store.get(document_id)
                self._require_owner(document, caller)
                self.acl.grant(document_id, collaborator, document.owner)
            except RegistryError as e:
                logger.warning(f"Rejected grant on document {document_id} by {caller}: {e.code}")
                raise

            self.index.add_grant(collaborator, document_id)
            self.events.append(
                EventType.ACCESS_GRANTED, document_id, caller, self._now(),
                self._audience(document), collaborator=collaborator,
            )

        logger.info(f"Access to document {document_id} granted to {collaborator}")

    def revoke_document_access(self, caller: Principal, document_id: int, collaborator: Principal) -> None:
        """Отзыв права редактирования; только владелец"""
        with self._lock:
            try:
                document = self.store.get(document_id)
                self._require_owner(document, caller)
                self.acl.revoke(document_id, collaborator)
            except RegistryError as e:
                logger.warning(f"Rejected revoke on document {document_id} by {caller}: {e.code}")
                raise

            self.index.remove_grant(collaborator, document_id)
            # отозванный соавтор тоже получает событие
            audience = self._audience(document) | {collaborator}
            self.events.append(
                EventType.ACCESS_REVOKED, document_id, caller, self._now(),
                audience, collaborator=collaborator,
            )

        logger.info(f"Access to document {document_id} revoked from {collaborator}")

    # Чтение

    def get_document_details(self, document_id: int) -> Document:
        with self._lock:
            return self.store.get(document_id).copy()

    def get_documents_for(self, principal: Principal) -> List[DocumentPreview]:
        """Документы, которые участник видит и может редактировать"""
        with self._lock:
            previews = []
            for document_id, can_edit in self.index.list_for(principal):
                document = self.store.get(document_id)
                previews.append(DocumentPreview(
                    id=document.id,
                    name=document.name,
                    owner=document.owner,
                    updated_at=document.updated_at,
                    can_edit=can_edit,
                ))
            return previews

    def get_collaborators(self, document_id: int) -> List[Principal]:
        with self._lock:
            self.store.get(document_id)
            return self.acl.list_for(document_id)

    def has_access(self, document_id: int, principal: Principal) -> bool:
        with self._lock:
            document = self.store.get(document_id)
            return self.acl.is_authorized(document_id, principal, document.owner)

    def total_documents(self) -> int:
        with self._lock:
            return self.store.count()

    def access_entries(self) -> List[AccessEntry]:
        with self._lock:
            return self.acl.entries()

    def documents(self) -> List[Document]:
        with self._lock:
            return [document.copy() for document in self.store.all()]

    # События

    def events_since(self, sequence: int = 0) -> List[RegistryEvent]:
        with self._lock:
            return self.events.since(sequence)

    def subscribe(self, listener: EventListener) -> None:
        with self._lock:
            self.events.subscribe(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        with self._lock:
            self.events.unsubscribe(listener)

    # Обслуживание

    def find_inconsistencies(self) -> List[str]:
        """Сверка обратного индекса и таблиц; пустой список - все согласовано"""
        with self._lock:
            problems = []
            documents = list(self.store.all())

            for expected_id, document in enumerate(documents, start=1):
                if document.id != expected_id:
                    problems.append(f"document id {document.id} found at position {expected_id}")
                if document.updated_at < document.created_at:
                    problems.append(f"document {document.id} updated_at precedes created_at")

            for entry in self.acl.entries():
                if not self.store.exists(entry.document_id):
                    problems.append(f"access entry for missing document {entry.document_id}")
                    continue
                if entry.principal == self.store.get(entry.document_id).owner:
                    problems.append(f"owner stored as collaborator of document {entry.document_id}")

            actual = self.index.snapshot()
            expected = ReverseIndex.rebuild(self.store, self.acl).snapshot()
            for principal in sorted(set(actual) | set(expected)):
                have = actual.get(principal, {})
                want = expected.get(principal, {})
                if have != want:
                    problems.append(
                        f"reverse index for {principal}: have {sorted(have)}, expected {sorted(want)}"
                    )

            return problems

    @classmethod
    def from_documents(
        cls,
        documents: Iterable[Document],
        access_entries: Iterable[AccessEntry],
        **kwargs,
    ) -> "RegistryService":
        """Восстановление реестра из сохраненных строк.

        Документы должны идти по возрастанию id, записи доступа - в порядке
        выдачи прав внутри каждого документа. Обратный индекс пересобирается.
        """
        service = cls(**kwargs)
        for document in documents:
            service.store.restore(document)
            if service._last_tick is None or document.updated_at > service._last_tick:
                service._last_tick = document.updated_at

        for entry in access_entries:
            document = service.store.get(entry.document_id)
            service.acl.grant(entry.document_id, entry.principal, document.owner)

        service.index = ReverseIndex.rebuild(service.store, service.acl)
        logger.info(
            f"Registry restored: {service.store.count()} documents, "
            f"{len(service.acl.entries())} access entries"
        )
        return service
