from datetime import datetime, timezone
from typing import Iterable, List, Sequence, Set
import asyncio
import logging

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cipherdocs.db.models.registry import DocumentModel, AccessEntryModel
from cipherdocs.domains.registry.entities import AccessEntry, Document
from cipherdocs.domains.registry.services import RegistryService

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite теряет часовой пояс
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RegistryRepository:
    """Репозиторий для таблиц документов и прав доступа"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load_documents(self) -> List[Document]:
        """Все документы по возрастанию id"""
        result = await self.session.execute(
            select(DocumentModel).order_by(DocumentModel.id)
        )
        return [self._to_domain(model) for model in result.scalars().all()]

    async def load_access_entries(self) -> List[AccessEntry]:
        """Записи доступа в порядке выдачи внутри каждого документа"""
        result = await self.session.execute(
            select(AccessEntryModel)
            .order_by(AccessEntryModel.document_id, AccessEntryModel.position)
        )
        return [
            AccessEntry(document_id=model.document_id, principal=model.principal)
            for model in result.scalars().all()
        ]

    async def save_documents(self, documents: Sequence[Document]) -> None:
        """Вставка или обновление строк документов, без commit"""
        for document in documents:
            await self.session.merge(DocumentModel(
                id=document.id,
                name=document.name,
                owner=document.owner,
                encrypted_key=document.encrypted_key,
                encrypted_body=document.encrypted_body,
                created_at=document.created_at,
                updated_at=document.updated_at,
            ))
        # строки документов должны существовать до записей доступа
        await self.session.flush()

    async def replace_collaborators(self, document_id: int, principals: Sequence[str]) -> None:
        """Перезапись списка соавторов документа целиком, без commit"""
        # delete выполняется сразу, до вставки новых строк
        await self.session.execute(
            delete(AccessEntryModel).where(AccessEntryModel.document_id == document_id)
        )
        self.session.add_all([
            AccessEntryModel(document_id=document_id, principal=principal, position=position)
            for position, principal in enumerate(principals)
        ])
        await self.session.flush()

    def _to_domain(self, model: DocumentModel) -> Document:
        """Преобразование модели БД в доменную сущность"""
        return Document(
            id=model.id,
            name=model.name,
            owner=model.owner,
            encrypted_key=bytes(model.encrypted_key),
            encrypted_body=bytes(model.encrypted_body or b""),
            created_at=_aware(model.created_at),
            updated_at=_aware(model.updated_at),
        )


class RegistryPersistence:
    """Сохранение состояния реестра вне его критической секции.

    Запись сериализуется asyncio.Lock и всегда читает текущее состояние
    реестра, поэтому последняя запись несет самое свежее состояние.

    Реестр в памяти остается источником истины. Неудачная запись не теряется:
    документ остается в очереди, а каждая запись дописывает все строки
    документов до текущего количества, так что id в базе идут без пропусков.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self._lock = asyncio.Lock()
        # наибольший id, строки до которого включительно уже в базе
        self.persisted_id = 0
        self._pending_documents: Set[int] = set()
        self._pending_collaborators: Set[int] = set()

    async def load_service(self, **kwargs) -> RegistryService:
        """Восстановление реестра из базы данных"""
        async with self.session_factory() as session:
            repository = RegistryRepository(session)
            documents = await repository.load_documents()
            access_entries = await repository.load_access_entries()

        service = RegistryService.from_documents(documents, access_entries, **kwargs)
        self.persisted_id = service.total_documents()
        return service

    async def flush_document(self, service: RegistryService, document_id: int) -> None:
        await self._flush(service, documents=[document_id])
        logger.debug(f"Document {document_id} persisted")

    async def flush_collaborators(self, service: RegistryService, document_id: int) -> None:
        await self._flush(service, collaborators=[document_id])
        logger.debug(f"Collaborators of document {document_id} persisted")

    async def _flush(
        self,
        service: RegistryService,
        documents: Iterable[int] = (),
        collaborators: Iterable[int] = (),
    ) -> None:
        """Одна транзакция: недостающие и ожидающие документы, затем соавторы"""
        async with self._lock:
            self._pending_documents.update(documents)
            self._pending_collaborators.update(collaborators)

            total = service.total_documents()
            self._pending_documents.update(range(self.persisted_id + 1, total + 1))

            try:
                async with self.session_factory() as session:
                    repository = RegistryRepository(session)
                    await repository.save_documents([
                        service.get_document_details(document_id)
                        for document_id in sorted(self._pending_documents)
                    ])
                    for document_id in sorted(self._pending_collaborators):
                        await repository.replace_collaborators(
                            document_id, service.get_collaborators(document_id)
                        )
                    await session.commit()
            except SQLAlchemyError:
                logger.exception(
                    f"Registry write failed, {len(self._pending_documents)} documents "
                    f"and {len(self._pending_collaborators)} access lists left pending"
                )
                raise

            self.persisted_id = max(self.persisted_id, total)
            self._pending_documents.clear()
            self._pending_collaborators.clear()
