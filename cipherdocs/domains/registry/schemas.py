from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List
from datetime import datetime

from cipherdocs.domains.registry.entities import Document, DocumentPreview, normalize_principal
from cipherdocs.domains.registry.events import RegistryEvent

# Размер дескриптора зашифрованного ключа
KEY_HANDLE_SIZE = 32


def decode_hex(value: str) -> bytes:
    """Разбор шифртекста в виде 0x-hex строки"""
    if not isinstance(value, str):
        raise ValueError('Ciphertext must be a hex string')

    digits = value[2:] if value[:2].lower() == "0x" else value
    if len(digits) % 2:
        raise ValueError('Ciphertext hex must have an even number of digits')

    try:
        return bytes.fromhex(digits)
    except ValueError:
        raise ValueError('Ciphertext is not valid hex')


def encode_hex(value: bytes) -> str:
    return "0x" + value.hex()


class DocumentCreate(BaseModel):
    """Схема для создания документа"""
    name: str
    encrypted_key: bytes

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        # пустое имя отклоняет сам реестр
        return v.strip()

    @field_validator('encrypted_key', mode='before')
    @classmethod
    def validate_key(cls, v):
        key = decode_hex(v)
        if len(key) != KEY_HANDLE_SIZE:
            raise ValueError(f'Encrypted key handle must be {KEY_HANDLE_SIZE} bytes')
        return key


class DocumentBodyUpdate(BaseModel):
    """Схема для замены зашифрованного тела"""
    encrypted_body: bytes = Field(..., description="0x-prefixed hex ciphertext")

    @field_validator('encrypted_body', mode='before')
    @classmethod
    def validate_body(cls, v):
        return decode_hex(v)


class DocumentResponse(BaseModel):
    """Полные данные документа, включая шифртекст"""
    id: int
    name: str
    owner: str
    encrypted_key: str
    encrypted_body: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        return cls(
            id=document.id,
            name=document.name,
            owner=document.owner,
            encrypted_key=encode_hex(document.encrypted_key),
            encrypted_body=encode_hex(document.encrypted_body),
            created_at=document.created_at,
            updated_at=document.updated_at,
        )


class DocumentPreviewResponse(BaseModel):
    """Элемент списка документов участника"""
    id: int
    name: str
    owner: str
    updated_at: datetime
    can_edit: bool

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_preview(cls, preview: DocumentPreview) -> "DocumentPreviewResponse":
        return cls.model_validate(preview)


class DocumentListResponse(BaseModel):
    """Документы, доступные участнику"""
    principal: str
    documents: List[DocumentPreviewResponse]
    total: int


class DocumentCountResponse(BaseModel):
    total: int


class CollaboratorRequest(BaseModel):
    """Запрос на выдачу доступа"""
    collaborator: str

    @field_validator('collaborator')
    @classmethod
    def normalize_collaborator(cls, v):
        return normalize_principal(v)


class CollaboratorsResponse(BaseModel):
    document_id: int
    collaborators: List[str]


class AccessCheckResponse(BaseModel):
    document_id: int
    principal: str
    has_access: bool


class EventResponse(BaseModel):
    """Событие реестра"""
    sequence: int
    type: str
    document_id: int
    actor: str
    collaborator: Optional[str] = None
    name: Optional[str] = None
    occurred_at: datetime

    @classmethod
    def from_event(cls, event: RegistryEvent) -> "EventResponse":
        return cls(
            sequence=event.sequence,
            type=event.type.value,
            document_id=event.document_id,
            actor=event.actor,
            collaborator=event.collaborator,
            name=event.name,
            occurred_at=event.occurred_at,
        )


class EventListResponse(BaseModel):
    events: List[EventResponse]
    last_sequence: int


class ErrorResponse(BaseModel):
    """Структурированная ошибка реестра"""
    error: str
    category: str
    detail: str

    model_config = ConfigDict(extra="allow")
