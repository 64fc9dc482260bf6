from dataclasses import dataclass, replace
from datetime import datetime
import re

# Участник - непрозрачная строка от слоя идентификации (например, адрес кошелька)
Principal = str

ZERO_PRINCIPAL: Principal = "0x0000000000000000000000000000000000000000"


ADDRESS_PATTERN = re.compile(r"^0[xX][0-9a-fA-F]{40}$")


def normalize_principal(principal: Principal) -> Principal:
    """Адрес кошелька приводится к виду 0x + нижний регистр, прочее без изменений"""
    principal = principal.strip()
    if ADDRESS_PATTERN.match(principal):
        return "0x" + principal[2:].lower()
    return principal


def is_zero_principal(principal: Principal) -> bool:
    """Пустой или нулевой участник не может быть соавтором"""
    return not principal or normalize_principal(principal) == ZERO_PRINCIPAL


@dataclass
class Document:
    """Документ реестра. Ключ и тело - непрозрачный шифртекст"""

    id: int
    name: str
    owner: Principal
    encrypted_key: bytes
    created_at: datetime
    updated_at: datetime
    encrypted_body: bytes = b""

    def has_body(self) -> bool:
        # пустое тело и "еще не редактировался" неразличимы
        return len(self.encrypted_body) > 0

    def copy(self) -> "Document":
        return replace(self)

    def __repr__(self) -> str:
        return f"Document(id={self.id}, name={self.name!r}, owner={self.owner})"


@dataclass(frozen=True)
class AccessEntry:
    """Право участника обновлять тело документа"""

    document_id: int
    principal: Principal


@dataclass(frozen=True)
class DocumentPreview:
    """Краткое представление документа для списка участника"""

    id: int
    name: str
    owner: Principal
    updated_at: datetime
    can_edit: bool
