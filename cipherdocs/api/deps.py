from typing import Optional

from fastapi import Request

from cipherdocs.db.repositories.registry_repository import RegistryPersistence
from cipherdocs.domains.registry.services import RegistryService


def get_registry(request: Request) -> RegistryService:
    """Зависимость: единственный экземпляр реестра приложения"""
    return request.app.state.registry


def get_persistence(request: Request) -> Optional[RegistryPersistence]:
    """Зависимость: сохранение в БД; None в режиме без базы данных"""
    return getattr(request.app.state, "persistence", None)
