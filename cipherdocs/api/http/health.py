from fastapi import APIRouter, Depends

from cipherdocs.api.deps import get_persistence, get_registry
from cipherdocs.domains.registry.services import RegistryService

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(
    registry: RegistryService = Depends(get_registry),
    persistence=Depends(get_persistence),
):
    """Проверка состояния сервиса"""
    return {
        "status": "ok",
        "documents": registry.total_documents(),
        "storage": "database" if persistence else "memory"
    }
