from fastapi import APIRouter, Depends

from cipherdocs.api.deps import get_registry
from cipherdocs.core.auth import get_current_principal, principal_path
from cipherdocs.domains.registry.schemas import DocumentListResponse, DocumentPreviewResponse
from cipherdocs.domains.registry.services import RegistryService

router = APIRouter(prefix="/principals", tags=["principals"])


def _document_list(registry: RegistryService, principal: str) -> DocumentListResponse:
    previews = registry.get_documents_for(principal)
    return DocumentListResponse(
        principal=principal,
        documents=[DocumentPreviewResponse.from_preview(preview) for preview in previews],
        total=len(previews)
    )


@router.get("/me/documents", response_model=DocumentListResponse)
async def get_my_documents(
    caller: str = Depends(get_current_principal),
    registry: RegistryService = Depends(get_registry),
):
    """Документы вызывающего участника"""
    return _document_list(registry, caller)


@router.get("/{principal}/documents", response_model=DocumentListResponse)
async def get_documents_for(
    principal: str = Depends(principal_path),
    registry: RegistryService = Depends(get_registry),
):
    """Документы, которые участник может видеть и редактировать"""
    return _document_list(registry, principal)
