from fastapi import APIRouter, Depends, status, Response
from typing import Optional

from cipherdocs.api.deps import get_persistence, get_registry
from cipherdocs.core.auth import collaborator_path, get_current_principal, principal_path
from cipherdocs.db.repositories.registry_repository import RegistryPersistence
from cipherdocs.domains.registry.schemas import (
    DocumentCreate, DocumentBodyUpdate, DocumentResponse, DocumentCountResponse,
    CollaboratorRequest, CollaboratorsResponse, AccessCheckResponse, ErrorResponse
)
from cipherdocs.domains.registry.services import RegistryService

router = APIRouter(
    prefix="/documents",
    tags=["documents"],
    responses={
        404: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    document_data: DocumentCreate,
    caller: str = Depends(get_current_principal),
    registry: RegistryService = Depends(get_registry),
    persistence: Optional[RegistryPersistence] = Depends(get_persistence),
):
    """Создание нового документа; владелец - вызывающий"""
    document_id = registry.create_document(caller, document_data.name, document_data.encrypted_key)

    if persistence:
        await persistence.flush_document(registry, document_id)

    return DocumentResponse.from_document(registry.get_document_details(document_id))


@router.get("/count", response_model=DocumentCountResponse)
async def total_documents(registry: RegistryService = Depends(get_registry)):
    """Общее количество документов"""
    return DocumentCountResponse(total=registry.total_documents())


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document_details(
    document_id: int,
    registry: RegistryService = Depends(get_registry),
):
    """Полные данные документа, включая шифртекст"""
    return DocumentResponse.from_document(registry.get_document_details(document_id))


@router.put("/{document_id}/body", response_model=DocumentResponse)
async def update_document_body(
    update_data: DocumentBodyUpdate,
    document_id: int,
    caller: str = Depends(get_current_principal),
    registry: RegistryService = Depends(get_registry),
    persistence: Optional[RegistryPersistence] = Depends(get_persistence),
):
    """Замена зашифрованного тела документа"""
    document = registry.update_document_body(caller, document_id, update_data.encrypted_body)

    if persistence:
        await persistence.flush_document(registry, document_id)

    return DocumentResponse.from_document(document)


@router.get("/{document_id}/collaborators", response_model=CollaboratorsResponse)
async def get_collaborators(
    document_id: int,
    registry: RegistryService = Depends(get_registry),
):
    """Соавторы документа в порядке выдачи доступа"""
    return CollaboratorsResponse(
        document_id=document_id,
        collaborators=registry.get_collaborators(document_id)
    )


@router.post(
    "/{document_id}/collaborators",
    response_model=CollaboratorsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_document_access(
    request_data: CollaboratorRequest,
    document_id: int,
    caller: str = Depends(get_current_principal),
    registry: RegistryService = Depends(get_registry),
    persistence: Optional[RegistryPersistence] = Depends(get_persistence),
):
    """Выдача доступа соавтору (только владелец)"""
    registry.grant_document_access(caller, document_id, request_data.collaborator)

    if persistence:
        await persistence.flush_collaborators(registry, document_id)

    return CollaboratorsResponse(
        document_id=document_id,
        collaborators=registry.get_collaborators(document_id)
    )


@router.delete("/{document_id}/collaborators/{collaborator}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_document_access(
    document_id: int,
    collaborator: str = Depends(collaborator_path),
    caller: str = Depends(get_current_principal),
    registry: RegistryService = Depends(get_registry),
    persistence: Optional[RegistryPersistence] = Depends(get_persistence),
):
    """Отзыв доступа у соавтора (только владелец)"""
    registry.revoke_document_access(caller, document_id, collaborator)

    if persistence:
        await persistence.flush_collaborators(registry, document_id)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{document_id}/access/{principal}", response_model=AccessCheckResponse)
async def has_access(
    document_id: int,
    principal: str = Depends(principal_path),
    registry: RegistryService = Depends(get_registry),
):
    """Проверка права участника редактировать документ"""
    return AccessCheckResponse(
        document_id=document_id,
        principal=principal,
        has_access=registry.has_access(document_id, principal)
    )
