from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from cipherdocs.core.security import principal_from_token
from cipherdocs.domains.registry.entities import normalize_principal

security = HTTPBearer()


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Зависимость для получения вызывающего участника"""
    principal = principal_from_token(credentials.credentials)

    if not principal:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return normalize_principal(principal)


def principal_path(principal: str) -> str:
    """Участник из пути запроса в нормализованном виде"""
    return normalize_principal(principal)


def collaborator_path(collaborator: str) -> str:
    return normalize_principal(collaborator)
