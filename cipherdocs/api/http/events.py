from fastapi import APIRouter, Depends, Query

from cipherdocs.api.deps import get_registry
from cipherdocs.core.auth import get_current_principal
from cipherdocs.domains.registry.schemas import EventListResponse, EventResponse
from cipherdocs.domains.registry.services import RegistryService

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=EventListResponse)
async def get_events(
    after: int = Query(0, ge=0),
    caller: str = Depends(get_current_principal),
    registry: RegistryService = Depends(get_registry),
):
    """События реестра, касающиеся вызывающего участника"""
    events = registry.events_since(after)
    visible = [EventResponse.from_event(event) for event in events if event.visible_to(caller)]

    return EventListResponse(
        events=visible,
        last_sequence=events[-1].sequence if events else after
    )
