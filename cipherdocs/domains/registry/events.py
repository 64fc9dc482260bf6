from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Deque, FrozenSet, List, Optional
import logging

from cipherdocs.domains.registry.entities import Principal

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Типы событий реестра"""
    DOCUMENT_CREATED = "document_created"
    DOCUMENT_UPDATED = "document_updated"
    ACCESS_GRANTED = "access_granted"
    ACCESS_REVOKED = "access_revoked"


@dataclass(frozen=True)
class RegistryEvent:
    """Событие об успешной мутации реестра"""

    sequence: int
    type: EventType
    document_id: int
    actor: Principal
    occurred_at: datetime
    # участники, связанные с документом в момент события
    audience: FrozenSet[Principal]
    collaborator: Optional[Principal] = None
    # имя документа, только для DOCUMENT_CREATED
    name: Optional[str] = None

    def visible_to(self, principal: Principal) -> bool:
        return principal in self.audience


EventListener = Callable[[RegistryEvent], None]


class EventLog:
    """Ограниченный журнал последних событий с подписчиками"""

    def __init__(self, capacity: int = 1000):
        self._events: Deque[RegistryEvent] = deque(maxlen=capacity)
        self._listeners: List[EventListener] = []
        self._last_sequence = 0

    @property
    def last_sequence(self) -> int:
        return self._last_sequence

    def append(
        self,
        event_type: EventType,
        document_id: int,
        actor: Principal,
        occurred_at: datetime,
        audience: FrozenSet[Principal],
        collaborator: Optional[Principal] = None,
        name: Optional[str] = None,
    ) -> RegistryEvent:
        self._last_sequence += 1
        event = RegistryEvent(
            sequence=self._last_sequence,
            type=event_type,
            document_id=document_id,
            actor=actor,
            occurred_at=occurred_at,
            audience=audience,
            collaborator=collaborator,
            name=name,
        )
        self._events.append(event)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # слушатель не должен откатывать уже примененную мутацию
                logger.exception(f"Event listener failed on event {event.sequence}")

        return event

    def since(self, sequence: int = 0) -> List[RegistryEvent]:
        """События с номером больше sequence, от старых к новым"""
        return [event for event in self._events if event.sequence > sequence]

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def __len__(self) -> int:
        return len(self._events)
