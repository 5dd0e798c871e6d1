"""
PanelERP - Event Bus
====================
Prosty event bus dla komunikacji między modułami.
Kalkulator cutlisty, zapis snapshotów i eksport kosztów nie znają się
nawzajem - UI nasłuchuje zdarzeń.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from enum import Enum
import uuid
import logging

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Typy zdarzeń w systemie"""

    # ========== Cutlist Events ==========
    CUTLIST_COMPUTED = "cutlist.computed"
    CUTLIST_FAILED = "cutlist.failed"
    CUTLIST_SAVED = "cutlist.saved"
    CUTLIST_SAVE_FAILED = "cutlist.save_failed"
    CUTLIST_EXPORTED = "cutlist.exported"


@dataclass
class Event:
    """
    Zdarzenie w systemie.

    Attributes:
        type: Typ zdarzenia
        data: Dane zdarzenia (payload)
        timestamp: Czas wystąpienia
        event_id: Unikalny identyfikator zdarzenia
        correlation_id: ID do grupowania powiązanych zdarzeń
        source: Moduł źródłowy
    """
    type: EventType
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: Optional[str] = None
    source: Optional[str] = None

    def __post_init__(self):
        # Jeśli correlation_id nie podany, użyj event_id
        if self.correlation_id is None:
            self.correlation_id = self.event_id

    def to_dict(self) -> dict:
        """Konwersja do słownika (np. do logowania)"""
        return {
            "event_id": self.event_id,
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "correlation_id": self.correlation_id,
            "source": self.source
        }


# Type alias dla handlera
EventHandler = Callable[[Event], None]


class EventBus:
    """
    Singleton Event Bus dla komunikacji między modułami.

    Użycie:
        event_bus = EventBus()
        event_bus.subscribe(EventType.CUTLIST_COMPUTED, refresh_summary)

        event_bus.publish(Event(
            type=EventType.CUTLIST_COMPUTED,
            data={"item_id": "123"}
        ))
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._handlers = {}
            cls._instance._enabled = True
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset singletona (głównie do testów)"""
        cls._instance = None

    def subscribe(
        self,
        event_type: EventType,
        handler: EventHandler,
        priority: int = 0
    ) -> None:
        """
        Subskrybuj handler na konkretny typ zdarzenia.

        Args:
            event_type: Typ zdarzenia do nasłuchiwania
            handler: Funkcja obsługująca zdarzenie
            priority: Priorytet (wyższy = wcześniej wywołany)
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []

        self._handlers[event_type].append((priority, handler))
        self._handlers[event_type].sort(key=lambda x: x[0], reverse=True)

        logger.debug(f"[EventBus] Subscribed handler to {event_type.value}")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> bool:
        """
        Odsubskrybuj handler.

        Returns:
            True jeśli handler został usunięty, False jeśli nie znaleziono
        """
        if event_type not in self._handlers:
            return False

        original_count = len(self._handlers[event_type])
        self._handlers[event_type] = [
            (p, h) for p, h in self._handlers[event_type]
            if h != handler
        ]
        return len(self._handlers[event_type]) < original_count

    def publish(self, event: Event) -> None:
        """
        Opublikuj zdarzenie.

        Wszystkie handlery są wywoływane synchronicznie.
        Błąd w jednym handlerze nie blokuje pozostałych.
        """
        if not self._enabled:
            logger.debug(f"[EventBus] Disabled, skipping {event.type.value}")
            return

        logger.debug(f"[EventBus] Publishing: {event.type.value} | ID: {event.event_id[:8]}")

        for priority, handler in self._handlers.get(event.type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"[EventBus] Handler error for {event.type.value}: {e}",
                    exc_info=True
                )

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        """Wyłącz event bus (zdarzenia nie będą publikowane)"""
        self._enabled = False

    def clear(self) -> None:
        """Usuń wszystkie handlery"""
        self._handlers.clear()


def create_event(
    event_type: EventType,
    data: Dict[str, Any],
    source: str = None,
    correlation_id: str = None
) -> Event:
    """Helper do tworzenia zdarzeń."""
    return Event(
        type=event_type,
        data=data,
        source=source,
        correlation_id=correlation_id
    )


def get_event_bus() -> EventBus:
    """Pobierz instancję Event Bus"""
    return EventBus()
