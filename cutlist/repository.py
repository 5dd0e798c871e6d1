"""
Cutlist Snapshot Repository
===========================
Zapis i odczyt snapshotu kalkulatora w Supabase.

Tabela quote_item_cutlists, kolumna layout_json (JSON). Dokument ma pole
version == 2; brak dokumentu, starsza wersja albo uszkodzona treść to
"brak zapisanych danych" (None) - kalkulator startuje od wartości
domyślnych, bez automatycznej migracji.

DebouncedSaver skleja szybkie kolejne zapisy (np. przy edycji formatek)
w jeden zapis po SAVE_DEBOUNCE_S. Błąd zapisu jest logowany i publikowany
jako zdarzenie - snapshot w pamięci ani trwające obliczenia nie są ruszane.
"""

import json
import threading
import logging
from datetime import datetime
from typing import Dict, Optional

from config.settings import CUTLIST_SNAPSHOT_TABLE, SAVE_DEBOUNCE_S, SNAPSHOT_VERSION
from core.events import EventBus, EventType, create_event
from core.exceptions import IntegrationError, PersistenceError
from core.supabase_client import get_supabase_client
from cutlist.models import CutlistInput

logger = logging.getLogger(__name__)


class CutlistSnapshotRepository:
    """Repository snapshotów cutlisty w Supabase"""

    TABLE_NAME = CUTLIST_SNAPSHOT_TABLE
    ITEM_COLUMN = "quote_item_id"
    LAYOUT_COLUMN = "layout_json"

    def __init__(self, supabase_client=None):
        if supabase_client is None:
            supabase_client = get_supabase_client()
        self.client = supabase_client

    # ============================================================
    # Read
    # ============================================================

    def _fetch_document(self, item_id: str) -> Optional[dict]:
        try:
            response = self.client.table(self.TABLE_NAME)\
                .select(self.LAYOUT_COLUMN)\
                .eq(self.ITEM_COLUMN, item_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"[CutlistRepository] Load failed for {item_id}: {e}")
            raise PersistenceError("load", item_id, str(e)) from e

        rows = response.data or []
        if not rows:
            return None

        document = rows[0].get(self.LAYOUT_COLUMN)
        if isinstance(document, str):
            try:
                document = json.loads(document)
            except ValueError:
                logger.warning(f"[CutlistRepository] {item_id}: layout_json is not valid JSON")
                return None

        if not isinstance(document, dict) or document.get('version') != SNAPSHOT_VERSION:
            logger.info(f"[CutlistRepository] {item_id}: no version {SNAPSHOT_VERSION} layout, starting fresh")
            return None

        return document

    def load(self, item_id: str) -> Optional[CutlistInput]:
        """
        Wczytaj snapshot pozycji oferty.

        Returns:
            CutlistInput albo None (brak danych / stara wersja)

        Raises:
            PersistenceError: błąd komunikacji z bazą (można ponowić)
        """
        document = self._fetch_document(item_id)
        if document is None:
            return None

        try:
            snapshot = CutlistInput.from_dict(document)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"[CutlistRepository] {item_id}: malformed layout ignored ({e})")
            return None

        logger.debug(f"[CutlistRepository] Loaded {item_id}: {len(snapshot.parts)} parts")
        return snapshot

    def load_line_refs(self, item_id: str) -> Dict[str, str]:
        """Referencje linii kosztowych zapisane razem z layoutem"""
        document = self._fetch_document(item_id)
        if document is None:
            return {}
        refs = document.get('line_refs') or {}
        return {slot: line_id for slot, line_id in refs.items() if line_id}

    # ============================================================
    # Write
    # ============================================================

    def save(self, item_id: str, snapshot: CutlistInput,
             line_refs: Dict[str, str] = None) -> None:
        """
        Zapisz snapshot (upsert po quote_item_id).

        line_refs=None zachowuje referencje zapisane wcześniej (autozapis
        po edycji nie może zgubić linii z ostatniego eksportu); pusty
        słownik je czyści.

        Raises:
            PersistenceError: błąd odczytu lub zapisu (można ponowić)
        """
        if line_refs is None:
            line_refs = self.load_line_refs(item_id)

        document = snapshot.to_dict()
        if line_refs:
            document['line_refs'] = dict(line_refs)

        record = {
            self.ITEM_COLUMN: item_id,
            self.LAYOUT_COLUMN: document,
            'updated_at': datetime.now().isoformat(),
        }

        try:
            self.client.table(self.TABLE_NAME)\
                .upsert(record, on_conflict=self.ITEM_COLUMN)\
                .execute()
        except Exception as e:
            logger.error(f"[CutlistRepository] Save failed for {item_id}: {e}")
            raise PersistenceError("save", item_id, str(e)) from e

        logger.debug(f"[CutlistRepository] Saved {item_id}: {len(snapshot.parts)} parts")


class DebouncedSaver:
    """
    Opóźniony zapis snapshotów - ostatni snapshot w oknie wygrywa.

    Użycie:
        saver = DebouncedSaver(CutlistSnapshotRepository(client))
        saver.schedule(item_id, snapshot)   # przy każdej zmianie
        saver.flush()                       # np. przy zamykaniu okna
    """

    def __init__(self, repository: CutlistSnapshotRepository,
                 delay_s: float = SAVE_DEBOUNCE_S,
                 event_bus: EventBus = None):
        self.repository = repository
        self.delay_s = delay_s
        self.event_bus = event_bus or EventBus()

        self._lock = threading.Lock()
        self._timers: Dict[str, threading.Timer] = {}
        self._pending: Dict[str, tuple] = {}
        self.last_error: Optional[IntegrationError] = None

    def schedule(self, item_id: str, snapshot: CutlistInput,
                 line_refs: Dict[str, str] = None) -> None:
        """Zaplanuj zapis; kolejne wywołanie w oknie opóźnienia go zastępuje"""
        with self._lock:
            timer = self._timers.pop(item_id, None)
            if timer is not None:
                timer.cancel()

            self._pending[item_id] = (snapshot, line_refs)
            timer = threading.Timer(self.delay_s, self._save, args=(item_id,))
            timer.daemon = True
            self._timers[item_id] = timer
            timer.start()

    def flush(self, item_id: str = None) -> None:
        """Zapisz natychmiast oczekujące snapshoty (wszystkie lub jeden)"""
        with self._lock:
            ids = [item_id] if item_id is not None else list(self._pending)
            for pending_id in ids:
                timer = self._timers.pop(pending_id, None)
                if timer is not None:
                    timer.cancel()

        for pending_id in ids:
            self._save(pending_id)

    def cancel(self) -> None:
        """Porzuć oczekujące zapisy"""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._pending.clear()

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def _save(self, item_id: str) -> None:
        with self._lock:
            self._timers.pop(item_id, None)
            entry = self._pending.pop(item_id, None)

        if entry is None:
            return

        snapshot, line_refs = entry
        try:
            self.repository.save(item_id, snapshot, line_refs)
        except IntegrationError as e:
            self.last_error = e
            self.event_bus.publish(create_event(
                EventType.CUTLIST_SAVE_FAILED,
                {"item_id": item_id, "error": e.message, "retryable": e.retryable},
                source="cutlist.repository",
            ))
            return

        self.event_bus.publish(create_event(
            EventType.CUTLIST_SAVED,
            {"item_id": item_id, "parts": len(snapshot.parts)},
            source="cutlist.repository",
        ))
