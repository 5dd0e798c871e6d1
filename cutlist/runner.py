"""
Cutlist Runner
==============
Przeliczanie rozkroju w tle dla UI - "ostatnie żądanie wygrywa".

Każde submit() dostaje kolejny numer generacji. Poprzedni przebieg
dostaje sygnał stop (deep kończy z najlepszym dotąd wynikiem), a wynik
przebiegu, który nie jest już najnowszy, jest odrzucany po nadejściu.
Nie ma współdzielonego stanu między przebiegami poza numerem generacji.
"""

import threading
import logging
from typing import Callable, Optional, Union

from core.events import EventBus, EventType, create_event
from core.exceptions import CutlistError
from cutlist.calculator import compute
from cutlist.models import CutlistInput, CutlistSummary

logger = logging.getLogger(__name__)

ComputeResult = Union[CutlistSummary, CutlistError]
ResultCallback = Callable[[int, ComputeResult], None]


class CutlistRunner:
    """
    Wykonawca obliczeń w wątku tła.

    Użycie:
        runner = CutlistRunner(on_result=lambda gen, result: view.show(result))
        runner.submit(snapshot)     # przy każdej zmianie wejścia
        runner.wait()               # testy / zamykanie okna
    """

    def __init__(self, on_result: Optional[ResultCallback] = None,
                 event_bus: EventBus = None,
                 compute_fn: Callable[..., ComputeResult] = compute,
                 **compute_options):
        self.on_result = on_result
        self.event_bus = event_bus or EventBus()
        self.compute_fn = compute_fn
        self.compute_options = compute_options

        self._cond = threading.Condition()
        self._generation = 0
        self._finished_generation = 0
        self._stop_flag: Optional[threading.Event] = None
        self._result: Optional[ComputeResult] = None
        self._result_generation = 0

    @property
    def generation(self) -> int:
        with self._cond:
            return self._generation

    @property
    def result(self) -> Optional[ComputeResult]:
        """Wynik najnowszego zakończonego żądania"""
        with self._cond:
            return self._result

    @property
    def result_generation(self) -> int:
        with self._cond:
            return self._result_generation

    def submit(self, snapshot: CutlistInput) -> int:
        """Zleć przeliczenie; poprzednie żądanie zostaje zastąpione"""
        with self._cond:
            if self._stop_flag is not None:
                self._stop_flag.set()
            self._generation += 1
            generation = self._generation
            stop_flag = threading.Event()
            self._stop_flag = stop_flag

        thread = threading.Thread(
            target=self._run,
            args=(generation, snapshot, stop_flag),
            name=f"cutlist-run-{generation}",
            daemon=True,
        )
        thread.start()
        logger.debug(f"[CutlistRunner] Submitted generation {generation}")
        return generation

    def cancel(self) -> None:
        """Przerwij bieżące żądanie (wynik i tak zostanie odrzucony)"""
        with self._cond:
            if self._stop_flag is not None:
                self._stop_flag.set()
            self._generation += 1
            self._finished_generation = self._generation
            self._cond.notify_all()

    def wait(self, timeout: float = None) -> bool:
        """Czekaj aż najnowsze żądanie się zakończy"""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._finished_generation >= self._generation,
                timeout=timeout,
            )

    def _run(self, generation: int, snapshot: CutlistInput, stop_flag: threading.Event) -> None:
        try:
            result = self.compute_fn(snapshot, stop_flag=stop_flag, **self.compute_options)
        except Exception as e:
            logger.error(f"[CutlistRunner] Generation {generation} crashed: {e}", exc_info=True)
            with self._cond:
                if generation == self._generation:
                    self._finished_generation = generation
                    self._cond.notify_all()
            raise

        with self._cond:
            if generation != self._generation:
                logger.debug(
                    f"[CutlistRunner] Discarding stale generation {generation} "
                    f"(latest {self._generation})"
                )
                return
            self._result = result
            self._result_generation = generation

        # Poza blokadą - callback może od razu zlecić kolejne przeliczenie
        try:
            self._deliver(generation, result)
        finally:
            with self._cond:
                if generation == self._generation:
                    self._finished_generation = generation
                self._cond.notify_all()

    def _deliver(self, generation: int, result: ComputeResult) -> None:
        if isinstance(result, CutlistError):
            self.event_bus.publish(create_event(
                EventType.CUTLIST_FAILED,
                {"generation": generation, "error": result.to_dict()},
                source="cutlist.runner",
            ))
        else:
            self.event_bus.publish(create_event(
                EventType.CUTLIST_COMPUTED,
                {
                    "generation": generation,
                    "primary_sheets_used": result.primary_sheets_used,
                    "primary_sheets_billable": result.primary_sheets_billable,
                },
                source="cutlist.runner",
            ))

        if self.on_result is not None:
            self.on_result(generation, result)
