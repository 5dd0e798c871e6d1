"""
Test Cutlist Runner
===================
Przeliczanie w tle: ostatnie żądanie wygrywa, wyniki nieaktualne są odrzucane.
"""

import threading

from core.events import EventType
from core.exceptions import CutlistError, InvalidQuantityError
from cutlist.calculator import compute
from cutlist.models import CutlistInput, CutlistSummary, Part
from cutlist.runner import CutlistRunner


def _join_run(generation, timeout=5.0):
    for thread in threading.enumerate():
        if thread.name == f"cutlist-run-{generation}":
            thread.join(timeout)


def test_result_delivered_and_published(standard_board, fresh_event_bus):
    snapshot = CutlistInput(
        parts=(Part(id='door', length_mm=600, width_mm=400, quantity=12),),
        primary_boards=(standard_board,),
    )
    delivered = []
    computed = []
    fresh_event_bus.subscribe(EventType.CUTLIST_COMPUTED, computed.append)
    runner = CutlistRunner(on_result=lambda gen, result: delivered.append((gen, result)),
                           event_bus=fresh_event_bus)

    generation = runner.submit(snapshot)

    assert runner.wait(10)
    assert runner.result == compute(snapshot)
    assert runner.result_generation == generation
    assert delivered == [(generation, runner.result)]
    assert computed[0].data['primary_sheets_used'] == 1


def test_error_delivered_as_value(standard_board, fresh_event_bus):
    snapshot = CutlistInput(
        parts=(Part(id='door', length_mm=600, width_mm=400, quantity=0),),
        primary_boards=(standard_board,),
    )
    failed = []
    fresh_event_bus.subscribe(EventType.CUTLIST_FAILED, failed.append)
    runner = CutlistRunner(event_bus=fresh_event_bus)

    runner.submit(snapshot)

    assert runner.wait(10)
    assert isinstance(runner.result, CutlistError)
    assert runner.result == InvalidQuantityError('door', 0)
    assert failed[0].data['error']['code'] == 'InvalidQuantity'


def test_last_request_wins(fresh_event_bus):
    first_started = threading.Event()
    stop_flags = {}

    def slow_compute(snapshot, stop_flag=None):
        stop_flags[snapshot] = stop_flag
        if snapshot == 'first':
            first_started.set()
            # Czeka aż nowsze żądanie go przerwie
            stop_flag.wait(5)
            return CutlistSummary(primary_sheets_used=1)
        return CutlistSummary(primary_sheets_used=2)

    delivered = []
    runner = CutlistRunner(on_result=lambda gen, result: delivered.append(gen),
                           event_bus=fresh_event_bus, compute_fn=slow_compute)

    first = runner.submit('first')
    assert first_started.wait(5)
    second = runner.submit('second')

    assert runner.wait(10)
    _join_run(first)

    assert stop_flags['first'].is_set()
    assert not stop_flags['second'].is_set()
    assert runner.result == CutlistSummary(primary_sheets_used=2)
    assert runner.result_generation == second
    assert delivered == [second]


def test_cancel_discards_running_request(fresh_event_bus):
    started = threading.Event()

    def slow_compute(snapshot, stop_flag=None):
        started.set()
        stop_flag.wait(5)
        return CutlistSummary(primary_sheets_used=1)

    delivered = []
    runner = CutlistRunner(on_result=lambda gen, result: delivered.append(gen),
                           event_bus=fresh_event_bus, compute_fn=slow_compute)

    generation = runner.submit('only')
    assert started.wait(5)
    runner.cancel()

    assert runner.wait(1)
    _join_run(generation)
    assert delivered == []
    assert runner.result is None


def test_compute_options_forwarded(fresh_event_bus):
    seen = {}

    def fake_compute(snapshot, **options):
        seen.update(options)
        return CutlistSummary()

    runner = CutlistRunner(event_bus=fresh_event_bus, compute_fn=fake_compute,
                           max_iterations=5, seed=9)
    runner.submit('snapshot')

    assert runner.wait(10)
    assert seen['max_iterations'] == 5
    assert seen['seed'] == 9
    assert isinstance(seen['stop_flag'], threading.Event)
