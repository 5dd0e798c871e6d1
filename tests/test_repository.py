"""
Test Cutlist Snapshot Repository
================================
Zapis / odczyt snapshotu (Supabase zamockowany) i opóźniony zapis.
"""

import json
import time
from unittest.mock import MagicMock

import pytest

from core.events import EventType
from core.exceptions import PersistenceError
from cutlist.models import (
    BillingMode,
    BoardType,
    CutlistInput,
    OptimizationPriority,
    Part,
    SheetBillingOverride,
)
from cutlist.repository import CutlistSnapshotRepository, DebouncedSaver


@pytest.fixture
def snapshot(standard_board, backer_board, edging_catalog):
    return CutlistInput(
        parts=(
            Part(id='side', length_mm=720, width_mm=560, quantity=2, label='Bok',
                 banding=(True, False, False, True),
                 banding_material_ids=('pvc-16-oak', None, None, None),
                 board_type=BoardType.DOUBLE_32),
            Part(id='back', length_mm=700.5, width_mm=480, thickness_mm=3,
                 grain_locked=True, laminate=False),
        ),
        primary_boards=(standard_board,),
        backer_boards=(backer_board,),
        edging=edging_catalog,
        kerf_mm=4.0,
        optimization_priority=OptimizationPriority.OFFCUT,
        lamination_on=True,
        backer_material_id='backer-hdf',
        sheet_overrides=(SheetBillingOverride('board-std', 0, BillingMode.MANUAL, 75.0),),
        backer_global_full_board=True,
    )


def _client_returning(rows):
    client = MagicMock()
    table = client.table.return_value
    table.select.return_value.eq.return_value.limit.return_value.execute.return_value = MagicMock(data=rows)
    return client


def _saved_document(client):
    record = client.table.return_value.upsert.call_args[0][0]
    # Przez JSON, jak w bazie
    return json.loads(json.dumps(record['layout_json']))


# ============================================================
# Save / load
# ============================================================

def test_round_trip(snapshot):
    client = _client_returning([])
    repo = CutlistSnapshotRepository(client)

    repo.save('item-1', snapshot)

    client.table.assert_called_with('quote_item_cutlists')
    upsert = client.table.return_value.upsert
    record, = upsert.call_args[0]
    assert upsert.call_args[1] == {'on_conflict': 'quote_item_id'}
    assert record['quote_item_id'] == 'item-1'
    assert record['layout_json']['version'] == 2

    loaded = CutlistSnapshotRepository(
        _client_returning([{'layout_json': _saved_document(client)}])
    ).load('item-1')

    assert loaded == snapshot


def test_layout_stored_as_json_string(snapshot):
    document = json.dumps(snapshot.to_dict())
    repo = CutlistSnapshotRepository(_client_returning([{'layout_json': document}]))

    assert repo.load('item-1') == snapshot


def test_missing_row_loads_none():
    repo = CutlistSnapshotRepository(_client_returning([]))
    assert repo.load('item-1') is None


@pytest.mark.parametrize('document', [
    {'version': 1, 'parts': []},
    {'parts': []},
    '{not json',
    {'version': 2, 'parts': [{'length_mm': 100}]},
    None,
])
def test_old_or_malformed_layout_loads_none(document):
    repo = CutlistSnapshotRepository(_client_returning([{'layout_json': document}]))
    assert repo.load('item-1') is None


def test_line_refs_saved_with_layout(snapshot):
    client = _client_returning([])
    CutlistSnapshotRepository(client).save('item-1', snapshot, {'primary_board-std': 'line-7'})

    document = _saved_document(client)
    repo = CutlistSnapshotRepository(_client_returning([{'layout_json': document}]))

    assert repo.load_line_refs('item-1') == {'primary_board-std': 'line-7'}
    assert repo.load('item-1') == snapshot


def test_autosave_keeps_refs_from_last_export(snapshot):
    stored = dict(snapshot.to_dict(), line_refs={'primary_board-std': 'line-1', 'backer': 'line-2'})
    client = _client_returning([{'layout_json': stored}])

    CutlistSnapshotRepository(client).save('item-1', snapshot)

    assert _saved_document(client)['line_refs'] == {'primary_board-std': 'line-1', 'backer': 'line-2'}


def test_empty_refs_clear_stored_refs(snapshot):
    stored = dict(snapshot.to_dict(), line_refs={'primary_board-std': 'line-1'})
    client = _client_returning([{'layout_json': stored}])

    CutlistSnapshotRepository(client).save('item-1', snapshot, {})

    assert 'line_refs' not in _saved_document(client)
    client.table.return_value.select.assert_not_called()


def test_load_failure_raises_persistence_error():
    client = MagicMock()
    client.table.return_value.select.side_effect = ConnectionError('timeout')

    with pytest.raises(PersistenceError) as exc:
        CutlistSnapshotRepository(client).load('item-1')

    assert exc.value.retryable
    assert exc.value.details['operation'] == 'load'


def test_save_failure_raises_persistence_error(snapshot):
    client = _client_returning([])
    client.table.return_value.upsert.return_value.execute.side_effect = ConnectionError('offline')

    with pytest.raises(PersistenceError) as exc:
        CutlistSnapshotRepository(client).save('item-1', snapshot)

    assert exc.value.details == {'operation': 'save', 'item_id': 'item-1', 'reason': 'offline'}


# ============================================================
# Debounced saver
# ============================================================

def test_debounce_keeps_last_snapshot(snapshot, fresh_event_bus):
    repo = MagicMock()
    saver = DebouncedSaver(repo, delay_s=60, event_bus=fresh_event_bus)
    first = CutlistInput()

    saver.schedule('item-1', first)
    saver.schedule('item-1', snapshot)
    assert saver.pending == 1

    saver.flush()

    repo.save.assert_called_once_with('item-1', snapshot, None)
    assert saver.pending == 0


def test_debounce_timer_fires(snapshot, fresh_event_bus):
    repo = MagicMock()
    saved = []
    fresh_event_bus.subscribe(EventType.CUTLIST_SAVED, saved.append)
    saver = DebouncedSaver(repo, delay_s=0.2, event_bus=fresh_event_bus)

    for _ in range(5):
        saver.schedule('item-1', snapshot)

    deadline = time.monotonic() + 2.0
    while not saved and time.monotonic() < deadline:
        time.sleep(0.01)

    assert repo.save.call_count == 1
    assert saved[0].data == {'item_id': 'item-1', 'parts': 2}


def test_items_saved_independently(snapshot, fresh_event_bus):
    repo = MagicMock()
    saver = DebouncedSaver(repo, delay_s=60, event_bus=fresh_event_bus)

    saver.schedule('item-1', snapshot)
    saver.schedule('item-2', snapshot, {'backer': 'line-3'})
    saver.flush('item-2')

    repo.save.assert_called_once_with('item-2', snapshot, {'backer': 'line-3'})
    assert saver.pending == 1
    saver.cancel()
    assert saver.pending == 0


def test_save_failure_published_and_snapshot_kept(snapshot, fresh_event_bus):
    repo = MagicMock()
    repo.save.side_effect = PersistenceError('save', 'item-1', 'offline')
    failures = []
    fresh_event_bus.subscribe(EventType.CUTLIST_SAVE_FAILED, failures.append)
    saver = DebouncedSaver(repo, delay_s=60, event_bus=fresh_event_bus)

    saver.schedule('item-1', snapshot)
    saver.flush()

    assert isinstance(saver.last_error, PersistenceError)
    assert failures[0].data['item_id'] == 'item-1'
    assert failures[0].data['retryable'] is True

    # Ponowienie z tym samym snapshotem
    repo.save.side_effect = None
    saver.schedule('item-1', snapshot)
    saver.flush()
    assert repo.save.call_count == 2
