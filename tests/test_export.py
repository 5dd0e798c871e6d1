"""
Test Cutlist Export
===================
Linie kosztowe z wyniku rozkroju: tryb replace / append (Supabase zamockowany).
"""

import itertools
from unittest.mock import MagicMock

import pytest

from core.events import EventType
from core.exceptions import ExportError
from cutlist.calculator import compute_or_raise
from cutlist.export import CutlistExportRepository, ExportMode, build_export_lines
from cutlist.models import CutlistInput, Part


@pytest.fixture
def summary(standard_board, backer_board, edging_catalog):
    snapshot = CutlistInput(
        parts=(
            Part(id='door', length_mm=600, width_mm=400, quantity=20,
                 banding=(True, True, False, False)),
            Part(id='worktop', length_mm=1200, width_mm=600, thickness_mm=32,
                 banding=(True, False, False, False), laminate=False),
        ),
        primary_boards=(standard_board,),
        backer_boards=(backer_board,),
        edging=edging_catalog,
        lamination_on=True,
    )
    return compute_or_raise(snapshot)


class FakeSupabase:
    """Minimalny klient: osobne mocki tabel klastrów i linii"""

    def __init__(self, cluster_rows=({'id': 'cluster-1'},)):
        self.clusters = MagicMock()
        self.lines = MagicMock()
        ids = itertools.count(1)

        select = self.clusters.select.return_value.eq.return_value.order.return_value.limit.return_value
        select.execute.return_value = MagicMock(data=list(cluster_rows))
        self.clusters.insert.return_value.execute.return_value = MagicMock(data=[{'id': 'cluster-new'}])

        self.lines.insert.return_value.execute.side_effect = \
            lambda: MagicMock(data=[{'id': f"line-{next(ids)}"}])

    def table(self, name):
        return {'quote_item_clusters': self.clusters, 'quote_cluster_lines': self.lines}[name]


def _inserted_payloads(client):
    return [c[0][0] for c in client.lines.insert.call_args_list]


# ============================================================
# Lines
# ============================================================

def test_export_lines(summary):
    lines = build_export_lines(summary)

    assert list(lines) == ['primary_board-std', 'edging_pvc-16-white', 'edging_pvc-32-white', 'backer']

    board = lines['primary_board-std']
    assert board.qty == summary.primary_sheets_billable
    assert board.unit_cost == 100.0
    assert board.component_id == 'C-100'
    assert board.to_payload()['line_type'] == 'component'

    edging = lines['edging_pvc-16-white']
    assert edging.qty == 16.0        # 20 x 2 x 400 mm
    assert edging.unit_cost == 2.5

    backer = lines['backer']
    assert backer.description == 'Backer: HDF 3mm'
    assert backer.qty == summary.backer_sheets_billable
    assert backer.component_id == 'C-200'


def test_legacy_band_slots(summary):
    lines = build_export_lines(summary, legacy_banding=True)

    assert 'band16' in lines and 'band32' in lines
    assert not any(slot.startswith('edging_') for slot in lines)
    assert lines['band16'].qty == 16.0
    assert lines['band32'].qty == 0.6
    assert lines['band32'].description == 'Edgebanding 32mm'


def test_no_backer_line_without_lamination(standard_board):
    summary = compute_or_raise(CutlistInput(
        parts=(Part(id='door', length_mm=600, width_mm=400),),
        primary_boards=(standard_board,),
    ))
    assert list(build_export_lines(summary)) == ['primary_board-std']


# ============================================================
# Replace / append
# ============================================================

def test_replace_removes_prior_lines_and_writes_new(summary, fresh_event_bus):
    client = FakeSupabase()
    exported = []
    fresh_event_bus.subscribe(EventType.CUTLIST_EXPORTED, exported.append)
    repo = CutlistExportRepository(client, event_bus=fresh_event_bus)

    refs = repo.export('item-1', summary, refs={
        'primary_board-std': 'line-old',
        'edging_pvc-16-oak': 'line-stale',
    })

    deleted = [c[0] for c in client.lines.delete.return_value.eq.call_args_list]
    assert deleted == [('id', 'line-old'), ('id', 'line-stale')]
    client.lines.update.assert_not_called()

    inserted = _inserted_payloads(client)
    assert [p['cutlist_slot'] for p in inserted] == [
        'primary_board-std', 'edging_pvc-16-white', 'edging_pvc-32-white', 'backer',
    ]
    assert all(p['cluster_id'] == 'cluster-1' for p in inserted)
    assert refs['primary_board-std'] == 'line-1'
    assert refs['edging_pvc-16-oak'] is None
    assert refs['backer'] == 'line-4'

    assert exported[0].data['line_refs'] == refs


def test_replace_continues_when_delete_fails(summary):
    client = FakeSupabase()
    client.lines.delete.return_value.eq.return_value.execute.side_effect = ConnectionError('offline')

    refs = CutlistExportRepository(client).export('item-1', summary, refs={'primary_board-std': 'gone'})

    assert refs['primary_board-std'] == 'line-1'
    assert len(_inserted_payloads(client)) == 4


def test_append_keeps_previous_lines(summary):
    client = FakeSupabase()

    refs = CutlistExportRepository(client).export(
        'item-1', summary, refs={'primary_board-std': 'line-old', 'custom': 'line-9'},
        mode=ExportMode.APPEND,
    )

    client.lines.update.assert_not_called()
    client.lines.delete.assert_not_called()
    assert len(_inserted_payloads(client)) == 4
    assert refs['primary_board-std'] != 'line-old'
    assert refs['custom'] == 'line-9'


def test_cluster_created_when_missing(summary):
    client = FakeSupabase(cluster_rows=())

    CutlistExportRepository(client).export('item-1', summary, mode='append')

    cluster = client.clusters.insert.call_args[0][0]
    assert cluster['quote_item_id'] == 'item-1'
    assert all(p['cluster_id'] == 'cluster-new' for p in _inserted_payloads(client))


def test_insert_failure_raises_export_error(summary):
    client = FakeSupabase()
    client.lines.insert.return_value.execute.side_effect = ConnectionError('offline')

    with pytest.raises(ExportError) as exc:
        CutlistExportRepository(client).export('item-1', summary)

    assert exc.value.retryable
    assert exc.value.details['slot'] == 'primary_board-std'
