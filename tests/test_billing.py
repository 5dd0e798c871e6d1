"""
Test Billing Resolver
=====================
Arkusze zużyte -> arkusze rozliczane (ostatni ułamkowo, nadpisania, pełne płyty).
"""

import pytest

from cutlist.billing import clamp_pct, fractional_usage, resolve_material
from cutlist.models import BillingMode, BoardMaterial, SheetBillingOverride, SheetLayout

BOARD = BoardMaterial(
    id='board', name='Biała', sheet_length_mm=1000, sheet_width_mm=1000,
    cost_per_sheet=80.0, component_reference='C-1',
)


def _sheets(*used_fractions):
    return tuple(
        SheetLayout(index=n, sheet_width_mm=1000, sheet_length_mm=1000,
                    used_area_mm2=fraction * 1_000_000)
        for n, fraction in enumerate(used_fractions)
    )


def test_only_last_sheet_is_fractional():
    layout = resolve_material(BOARD, _sheets(0.9, 0.8, 0.25))

    assert [s.billable for s in layout.sheets] == [1.0, 1.0, 0.25]
    assert layout.sheets_used == 3
    assert layout.sheets_billable == 2.25
    assert str(layout.cost) == '180.00'


def test_fraction_rounded_to_three_places():
    layout = resolve_material(BOARD, _sheets(0.12345))
    assert layout.sheets_billable == 0.123


def test_global_full_board():
    layout = resolve_material(BOARD, _sheets(0.9, 0.25), global_full_board=True)

    assert [s.billable for s in layout.sheets] == [1.0, 1.0]
    assert layout.sheets_billable == layout.sheets_used == 2


def test_full_override_on_last_sheet():
    overrides = [SheetBillingOverride('board', 1, BillingMode.FULL)]
    layout = resolve_material(BOARD, _sheets(0.9, 0.25), overrides)
    assert layout.sheets_billable == 2.0


def test_auto_override_on_middle_sheet():
    overrides = [SheetBillingOverride('board', 0, BillingMode.AUTO)]
    layout = resolve_material(BOARD, _sheets(0.8, 0.25), overrides)
    assert [s.billable for s in layout.sheets] == [0.8, 0.25]


@pytest.mark.parametrize('pct, expected', [
    (37.5, 0.375),
    (150, 1.0),
    (-5, 0.0),
    (None, 1.0),
])
def test_manual_override_is_clamped(pct, expected):
    overrides = [SheetBillingOverride('board', 0, BillingMode.MANUAL, manual_pct=pct)]
    layout = resolve_material(BOARD, _sheets(0.25), overrides)
    assert layout.sheets[0].billable == expected


def test_later_override_wins():
    overrides = [
        SheetBillingOverride('board', 0, BillingMode.FULL),
        SheetBillingOverride('board', 0, BillingMode.MANUAL, manual_pct=50),
    ]
    layout = resolve_material(BOARD, _sheets(0.25), overrides)
    assert layout.sheets_billable == 0.5


def test_overrides_for_other_materials_ignored():
    overrides = [SheetBillingOverride('other', 0, BillingMode.FULL)]
    layout = resolve_material(BOARD, _sheets(0.25), overrides)
    assert layout.sheets_billable == 0.25


def test_global_full_board_beats_overrides():
    overrides = [SheetBillingOverride('board', 0, BillingMode.MANUAL, manual_pct=10)]
    layout = resolve_material(BOARD, _sheets(0.25), overrides, global_full_board=True)
    assert layout.sheets_billable == 1.0


def test_helpers():
    assert clamp_pct(None) == 100.0
    assert clamp_pct(250) == 100.0
    assert fractional_usage(_sheets(1.0)[0]) == 1.0
    assert fractional_usage(SheetLayout(index=0, sheet_width_mm=0, sheet_length_mm=0)) == 0.0
