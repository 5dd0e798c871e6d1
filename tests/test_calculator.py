"""
Test Cutlist Calculator
=======================
compute(): błędy jako wartości, powtarzalność, podsumowanie i koszty.
"""

from decimal import Decimal

import pytest

from core.exceptions import (
    CutlistError,
    DuplicatePartError,
    InvalidDimensionError,
    InvalidQuantityError,
    KerfTooLargeError,
    NoDefaultMaterialError,
    PartExceedsSheetError,
)
from cutlist import compute, compute_or_raise
from cutlist.models import (
    BoardMaterial,
    CutlistInput,
    CutlistSummary,
    OptimizationPriority,
    Part,
)


def _doors(board, quantity, **kwargs):
    return CutlistInput(
        parts=(Part(id='door', length_mm=600, width_mm=400, quantity=quantity),),
        primary_boards=(board,),
        kerf_mm=3,
        **kwargs
    )


# ============================================================
# Errors as values
# ============================================================

@pytest.mark.parametrize('part, error_type', [
    (Part(id='p', length_mm=0, width_mm=400), InvalidDimensionError),
    (Part(id='p', length_mm=600, width_mm=400, quantity=0), InvalidQuantityError),
    (Part(id='p', length_mm=600, width_mm=2), KerfTooLargeError),
    (Part(id='p', length_mm=3000, width_mm=2000), PartExceedsSheetError),
    (Part(id='p', length_mm=600, width_mm=400, material_id='nope'), NoDefaultMaterialError),
])
def test_errors_returned_not_raised(standard_board, part, error_type):
    snapshot = CutlistInput(parts=(part,), primary_boards=(standard_board,), kerf_mm=3)

    result = compute(snapshot)

    assert isinstance(result, error_type)
    assert isinstance(result, CutlistError)
    assert result.to_dict()['code'] == result.code

    with pytest.raises(error_type):
        compute_or_raise(snapshot)


def test_duplicate_ids_returned_as_error(standard_board):
    snapshot = CutlistInput(
        parts=(
            Part(id='x', length_mm=1000, width_mm=500),
            Part(id='x', length_mm=100, width_mm=100),
        ),
        primary_boards=(standard_board,),
    )

    result = compute(snapshot)

    assert isinstance(result, DuplicatePartError)
    assert result.details == {'part_id': 'x'}


def test_errors_compare_structurally(standard_board):
    snapshot = CutlistInput(
        parts=(Part(id='p', length_mm=600, width_mm=400, quantity=-3),),
        primary_boards=(standard_board,),
    )
    assert compute(snapshot) == compute(snapshot)
    assert compute(snapshot) == InvalidQuantityError('p', -3)


def test_part_exceeds_sheet_names_part_and_material(standard_board):
    snapshot = CutlistInput(
        parts=(
            Part(id='ok', length_mm=600, width_mm=400),
            Part(id='huge', length_mm=3000, width_mm=2000),
        ),
        primary_boards=(standard_board,),
    )
    assert compute(snapshot) == PartExceedsSheetError('huge', 'board-std')


# ============================================================
# Summary
# ============================================================

def test_twelve_doors_one_sheet(standard_board):
    summary = compute(_doors(standard_board, 12))

    assert isinstance(summary, CutlistSummary)
    assert summary.primary_sheets_used == 1
    # 12 x 0.24 m2 / 5.0325 m2
    assert summary.primary_sheets_billable == 0.572
    assert summary.sheet_cost == Decimal('57.20')


def test_twenty_doors_two_sheets(standard_board):
    summary = compute(_doors(standard_board, 20))

    material = summary.material('board-std')
    assert [s.billable for s in material.sheets] == [1.0, 0.191]
    assert summary.primary_sheets_used == 2
    assert summary.primary_sheets_billable == 1.191
    assert summary.sheet_cost == Decimal('119.10')
    assert summary.total_cost == Decimal('119.10')


def test_global_full_board(standard_board):
    summary = compute(_doors(standard_board, 20, global_full_board=True))

    assert summary.primary_sheets_billable == summary.primary_sheets_used == 2
    assert summary.sheet_cost == Decimal('200.00')


@pytest.mark.parametrize('priority', list(OptimizationPriority))
def test_same_input_same_summary(standard_board, edging_catalog, priority):
    snapshot = CutlistInput(
        parts=(
            Part(id='side', length_mm=720, width_mm=560, quantity=4, banding=(True, False, False, True)),
            Part(id='shelf', length_mm=764, width_mm=540, quantity=6, banding=(True, False, False, False)),
            Part(id='top', length_mm=800, width_mm=560, quantity=2, grain_locked=True),
        ),
        primary_boards=(standard_board,),
        edging=edging_catalog,
        optimization_priority=priority,
    )

    first = compute(snapshot, max_iterations=40)
    second = compute(snapshot, max_iterations=40)

    assert isinstance(first, CutlistSummary)
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_parts_split_by_material(standard_board):
    dark = BoardMaterial(id='board-dark', name='Antracyt', sheet_length_mm=2800,
                         sheet_width_mm=2070, cost_per_sheet=150.0)
    snapshot = CutlistInput(
        parts=(
            Part(id='front', length_mm=700, width_mm=400, quantity=2, material_id='board-dark'),
            Part(id='side', length_mm=720, width_mm=560, quantity=2),
        ),
        primary_boards=(standard_board, dark),
    )

    summary = compute(snapshot)

    # Kolejność materiałów = kolejność katalogu
    assert [m.material_id for m in summary.materials] == ['board-std', 'board-dark']
    assert summary.primary_sheets_used == 2
    placed = {m.material_id: {pl.part_id for s in m.sheets for pl in s.placements}
              for m in summary.materials}
    assert placed == {'board-std': {'side'}, 'board-dark': {'front'}}


def test_empty_snapshot(standard_board):
    summary = compute(CutlistInput(primary_boards=(standard_board,)))

    assert summary.materials == ()
    assert summary.primary_sheets_used == 0
    assert summary.total_cost == Decimal('0.00')


def test_deep_never_worse_than_fast(standard_board):
    fast = compute(_doors(standard_board, 20))
    deep = compute(_doors(standard_board, 20, optimization_priority=OptimizationPriority.DEEP),
                   max_iterations=60)

    assert deep.primary_sheets_used <= fast.primary_sheets_used
