"""
PanelERP - Billing Resolver
===========================
Zamiana zużytych arkuszy na arkusze do rozliczenia.

Reguły (osobno dla każdego materiału):
- arkusze poza ostatnim: 1.0
- ostatni arkusz: round(used_area / sheet_area, 3)
- nadpisanie arkusza: full = 1.0, auto = faktyczne zużycie, manual = pct / 100
- global_full_board: każdy arkusz 1.0 (sheets_billable == sheets_used)
Płyty podkładowe rozlicza się tak samo, własnymi nadpisaniami i flagą.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, Optional, Tuple

from cutlist.models import (
    BillingMode,
    BoardMaterial,
    MaterialLayout,
    SheetBillingOverride,
    SheetLayout,
)

logger = logging.getLogger(__name__)

BILLING_PRECISION = 3


def fractional_usage(sheet: SheetLayout) -> float:
    """Zużycie arkusza zaokrąglone do 3 miejsc, najwyżej 1.0"""
    if sheet.sheet_area_mm2 <= 0:
        return 0.0
    return min(1.0, round(sheet.used_area_mm2 / sheet.sheet_area_mm2, BILLING_PRECISION))


def clamp_pct(value: Optional[float]) -> float:
    """Procent ręczny ograniczony do 0..100 (brak = 100)"""
    if value is None:
        return 100.0
    return max(0.0, min(100.0, float(value)))


def sheet_billable(sheet: SheetLayout, is_last: bool,
                   override: Optional[SheetBillingOverride],
                   global_full_board: bool) -> float:
    if global_full_board:
        return 1.0

    if override is not None:
        if override.mode == BillingMode.FULL:
            return 1.0
        if override.mode == BillingMode.AUTO:
            return fractional_usage(sheet)
        return round(clamp_pct(override.manual_pct) / 100.0, BILLING_PRECISION)

    return fractional_usage(sheet) if is_last else 1.0


def _overrides_for(material_id: str,
                   overrides: Iterable[SheetBillingOverride]) -> Dict[int, SheetBillingOverride]:
    # Późniejsze wpisy dla tego samego arkusza wygrywają
    return {o.sheet_index: o for o in overrides if o.material_id == material_id}


def resolve_material(board: BoardMaterial, sheets: Tuple[SheetLayout, ...],
                     overrides: Iterable[SheetBillingOverride] = (),
                     global_full_board: bool = False) -> MaterialLayout:
    """Rozlicz arkusze jednego materiału"""
    by_index = _overrides_for(board.id, overrides)

    billed = []
    for position, sheet in enumerate(sheets):
        billable = sheet_billable(
            sheet,
            is_last=position == len(sheets) - 1,
            override=by_index.get(sheet.index),
            global_full_board=global_full_board,
        )
        billed.append(replace(sheet, billable=billable))

    total = round(sum(s.billable for s in billed), BILLING_PRECISION)
    if global_full_board:
        total = float(len(billed))

    unused = set(by_index) - {s.index for s in sheets}
    if unused:
        logger.debug(f"[BillingResolver] {board.id}: overrides for missing sheets {sorted(unused)} ignored")

    return MaterialLayout(
        material_id=board.id,
        name=board.name,
        role=board.role,
        sheets=tuple(billed),
        sheets_used=len(billed),
        sheets_billable=total,
        cost_per_sheet=board.cost_per_sheet,
        component_reference=board.component_reference,
    )
