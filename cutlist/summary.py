"""
PanelERP - Summary Aggregator
=============================
Złożenie wyników w niemutowalny CutlistSummary.
"""

from decimal import Decimal
from typing import Optional, Tuple

from cutlist.edging import EdgingTotals
from cutlist.models import BackerResult, CutlistSummary, MaterialLayout


def build_summary(materials: Tuple[MaterialLayout, ...],
                  edging: EdgingTotals,
                  backer_result: Optional[BackerResult],
                  lamination_on: bool) -> CutlistSummary:
    sheet_cost = sum((m.cost for m in materials), Decimal('0.00'))
    backer_cost = backer_result.cost if backer_result else Decimal('0.00')
    edging_cost = sum((u.cost for u in edging.by_material), Decimal('0.00'))

    return CutlistSummary(
        materials=tuple(materials),
        edging_by_material=edging.by_material,
        backer_result=backer_result,
        primary_sheets_used=sum(m.sheets_used for m in materials),
        primary_sheets_billable=round(sum(m.sheets_billable for m in materials), 3),
        backer_sheets_used=backer_result.sheets_used if backer_result else 0,
        backer_sheets_billable=backer_result.sheets_billable if backer_result else 0.0,
        lamination_on=lamination_on,
        edgebanding_16mm=edging.band_16mm,
        edgebanding_32mm=edging.band_32mm,
        edgebanding_total=edging.total,
        sheet_cost=sheet_cost,
        backer_cost=backer_cost,
        edging_cost=edging_cost,
        total_cost=sheet_cost + backer_cost + edging_cost,
    )
