"""
Cutlist Export
==============
Eksport wyniku rozkroju do linii kosztowych oferty (Supabase).

Sloty linii:
    primary_<materialId>  - arkusze płyty podstawowej
    edging_<materialId>   - obrzeże [m]
    backer                - arkusze płyty podkładowej
    band16 / band32       - obrzeże wg grubości (tryb zgodności wstecznej,
                            zamiast edging_<materialId>)

Tryby:
    replace - poprzednie linie pozycji (z referencji) są usuwane,
              bieżące zapisywane od nowa
    append  - poprzednie linie zostają, wszystkie bieżące dopisywane jako nowe
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from config.settings import COSTING_CLUSTERS_TABLE, COSTING_LINES_TABLE, LEGACY_BAND_THICKNESSES
from core.events import EventBus, EventType, create_event
from core.exceptions import ExportError
from core.supabase_client import get_supabase_client
from cutlist.models import CutlistSummary

logger = logging.getLogger(__name__)

QTY_PRECISION = 3


class ExportMode(Enum):
    REPLACE = "replace"
    APPEND = "append"


@dataclass(frozen=True)
class ExportLine:
    """Jedna linia kosztowa do zapisania"""
    slot: str
    description: str
    qty: float
    unit_cost: Optional[float] = None
    component_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            'description': self.description,
            'qty': round(self.qty, QTY_PRECISION),
            'unit_cost': self.unit_cost,
            'component_id': self.component_id,
            'include_in_markup': True,
            'sort_order': 0,
            'line_type': 'component' if self.component_id else 'manual',
            'cutlist_slot': self.slot,
        }


def _average_unit_cost(total: Decimal, qty: float) -> Optional[float]:
    if qty <= 0:
        return None
    return round(float(total) / qty, 2)


def _single_reference(references) -> Optional[str]:
    distinct = {r for r in references if r}
    return distinct.pop() if len(distinct) == 1 else None


def build_export_lines(summary: CutlistSummary,
                       legacy_banding: bool = False) -> Dict[str, ExportLine]:
    """
    Linie kosztowe dla wyniku rozkroju (czysta funkcja).

    Returns:
        Słownik slot -> ExportLine, w kolejności: płyty, obrzeża, podkład
    """
    lines: Dict[str, ExportLine] = {}

    for material in summary.materials:
        slot = f"primary_{material.material_id}"
        lines[slot] = ExportLine(
            slot=slot,
            description=f"Board: {material.name or material.material_id}",
            qty=round(material.sheets_billable, QTY_PRECISION),
            unit_cost=material.cost_per_sheet,
            component_id=material.component_reference,
        )

    if legacy_banding:
        for slot, thickness in zip(('band16', 'band32'), LEGACY_BAND_THICKNESSES):
            usages = [u for u in summary.edging_by_material if u.thickness_mm == thickness]
            meters = round(sum(u.length_m for u in usages), QTY_PRECISION)
            lines[slot] = ExportLine(
                slot=slot,
                description=f"Edgebanding {thickness:g}mm",
                qty=meters,
                unit_cost=_average_unit_cost(sum((u.cost for u in usages), Decimal('0.00')), meters),
                component_id=_single_reference(u.component_reference for u in usages),
            )
    else:
        for usage in summary.edging_by_material:
            slot = f"edging_{usage.material_id}"
            lines[slot] = ExportLine(
                slot=slot,
                description=f"Edging: {usage.name or usage.material_id}",
                qty=round(usage.length_m, QTY_PRECISION),
                unit_cost=usage.cost_per_meter,
                component_id=usage.component_reference,
            )

    backer = summary.backer_result
    if backer is not None:
        names = ", ".join(m.name or m.material_id for m in backer.materials)
        lines['backer'] = ExportLine(
            slot='backer',
            description=f"Backer: {names}" if names else "Backer",
            qty=round(backer.sheets_billable, QTY_PRECISION),
            unit_cost=_average_unit_cost(backer.cost, backer.sheets_billable),
            component_id=_single_reference(m.component_reference for m in backer.materials),
        )

    return lines


class CutlistExportRepository:
    """Zapis linii kosztowych cutlisty w klastrze kosztowym pozycji oferty"""

    LINES_TABLE = COSTING_LINES_TABLE
    CLUSTERS_TABLE = COSTING_CLUSTERS_TABLE

    def __init__(self, supabase_client=None, event_bus: EventBus = None):
        if supabase_client is None:
            supabase_client = get_supabase_client()
        self.client = supabase_client
        self.event_bus = event_bus or EventBus()

    def export(self, item_id: str, summary: CutlistSummary,
               refs: Dict[str, Optional[str]] = None,
               mode=ExportMode.REPLACE,
               legacy_banding: bool = False) -> Dict[str, Optional[str]]:
        """
        Wyeksportuj wynik do linii kosztowych.

        Args:
            item_id: ID pozycji oferty
            summary: Wynik kalkulatora
            refs: Dotychczasowe referencje slot -> id linii
            mode: replace / append
            legacy_banding: band16/band32 zamiast edging_<materialId>

        Returns:
            Nowe referencje slot -> id linii (None = linia usunięta)

        Raises:
            ExportError: błąd zapisu (można ponowić)
        """
        mode = ExportMode(mode)
        refs = dict(refs or {})
        lines = build_export_lines(summary, legacy_banding=legacy_banding)
        cluster_id = self._ensure_cluster(item_id)

        if mode == ExportMode.APPEND:
            updated = dict(refs)
        else:
            # Poprzednie linie tej pozycji są usuwane, bieżące zapisywane od nowa
            updated = {}
            for slot, line_id in refs.items():
                if line_id:
                    self._delete_line(slot, line_id)
                updated[slot] = None

        for slot, line in lines.items():
            if line.qty > 0:
                updated[slot] = self._insert_line(item_id, cluster_id, line)
            elif mode == ExportMode.REPLACE:
                updated[slot] = None

        logger.info(
            f"[CutlistExport] {item_id} ({mode.value}): "
            f"{sum(1 for v in updated.values() if v)} lines"
        )
        self.event_bus.publish(create_event(
            EventType.CUTLIST_EXPORTED,
            {"item_id": item_id, "mode": mode.value, "line_refs": dict(updated)},
            source="cutlist.export",
        ))
        return updated

    # ============================================================
    # Supabase operations
    # ============================================================

    def _ensure_cluster(self, item_id: str) -> str:
        try:
            response = self.client.table(self.CLUSTERS_TABLE)\
                .select('id')\
                .eq('quote_item_id', item_id)\
                .order('position')\
                .limit(1)\
                .execute()
            if response.data:
                return response.data[0]['id']

            created = self.client.table(self.CLUSTERS_TABLE).insert({
                'quote_item_id': item_id,
                'name': 'Costing Cluster',
                'position': 0,
                'markup_percent': 0,
            }).execute()
        except Exception as e:
            logger.error(f"[CutlistExport] Costing cluster failed for {item_id}: {e}")
            raise ExportError(item_id, reason=f"costing cluster: {e}") from e

        if not created.data:
            raise ExportError(item_id, reason="costing cluster was not created")

        logger.debug(f"[CutlistExport] Created costing cluster for {item_id}")
        return created.data[0]['id']

    def _insert_line(self, item_id: str, cluster_id: str, line: ExportLine) -> str:
        payload = line.to_payload()
        payload['cluster_id'] = cluster_id
        try:
            response = self.client.table(self.LINES_TABLE).insert(payload).execute()
        except Exception as e:
            logger.error(f"[CutlistExport] Insert of {line.slot} failed: {e}")
            raise ExportError(item_id, line.slot, str(e)) from e

        if not response.data:
            raise ExportError(item_id, line.slot, "no line returned")
        return response.data[0]['id']

    def _delete_line(self, slot: str, line_id: str) -> None:
        try:
            self.client.table(self.LINES_TABLE).delete().eq('id', line_id).execute()
        except Exception as e:
            # Osierocona linia nie blokuje eksportu pozostałych slotów
            logger.warning(f"[CutlistExport] Delete of {line_id} ({slot}) failed: {e}")
