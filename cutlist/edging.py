"""
PanelERP - Edge Banding Aggregator
==================================
Sumowanie długości obrzeża per materiał z rozmieszczonych formatek.

Flagi oklejania są przypięte do logicznych krawędzi formatki (top, bottom,
left, right) niezależnie od obrotu na arkuszu. Długość fizyczna krawędzi
jest wyznaczana dopiero tutaj, z wymiarów po obrocie.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

from config.settings import LEGACY_BAND_THICKNESSES
from cutlist.models import (
    EDGES,
    CutlistInput,
    EdgingUsage,
    MaterialLayout,
    Placement,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EdgingTotals:
    by_material: Tuple[EdgingUsage, ...] = ()
    band_16mm: float = 0.0
    band_32mm: float = 0.0
    total: float = 0.0


def edge_length(placement: Placement, edge: str) -> float:
    """
    Fizyczna długość logicznej krawędzi umieszczonej formatki.

    top/bottom = szerokość formatki: wzdłuż X bez obrotu, wzdłuż Y po obrocie.
    left/right = długość formatki: odwrotnie.
    """
    along_width = edge in ('top', 'bottom')
    if placement.rotated:
        return placement.length_used if along_width else placement.width_used
    return placement.width_used if along_width else placement.length_used


def aggregate_edging(snapshot: CutlistInput,
                     layouts: Iterable[MaterialLayout]) -> EdgingTotals:
    """
    Zsumuj obrzeże dla wszystkich umieszczeń płyt podstawowych.

    Args:
        snapshot: Znormalizowany snapshot (materiały obrzeża rozwiązane)
        layouts: Rozkroje płyt podstawowych

    Returns:
        EdgingTotals - wpisy w kolejności katalogu obrzeży, tylko niezerowe
    """
    parts = {p.id: p for p in snapshot.parts}
    lengths: Dict[str, float] = {}

    for layout in layouts:
        for sheet in layout.sheets:
            for placement in sheet.placements:
                part = parts[placement.part_id]
                for edge, banded, material_id in zip(EDGES, part.banding, part.banding_material_ids):
                    if not banded:
                        continue
                    # Sklejone płyty (32mm-both) mają jedno obrzeże na gotowy element
                    length = edge_length(placement, edge) / part.plies
                    lengths[material_id] = lengths.get(material_id, 0.0) + length

    usages = []
    for material in snapshot.edging:
        length = lengths.get(material.id, 0.0)
        if length <= 0:
            continue
        usages.append(EdgingUsage(
            material_id=material.id,
            name=material.name,
            thickness_mm=material.thickness_mm,
            length_mm=length,
            cost_per_meter=material.cost_per_meter,
            component_reference=material.component_reference,
        ))

    band_16, band_32 = LEGACY_BAND_THICKNESSES
    totals = EdgingTotals(
        by_material=tuple(usages),
        band_16mm=sum(u.length_mm for u in usages if u.thickness_mm == band_16),
        band_32mm=sum(u.length_mm for u in usages if u.thickness_mm == band_32),
        total=sum(u.length_mm for u in usages),
    )

    logger.debug(
        f"[EdgingAggregator] {len(usages)} edging materials, total {totals.total:.0f} mm"
    )
    return totals
