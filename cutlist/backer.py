"""
PanelERP - Backer / Lamination Matcher
======================================
Zapotrzebowanie na płytę podkładową przy laminowaniu.

Podkład nie jest nakładką 1:1 na rozkrój płyty podstawowej - formatki
laminowane są pakowane od nowa na arkuszach płyty podkładowej (inne
wymiary arkusza), bez ograniczenia usłojenia i bez obrzeży, osobno dla
każdej rozwiązanej płyty podkładowej.
"""

import threading
import logging
from dataclasses import replace
from typing import Dict, List, Optional

from cutlist.billing import resolve_material
from cutlist.models import (
    NO_BANDING,
    NO_BANDING_MATERIALS,
    BackerResult,
    CutlistInput,
    Part,
)
from cutlist.nesting.engine import pack_material

logger = logging.getLogger(__name__)


def backer_panels(snapshot: CutlistInput) -> Dict[str, List[Part]]:
    """
    Formatki podkładowe pogrupowane wg płyty podkładowej.

    Wymaga znormalizowanego snapshotu (backer_material_id rozwiązane).
    """
    groups: Dict[str, List[Part]] = {}
    for part in snapshot.parts:
        if not part.needs_backer or not part.backer_material_id:
            continue
        groups.setdefault(part.backer_material_id, []).append(replace(
            part,
            material_id=part.backer_material_id,
            board_type=None,
            grain_locked=False,
            banding=NO_BANDING,
            banding_material_ids=NO_BANDING_MATERIALS,
        ))
    return groups


def match_backers(snapshot: CutlistInput,
                  max_iterations: int = None,
                  time_budget_s: float = None,
                  seed: int = None,
                  stop_flag: Optional[threading.Event] = None) -> Optional[BackerResult]:
    """
    Rozkrój i rozliczenie płyt podkładowych.

    Returns:
        BackerResult gdy laminowanie włączone, inaczej None
    """
    if not snapshot.lamination_on:
        return None

    groups = backer_panels(snapshot)

    materials = []
    for board in snapshot.backer_boards:
        parts = groups.get(board.id)
        if not parts:
            continue

        sheets = pack_material(
            board, parts, snapshot.kerf_mm, snapshot.optimization_priority,
            max_iterations=max_iterations,
            time_budget_s=time_budget_s,
            seed=seed,
            stop_flag=stop_flag,
        )
        materials.append(resolve_material(
            board, sheets,
            overrides=snapshot.backer_sheet_overrides,
            global_full_board=snapshot.backer_global_full_board,
        ))

    result = BackerResult(
        materials=tuple(materials),
        sheets_used=sum(m.sheets_used for m in materials),
        sheets_billable=round(sum(m.sheets_billable for m in materials), 3),
    )

    logger.debug(
        f"[BackerMatcher] {len(materials)} backer boards, "
        f"{result.sheets_used} sheets, {result.sheets_billable} billable"
    )
    return result
