"""
PanelERP - Cutlist Calculator
=============================
Główne wejście kalkulatora rozkroju.

    Normalizer -> Packing Engine (per materiał) -> {Edging, Backer}
               -> Billing Resolver -> Summary Aggregator

compute() jest czyste i deterministyczne (bez I/O). Błędy walidacji
i wykonalności są zwracane jako wartości (CutlistError), nie rzucane.
"""

import threading
import time
import logging
from typing import Dict, List, Optional, Union

from core.exceptions import CutlistError
from cutlist.backer import match_backers
from cutlist.billing import resolve_material
from cutlist.edging import aggregate_edging
from cutlist.models import CutlistInput, CutlistSummary, Part
from cutlist.nesting.engine import pack_material
from cutlist.normalizer import normalize
from cutlist.summary import build_summary

logger = logging.getLogger(__name__)


def _group_by_material(parts) -> Dict[str, List[Part]]:
    groups: Dict[str, List[Part]] = {}
    for part in parts:
        groups.setdefault(part.material_id, []).append(part)
    return groups


def compute_or_raise(snapshot: CutlistInput,
                     max_iterations: int = None,
                     time_budget_s: float = None,
                     seed: int = None,
                     stop_flag: Optional[threading.Event] = None) -> CutlistSummary:
    """
    Przelicz rozkrój.

    Args:
        snapshot: Snapshot wejściowy
        max_iterations, time_budget_s, seed: budżet strategii deep
        stop_flag: przerwanie strategii deep (zwraca najlepszy dotąd wynik)

    Raises:
        CutlistError: dowolny błąd walidacji lub wykonalności
    """
    start = time.monotonic()
    normalized = normalize(snapshot)
    options = dict(
        max_iterations=max_iterations,
        time_budget_s=time_budget_s,
        seed=seed,
        stop_flag=stop_flag,
    )

    groups = _group_by_material(normalized.parts)
    materials = []
    for board in normalized.primary_boards:
        parts = groups.get(board.id)
        if not parts:
            continue
        sheets = pack_material(
            board, parts, normalized.kerf_mm, normalized.optimization_priority, **options
        )
        materials.append(resolve_material(
            board, sheets,
            overrides=normalized.sheet_overrides,
            global_full_board=normalized.global_full_board,
        ))

    edging = aggregate_edging(normalized, materials)
    backer_result = match_backers(normalized, **options)

    summary = build_summary(tuple(materials), edging, backer_result, normalized.lamination_on)

    logger.info(
        f"[Cutlist] {normalized.optimization_priority.value}: "
        f"{summary.primary_sheets_used} sheets ({summary.primary_sheets_billable} billable), "
        f"edging {summary.edgebanding_total:.0f} mm in {time.monotonic() - start:.2f}s"
    )
    return summary


def compute(snapshot: CutlistInput,
            max_iterations: int = None,
            time_budget_s: float = None,
            seed: int = None,
            stop_flag: Optional[threading.Event] = None) -> Union[CutlistSummary, CutlistError]:
    """
    Przelicz rozkrój, zwracając błąd jako wartość.

    Returns:
        CutlistSummary albo CutlistError (InvalidDimension, InvalidQuantity,
        KerfTooLarge, PartExceedsSheet, NoDefaultMaterial, NoBackerMaterial)
    """
    try:
        return compute_or_raise(
            snapshot,
            max_iterations=max_iterations,
            time_budget_s=time_budget_s,
            seed=seed,
            stop_flag=stop_flag,
        )
    except CutlistError as e:
        logger.info(f"[Cutlist] Rejected: {e}")
        return e
