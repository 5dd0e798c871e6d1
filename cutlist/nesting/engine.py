"""
Packing Engine
==============
Rozkrój formatek jednego materiału płytowego wybraną strategią.

Gwarancje wyniku:
- każda sztuka każdej formatki występuje dokładnie raz,
- komórki (formatka + rzaz) nie nachodzą na siebie w obrębie arkusza,
- każda komórka mieści się w arkuszu,
- liczba arkuszy fast / offcut nie maleje, gdy rzaz rośnie.
Formatka, która nie mieści się na pustym arkuszu w żadnej dozwolonej
orientacji, przerywa cały przebieg (PartExceedsSheetError).

Rozkrój policzony dla większego rzazu jest poprawny także dla mniejszego:
komórki mniejszego rzazu leżą wewnątrz komórek większego (ten sam lewy
dolny róg). fast i offcut pakują więc również przy kolejnych rzazach
z KERF_LADDER_MM i zostawiają rozkrój z najmniejszą liczbą arkuszy.
"""

import math
import threading
import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from cutlist.models import BoardMaterial, OptimizationPriority, Part, Placement, SheetLayout
from cutlist.nesting.deep_search import DeepSearch
from cutlist.nesting.packer import (
    EPS,
    PackItem,
    check_fits_sheet,
    expand_parts,
    fits_sheet,
    pack_shelves,
    sort_by_area,
)

logger = logging.getLogger(__name__)

# Rzazy próbne [mm]: każdy pełny milimetr do 20, dalej rzadziej
KERF_LADDER_MM = tuple(range(0, 21)) + (25, 30, 40, 50, 60, 80, 100, 150, 200, 300, 500)

Layout = List[List[Placement]]
Packer = Callable[[Sequence[PackItem], BoardMaterial, float], Layout]


def _pack_fast(items, board: BoardMaterial, kerf_mm: float) -> Layout:
    return pack_shelves(
        sort_by_area(items), board.sheet_width_mm, board.sheet_length_mm, kerf_mm,
        material_id=board.id,
    )


def _pack_offcut(items, board: BoardMaterial, kerf_mm: float) -> Layout:
    ordered = sort_by_area(items)
    offcut = pack_shelves(
        ordered, board.sheet_width_mm, board.sheet_length_mm, kerf_mm,
        material_id=board.id, reuse_offcuts=True,
    )
    fast = _pack_fast(items, board, kerf_mm)
    if len(offcut) > len(fast):
        logger.debug(f"[PackingEngine] {board.id}: offcut used more sheets than fast, keeping fast")
        return fast
    return offcut


def cell_lower_bound(items: Sequence[PackItem], board: BoardMaterial, kerf_mm: float) -> int:
    """Najmniejsza możliwa liczba arkuszy: pole komórek / pole arkusza"""
    cells = sum((i.width + kerf_mm) * (i.length + kerf_mm) for i in items)
    return math.ceil(cells / board.sheet_area_mm2 - EPS)


def pack_kerf_monotone(pack: Packer, items: Sequence[PackItem], board: BoardMaterial,
                       kerf_mm: float) -> Layout:
    """
    Najlepszy rozkrój przy kerf_mm i przy większych rzazach z drabinki.

    Wybór wg liczby arkuszy; przy remisie zostaje rozkrój o mniejszym
    rzazie. Dla rzazów z drabinki zbiór kandydatów mniejszego rzazu
    zawiera kandydatów większego, więc liczba arkuszy nie maleje.
    """
    best = pack(items, board, kerf_mm)
    best_kerf = kerf_mm

    for step in KERF_LADDER_MM:
        if step <= kerf_mm:
            continue
        # Granica dolna rośnie z rzazem - dalsze szczeble też nic nie dadzą
        if cell_lower_bound(items, board, step) >= len(best):
            break
        if not all(fits_sheet(i, board.sheet_width_mm, board.sheet_length_mm, step) for i in items):
            break

        layout = pack(items, board, step)
        if len(layout) < len(best):
            best, best_kerf = layout, step

    if best_kerf != kerf_mm:
        logger.debug(
            f"[PackingEngine] {board.id}: layout packed at kerf {best_kerf:g} mm "
            f"saves sheets at kerf {kerf_mm:g} mm"
        )
    return best


def pack_material(board: BoardMaterial, parts: Iterable[Part], kerf_mm: float,
                  priority: OptimizationPriority = OptimizationPriority.FAST,
                  rotation_allowed: bool = True,
                  max_iterations: int = None,
                  time_budget_s: float = None,
                  seed: int = None,
                  stop_flag: Optional[threading.Event] = None) -> Tuple[SheetLayout, ...]:
    """
    Rozmieść formatki na arkuszach płyty.

    Args:
        board: Materiał płytowy (wymiary arkusza)
        parts: Znormalizowane formatki tego materiału
        kerf_mm: Szerokość rzazu
        priority: Strategia (fast / offcut / deep)
        rotation_allowed: False blokuje obrót wszystkich formatek
        max_iterations, time_budget_s, seed, stop_flag: budżet strategii deep

    Returns:
        Krotka arkuszy w kolejności otwierania (billable = 1.0, do rozliczenia)

    Raises:
        PartExceedsSheetError: formatka nie mieści się na arkuszu
    """
    items = expand_parts(parts, rotation_allowed)
    check_fits_sheet(items, board.sheet_width_mm, board.sheet_length_mm, kerf_mm, board.id)

    if not items:
        return ()

    if priority == OptimizationPriority.DEEP:
        search = DeepSearch(
            board.sheet_width_mm, board.sheet_length_mm, kerf_mm,
            material_id=board.id,
            max_iterations=max_iterations,
            time_budget_s=time_budget_s,
            seed=seed,
            stop_flag=stop_flag,
        )
        # Wynik offcut jest pierwszym kandydatem - deep nigdy nie jest gorszy
        layout = search.run(items, initial=pack_kerf_monotone(_pack_offcut, items, board, kerf_mm))
    elif priority == OptimizationPriority.OFFCUT:
        layout = pack_kerf_monotone(_pack_offcut, items, board, kerf_mm)
    else:
        layout = pack_kerf_monotone(_pack_fast, items, board, kerf_mm)

    sheets = tuple(
        SheetLayout(
            index=index,
            sheet_width_mm=board.sheet_width_mm,
            sheet_length_mm=board.sheet_length_mm,
            placements=tuple(placements),
            used_area_mm2=sum(p.area_mm2 for p in placements),
        )
        for index, placements in enumerate(layout)
    )

    logger.debug(
        f"[PackingEngine] {board.id} ({priority.value}): "
        f"{len(items)} pieces on {len(sheets)} sheets"
    )
    return sheets
