"""
Deep Search - ograniczone przeszukiwanie rozkroju
=================================================
Strategia deep: wielu kandydatów, wygrywa najmniejsza liczba arkuszy.

Fazy (każdy kandydat = jedna iteracja budżetu):
1. przekazany rozkrój startowy oraz offcut i fast z domyślną kolejnością
   (punkty odniesienia - wynik nigdy gorszy)
2. offcut z alternatywnymi sortowaniami i odwróconą preferencją obrotu
3. rectpack - wszystkie kombinacje algorytmów pakowania i sortowań
4. losowe zamiany kolejności (stałe ziarno) wokół najlepszej kolejności

Ranking: (liczba arkuszy, rozliczany odpad, numer kandydata).
Rozliczany odpad = niewykorzystana powierzchnia wszystkich arkuszy poza
ostatnim (ostatni arkusz jest rozliczany proporcjonalnie).
"""

import math
import random
import threading
import time
import logging
from typing import List, Optional, Sequence, Tuple

import rectpack

from config.settings import DEEP_MAX_ITERATIONS, DEEP_RANDOM_SEED, DEEP_TIME_BUDGET_S
from cutlist.models import Placement
from cutlist.nesting.packer import (
    PackItem,
    orientations,
    pack_shelves,
    sort_by_area,
)

logger = logging.getLogger(__name__)

PACKING_ALGORITHMS = [
    rectpack.MaxRectsBssf,
    rectpack.MaxRectsBaf,
    rectpack.MaxRectsBl,
    rectpack.MaxRectsBlsf,
    rectpack.GuillotineBssfSas,
    rectpack.SkylineBl,
]

SORT_ALGORITHMS = [
    rectpack.SORT_AREA,
    rectpack.SORT_PERI,
    rectpack.SORT_DIFF,
    rectpack.SORT_SSIDE,
    rectpack.SORT_LSIDE,
    rectpack.SORT_RATIO,
]

SCALE = 10  # 0.1 mm precision

# Alternatywne kolejności dla prymitywu offcut
ORDERINGS = [
    ('area', lambda i: (-i.area, -i.longest_side, i.part_id, i.instance)),
    ('longest_side', lambda i: (-i.longest_side, -i.area, i.part_id, i.instance)),
    ('length', lambda i: (-i.length, -i.width, i.part_id, i.instance)),
    ('width', lambda i: (-i.width, -i.length, i.part_id, i.instance)),
    ('perimeter', lambda i: (-(i.width + i.length), -i.area, i.part_id, i.instance)),
]

Layout = List[List[Placement]]


def billed_waste(layout: Layout, sheet_area: float) -> float:
    """Niewykorzystana powierzchnia arkuszy rozliczanych w całości"""
    if not layout:
        return 0.0
    return sum(sheet_area - sum(p.area_mm2 for p in sheet) for sheet in layout[:-1])


def rank(layout: Layout, sheet_area: float, candidate_index: int) -> Tuple[int, float, int]:
    return (len(layout), round(billed_waste(layout, sheet_area), 6), candidate_index)


def pack_with_rectpack(items: Sequence[PackItem], sheet_width: float, sheet_length: float,
                       kerf_mm: float, pack_algo, sort_algo) -> Optional[Layout]:
    """
    Jedna próba rectpack (tryb Offline, wiele arkuszy).

    Wymiary skalowane do liczb całkowitych: komórki zaokrąglane w górę,
    arkusz w dół, więc wynik po przeskalowaniu nie może nachodzić na
    siebie ani wyjść poza arkusz. None jeśli nie wszystko się zmieściło.
    """
    if not items:
        return []

    rotation = all(item.can_rotate for item in items)
    bin_w = math.floor(sheet_width * SCALE + 1e-9)
    bin_h = math.floor(sheet_length * SCALE + 1e-9)

    packer = rectpack.newPacker(
        mode=rectpack.PackingMode.Offline,
        pack_algo=pack_algo,
        sort_algo=sort_algo,
        rotation=rotation,
    )
    packer.add_bin(bin_w, bin_h, count=len(items))

    cells = []
    for rid, item in enumerate(items):
        cell_w, cell_h, _ = orientations(item, kerf_mm)[0]
        scaled = (math.ceil(cell_w * SCALE - 1e-9), math.ceil(cell_h * SCALE - 1e-9))
        cells.append(scaled)
        packer.add_rect(scaled[0], scaled[1], rid=rid)

    packer.pack()

    rects = packer.rect_list()
    if len(rects) != len(items):
        return None

    by_bin = {}
    for b, x, y, w, h, rid in rects:
        item = items[rid]
        rotated = (w, h) != cells[rid]
        if rotated and not item.can_rotate:
            return None
        by_bin.setdefault(b, []).append(Placement(
            part_id=item.part_id,
            instance=item.instance,
            x=x / SCALE,
            y=y / SCALE,
            rotated=rotated,
            width_used=item.length if rotated else item.width,
            length_used=item.width if rotated else item.length,
        ))

    layout = []
    for b in sorted(by_bin):
        layout.append(sorted(by_bin[b], key=lambda p: (p.y, p.x, p.part_id, p.instance)))
    return layout


class DeepSearch:
    """
    Ograniczone przeszukiwanie kandydatów rozkroju dla jednego materiału.

    Budżet: max_iterations (liczba kandydatów) i opcjonalnie time_budget_s.
    stop_flag przerywa wyszukiwanie - zwracany jest najlepszy dotąd wynik.
    """

    def __init__(self, sheet_width: float, sheet_length: float, kerf_mm: float,
                 material_id: str = "", max_iterations: int = None,
                 time_budget_s: float = None, seed: int = None,
                 stop_flag: threading.Event = None):
        self.sheet_width = sheet_width
        self.sheet_length = sheet_length
        self.kerf_mm = kerf_mm
        self.material_id = material_id
        self.max_iterations = max(1, max_iterations if max_iterations is not None else DEEP_MAX_ITERATIONS)
        self.time_budget_s = DEEP_TIME_BUDGET_S if time_budget_s is None else time_budget_s
        self.seed = DEEP_RANDOM_SEED if seed is None else seed
        self.stop_flag = stop_flag or threading.Event()

        self.iterations = 0
        self._started = 0.0
        self._best: Optional[Tuple[Tuple[int, float, int], Layout]] = None
        self._best_order: List[PackItem] = []

    @property
    def sheet_area(self) -> float:
        return self.sheet_width * self.sheet_length

    def run(self, items: Sequence[PackItem], initial: Optional[Layout] = None) -> Layout:
        """
        Uruchom wyszukiwanie i zwróć najlepszy rozkrój.

        initial - gotowy rozkrój (np. offcut), kandydat nr 0
        """
        self._started = time.monotonic()
        self.iterations = 0
        self._best = None
        self._best_order = list(items)

        if initial is not None:
            self._consider(initial)

        baseline = sort_by_area(items)
        self._try_order(baseline, prefer_rotated=False)
        # Półki bez odpadów - offcut po fallbacku nigdy nie jest gorszy od fast
        self._try_order(baseline, prefer_rotated=False, reuse_offcuts=False)

        # Faza 2: alternatywne kolejności i orientacje
        for name, key in ORDERINGS:
            for prefer_rotated in (False, True):
                if name == 'area' and not prefer_rotated:
                    continue
                if self._exhausted():
                    return self._finish()
                self._try_order(sorted(items, key=key), prefer_rotated)

        # Faza 3: rectpack
        for pack_algo in PACKING_ALGORITHMS:
            for sort_algo in SORT_ALGORITHMS:
                if self._exhausted():
                    return self._finish()
                layout = pack_with_rectpack(
                    items, self.sheet_width, self.sheet_length, self.kerf_mm,
                    pack_algo, sort_algo
                )
                self._consider(layout)

        # Faza 4: losowe zamiany wokół najlepszej kolejności
        rng = random.Random(self.seed)
        order = list(self._best_order)
        while len(order) > 1 and not self._exhausted():
            i, j = rng.sample(range(len(order)), 2)
            candidate = list(order)
            candidate[i], candidate[j] = candidate[j], candidate[i]
            if self._try_order(candidate, prefer_rotated=False):
                order = candidate

        return self._finish()

    def _exhausted(self) -> bool:
        if self.stop_flag.is_set():
            return True
        if self.iterations >= self.max_iterations:
            return True
        if self.time_budget_s > 0 and time.monotonic() - self._started >= self.time_budget_s:
            return True
        return False

    def _try_order(self, order: List[PackItem], prefer_rotated: bool,
                   reuse_offcuts: bool = True) -> bool:
        layout = pack_shelves(
            order, self.sheet_width, self.sheet_length, self.kerf_mm,
            material_id=self.material_id,
            reuse_offcuts=reuse_offcuts,
            prefer_rotated=prefer_rotated,
        )
        improved = self._consider(layout)
        if improved:
            self._best_order = list(order)
        return improved

    def _consider(self, layout: Optional[Layout]) -> bool:
        candidate_index = self.iterations
        self.iterations += 1
        if layout is None:
            return False

        key = rank(layout, self.sheet_area, candidate_index)
        if self._best is None or key < self._best[0]:
            self._best = (key, layout)
            return True
        return False

    def _finish(self) -> Layout:
        elapsed = time.monotonic() - self._started
        key, layout = self._best
        logger.debug(
            f"[DeepSearch] {self.material_id}: {key[0]} sheets after "
            f"{self.iterations} candidates in {elapsed:.2f}s"
        )
        return layout
