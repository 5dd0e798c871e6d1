"""
Shelf Packer - pakowanie półkowe z listą wolnych prostokątów
=============================================================
Prymityw dla strategii fast i offcut.

Każda sztuka zajmuje na arkuszu komórkę (szerokość + rzaz) x (długość + rzaz),
z formatką w lewym dolnym rogu komórki. Komórki nigdy na siebie nie
nachodzą i zawsze mieszczą się w arkuszu, więc formatki zachowują
odstęp rzazu między sobą i od prawej/górnej krawędzi arkusza.

Półki rosną wzdłuż Y (długość arkusza), formatki na półce idą od lewej
do prawej wzdłuż X (szerokość arkusza). Wolne prostokąty są zbierane
w trakcie pakowania:
- pas nad formatką niższą od półki,
- prawa reszta zamkniętej półki,
- górna reszta zamkniętego arkusza.
Tryb offcut przeszukuje je (best-fit) zanim otworzy nowy arkusz.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from core.exceptions import PartExceedsSheetError
from cutlist.models import Part, Placement

logger = logging.getLogger(__name__)

EPS = 1e-6


@dataclass(frozen=True)
class PackItem:
    """Pojedyncza sztuka formatki do umieszczenia"""
    part_id: str
    instance: int
    width: float        # wzdłuż X bez obrotu
    length: float       # wzdłuż Y bez obrotu
    can_rotate: bool

    @property
    def area(self) -> float:
        return self.width * self.length

    @property
    def longest_side(self) -> float:
        return max(self.width, self.length)


@dataclass
class FreeRect:
    """Wolny prostokąt na arkuszu (w przestrzeni komórek)"""
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    def fits(self, width: float, height: float) -> bool:
        return width <= self.width + EPS and height <= self.height + EPS


Orientation = Tuple[float, float, bool]


def expand_parts(parts: Iterable[Part], rotation_allowed: bool = True) -> List[PackItem]:
    """Rozwiń formatki na pojedyncze sztuki (instance od 1, 32mm-both = 2 sztuki na element)"""
    items = []
    for part in parts:
        for instance in range(1, part.sheet_quantity + 1):
            items.append(PackItem(
                part_id=part.id,
                instance=instance,
                width=part.width_mm,
                length=part.length_mm,
                can_rotate=rotation_allowed and not part.grain_locked,
            ))
    return items


def sort_by_area(items: Iterable[PackItem]) -> List[PackItem]:
    """Malejąco po polu, potem dłuższy bok, id formatki, numer sztuki"""
    return sorted(items, key=lambda i: (-i.area, -i.longest_side, i.part_id, i.instance))


def orientations(item: PackItem, kerf_mm: float) -> List[Orientation]:
    """Dozwolone komórki (szer., dł., obrót) - najpierw bez obrotu"""
    result = [(item.width + kerf_mm, item.length + kerf_mm, False)]
    if item.can_rotate and item.width != item.length:
        result.append((item.length + kerf_mm, item.width + kerf_mm, True))
    return result


def fits_sheet(item: PackItem, sheet_width: float, sheet_length: float, kerf_mm: float) -> bool:
    return any(w <= sheet_width + EPS and h <= sheet_length + EPS
               for w, h, _ in orientations(item, kerf_mm))


def check_fits_sheet(items: Iterable[PackItem], sheet_width: float, sheet_length: float,
                     kerf_mm: float, material_id: str) -> None:
    """PartExceedsSheetError dla pierwszej formatki, która nie mieści się na pustym arkuszu"""
    checked = set()
    for item in sorted(items, key=lambda i: (i.part_id, i.instance)):
        if item.part_id in checked:
            continue
        checked.add(item.part_id)
        if not fits_sheet(item, sheet_width, sheet_length, kerf_mm):
            raise PartExceedsSheetError(item.part_id, material_id)


def split_free_rect(rect: FreeRect, width: float, height: float) -> List[FreeRect]:
    """
    Podział gilotynowy po umieszczeniu komórki w lewym dolnym rogu.

    Wybiera cięcie, które zostawia większy pojedynczy kawałek.
    """
    right_w = rect.width - width
    top_h = rect.height - height

    # Cięcie poziome: górny pas na całą szerokość
    horizontal = [
        FreeRect(rect.x, rect.y + height, rect.width, top_h),
        FreeRect(rect.x + width, rect.y, right_w, height),
    ]
    # Cięcie pionowe: prawy pas na całą wysokość
    vertical = [
        FreeRect(rect.x + width, rect.y, right_w, rect.height),
        FreeRect(rect.x, rect.y + height, width, top_h),
    ]

    def largest(rects):
        return max(r.area for r in rects)

    chosen = horizontal if largest(horizontal) >= largest(vertical) else vertical
    return [r for r in chosen if r.width > EPS and r.height > EPS]


class SheetBin:
    """Arkusz w trakcie pakowania półkowego"""

    def __init__(self, index: int, width: float, length: float):
        self.index = index
        self.width = width
        self.length = length
        self.placements: List[Placement] = []
        self.free_rects: List[FreeRect] = []

        self.shelf_y = 0.0
        self.shelf_height = 0.0
        self.cursor_x = 0.0
        self.has_shelf = False
        self.closed = False

    @property
    def used_area(self) -> float:
        return sum(p.area_mm2 for p in self.placements)

    def place(self, item: PackItem, x: float, y: float, rotated: bool) -> None:
        self.placements.append(Placement(
            part_id=item.part_id,
            instance=item.instance,
            x=x,
            y=y,
            rotated=rotated,
            width_used=item.length if rotated else item.width,
            length_used=item.width if rotated else item.length,
        ))

    def place_on_shelf(self, item: PackItem, cell: Orientation) -> None:
        cell_w, cell_h, rotated = cell
        x = self.cursor_x
        self.place(item, x, self.shelf_y, rotated)
        self.cursor_x += cell_w
        if self.shelf_height - cell_h > EPS:
            self.free_rects.append(
                FreeRect(x, self.shelf_y + cell_h, cell_w, self.shelf_height - cell_h)
            )

    def open_shelf(self, height: float) -> None:
        self.close_shelf()
        self.shelf_y = self.shelf_y + self.shelf_height if self.has_shelf else 0.0
        self.shelf_height = height
        self.cursor_x = 0.0
        self.has_shelf = True

    def next_shelf_y(self) -> float:
        return self.shelf_y + self.shelf_height if self.has_shelf else 0.0

    def close_shelf(self) -> None:
        if self.has_shelf and self.width - self.cursor_x > EPS:
            self.free_rects.append(
                FreeRect(self.cursor_x, self.shelf_y, self.width - self.cursor_x, self.shelf_height)
            )
            # Reszta zapisana - kolejne zamknięcie nie może jej zdublować
            self.cursor_x = self.width

    def close(self) -> None:
        if self.closed:
            return
        top = self.next_shelf_y()
        self.close_shelf()
        if self.length - top > EPS:
            self.free_rects.append(FreeRect(0.0, top, self.width, self.length - top))
        self.has_shelf = False
        self.closed = True


class ShelfPacker:
    """
    Pakowanie półkowe (fast) z opcjonalnym wykorzystaniem odpadów (offcut).

    prefer_rotated odwraca preferencję orientacji - używane przez strategię
    deep do generowania alternatywnych kandydatów.
    """

    def __init__(self, sheet_width: float, sheet_length: float, kerf_mm: float,
                 material_id: str = "", reuse_offcuts: bool = False,
                 prefer_rotated: bool = False):
        self.sheet_width = sheet_width
        self.sheet_length = sheet_length
        self.kerf_mm = kerf_mm
        self.material_id = material_id
        self.reuse_offcuts = reuse_offcuts
        self.prefer_rotated = prefer_rotated

    def pack(self, items: Sequence[PackItem]) -> List[SheetBin]:
        """Umieść sztuki w podanej kolejności"""
        sheets: List[SheetBin] = []
        current: Optional[SheetBin] = None

        for item in items:
            cells = self._ordered(orientations(item, self.kerf_mm))

            if current is not None:
                if self._place_on_current_shelf(current, item, cells):
                    continue
                if self._place_on_new_shelf(current, item, cells):
                    continue

            if self.reuse_offcuts:
                # Zamknięty arkusz oddaje prawą i górną resztę do puli odpadów
                if current is not None:
                    current.close()
                    current = None
                if self._place_in_free_rect(sheets, item, cells):
                    continue

            if current is not None:
                current.close()
            current = SheetBin(len(sheets), self.sheet_width, self.sheet_length)
            sheets.append(current)
            if not self._place_on_new_shelf(current, item, cells):
                raise PartExceedsSheetError(item.part_id, self.material_id)

        if current is not None:
            current.close()

        return sheets

    def _ordered(self, cells: List[Orientation]) -> List[Orientation]:
        if self.prefer_rotated:
            return sorted(cells, key=lambda c: not c[2])
        return cells

    def _place_on_current_shelf(self, sheet: SheetBin, item: PackItem,
                                cells: List[Orientation]) -> bool:
        if not sheet.has_shelf:
            return False

        room = sheet.width - sheet.cursor_x
        candidates = []
        for rank, cell in enumerate(cells):
            cell_w, cell_h, _ = cell
            if cell_w <= room + EPS and cell_h <= sheet.shelf_height + EPS:
                waste = (sheet.shelf_height - cell_h) * cell_w
                candidates.append((waste, rank, cell))

        if not candidates:
            return False

        # Obrót tylko gdy zmniejsza odpad na półce (remis = preferowana orientacja)
        _, _, cell = min(candidates, key=lambda c: (c[0], c[1]))
        sheet.place_on_shelf(item, cell)
        return True

    def _place_on_new_shelf(self, sheet: SheetBin, item: PackItem,
                            cells: List[Orientation]) -> bool:
        room = sheet.length - sheet.next_shelf_y()
        for cell in cells:
            cell_w, cell_h, _ = cell
            if cell_w <= sheet.width + EPS and cell_h <= room + EPS:
                sheet.open_shelf(cell_h)
                sheet.place_on_shelf(item, cell)
                return True
        return False

    def _place_in_free_rect(self, sheets: List[SheetBin], item: PackItem,
                            cells: List[Orientation]) -> bool:
        best = None
        for sheet in sheets:
            for rect_index, rect in enumerate(sheet.free_rects):
                for rank, cell in enumerate(cells):
                    cell_w, cell_h, _ = cell
                    if not rect.fits(cell_w, cell_h):
                        continue
                    remnants = split_free_rect(rect, cell_w, cell_h)
                    resulting = len(sheet.free_rects) - 1 + len(remnants)
                    key = (rect.area, resulting, sheet.index, rank, rect.y, rect.x)
                    if best is None or key < best[0]:
                        best = (key, sheet, rect_index, cell, remnants)

        if best is None:
            return False

        _, sheet, rect_index, cell, remnants = best
        rect = sheet.free_rects[rect_index]
        sheet.free_rects[rect_index:rect_index + 1] = remnants
        sheet.place(item, rect.x, rect.y, cell[2])
        return True


def pack_shelves(items: Sequence[PackItem], sheet_width: float, sheet_length: float,
                 kerf_mm: float, material_id: str = "", reuse_offcuts: bool = False,
                 prefer_rotated: bool = False) -> List[List[Placement]]:
    """Spakuj i zwróć listę arkuszy (listy umieszczeń)"""
    packer = ShelfPacker(
        sheet_width, sheet_length, kerf_mm,
        material_id=material_id,
        reuse_offcuts=reuse_offcuts,
        prefer_rotated=prefer_rotated,
    )
    return [list(sheet.placements) for sheet in packer.pack(items)]
