"""
PanelERP - Cutlist Models
=========================
Modele danych kalkulatora rozkroju płyt.

Wejście (snapshot) jest zapisywane 1:1 jako wersjonowany dokument JSON.
Wynik (CutlistSummary) jest niemutowalny i generowany od nowa przy każdym
przeliczeniu - nigdy nie jest modyfikowany w miejscu.

Układ współrzędnych arkusza:
    X - wzdłuż szerokości arkusza (sheet_width_mm), odpowiada width_mm części
    Y - wzdłuż długości arkusza (sheet_length_mm), odpowiada length_mm części
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from config.settings import (
    DEFAULT_KERF_MM,
    DEFAULT_OPTIMIZATION_PRIORITY,
    LEGACY_BAND_THICKNESSES,
    SNAPSHOT_VERSION,
)


# Logiczne krawędzie części - stała kolejność niezależna od obrotu.
# top/bottom biegną wzdłuż szerokości części, left/right wzdłuż długości.
EDGES = ('top', 'bottom', 'left', 'right')

NO_BANDING = (False, False, False, False)
NO_BANDING_MATERIALS = (None, None, None, None)

MONEY = Decimal('0.01')


def to_money(value) -> Decimal:
    """Zaokrąglenie kwoty do groszy (ROUND_HALF_UP)"""
    return Decimal(str(value)).quantize(MONEY, rounding=ROUND_HALF_UP)


class OptimizationPriority(Enum):
    """Strategia pakowania"""
    FAST = "fast"        # Półki, jedno przejście
    OFFCUT = "offcut"    # Półki + wykorzystanie odpadów z otwartych arkuszy
    DEEP = "deep"        # Ograniczone przeszukiwanie kolejności/obrotów


class BillingMode(Enum):
    """Tryb rozliczania pojedynczego arkusza"""
    FULL = "full"        # Zawsze 1.0
    AUTO = "auto"        # Faktyczne zużycie (ułamek)
    MANUAL = "manual"    # Ręczny procent 0..100


class MaterialRole(Enum):
    PRIMARY = "primary"
    BACKER = "backer"


class BoardType(Enum):
    """Budowa formatki (grubość gotowego elementu)"""
    SINGLE_16 = "16mm"          # Pojedyncza płyta, obrzeże 16 mm
    DOUBLE_32 = "32mm-both"     # Dwie sklejone płyty podstawowe, obrzeże 32 mm
    BACKER_32 = "32mm-backer"   # Płyta podstawowa + podkład, obrzeże 32 mm

    @property
    def plies(self) -> int:
        """Liczba sztuk płyty podstawowej na jeden gotowy element"""
        return 2 if self is BoardType.DOUBLE_32 else 1

    @property
    def edging_thickness_mm(self) -> float:
        band_16, band_32 = LEGACY_BAND_THICKNESSES
        return band_16 if self is BoardType.SINGLE_16 else band_32


# ============================================================
# Input snapshot
# ============================================================

@dataclass(frozen=True)
class Part:
    """
    Prostokątna formatka do wycięcia.

    banding i banding_material_ids to krotki w kolejności EDGES.
    Brak materiału obrzeża (None) = domyślne obrzeże dla grubości części.

    board_type (opcjonalny) nadpisuje laminate i grubość obrzeża:
    32mm-both podwaja liczbę sztuk płyty podstawowej, 32mm-backer
    dokłada podkład. quantity to zawsze liczba gotowych elementów.
    """
    id: str
    length_mm: float
    width_mm: float
    thickness_mm: float = 16.0
    quantity: int = 1
    material_id: Optional[str] = None
    grain_locked: bool = False
    banding: Tuple[bool, bool, bool, bool] = NO_BANDING
    banding_material_ids: Tuple[Optional[str], ...] = NO_BANDING_MATERIALS
    label: str = ""
    laminate: bool = True
    backer_material_id: Optional[str] = None
    board_type: Optional[BoardType] = None

    @property
    def area_mm2(self) -> float:
        return self.length_mm * self.width_mm

    @property
    def plies(self) -> int:
        return self.board_type.plies if self.board_type else 1

    @property
    def sheet_quantity(self) -> int:
        """Sztuki do wycięcia z płyty podstawowej"""
        return self.quantity * self.plies

    @property
    def needs_backer(self) -> bool:
        if self.board_type is None:
            return self.laminate
        return self.board_type is BoardType.BACKER_32

    @property
    def edging_thickness_mm(self) -> float:
        if self.board_type is None:
            return self.thickness_mm
        return self.board_type.edging_thickness_mm

    @property
    def has_banding(self) -> bool:
        return any(self.banding)

    def edge_banded(self, edge: str) -> bool:
        return self.banding[EDGES.index(edge)]

    def edge_material(self, edge: str) -> Optional[str]:
        return self.banding_material_ids[EDGES.index(edge)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'length_mm': self.length_mm,
            'width_mm': self.width_mm,
            'thickness_mm': self.thickness_mm,
            'quantity': self.quantity,
            'material_id': self.material_id,
            'grain_locked': self.grain_locked,
            'banding': {edge: flag for edge, flag in zip(EDGES, self.banding)},
            'banding_material_ids': {
                edge: mid for edge, mid in zip(EDGES, self.banding_material_ids)
            },
            'label': self.label,
            'laminate': self.laminate,
            'backer_material_id': self.backer_material_id,
            'board_type': self.board_type.value if self.board_type else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Part':
        banding = data.get('banding') or {}
        materials = data.get('banding_material_ids') or {}
        return cls(
            id=str(data['id']),
            length_mm=data['length_mm'],
            width_mm=data['width_mm'],
            thickness_mm=data.get('thickness_mm', 16.0),
            quantity=data.get('quantity', 1),
            material_id=data.get('material_id'),
            grain_locked=bool(data.get('grain_locked', False)),
            banding=tuple(bool(banding.get(edge, False)) for edge in EDGES),
            banding_material_ids=tuple(materials.get(edge) for edge in EDGES),
            label=data.get('label', ''),
            laminate=bool(data.get('laminate', True)),
            backer_material_id=data.get('backer_material_id'),
            board_type=BoardType(data['board_type']) if data.get('board_type') else None,
        )


@dataclass(frozen=True)
class BoardMaterial:
    """Płyta (arkusz) - podstawowa lub podkładowa"""
    id: str
    name: str
    sheet_length_mm: float
    sheet_width_mm: float
    thickness_mm: float = 16.0
    cost_per_sheet: float = 0.0
    component_reference: Optional[str] = None
    is_default: bool = False
    role: MaterialRole = MaterialRole.PRIMARY

    @property
    def sheet_area_mm2(self) -> float:
        return self.sheet_length_mm * self.sheet_width_mm

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'sheet_length_mm': self.sheet_length_mm,
            'sheet_width_mm': self.sheet_width_mm,
            'thickness_mm': self.thickness_mm,
            'cost_per_sheet': self.cost_per_sheet,
            'component_reference': self.component_reference,
            'is_default': self.is_default,
            'role': self.role.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], role: MaterialRole = None) -> 'BoardMaterial':
        """role z dokumentu ma pierwszeństwo; parametr to domyślna rola listy"""
        if data.get('role'):
            role = MaterialRole(data['role'])
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            sheet_length_mm=data['sheet_length_mm'],
            sheet_width_mm=data['sheet_width_mm'],
            thickness_mm=data.get('thickness_mm', 16.0),
            cost_per_sheet=data.get('cost_per_sheet', 0.0),
            component_reference=data.get('component_reference'),
            is_default=bool(data.get('is_default', False)),
            role=role or MaterialRole.PRIMARY,
        )


@dataclass(frozen=True)
class EdgingMaterial:
    """Obrzeże (okleina) - rozliczane w metrach bieżących"""
    id: str
    name: str
    thickness_mm: float
    cost_per_meter: float = 0.0
    component_reference: Optional[str] = None
    is_default_for_thickness: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'thickness_mm': self.thickness_mm,
            'cost_per_meter': self.cost_per_meter,
            'component_reference': self.component_reference,
            'is_default_for_thickness': self.is_default_for_thickness,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EdgingMaterial':
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            thickness_mm=data['thickness_mm'],
            cost_per_meter=data.get('cost_per_meter', 0.0),
            component_reference=data.get('component_reference'),
            is_default_for_thickness=bool(data.get('is_default_for_thickness', False)),
        )


@dataclass(frozen=True)
class SheetBillingOverride:
    """Wymuszenie sposobu rozliczenia konkretnego arkusza materiału"""
    material_id: str
    sheet_index: int
    mode: BillingMode = BillingMode.FULL
    manual_pct: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'material_id': self.material_id,
            'sheet_index': self.sheet_index,
            'mode': self.mode.value,
            'manual_pct': self.manual_pct,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SheetBillingOverride':
        return cls(
            material_id=str(data['material_id']),
            sheet_index=int(data['sheet_index']),
            mode=BillingMode(data.get('mode', BillingMode.FULL.value)),
            manual_pct=data.get('manual_pct'),
        )


@dataclass(frozen=True)
class CutlistInput:
    """
    Snapshot wejściowy kalkulatora - własność wywołującego (UI / API).

    Zapisywany w całości jako dokument {"version": 2, ...}.
    """
    parts: Tuple[Part, ...] = ()
    primary_boards: Tuple[BoardMaterial, ...] = ()
    backer_boards: Tuple[BoardMaterial, ...] = ()
    edging: Tuple[EdgingMaterial, ...] = ()
    kerf_mm: float = DEFAULT_KERF_MM
    optimization_priority: OptimizationPriority = OptimizationPriority(DEFAULT_OPTIMIZATION_PRIORITY)
    lamination_on: bool = False
    backer_material_id: Optional[str] = None
    sheet_overrides: Tuple[SheetBillingOverride, ...] = ()
    global_full_board: bool = False
    backer_sheet_overrides: Tuple[SheetBillingOverride, ...] = ()
    backer_global_full_board: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': SNAPSHOT_VERSION,
            'parts': [p.to_dict() for p in self.parts],
            'primary_boards': [b.to_dict() for b in self.primary_boards],
            'backer_boards': [b.to_dict() for b in self.backer_boards],
            'edging': [e.to_dict() for e in self.edging],
            'kerf_mm': self.kerf_mm,
            'optimization_priority': self.optimization_priority.value,
            'lamination_on': self.lamination_on,
            'backer_material_id': self.backer_material_id,
            'sheet_overrides': [o.to_dict() for o in self.sheet_overrides],
            'global_full_board': self.global_full_board,
            'backer_sheet_overrides': [o.to_dict() for o in self.backer_sheet_overrides],
            'backer_global_full_board': self.backer_global_full_board,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CutlistInput':
        """Odtwórz snapshot z dokumentu (bez sprawdzania wersji - robi to repozytorium)"""
        return cls(
            parts=tuple(Part.from_dict(p) for p in data.get('parts', [])),
            primary_boards=tuple(
                BoardMaterial.from_dict(b, MaterialRole.PRIMARY)
                for b in data.get('primary_boards', [])
            ),
            backer_boards=tuple(
                BoardMaterial.from_dict(b, MaterialRole.BACKER)
                for b in data.get('backer_boards', [])
            ),
            edging=tuple(EdgingMaterial.from_dict(e) for e in data.get('edging', [])),
            kerf_mm=data.get('kerf_mm', DEFAULT_KERF_MM),
            optimization_priority=OptimizationPriority(
                data.get('optimization_priority', DEFAULT_OPTIMIZATION_PRIORITY)
            ),
            lamination_on=bool(data.get('lamination_on', False)),
            backer_material_id=data.get('backer_material_id'),
            sheet_overrides=tuple(
                SheetBillingOverride.from_dict(o) for o in data.get('sheet_overrides', [])
            ),
            global_full_board=bool(data.get('global_full_board', False)),
            backer_sheet_overrides=tuple(
                SheetBillingOverride.from_dict(o) for o in data.get('backer_sheet_overrides', [])
            ),
            backer_global_full_board=bool(data.get('backer_global_full_board', False)),
        )

    # Lookups

    def primary_board(self, material_id: str) -> Optional[BoardMaterial]:
        return next((b for b in self.primary_boards if b.id == material_id), None)

    def backer_board(self, material_id: str) -> Optional[BoardMaterial]:
        return next((b for b in self.backer_boards if b.id == material_id), None)

    def edging_material(self, material_id: str) -> Optional[EdgingMaterial]:
        return next((e for e in self.edging if e.id == material_id), None)


# ============================================================
# Layout / summary
# ============================================================

@dataclass(frozen=True)
class Placement:
    """
    Umieszczenie jednej sztuki formatki na arkuszu.

    (x, y) - lewy dolny róg; width_used / length_used - wymiary po obrocie
    wzdłuż X / Y arkusza (bez rzazu).
    """
    part_id: str
    instance: int
    x: float
    y: float
    rotated: bool
    width_used: float
    length_used: float

    @property
    def area_mm2(self) -> float:
        return self.width_used * self.length_used

    def to_dict(self) -> Dict[str, Any]:
        return {
            'part_id': self.part_id,
            'instance': self.instance,
            'x': self.x,
            'y': self.y,
            'rotated': self.rotated,
            'width_used': self.width_used,
            'length_used': self.length_used,
        }


@dataclass(frozen=True)
class SheetLayout:
    """Jeden arkusz z rozmieszczonymi formatkami"""
    index: int
    sheet_width_mm: float
    sheet_length_mm: float
    placements: Tuple[Placement, ...] = ()
    used_area_mm2: float = 0.0
    billable: float = 1.0

    @property
    def sheet_area_mm2(self) -> float:
        return self.sheet_width_mm * self.sheet_length_mm

    @property
    def usage(self) -> float:
        """Wykorzystanie arkusza 0..1"""
        if self.sheet_area_mm2 <= 0:
            return 0.0
        return self.used_area_mm2 / self.sheet_area_mm2

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'sheet_width_mm': self.sheet_width_mm,
            'sheet_length_mm': self.sheet_length_mm,
            'placements': [p.to_dict() for p in self.placements],
            'used_area_mm2': self.used_area_mm2,
            'billable': self.billable,
        }


@dataclass(frozen=True)
class MaterialLayout:
    """Rozkrój jednego materiału płytowego"""
    material_id: str
    name: str
    role: MaterialRole
    sheets: Tuple[SheetLayout, ...] = ()
    sheets_used: int = 0
    sheets_billable: float = 0.0
    cost_per_sheet: float = 0.0
    component_reference: Optional[str] = None

    @property
    def cost(self) -> Decimal:
        return to_money(Decimal(str(self.sheets_billable)) * Decimal(str(self.cost_per_sheet)))

    @property
    def parts_area_mm2(self) -> float:
        return sum(s.used_area_mm2 for s in self.sheets)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'material_id': self.material_id,
            'name': self.name,
            'role': self.role.value,
            'sheets_used': self.sheets_used,
            'sheets_billable': self.sheets_billable,
            'sheets': [s.to_dict() for s in self.sheets],
            'cost_per_sheet': self.cost_per_sheet,
            'component_reference': self.component_reference,
            'cost': float(self.cost),
        }


@dataclass(frozen=True)
class EdgingUsage:
    """Zużycie jednego materiału obrzeża"""
    material_id: str
    name: str
    thickness_mm: float
    length_mm: float
    cost_per_meter: float = 0.0
    component_reference: Optional[str] = None

    @property
    def length_m(self) -> float:
        return self.length_mm / 1000.0

    @property
    def cost(self) -> Decimal:
        return to_money(Decimal(str(self.length_mm)) / 1000 * Decimal(str(self.cost_per_meter)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'material_id': self.material_id,
            'name': self.name,
            'thickness_mm': self.thickness_mm,
            'length_mm': self.length_mm,
            'cost_per_meter': self.cost_per_meter,
            'component_reference': self.component_reference,
            'cost': float(self.cost),
        }


@dataclass(frozen=True)
class BackerResult:
    """Wynik dla płyt podkładowych (laminowanie)"""
    materials: Tuple[MaterialLayout, ...] = ()
    sheets_used: int = 0
    sheets_billable: float = 0.0

    @property
    def cost(self) -> Decimal:
        return sum((m.cost for m in self.materials), Decimal('0.00'))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'materials': [m.to_dict() for m in self.materials],
            'sheets_used': self.sheets_used,
            'sheets_billable': self.sheets_billable,
        }


@dataclass(frozen=True)
class CutlistSummary:
    """
    Niemutowalny wynik kalkulacji rozkroju.

    Porównywany strukturalnie - dwa przeliczenia tego samego wejścia
    dają równe obiekty (dirty-tracking w UI).
    """
    materials: Tuple[MaterialLayout, ...] = ()
    edging_by_material: Tuple[EdgingUsage, ...] = ()
    backer_result: Optional[BackerResult] = None
    primary_sheets_used: int = 0
    primary_sheets_billable: float = 0.0
    backer_sheets_used: int = 0
    backer_sheets_billable: float = 0.0
    lamination_on: bool = False

    # Pola zgodności wstecznej [mm]
    edgebanding_16mm: float = 0.0
    edgebanding_32mm: float = 0.0
    edgebanding_total: float = 0.0

    # Koszty [waluta katalogu]
    sheet_cost: Decimal = field(default_factory=lambda: Decimal('0.00'))
    backer_cost: Decimal = field(default_factory=lambda: Decimal('0.00'))
    edging_cost: Decimal = field(default_factory=lambda: Decimal('0.00'))
    total_cost: Decimal = field(default_factory=lambda: Decimal('0.00'))

    def material(self, material_id: str) -> Optional[MaterialLayout]:
        return next((m for m in self.materials if m.material_id == material_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'materials': [m.to_dict() for m in self.materials],
            'edging_by_material': [e.to_dict() for e in self.edging_by_material],
            'backer_result': self.backer_result.to_dict() if self.backer_result else None,
            'primary_sheets_used': self.primary_sheets_used,
            'primary_sheets_billable': self.primary_sheets_billable,
            'backer_sheets_used': self.backer_sheets_used,
            'backer_sheets_billable': self.backer_sheets_billable,
            'lamination_on': self.lamination_on,
            'edgebanding_16mm': self.edgebanding_16mm,
            'edgebanding_32mm': self.edgebanding_32mm,
            'edgebanding_total': self.edgebanding_total,
            'sheet_cost': float(self.sheet_cost),
            'backer_cost': float(self.backer_cost),
            'edging_cost': float(self.edging_cost),
            'total_cost': float(self.total_cost),
        }
