"""
PanelERP - Cutlist Normalizer
=============================
Walidacja i kanonizacja snapshotu wejściowego.

Funkcja czysta: snapshot -> znormalizowany snapshot albo CutlistError.
Po normalizacji każda formatka ma ustalony materiał płyty, materiał
obrzeża dla każdej oklejanej krawędzi oraz (przy laminowaniu) płytę
podkładową. normalize(normalize(x)) == normalize(x).
"""

import logging
from dataclasses import replace
from numbers import Integral
from typing import Iterable, Optional, Tuple

from core.exceptions import (
    AmbiguousDefaultMaterialError,
    DuplicatePartError,
    InvalidDimensionError,
    InvalidQuantityError,
    KerfTooLargeError,
    NoBackerMaterialError,
    NoDefaultMaterialError,
)
from cutlist.models import (
    EDGES,
    BoardMaterial,
    CutlistInput,
    EdgingMaterial,
    Part,
)

logger = logging.getLogger(__name__)


def _positive(value) -> bool:
    try:
        return value > 0
    except TypeError:
        return False


def _single_default(boards: Iterable[BoardMaterial], role: str) -> Optional[BoardMaterial]:
    defaults = [b for b in boards if b.is_default]
    if len(defaults) > 1:
        raise AmbiguousDefaultMaterialError(role, [b.id for b in defaults])
    return defaults[0] if defaults else None


def default_edging_for_thickness(
    edging: Iterable[EdgingMaterial], thickness_mm: float
) -> Optional[EdgingMaterial]:
    """Obrzeże oznaczone jako domyślne dla danej grubości"""
    for material in edging:
        if material.is_default_for_thickness and material.thickness_mm == thickness_mm:
            return material
    return None


# ============================================================
# Validation
# ============================================================

def _validate_boards(boards: Tuple[BoardMaterial, ...]) -> None:
    for board in boards:
        for field_name in ('sheet_length_mm', 'sheet_width_mm'):
            value = getattr(board, field_name)
            if not _positive(value):
                raise InvalidDimensionError(board.id, field_name, value)


def _validate_edging(edging: Tuple[EdgingMaterial, ...]) -> None:
    by_thickness = {}
    for material in edging:
        if material.is_default_for_thickness:
            by_thickness.setdefault(material.thickness_mm, []).append(material.id)
    for thickness, ids in by_thickness.items():
        if len(ids) > 1:
            raise AmbiguousDefaultMaterialError(f'edging ({thickness:g} mm)', ids)


def _validate_part_ids(parts: Tuple[Part, ...]) -> None:
    seen = set()
    for part in parts:
        if part.id in seen:
            raise DuplicatePartError(part.id)
        seen.add(part.id)


def _validate_part(part: Part) -> None:
    for field_name in ('length_mm', 'width_mm', 'thickness_mm'):
        value = getattr(part, field_name)
        if not _positive(value):
            raise InvalidDimensionError(part.id, field_name, value)

    quantity = part.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, Integral) or quantity <= 0:
        raise InvalidQuantityError(part.id, quantity)


def _validate_kerf(kerf_mm: float, parts: Tuple[Part, ...]) -> None:
    if not isinstance(kerf_mm, (int, float)) or kerf_mm < 0:
        raise KerfTooLargeError(kerf_mm)

    if not parts:
        return

    smallest = min(min(p.length_mm, p.width_mm) for p in parts)
    if kerf_mm >= smallest:
        raise KerfTooLargeError(kerf_mm, smallest)


# ============================================================
# Resolution
# ============================================================

def _resolve_primary(part: Part, snapshot: CutlistInput,
                     default_board: Optional[BoardMaterial]) -> str:
    if part.material_id:
        if snapshot.primary_board(part.material_id) is None:
            raise NoDefaultMaterialError('primary', reference=part.material_id, part_id=part.id)
        return part.material_id

    if default_board is None:
        raise NoDefaultMaterialError('primary', part_id=part.id)
    return default_board.id


def _resolve_edging(part: Part, snapshot: CutlistInput) -> Tuple[Optional[str], ...]:
    resolved = []
    for edge in EDGES:
        if not part.edge_banded(edge):
            resolved.append(None)
            continue

        material_id = part.edge_material(edge)
        if material_id:
            if snapshot.edging_material(material_id) is None:
                raise NoDefaultMaterialError('edging', reference=material_id, part_id=part.id)
            resolved.append(material_id)
            continue

        thickness = part.edging_thickness_mm
        default = default_edging_for_thickness(snapshot.edging, thickness)
        if default is None:
            raise NoDefaultMaterialError(f'edging ({thickness:g} mm)', part_id=part.id)
        resolved.append(default.id)

    return tuple(resolved)


def _resolve_backer(part: Part, snapshot: CutlistInput,
                    default_backer: Optional[BoardMaterial]) -> Optional[str]:
    reference = part.backer_material_id or snapshot.backer_material_id
    if reference:
        if snapshot.backer_board(reference) is None:
            raise NoBackerMaterialError(reference)
        return reference

    if default_backer is None:
        raise NoBackerMaterialError()
    return default_backer.id


def normalize(snapshot: CutlistInput) -> CutlistInput:
    """
    Zwaliduj i ujednolić snapshot.

    Raises:
        InvalidDimensionError: wymiar formatki lub arkusza <= 0
        InvalidQuantityError: ilość nie jest dodatnią liczbą całkowitą
        DuplicatePartError: powtórzone id formatki
        KerfTooLargeError: rzaz < 0 lub >= najmniejszy wymiar formatki
        NoDefaultMaterialError: brak/nieznany materiał płyty lub obrzeża
        AmbiguousDefaultMaterialError: kilka materiałów domyślnych dla roli
        NoBackerMaterialError: laminowanie bez płyty podkładowej
    """
    _validate_boards(snapshot.primary_boards)
    _validate_boards(snapshot.backer_boards)
    _validate_edging(snapshot.edging)

    for part in snapshot.parts:
        _validate_part(part)
    _validate_part_ids(snapshot.parts)

    _validate_kerf(snapshot.kerf_mm, snapshot.parts)

    default_board = _single_default(snapshot.primary_boards, 'primary')
    default_backer = _single_default(snapshot.backer_boards, 'backer')

    parts = []
    for part in snapshot.parts:
        material_id = _resolve_primary(part, snapshot, default_board)
        banding_ids = _resolve_edging(part, snapshot)

        backer_id = part.backer_material_id
        if snapshot.lamination_on and part.needs_backer:
            backer_id = _resolve_backer(part, snapshot, default_backer)

        parts.append(replace(
            part,
            material_id=material_id,
            banding=tuple(bool(flag) for flag in part.banding),
            banding_material_ids=banding_ids,
            backer_material_id=backer_id,
        ))

    logger.debug(f"[Normalizer] {len(parts)} parts normalized")

    return replace(
        snapshot,
        parts=tuple(parts),
        primary_boards=tuple(snapshot.primary_boards),
        backer_boards=tuple(snapshot.backer_boards),
        edging=tuple(snapshot.edging),
        sheet_overrides=tuple(snapshot.sheet_overrides),
        backer_sheet_overrides=tuple(snapshot.backer_sheet_overrides),
    )
