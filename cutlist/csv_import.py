"""
SketchUp CSV Import
===================
Import formatek z eksportu cutlisty SketchUp.

- separator ';' (domyślny SketchUp) albo ',' - wykrywany z nagłówka
- wymiary z sufiksem "mm" i przecinkiem dziesiętnym ("600,5 mm")
- tylko wiersze "Sheet Goods" (gdy brak takich - wszystkie wiersze)
- niepusta kolumna krawędzi = krawędź oklejana

Kolumny "Edge Length 1/2" to krawędzie wzdłuż długości formatki (left/right),
"Edge Width 1/2" - wzdłuż szerokości (top/bottom).
"""

import csv
import io
import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from cutlist.models import Part

logger = logging.getLogger(__name__)

COLUMN_MAP = {
    'no.': 'no',
    'no': 'no',
    'designation': 'designation',
    'quantity': 'quantity',
    'length': 'length',
    'length - raw': 'length',
    'width': 'width',
    'width - raw': 'width',
    'thickness': 'thickness',
    'thickness - raw': 'thickness',
    'material type': 'material_type',
    'material name': 'material_name',
    'edge length 1': 'edge_length_1',
    'edge length 2': 'edge_length_2',
    'edge width 1': 'edge_width_1',
    'edge width 2': 'edge_width_2',
    'tags': 'tags',
}

REQUIRED_COLUMNS = ('length', 'width', 'quantity')

SHEET_GOODS = 'sheet goods'


@dataclass(frozen=True)
class CsvImportResult:
    """Wynik importu - formatki gotowe do snapshotu + komunikaty"""
    parts: Tuple[Part, ...] = ()
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
    delimiter: str = ';'


def detect_delimiter(header_line: str) -> str:
    """';' chyba że w nagłówku jest więcej przecinków"""
    return ';' if header_line.count(';') >= header_line.count(',') else ','


def parse_dimension(value: str) -> float:
    """
    "600 mm" -> 600.0, "600,5" -> 600.5, "1 200" -> 1200.0.
    Wartość nieczytelna lub ujemna -> 0.0
    """
    if not value:
        return 0.0

    cleaned = re.sub(r'\s*mm\s*', '', value, flags=re.IGNORECASE).strip()
    if ',' in cleaned and '.' not in cleaned:
        cleaned = cleaned.replace(',', '.', 1)
    cleaned = re.sub(r'[\s\u00a0\u2009]', '', cleaned)

    try:
        parsed = float(cleaned)
    except ValueError:
        return 0.0
    if parsed != parsed or parsed < 0:  # NaN
        return 0.0
    return parsed


def _parse_quantity(value: str) -> int:
    match = re.match(r'\s*(\d+)', value or '')
    quantity = int(match.group(1)) if match else 0
    return quantity or 1


def _map_columns(headers: List[str]) -> Tuple[Dict[str, int], List[str]]:
    mapping: Dict[str, int] = {}
    unmapped = []
    for index, header in enumerate(headers):
        key = COLUMN_MAP.get(header.strip().lower())
        if key is None:
            unmapped.append(header)
        elif key not in mapping:
            mapping[key] = index
    return mapping, unmapped


def _unique_id(candidate: str, used: set) -> str:
    part_id = candidate
    suffix = 2
    while part_id in used:
        part_id = f"{candidate}-{suffix}"
        suffix += 1
    used.add(part_id)
    return part_id


def parse_sketchup_csv(text: str, material_id: Optional[str] = None,
                       grain_locked: bool = True) -> CsvImportResult:
    """
    Sparsuj eksport SketchUp do listy formatek.

    Args:
        text: Zawartość pliku CSV
        material_id: Materiał płyty przypisany wszystkim formatkom (None = domyślny)
        grain_locked: Blokada obrotu (SketchUp eksportuje usłojenie wzdłuż długości)

    Returns:
        CsvImportResult; wiersze z błędami są pomijane z ostrzeżeniem
    """
    content = text.lstrip('\ufeff').replace('\r\n', '\n').replace('\r', '\n')
    lines = [line for line in content.split('\n') if line.strip()]

    if not lines:
        return CsvImportResult(errors=("CSV file is empty",))

    delimiter = detect_delimiter(lines[0])
    rows = list(csv.reader(io.StringIO('\n'.join(lines)), delimiter=delimiter))
    headers = [h.strip() for h in rows[0]]

    mapping, unmapped = _map_columns(headers)
    errors = []
    warnings = []

    missing = [col for col in REQUIRED_COLUMNS if col not in mapping]
    if missing:
        errors.append(f"Missing required columns: {', '.join(missing)}")
        return CsvImportResult(errors=tuple(errors), delimiter=delimiter)

    if unmapped:
        warnings.append(f"Unmapped columns: {', '.join(unmapped)}")

    records = []
    for row_number, fields in enumerate(rows[1:], start=1):
        record = dict.fromkeys(COLUMN_MAP.values(), '')
        for column, index in mapping.items():
            if index < len(fields):
                record[column] = fields[index].strip()
        records.append((row_number, record))

    sheet_goods = [
        (n, v) for n, v in records
        if v['material_type'].lower() == SHEET_GOODS or not v['material_type']
    ]
    if not sheet_goods and records:
        warnings.append('No "Sheet Goods" rows found. Importing all rows.')
        sheet_goods = records

    parts = []
    used_ids = set()
    for row_number, record in sheet_goods:
        length = parse_dimension(record['length'])
        width = parse_dimension(record['width'])
        if length <= 0 or width <= 0:
            warnings.append(f"Row {row_number}: invalid or missing dimensions, skipped")
            continue

        thickness = parse_dimension(record['thickness'])
        if thickness <= 0:
            warnings.append(f"Row {row_number}: no thickness specified, using 16 mm")
            thickness = 16.0

        banding = (
            bool(record['edge_width_1']),    # top
            bool(record['edge_width_2']),    # bottom
            bool(record['edge_length_2']),   # left
            bool(record['edge_length_1']),   # right
        )

        designation = record['designation']
        part_id = _unique_id(record['no'] or f"row{row_number}", used_ids)

        parts.append(Part(
            id=part_id,
            length_mm=length,
            width_mm=width,
            thickness_mm=thickness,
            quantity=_parse_quantity(record['quantity']),
            material_id=material_id,
            grain_locked=grain_locked,
            banding=banding,
            label=designation,
        ))

    logger.info(f"[CsvImport] {len(parts)} parts imported, {len(warnings)} warnings")
    return CsvImportResult(
        parts=tuple(parts),
        warnings=tuple(warnings),
        errors=tuple(errors),
        delimiter=delimiter,
    )
