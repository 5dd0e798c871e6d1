"""
PanelERP Cutlist Module
=======================
Kalkulator rozkroju płyt meblowych: formatki -> arkusze, obrzeża,
płyty podkładowe, rozliczenie arkuszy i eksport do kosztów oferty.

Użycie:
    from cutlist import compute, CutlistInput, Part, BoardMaterial

    result = compute(CutlistInput(parts=(...), primary_boards=(...)))
    if isinstance(result, CutlistError):
        show_error(result)
"""

from cutlist.models import (
    EDGES,
    OptimizationPriority,
    BillingMode,
    MaterialRole,
    BoardType,
    Part,
    BoardMaterial,
    EdgingMaterial,
    SheetBillingOverride,
    CutlistInput,
    Placement,
    SheetLayout,
    MaterialLayout,
    EdgingUsage,
    BackerResult,
    CutlistSummary,
)
from cutlist.normalizer import normalize
from cutlist.calculator import compute, compute_or_raise
from cutlist.runner import CutlistRunner
from cutlist.repository import CutlistSnapshotRepository, DebouncedSaver
from cutlist.export import CutlistExportRepository, ExportMode, ExportLine, build_export_lines
from cutlist.csv_import import CsvImportResult, parse_sketchup_csv
from core.exceptions import CutlistError

__all__ = [
    # Models
    'EDGES',
    'OptimizationPriority',
    'BillingMode',
    'MaterialRole',
    'BoardType',
    'Part',
    'BoardMaterial',
    'EdgingMaterial',
    'SheetBillingOverride',
    'CutlistInput',
    'Placement',
    'SheetLayout',
    'MaterialLayout',
    'EdgingUsage',
    'BackerResult',
    'CutlistSummary',

    # Computation
    'normalize',
    'compute',
    'compute_or_raise',
    'CutlistRunner',
    'CutlistError',

    # Persistence / export
    'CutlistSnapshotRepository',
    'DebouncedSaver',
    'CutlistExportRepository',
    'ExportMode',
    'ExportLine',
    'build_export_lines',

    # Import
    'CsvImportResult',
    'parse_sketchup_csv',
]
