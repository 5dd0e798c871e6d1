import sys
from pathlib import Path

import pytest


def _add_repo_root_to_path() -> None:
    repo_root = Path(__file__).resolve().parent.parent
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_add_repo_root_to_path()

from core.events import EventBus  # noqa: E402
from cutlist.models import BoardMaterial, EdgingMaterial, MaterialRole  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_event_bus():
    """Każdy test dostaje pusty singleton EventBus"""
    EventBus.reset()
    yield EventBus()
    EventBus.reset()


@pytest.fixture
def standard_board():
    """Typowa płyta 2750 x 1830 (dł. x szer.)"""
    return BoardMaterial(
        id='board-std',
        name='Biała 18mm',
        sheet_length_mm=2750,
        sheet_width_mm=1830,
        thickness_mm=18,
        cost_per_sheet=100.0,
        component_reference='C-100',
        is_default=True,
    )


@pytest.fixture
def backer_board():
    return BoardMaterial(
        id='backer-hdf',
        name='HDF 3mm',
        sheet_length_mm=1200,
        sheet_width_mm=1200,
        thickness_mm=3,
        cost_per_sheet=40.0,
        component_reference='C-200',
        is_default=True,
        role=MaterialRole.BACKER,
    )


@pytest.fixture
def edging_catalog():
    return (
        EdgingMaterial(
            id='pvc-16-white', name='PVC biały 16', thickness_mm=16,
            cost_per_meter=2.5, component_reference='E-16', is_default_for_thickness=True,
        ),
        EdgingMaterial(
            id='pvc-16-oak', name='PVC dąb 16', thickness_mm=16,
            cost_per_meter=4.0, component_reference='E-16-OAK',
        ),
        EdgingMaterial(
            id='pvc-32-white', name='PVC biały 32', thickness_mm=32,
            cost_per_meter=3.0, component_reference='E-32', is_default_for_thickness=True,
        ),
    )
