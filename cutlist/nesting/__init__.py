"""
Cutlist Nesting Module
======================
Rozkrój prostokątnych formatek na arkuszach płyt.

Strategie:
- fast: pakowanie półkowe, jedno przejście
- offcut: półki + best-fit w odpadach otwartych arkuszy
- deep: ograniczone przeszukiwanie (offcut + rectpack)
"""

from cutlist.nesting.engine import pack_material
from cutlist.nesting.packer import (
    PackItem,
    FreeRect,
    ShelfPacker,
    expand_parts,
    pack_shelves,
    sort_by_area,
)
from cutlist.nesting.deep_search import DeepSearch, pack_with_rectpack

__all__ = [
    'pack_material',
    'PackItem',
    'FreeRect',
    'ShelfPacker',
    'expand_parts',
    'pack_shelves',
    'sort_by_area',
    'DeepSearch',
    'pack_with_rectpack',
]
