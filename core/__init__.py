#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
PanelERP Core Module
====================
Wspólne komponenty dla wszystkich modułów.
"""

# Exceptions
from core.exceptions import (
    PanelERPError,
    ValidationError,
    CutlistError,
    InvalidDimensionError,
    InvalidQuantityError,
    DuplicatePartError,
    KerfTooLargeError,
    PartExceedsSheetError,
    NoDefaultMaterialError,
    AmbiguousDefaultMaterialError,
    NoBackerMaterialError,
    IntegrationError,
    SupabaseConnectionError,
    PersistenceError,
    ExportError,
)

# Events
from core.events import (
    EventType,
    Event,
    EventBus,
    EventHandler,
    create_event,
    get_event_bus,
)


__all__ = [
    # Exceptions
    'PanelERPError',
    'ValidationError',
    'CutlistError',
    'InvalidDimensionError',
    'InvalidQuantityError',
    'DuplicatePartError',
    'KerfTooLargeError',
    'PartExceedsSheetError',
    'NoDefaultMaterialError',
    'AmbiguousDefaultMaterialError',
    'NoBackerMaterialError',
    'IntegrationError',
    'SupabaseConnectionError',
    'PersistenceError',
    'ExportError',

    # Events
    'EventType',
    'Event',
    'EventBus',
    'EventHandler',
    'create_event',
    'get_event_bus',
]
