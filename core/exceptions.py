"""
PanelERP - Własne wyjątki
=========================
Hierarchia wyjątków dla całego systemu.
"""


class PanelERPError(Exception):
    """Bazowy wyjątek dla wszystkich błędów PanelERP"""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


# ============================================================
# Validation Errors
# ============================================================

class ValidationError(PanelERPError):
    """Błędy walidacji danych"""
    pass


# ============================================================
# Cutlist Errors
# ============================================================

class CutlistError(ValidationError):
    """
    Błąd walidacji lub wykonalności cutlisty.

    compute() zwraca te błędy jako wartości, dlatego porównują się
    strukturalnie (kod + szczegóły), a nie po tożsamości.
    """

    def __eq__(self, other):
        if not isinstance(other, CutlistError):
            return NotImplemented
        return type(self) is type(other) and self.code == other.code and self.details == other.details

    def __hash__(self):
        return hash((type(self).__name__, self.code, tuple(sorted(self.details.items()))))

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class InvalidDimensionError(CutlistError):
    """Wymiar części lub arkusza <= 0"""

    def __init__(self, entity_id: str, field: str, value):
        super().__init__(
            f"'{entity_id}': {field} must be > 0 (got {value})",
            code="InvalidDimension",
            details={"entity_id": entity_id, "field": field, "value": value}
        )


class InvalidQuantityError(CutlistError):
    """Ilość części nie jest dodatnią liczbą całkowitą"""

    def __init__(self, part_id: str, value):
        super().__init__(
            f"Part '{part_id}': quantity must be a positive integer (got {value})",
            code="InvalidQuantity",
            details={"part_id": part_id, "value": value}
        )


class DuplicatePartError(CutlistError):
    """Dwie formatki z tym samym id"""

    def __init__(self, part_id: str):
        super().__init__(
            f"Part id '{part_id}' is used more than once",
            code="DuplicatePart",
            details={"part_id": part_id}
        )


class KerfTooLargeError(CutlistError):
    """Rzaz >= najmniejszy wymiar części (albo ujemny)"""

    def __init__(self, kerf_mm: float, min_dimension_mm: float = None):
        if min_dimension_mm is None:
            msg = f"Kerf {kerf_mm} mm must not be negative"
        else:
            msg = f"Kerf {kerf_mm} mm must be smaller than the smallest part dimension ({min_dimension_mm} mm)"
        super().__init__(
            msg,
            code="KerfTooLarge",
            details={"kerf_mm": kerf_mm, "min_dimension_mm": min_dimension_mm}
        )


class PartExceedsSheetError(CutlistError):
    """Część nie mieści się na arkuszu w żadnej dozwolonej orientacji"""

    def __init__(self, part_id: str, material_id: str):
        super().__init__(
            f"Part '{part_id}' does not fit on a sheet of material '{material_id}'",
            code="PartExceedsSheet",
            details={"part_id": part_id, "material_id": material_id}
        )


class NoDefaultMaterialError(CutlistError):
    """Brak materiału domyślnego (płyta lub obrzeże) albo nieznany materiał"""

    def __init__(self, role: str, reference: str = None, part_id: str = None):
        if reference:
            msg = f"Unknown {role} material '{reference}'"
        else:
            msg = f"No default {role} material defined"
        if part_id:
            msg = f"Part '{part_id}': {msg}"
        super().__init__(
            msg,
            code="NoDefaultMaterial",
            details={"role": role, "reference": reference, "part_id": part_id}
        )


class AmbiguousDefaultMaterialError(CutlistError):
    """Więcej niż jeden materiał domyślny dla roli (albo grubości obrzeża)"""

    def __init__(self, role: str, material_ids):
        super().__init__(
            f"More than one default {role} material: {', '.join(material_ids)}",
            code="AmbiguousDefaultMaterial",
            details={"role": role, "material_ids": tuple(material_ids)}
        )


class NoBackerMaterialError(CutlistError):
    """Laminowanie włączone, ale nie ustalono płyty podkładowej"""

    def __init__(self, reference: str = None):
        msg = "Lamination is enabled but no backer board is selected"
        if reference:
            msg = f"Lamination is enabled but backer board '{reference}' is unknown"
        super().__init__(
            msg,
            code="NoBackerMaterial",
            details={"reference": reference}
        )


# ============================================================
# Integration Errors
# ============================================================

class IntegrationError(PanelERPError):
    """Błędy integracji z zewnętrznymi systemami"""

    # Błędy integracji można ponowić - dane w pamięci zostają nietknięte
    retryable = True


class SupabaseConnectionError(IntegrationError):
    """Błąd połączenia z Supabase"""

    def __init__(self, reason: str = None):
        super().__init__(
            "Failed to connect to Supabase" + (f": {reason}" if reason else ""),
            code="SUPABASE_CONNECTION_ERROR"
        )


class PersistenceError(IntegrationError):
    """Błąd zapisu/odczytu snapshotu cutlisty"""

    def __init__(self, operation: str, item_id: str, reason: str = None):
        super().__init__(
            f"Cutlist {operation} failed for item '{item_id}'" + (f": {reason}" if reason else ""),
            code="PERSISTENCE_ERROR",
            details={"operation": operation, "item_id": item_id, "reason": reason}
        )


class ExportError(IntegrationError):
    """Błąd eksportu linii kosztowych"""

    def __init__(self, item_id: str, slot: str = None, reason: str = None):
        msg = f"Cutlist export failed for item '{item_id}'"
        if slot:
            msg += f" (slot {slot})"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg,
            code="EXPORT_ERROR",
            details={"item_id": item_id, "slot": slot, "reason": reason}
        )
