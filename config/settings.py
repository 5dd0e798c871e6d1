#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Konfiguracja aplikacji PanelERP
Cutlist optimizer dla produkcji mebli z płyt meblowych

UWAGA: W produkcji użyj pliku .env dla wrażliwych danych!
"""

import os
from dotenv import load_dotenv

# Wczytaj zmienne środowiskowe z .env
load_dotenv()

# ============================================================
# SUPABASE - KONFIGURACJA BAZY DANYCH
# ============================================================

SUPABASE_URL = os.getenv("SUPABASE_URL", "")

# SERVICE_ROLE_KEY - pełne uprawnienia (obejście RLS)
# Zawsze z .env!
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")

# Tabela z zapisanymi snapshotami cutlisty (kolumna layout_json)
CUTLIST_SNAPSHOT_TABLE = os.getenv("CUTLIST_SNAPSHOT_TABLE", "quote_item_cutlists")

# Tabela z liniami kosztowymi oferty
COSTING_LINES_TABLE = os.getenv("COSTING_LINES_TABLE", "quote_cluster_lines")

# Tabela klastrów kosztowych pozycji oferty
COSTING_CLUSTERS_TABLE = os.getenv("COSTING_CLUSTERS_TABLE", "quote_item_clusters")

# ============================================================
# CUTLIST - PARAMETRY OPTYMALIZACJI
# ============================================================

# Wersja formatu zapisanego snapshotu (starsze wersje = brak danych)
SNAPSHOT_VERSION = 2

# Domyślna szerokość piły [mm]
DEFAULT_KERF_MM = float(os.getenv("CUTLIST_DEFAULT_KERF_MM", "3"))

# Domyślna strategia: fast / offcut / deep
DEFAULT_OPTIMIZATION_PRIORITY = os.getenv("CUTLIST_DEFAULT_PRIORITY", "fast")

# Budżet iteracji dla strategii deep (parametr strojenia)
DEEP_MAX_ITERATIONS = int(os.getenv("CUTLIST_DEEP_MAX_ITERATIONS", "200"))

# Opcjonalny budżet czasu dla deep [s]; 0 = bez limitu (tylko iteracje)
DEEP_TIME_BUDGET_S = float(os.getenv("CUTLIST_DEEP_TIME_BUDGET_S", "0"))

# Ziarno generatora dla deep - stałe, żeby wynik był powtarzalny
DEEP_RANDOM_SEED = int(os.getenv("CUTLIST_DEEP_RANDOM_SEED", "1337"))

# Nominalne grubości obrzeża dla starych pól edgebanding16mm / edgebanding32mm
LEGACY_BAND_THICKNESSES = (16.0, 32.0)

# ============================================================
# PERSISTENCE - ZAPIS SNAPSHOTÓW
# ============================================================

# Opóźnienie zapisu (debounce) [s]
SAVE_DEBOUNCE_S = float(os.getenv("CUTLIST_SAVE_DEBOUNCE_S", "0.5"))


# ============================================================
# WALIDACJA KONFIGURACJI
# ============================================================

def validate_config():
    """
    Sprawdź czy konfiguracja jest poprawna.
    Wywołaj przy starcie aplikacji.
    """
    errors = []

    if not SUPABASE_URL:
        errors.append("SUPABASE_URL nie jest ustawiony")

    if not SUPABASE_SERVICE_KEY:
        errors.append("SUPABASE_SERVICE_KEY nie jest ustawiony")

    if DEFAULT_KERF_MM < 0:
        errors.append("CUTLIST_DEFAULT_KERF_MM nie może być ujemny")

    if DEFAULT_OPTIMIZATION_PRIORITY not in ("fast", "offcut", "deep"):
        errors.append(f"Nieznana strategia: {DEFAULT_OPTIMIZATION_PRIORITY}")

    if DEEP_MAX_ITERATIONS < 1:
        errors.append("CUTLIST_DEEP_MAX_ITERATIONS musi być >= 1")

    if errors:
        raise ValueError(f"Błędy konfiguracji: {', '.join(errors)}")

    return True


if __name__ == "__main__":
    print("=" * 60)
    print("KONFIGURACJA PanelERP")
    print("=" * 60)
    print(f"Supabase URL: {SUPABASE_URL}")
    print(f"Snapshot table: {CUTLIST_SNAPSHOT_TABLE}")
    print(f"Default kerf: {DEFAULT_KERF_MM} mm")
    print(f"Deep budget: {DEEP_MAX_ITERATIONS} iterations")
    print()

    try:
        validate_config()
        print("[OK] Konfiguracja poprawna")
    except ValueError as e:
        print(f"[ERROR] {e}")
