#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Centralny moduł połączenia z Supabase

Singleton pattern - jeden klient dla całej aplikacji.
Używa SERVICE_ROLE_KEY dla pełnych uprawnień (obejście RLS).
"""

import logging
from typing import Optional

from supabase import create_client, Client

from config import settings
from core.exceptions import SupabaseConnectionError

logger = logging.getLogger(__name__)

# Globalny klient Supabase
_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Zwraca singleton instancję klienta Supabase.

    Returns:
        Client: Klient Supabase z pełnymi uprawnieniami

    Raises:
        SupabaseConnectionError: Jeśli konfiguracja jest niepoprawna
    """
    global _supabase_client

    if _supabase_client is None:
        try:
            settings.validate_config()
        except ValueError as e:
            raise SupabaseConnectionError(str(e)) from e

        _supabase_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
        logger.info("[Supabase] Connected (SERVICE_ROLE)")

    return _supabase_client


def reset_client():
    """
    Resetuj klienta (przydatne do testów).
    """
    global _supabase_client
    _supabase_client = None


def test_connection() -> bool:
    """
    Testuj połączenie z Supabase.

    Returns:
        True jeśli połączenie działa
    """
    try:
        client = get_supabase_client()
        client.table(settings.CUTLIST_SNAPSHOT_TABLE).select("id").limit(1).execute()
        logger.info("[Supabase] Connection test OK")
        return True

    except Exception as e:
        logger.error(f"[Supabase] Connection test failed: {e}")
        return False
