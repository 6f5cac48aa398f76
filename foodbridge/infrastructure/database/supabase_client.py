from __future__ import annotations

import os

from supabase import Client, create_client

# Shared client for the identity provider and repositories
_CLIENT_SINGLETON: Client | None = None


def get_supabase_client() -> Client | None:
    """Return the process-wide Supabase client, or None in disabled/unconfigured mode."""
    global _CLIENT_SINGLETON
    disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_ANON_KEY")
    if disabled or not url or not key:
        return None
    if _CLIENT_SINGLETON is None:
        _CLIENT_SINGLETON = create_client(url, key)
    return _CLIENT_SINGLETON
