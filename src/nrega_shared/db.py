"""
db.py — Cached Supabase clients, one per (project URL, key).

The sync job, the loader and the Cache Store all write, so they ask for the
service-role client; the anon client exists for read-only callers that must
respect RLS. A missing key raises RuntimeError, which the loader reports as
PersistenceFailure and the Cache Store as a miss.

Usage:
    from nrega_shared.db import get_supabase_client

    supabase = get_supabase_client(service_role=True)
    supabase.table("districts").select("*").execute()
"""

from __future__ import annotations

import threading

import structlog
from supabase import Client, create_client

from nrega_shared.config import Settings, settings as default_settings

logger = structlog.get_logger(__name__)

_lock = threading.Lock()
_clients: dict[tuple[str, str], Client] = {}


def _credentials(cfg: Settings, service_role: bool) -> tuple[str, str]:
    if service_role:
        key, env_name = cfg.supabase_service_key, "SUPABASE_SERVICE_KEY"
    else:
        key, env_name = cfg.supabase_anon_key, "SUPABASE_ANON_KEY"
    if not key:
        raise RuntimeError(f"{env_name} is not set; Supabase storage is unavailable")
    return cfg.supabase_url, key


def get_supabase_client(
    *,
    service_role: bool = False,
    settings: Settings | None = None,
) -> Client:
    """
    Return the shared client for the configured project and role.

    Args:
        service_role: Use the service key (bypasses RLS) instead of the anon key.
        settings:     Settings to read credentials from (default: module settings).
    """
    url, key = _credentials(settings or default_settings, service_role)
    with _lock:
        client = _clients.get((url, key))
        if client is None:
            client = _clients[(url, key)] = create_client(url, key)
            logger.info(
                "supabase_client_created",
                role="service_role" if service_role else "anon",
                url=url,
            )
        return client


def reset_supabase_clients() -> None:
    """Forget every cached client."""
    with _lock:
        _clients.clear()
