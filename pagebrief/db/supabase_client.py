"""Service-role Supabase connection for the durable state store."""

from typing import Optional, Tuple

from supabase import create_client, Client
from pagebrief.config import Settings, settings as default_settings

_clients: dict[Tuple[str, str], Client] = {}


def get_supabase(config: Optional[Settings] = None) -> Client:
    """Get or create the service-role client for ``config`` (one per project URL and key)."""
    config = config or default_settings
    if not config.supabase_url or not config.supabase_service_role_key:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for store_backend=supabase"
        )
    key = (config.supabase_url, config.supabase_service_role_key)
    if key not in _clients:
        _clients[key] = create_client(*key)
    return _clients[key]


def get_state_table(config: Optional[Settings] = None) -> Tuple[Client, str]:
    """Client and table name backing the job state rows."""
    config = config or default_settings
    return get_supabase(config), config.supabase_state_table
