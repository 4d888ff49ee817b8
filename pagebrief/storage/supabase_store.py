"""State store persisted in a Supabase table, one row per flat field.

Expected table::

    create table job_state (
        key text primary key,
        value jsonb,
        updated_at timestamptz default now()
    );
"""

from datetime import datetime, timezone
from typing import Any, Dict

from pagebrief.config import Settings
from pagebrief.db.supabase_client import get_state_table
from pagebrief.storage.state_store import StateStore


class SupabaseStateStore(StateStore):
    """Durable store shared by every process pointing at the same table.

    Change notifications are local to the process that made the merge.
    """

    def __init__(self, client, table: str = "job_state"):
        super().__init__()
        self._client = client
        self._table = table

    @classmethod
    def from_settings(cls, config: Settings) -> "SupabaseStateStore":
        client, table = get_state_table(config)
        return cls(client, table=table)

    def _load_state(self) -> Dict[str, Any]:
        response = self._client.table(self._table).select("key, value").execute()
        return {row["key"]: row["value"] for row in (response.data or [])}

    def _save_state(self, state: Dict[str, Any], patch: Dict[str, Any]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        rows = [
            {"key": key, "value": state[key], "updated_at": now}
            for key in patch
        ]
        self._client.table(self._table).upsert(rows, on_conflict="key").execute()
