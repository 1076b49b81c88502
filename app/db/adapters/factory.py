"""Adapter selection by data source name."""
from app.core.config import settings
from app.db.adapters.base import DbAdapter
from app.db.adapters.local_pg import LocalPgAdapter
from app.db.adapters.supabase import SupabaseAdapter

DATA_SOURCES = ("supabase", "local")

# One adapter per source; reset by close_adapters()
_adapters: dict[str, DbAdapter] = {}


def get_adapter(source: str | None = None) -> DbAdapter:
    source = source or settings.DEFAULT_DATA_SOURCE
    if source not in DATA_SOURCES:
        raise ValueError(f"Unknown data source: {source!r}. Expected one of {DATA_SOURCES}")
    adapter = _adapters.get(source)
    if adapter is None:
        adapter = LocalPgAdapter() if source == "local" else SupabaseAdapter()
        _adapters[source] = adapter
    return adapter


async def close_adapters() -> None:
    for adapter in list(_adapters.values()):
        await adapter.close()
    _adapters.clear()
