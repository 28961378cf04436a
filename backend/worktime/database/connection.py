"""
Store selection and lifecycle for the worktime data layer.

The backend is chosen once from configuration when a StoreContext is built
and does not change for the lifetime of that context. Contexts are plain
objects, so tests can run several independent ones side by side.
"""
import logging
from typing import Optional

from fastapi import Request

from ..config import Settings
from ..crypto import FieldCodec, resolve_encryption_key
from ..errors import ConfigurationError, StorageError
from .adapters import BackendAdapter, EmbeddedStore, ServerStore

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def create_adapter(settings: Settings) -> BackendAdapter:
    """
    Build the backend adapter selected by configuration.

    Args:
        settings: Process settings

    Returns:
        BackendAdapter: Server or embedded store (not yet started)
    """
    if settings.db_type == "embedded":
        return EmbeddedStore(settings.embedded_db_path, echo=settings.sql_echo)
    if settings.db_type == "server":
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL is required when DB_TYPE is server")
        return ServerStore(settings.database_url, echo=settings.sql_echo)
    raise ConfigurationError(f"Unknown backend '{settings.db_type}'")


class StoreContext:
    """Active backend adapter plus the field codec, with an explicit start/stop lifecycle."""

    def __init__(self, settings: Settings, store: Optional[BackendAdapter] = None,
                 codec: Optional[FieldCodec] = None):
        self.settings = settings
        # Key resolution fails fast here, before any request is served.
        self.codec = codec or FieldCodec(resolve_encryption_key(settings.encryption_key, settings.environment))
        self.store = store or create_adapter(settings)

    async def start(self) -> "StoreContext":
        """Open the store and make sure its schema is usable."""
        await self.store.start()
        try:
            await self.store.ensure_schema()
        except StorageError:
            await self.store.close()
            raise
        return self

    async def stop(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> "StoreContext":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


# PUBLIC_INTERFACE
def get_store_context(request: Request) -> StoreContext:
    """
    Dependency to get the store context attached to the running app.

    Returns:
        StoreContext: Context created at application startup
    """
    context = getattr(request.app.state, "store_context", None)
    if context is None:
        raise StorageError("Store is not initialized")
    return context
