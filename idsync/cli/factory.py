"""Component factory building the sync engine from configuration."""

from pathlib import Path
from typing import Optional

import httpx
import structlog

from idsync.clients.factory import IdentityClientFactory
from idsync.config.models import SyncConfig
from idsync.core.service import IdentitySyncService
from idsync.core.state import JsonFileStore
from idsync.security.validation import sanitize_log_input, validate_file_path

logger = structlog.get_logger(__name__)


class ComponentFactory:
    """Factory for creating sync components from configuration."""

    @staticmethod
    def create_store(config: SyncConfig, state_file: Optional[Path] = None) -> JsonFileStore:
        """Open the JSON state file.

        Args:
            config: Sync configuration
            state_file: Override of ``state.state_file``

        Returns:
            JsonFileStore loaded from disk

        Raises:
            ValueError: If the state file path is unsafe
        """
        path = state_file or config.state.state_file
        if not validate_file_path(str(path)):
            raise ValueError(f"Invalid or unsafe state file path: {sanitize_log_input(str(path))}")

        store = JsonFileStore(Path(path))
        logger.debug("Opened state store", state_file=str(path))
        return store

    @staticmethod
    def create_service(
        config: SyncConfig,
        store: JsonFileStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> IdentitySyncService:
        """Create the engine facade on top of a store.

        Args:
            config: Sync configuration
            store: Backing store for every collaborator
            transport: Optional httpx transport for live provider clients

        Returns:
            Configured IdentitySyncService
        """
        client_factory = IdentityClientFactory(
            credential_store=store,
            provider_config=config.provider,
            transport=transport,
        )
        return IdentitySyncService(
            credentials=store,
            users=store,
            directory=store,
            mapping_repository=store,
            sync_log_repository=store,
            client_factory=client_factory,
            default_page_size=config.audit.default_page_size,
        )

