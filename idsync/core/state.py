"""JSON state file backing the memory store between CLI invocations."""

import json
from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError

from idsync.clients.exceptions import StateError
from idsync.core.memory import MemoryStore, StoreSnapshot

logger = structlog.get_logger(__name__)


class JsonFileStore(MemoryStore):
    """MemoryStore persisted to a single JSON file."""

    def __init__(self, state_file: Path = Path("./state/identity-sync.json")) -> None:
        """Initialize the store and load the state file if it exists.

        Args:
            state_file: Path of the JSON state file

        Raises:
            StateError: If an existing state file cannot be parsed
        """
        self.state_file = Path(state_file)
        self._logger = logger.bind(state_file=str(self.state_file))
        super().__init__(self._read_snapshot())

    def _read_snapshot(self) -> Optional[StoreSnapshot]:
        if not self.state_file.exists():
            self._logger.info("State file not found, starting with empty state")
            return None

        try:
            with open(self.state_file, 'r', encoding='utf-8') as f:
                state_data = json.load(f)
            snapshot = StoreSnapshot.model_validate(state_data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise StateError(f"Failed to load state file {self.state_file}: {e}") from e

        self._logger.info(
            "Loaded state",
            mappings=len(snapshot.mappings),
            sync_logs=len(snapshot.sync_logs),
            users=len(snapshot.users),
        )
        return snapshot

    def reload(self) -> None:
        """Discard in-memory changes and re-read the state file."""
        self.load_snapshot(self._read_snapshot() or StoreSnapshot())

    def save(self) -> None:
        """Write the current state, keeping the previous file as ``.json.backup``.

        Raises:
            StateError: If the file cannot be written
        """
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            if self.state_file.exists():
                backup_file = self.state_file.with_suffix('.json.backup')
                self.state_file.replace(backup_file)

            with open(self.state_file, 'w', encoding='utf-8') as f:
                json.dump(
                    self.to_snapshot().model_dump(mode='json'),
                    f,
                    indent=2,
                    default=str,
                )
        except OSError as e:
            raise StateError(f"Failed to save state file {self.state_file}: {e}") from e

        self._logger.debug(
            "Saved state",
            mappings=len(self.mappings),
            sync_logs=len(self.sync_logs),
        )
