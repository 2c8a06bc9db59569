"""
stateform State Store

Persists the last applied state of every resource, keyed by logical
identifier. Writers to the same identifier are serialized through a
per-key lock; different identifiers never contend.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from .exceptions import StateStoreError
from .models import ResourceState

logger = logging.getLogger(__name__)


class StateBackend(ABC):
    """Abstract base class for state backends"""

    name = "abstract"

    @abstractmethod
    def read(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored document for a key, None if absent"""
        pass

    @abstractmethod
    def write(self, key: str, data: Dict[str, Any]) -> None:
        """Replace the stored document for a key"""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; absent keys are ignored"""
        pass

    @abstractmethod
    def list_keys(self) -> List[str]:
        """All stored keys, sorted"""
        pass


class MemoryStateBackend(StateBackend):
    """In-process backend, mostly for tests and dry runs"""

    name = "memory"

    def __init__(self):
        self._data: Dict[str, str] = {}

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def write(self, key: str, data: Dict[str, Any]) -> None:
        # stored serialized so callers can't mutate persisted state
        self._data[key] = json.dumps(data, sort_keys=True)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def list_keys(self) -> List[str]:
        return sorted(self._data)


class LocalStateBackend(StateBackend):
    """One JSON file per resource under a base directory"""

    name = "local"

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateStoreError(
                f"Cannot create state directory {self.base_path}: {e}",
                backend=self.name
            ) from e

        logger.debug(f"Initialized local state at {self.base_path}")

    def _get_file_path(self, key: str) -> Path:
        return self.base_path / f"{key}.json"

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        file_path = self._get_file_path(key)
        if not file_path.exists():
            return None

        try:
            with open(file_path, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StateStoreError(
                f"Failed to read state for '{key}'",
                resource_name=key,
                backend=self.name,
                context={"error": str(e), "path": str(file_path)}
            ) from e

    def write(self, key: str, data: Dict[str, Any]) -> None:
        """Write through a temp file and rename so readers never see a partial document"""
        file_path = self._get_file_path(key)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.base_path, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2, sort_keys=True)
                os.replace(tmp_path, file_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StateStoreError(
                f"Failed to write state for '{key}'",
                resource_name=key,
                backend=self.name,
                context={"error": str(e), "path": str(file_path)}
            ) from e

        logger.debug(f"Stored state for '{key}'")

    def delete(self, key: str) -> None:
        file_path = self._get_file_path(key)
        try:
            if file_path.exists():
                file_path.unlink()
        except OSError as e:
            raise StateStoreError(
                f"Failed to delete state for '{key}'",
                resource_name=key,
                backend=self.name,
                context={"error": str(e)}
            ) from e

    def list_keys(self) -> List[str]:
        return sorted(
            path.stem for path in self.base_path.glob("*.json")
            if not path.name.startswith(".")
        )


class StateStore:
    """Applied-state access with per-identifier locking"""

    def __init__(self, backend: Optional[StateBackend] = None):
        self.backend = backend or MemoryStateBackend()
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.RLock()
            return lock

    @contextmanager
    def locked(self, name: str) -> Iterator[None]:
        """Hold the lock of one identifier across a read-modify-write"""
        with self._lock_for(name):
            yield

    def get(self, name: str) -> Optional[ResourceState]:
        data = self.backend.read(name)
        if data is None:
            return None
        try:
            return ResourceState.from_dict(data)
        except (KeyError, TypeError) as e:
            raise StateStoreError(
                f"Corrupt state for '{name}': missing {e}",
                resource_name=name,
                backend=self.backend.name
            ) from e

    def put(self, state: ResourceState) -> None:
        with self.locked(state.name):
            self.backend.write(state.name, state.to_dict())

    def remove(self, name: str) -> None:
        with self.locked(name):
            self.backend.delete(name)
            logger.debug(f"Removed state for '{name}'")

    def names(self) -> List[str]:
        return self.backend.list_keys()

    def all(self) -> Dict[str, ResourceState]:
        states = {}
        for name in self.names():
            state = self.get(name)
            if state is not None:
                states[name] = state
        return states

    def __contains__(self, name: str) -> bool:
        return self.backend.read(name) is not None

    def __len__(self) -> int:
        return len(self.names())


def create_state_store(state_config) -> StateStore:
    """Build a StateStore from a StateConfig"""
    if state_config.backend == "memory":
        return StateStore(MemoryStateBackend())
    return StateStore(LocalStateBackend(state_config.state_path))
