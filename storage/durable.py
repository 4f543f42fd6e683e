"""
Durable Store
Best-effort byte snapshot persistence behind a minimal save/load interface.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
import os
import tempfile

from utils.exceptions import StorageError


class BaseDurableStore(ABC):
    """
    Durable key-value slot holding a single snapshot.
    Backends (file, database, browser storage) are swappable.
    """

    @abstractmethod
    def save(self, data: bytes) -> None:
        """Replace the stored snapshot."""
        pass

    @abstractmethod
    def load(self) -> Optional[bytes]:
        """Return the stored snapshot, or None when nothing was saved."""
        pass

    def clear(self) -> None:
        """Drop the stored snapshot."""
        self.save(b"")


class MemoryDurableStore(BaseDurableStore):
    """
    In-process store, for tests and embedding hosts that persist elsewhere.
    """

    def __init__(self, initial: Optional[bytes] = None):
        self._data = initial
        self.save_count = 0

    def save(self, data: bytes) -> None:
        self._data = bytes(data)
        self.save_count += 1

    def load(self) -> Optional[bytes]:
        return self._data

    def clear(self) -> None:
        self._data = None


class FileDurableStore(BaseDurableStore):
    """
    File-backed store.
    Writes go to a temp file in the same directory and are renamed into
    place, so a crash mid-write leaves the previous snapshot intact.
    """

    def __init__(self, path: str | Path):
        """
        Args:
            path: snapshot file location; parent directories are created
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def save(self, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StorageError(f"Failed to write snapshot {self.path}: {e}") from e

    def load(self) -> Optional[bytes]:
        if not self.path.exists():
            return None
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read snapshot {self.path}: {e}") from e

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


def get_durable_store(provider: str = "file", path: str = "./data/queue.json") -> BaseDurableStore:
    """
    Build a durable store.

    Args:
        provider: memory or file
        path: snapshot path for the file provider
    """
    if provider == "memory":
        return MemoryDurableStore()
    if provider == "file":
        return FileDurableStore(path)
    raise ValueError(f"Unknown durable store provider: {provider}")
