"""Key-value stores holding whole collections as JSON text."""

from pathlib import Path
from typing import Dict, Iterator, Optional, Union


class MemoryStore:
    """In-process store; the default for tests and throwaway sessions."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, text: str) -> None:
        self._data[key] = text

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(sorted(self._data))


class JsonFileStore:
    """
    Directory-backed store: one <key>.json file per collection.

    Every write replaces the whole file. Two processes writing the same
    directory are last-write-wins.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, text: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(text, encoding="utf-8")

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def keys(self) -> Iterator[str]:
        if not self.directory.exists():
            return iter([])
        return iter(sorted(p.stem for p in self.directory.glob("*.json")))
