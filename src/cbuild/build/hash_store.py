"""Content Hash Store.

Persists a mapping from file path to a content digest and answers "has this
file changed since the last recorded build".

Store file format (UTF-8, no header):
    <path> <hex digest>\\n

Design:
    - A missing or unreadable store loads as empty (everything is rebuilt)
    - Lines for files that no longer exist are kept but never matched
    - Digests stream the file in 1 MiB chunks through SHA-1
    - An unreadable file digests to the empty string instead of aborting
    - persist() is only called after a successful link
"""

import hashlib
import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# Digest returned for files that cannot be read
NO_DIGEST = ""

PathLike = Union[str, Path]


def digest_file(path: PathLike) -> str:
    """Compute the hex SHA-1 digest of a file.

    Args:
        path: File to hash

    Returns:
        Hex digest, or NO_DIGEST if the file cannot be read
    """
    sha1 = hashlib.sha1()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                sha1.update(chunk)
    except OSError as e:
        logger.debug(f"Cannot hash {path}: {e}")
        return NO_DIGEST
    return sha1.hexdigest()


class HashStore:
    """In-memory path -> digest table backed by a flat text file."""

    def __init__(self, hashes: Optional[Dict[str, str]] = None):
        self.hashes: Dict[str, str] = dict(hashes or {})

    @staticmethod
    def _key(path: PathLike) -> str:
        return str(path)

    @classmethod
    def load(cls, store_path: PathLike) -> "HashStore":
        """Load a persisted store.

        Args:
            store_path: Path of the store file

        Returns:
            The loaded store, empty if the file is missing or unreadable
        """
        store = cls()
        try:
            with open(store_path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.rstrip("\n")
                    if not line:
                        continue
                    # Paths may contain spaces, digests never do
                    path, sep, digest = line.rpartition(" ")
                    if not sep or not path or not digest:
                        logger.debug(f"Skipping malformed hash line in {store_path}: {line!r}")
                        continue
                    store.hashes[path] = digest
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not read hash store {store_path}: {e}")
        return store

    def persist(self, store_path: PathLike) -> None:
        """Overwrite the store file with the current table."""
        store_path = Path(store_path)
        store_path.parent.mkdir(parents=True, exist_ok=True)
        with open(store_path, "w", encoding="utf-8") as f:
            for path, digest in self.hashes.items():
                f.write(f"{path} {digest}\n")

    def get(self, path: PathLike) -> str:
        return self.hashes.get(self._key(path), NO_DIGEST)

    def is_changed(self, path: PathLike) -> bool:
        """True if the path is unknown or its content digest differs."""
        stored = self.hashes.get(self._key(path))
        if stored is None:
            return True
        return digest_file(path) != stored

    def update(self, path: PathLike) -> bool:
        """Record the current digest of a file.

        Returns:
            True if the stored entry changed
        """
        key = self._key(path)
        current = digest_file(path)
        if self.hashes.get(key) == current:
            return False
        self.hashes[key] = current
        return True

    def __contains__(self, path: PathLike) -> bool:
        return self._key(path) in self.hashes

    def __iter__(self) -> Iterator[str]:
        return iter(self.hashes)

    def __len__(self) -> int:
        return len(self.hashes)
