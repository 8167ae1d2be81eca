"""
Key-value adapter for secure storage backends with a small per-entry limit.

Values that fit are stored directly under ``key``. Larger values are split
into ``key_chunk_0 .. key_chunk_{n-1}`` with ``n`` stored under
``key_chunkCount``. Exactly one of the two layouts is live for a key; writing
one removes what is left of the other.

The public methods never raise. Backend faults are logged and reported as
"no value" (reads) or ignored (writes and removes), so a flaky keystore
cannot break session bootstrap.
"""
from typing import Protocol

from studia.core.logging_config import get_logger

logger = get_logger(__name__)

# Below the platform's 2048 byte limit, leaving room for encoding overhead
CHUNK_SIZE = 1800


class SecureStorageError(Exception):
    """The storage backend failed to read, write or delete an entry."""
    pass


class CorruptEntryError(Exception):
    """Stored data is present but unusable (missing chunk, bad chunk count)."""
    pass


class SecureStorage(Protocol):
    """Backend contract. ``get_item`` returns None for absent keys."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def delete_item(self, key: str) -> None: ...


class MemorySecureStorage:
    """In-process backend that enforces a per-entry size limit like a platform keystore."""

    def __init__(self, max_value_bytes: int = 2048):
        self.max_value_bytes = max_value_bytes
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        if size > self.max_value_bytes:
            raise SecureStorageError(
                f"Value for {key} is {size} bytes, limit is {self.max_value_bytes}"
            )
        self._items[key] = value

    def delete_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


def count_key(key: str) -> str:
    return f"{key}_chunkCount"


def chunk_key(key: str, index: int) -> str:
    return f"{key}_chunk_{index}"


def split_value(value: str, chunk_size: int) -> list[str]:
    """Split into contiguous pieces of at most ``chunk_size`` UTF-8 bytes, never inside a character."""
    if value.isascii():
        return [value[i:i + chunk_size] for i in range(0, len(value), chunk_size)]

    chunks = []
    current = []
    current_size = 0
    for char in value:
        char_size = len(char.encode("utf-8"))
        if current and current_size + char_size > chunk_size:
            chunks.append("".join(current))
            current, current_size = [], 0
        current.append(char)
        current_size += char_size
    if current:
        chunks.append("".join(current))
    return chunks


class ChunkedSecureStore:
    """get / set / remove for strings of any length on top of a SecureStorage."""

    def __init__(self, backend: SecureStorage, chunk_size: int = CHUNK_SIZE):
        self.backend = backend
        self.chunk_size = chunk_size

    # Public, never-raising API

    def get_item(self, key: str) -> str | None:
        try:
            return self._load(key)
        except CorruptEntryError as e:
            logger.warning(f"Secure store entry {key} is unreadable: {e}")
        except SecureStorageError as e:
            logger.warning(f"Secure store getItem error for {key}: {e}")
        return None

    def set_item(self, key: str, value: str) -> None:
        try:
            self._store(key, value)
        except SecureStorageError as e:
            logger.warning(f"Secure store setItem error for {key}: {e}")

    def remove_item(self, key: str) -> None:
        try:
            self._remove(key)
        except SecureStorageError as e:
            logger.warning(f"Secure store removeItem error for {key}: {e}")

    # Internal API: raises SecureStorageError / CorruptEntryError

    def _read_count(self, key: str) -> int | None:
        raw = self.backend.get_item(count_key(key))
        if raw is None:
            return None
        try:
            count = int(raw)
        except ValueError:
            raise CorruptEntryError(f"chunk count {raw!r} is not a number")
        if count < 0:
            raise CorruptEntryError(f"chunk count {count} is negative")
        return count

    def _load(self, key: str) -> str | None:
        count = self._read_count(key)
        if count is None:
            return self.backend.get_item(key)

        chunks = []
        for index in range(count):
            chunk = self.backend.get_item(chunk_key(key, index))
            if chunk is None:
                raise CorruptEntryError(f"chunk {index} of {count} is missing")
            chunks.append(chunk)
        return "".join(chunks)

    def _previous_count(self, key: str) -> int:
        try:
            return self._read_count(key) or 0
        except CorruptEntryError:
            # Unreadable marker: count the chunk bodies that are actually there
            index = 0
            while self.backend.get_item(chunk_key(key, index)) is not None:
                index += 1
            return index

    def _store(self, key: str, value: str) -> None:
        previous = self._previous_count(key)

        if len(value.encode("utf-8")) <= self.chunk_size:
            self.backend.set_item(key, value)
            self.backend.delete_item(count_key(key))
            self._delete_chunks(key, 0, previous)
            return

        chunks = split_value(value, self.chunk_size)
        if previous:
            # Until the new marker lands, an interrupted overwrite reads as absent
            self.backend.delete_item(count_key(key))
        for index, chunk in enumerate(chunks):
            self.backend.set_item(chunk_key(key, index), chunk)
        # Marker goes last: an interrupted write never points at missing chunks
        self.backend.set_item(count_key(key), str(len(chunks)))
        self.backend.delete_item(key)
        self._delete_chunks(key, len(chunks), previous)

    def _remove(self, key: str) -> None:
        if self.backend.get_item(count_key(key)) is not None:
            self._delete_chunks(key, 0, self._previous_count(key))
            self.backend.delete_item(count_key(key))
        self.backend.delete_item(key)

    def _delete_chunks(self, key: str, start: int, stop: int) -> None:
        for index in range(start, stop):
            self.backend.delete_item(chunk_key(key, index))
