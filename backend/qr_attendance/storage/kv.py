"""String-keyed JSON storage used for local fallback state."""
import json
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError
from redis.exceptions import TimeoutError as RedisTimeoutError

from qr_attendance.errors import StorageUnavailableError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Get/set/remove by key with JSON-serialized values."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def set_if_absent(self, key: str, value: Any) -> bool:
        """Store value only when key is unused. Returns True if stored."""
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def keys(self, prefix: str = '') -> List[str]:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError

    def lock(self, name: str):
        """Context manager serialising writers on `name`."""
        raise NotImplementedError

    def values(self, prefix: str) -> List[Any]:
        items = []
        for key in sorted(self.keys(prefix)):
            value = self.get(key)
            if value is not None:
                items.append(value)
        return items


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values are kept serialized so callers never share objects."""

    def __init__(self, lock_timeout: float = 5.0):
        self._data: Dict[str, str] = {}
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self.lock_timeout = lock_timeout

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def set_if_absent(self, key: str, value: Any) -> bool:
        with self._guard:
            if key in self._data:
                return False
            self._data[key] = json.dumps(value)
            return True

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = '') -> List[str]:
        return [k for k in list(self._data) if k.startswith(prefix)]

    def ping(self) -> bool:
        return True

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(name, threading.Lock())
        if not lock.acquire(timeout=self.lock_timeout):
            raise StorageUnavailableError(f"Timed out waiting for lock {name}")
        try:
            yield
        finally:
            lock.release()


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store with bounded socket and lock timeouts."""

    def __init__(self, url: str, timeout: float = 5.0, namespace: str = 'qr_attendance'):
        self.timeout = timeout
        self.namespace = namespace
        self._client = redis.Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StorageUnavailableError(f"Local store unavailable: {e}") from e

    def get(self, key: str) -> Optional[Any]:
        with self._guard():
            raw = self._client.get(self._key(key))
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        with self._guard():
            self._client.set(self._key(key), json.dumps(value))

    def set_if_absent(self, key: str, value: Any) -> bool:
        with self._guard():
            return bool(self._client.set(self._key(key), json.dumps(value), nx=True))

    def remove(self, key: str) -> None:
        with self._guard():
            self._client.delete(self._key(key))

    def keys(self, prefix: str = '') -> List[str]:
        strip = len(self.namespace) + 1
        with self._guard():
            return [k[strip:] for k in self._client.scan_iter(match=f"{self._key(prefix)}*")]

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except (RedisConnectionError, RedisTimeoutError):
            logger.warning("Redis local store is not reachable")
            return False

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        lock = self._client.lock(
            self._key(f"lock:{name}"),
            timeout=self.timeout,
            blocking_timeout=self.timeout,
        )
        with self._guard():
            acquired = lock.acquire()
        if not acquired:
            raise StorageUnavailableError(f"Timed out waiting for lock {name}")
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                logger.warning("Lock %s expired before release", name)


def create_kv_store(url: str, timeout: float = 5.0) -> KeyValueStore:
    """Build a store from a `memory://` or `redis://` URL."""
    if not url or url.startswith('memory://'):
        return MemoryKeyValueStore(lock_timeout=timeout)
    if url.startswith(('redis://', 'rediss://', 'unix://')):
        return RedisKeyValueStore(url, timeout=timeout)
    raise ValueError(f"Unsupported local store URL: {url}")
