"""Locks asíncronos por clave (un lock lógico por chunk)."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Hashable

logger = logging.getLogger(__name__)


class KeyedLock:
    """
    Conjunto de asyncio.Lock indexados por clave.

    Los locks se crean bajo demanda y se descartan cuando nadie los
    usa ni los espera, así el registro no crece sin límite.

    Uso:
        locks = KeyedLock()
        async with locks.hold(chunk_id):
            ...
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncGenerator[None, None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


# Locks por chunk compartidos por todos los servicios del proceso
_chunk_locks = KeyedLock()


def get_chunk_locks() -> KeyedLock:
    """Obtiene el registro de locks por chunk (singleton)."""
    return _chunk_locks
