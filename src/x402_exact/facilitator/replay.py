"""
Replay ledger - records which authorizations have been consumed.

A key is ``(signer, asset, network, nonce)``. Inserting a key is the atomic
guard against settling the same authorization twice, so ``reserve`` must be a
single test-and-insert step in every implementation.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplayKey:
    """Identity of one signed authorization"""

    signer: str
    asset: str
    network: str
    nonce: str
    # Unix time after which the authorization can no longer land
    valid_before: Optional[int] = field(default=None, compare=False)

    @classmethod
    def of(
        cls,
        signer: str,
        asset: str,
        network: str,
        nonce: str,
        valid_before: Optional[int] = None,
    ) -> "ReplayKey":
        """Build a key with addresses, network and nonce lower-cased."""
        return cls(
            signer=signer.lower(),
            asset=asset.lower(),
            network=network.lower(),
            nonce=nonce.lower(),
            valid_before=valid_before,
        )

    @property
    def storage_key(self) -> str:
        return f"{self.signer}:{self.asset}:{self.network}:{self.nonce}"


class ReplayLedger(ABC):
    """Store of consumed authorization keys."""

    @abstractmethod
    async def reserve(self, key: ReplayKey) -> bool:
        """Insert *key* if absent. Returns False if it was already present."""
        pass

    @abstractmethod
    async def contains(self, key: ReplayKey) -> bool:
        """Return True if *key* has been consumed."""
        pass

    @abstractmethod
    async def release(self, key: ReplayKey) -> None:
        """Forget *key* so the authorization slot can be used again."""
        pass


class InMemoryReplayLedger(ReplayLedger):
    """Process-local ledger. Entries do not survive a restart."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[ReplayKey, float] = {}
        self._lock = threading.Lock()
        self._clock = clock

    async def reserve(self, key: ReplayKey) -> bool:
        with self._lock:
            if key in self._entries:
                return False
            self._entries[key] = self._clock()
            return True

    async def contains(self, key: ReplayKey) -> bool:
        with self._lock:
            return key in self._entries

    async def release(self, key: ReplayKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def consumed_at(self, key: ReplayKey) -> float | None:
        """Timestamp at which *key* was reserved, if it was."""
        with self._lock:
            return self._entries.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisReplayLedger(ReplayLedger):
    """Ledger shared by all facilitator instances through Redis.

    ``reserve`` is a single ``SET key value NX EX ttl``; Redis executes it
    atomically, so concurrent reservations of one key yield exactly one winner.
    """

    KEY_PREFIX = "x402:replay:"
    # Minimum lifetime; keys with a later validBefore live until it passes
    DEFAULT_TTL = 7 * 24 * 3600

    def __init__(
        self,
        redis_url: Optional[str] = None,
        client: Any = None,
        ttl: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if client is None and not redis_url:
            raise ValueError("RedisReplayLedger requires a redis_url or a client")
        self._redis_url = redis_url
        self._client = client
        self._ttl = ttl
        self._clock = clock

    async def _get_client(self) -> Any:
        if self._client is None:
            import redis.asyncio as redis

            self._client = redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
        return self._client

    def _redis_key(self, key: ReplayKey) -> str:
        return f"{self.KEY_PREFIX}{key.storage_key}"

    def _ttl_for(self, key: ReplayKey) -> int:
        if key.valid_before is None:
            return self._ttl
        return max(self._ttl, int(key.valid_before - self._clock()) + 1)

    async def reserve(self, key: ReplayKey) -> bool:
        client = await self._get_client()
        inserted = await client.set(
            self._redis_key(key),
            str(int(self._clock())),
            nx=True,
            ex=self._ttl_for(key),
        )
        if not inserted:
            logger.debug("Replay key already reserved", extra={"key": key.storage_key})
        return bool(inserted)

    async def contains(self, key: ReplayKey) -> bool:
        client = await self._get_client()
        return bool(await client.exists(self._redis_key(key)))

    async def release(self, key: ReplayKey) -> None:
        client = await self._get_client()
        await client.delete(self._redis_key(key))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
