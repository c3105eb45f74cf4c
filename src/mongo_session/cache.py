"""
Cache - process-wide sharded Redis client.

Keys are spread over several Redis servers. Each server is named by a hash of
its address and each key goes to the server whose name scores highest for it
(rendezvous hashing), so a given server list always routes a key the same way.

Example:
    cache = get_redis()
    cache.set("session:1", "payload", ex=60)
    cache.get("session:1")
"""

from __future__ import annotations

import hashlib
import logging
import threading
from typing import Any, Mapping

import redis

from .config import REDIS_DB, REDIS_PASSWORD, REDIS_SERVERS, get_setting

__all__ = ["ShardedRedis", "shard_addresses", "get_redis", "reset_redis"]

logger = logging.getLogger(__name__)

DEFAULT_REDIS_PORT = 6379


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def shard_addresses(servers: str) -> dict[str, str]:
    """
    Turn a comma-separated server list into a shard name -> address map.

    Addresses are trimmed and blanks dropped; each shard is named by the md5
    of its address.
    """
    addrs: dict[str, str] = {}
    for server in servers.split(","):
        addr = server.strip()
        if addr:
            addrs[_md5(addr)] = addr
    return addrs


class ShardedRedis:
    """
    Redis client spread over several servers.

    Args:
        addrs: Shard name -> "host:port" map.
        password: Password shared by every shard.
        db: Database index shared by every shard.
        **options: Extra keyword arguments for each redis.Redis client.

    Raises:
        ValueError: If addrs is empty or an address has a bad port.
    """

    def __init__(
        self,
        addrs: Mapping[str, str],
        password: str | None = None,
        db: int = 0,
        **options: Any,
    ) -> None:
        if not addrs:
            raise ValueError("at least one redis server address is required")

        self._addrs = dict(addrs)
        self._shards: dict[str, redis.Redis] = {
            name: self._connect(addr, password, db, options) for name, addr in self._addrs.items()
        }

    @staticmethod
    def _connect(addr: str, password: str | None, db: int, options: dict[str, Any]) -> redis.Redis:
        host, _, port = addr.rpartition(":")
        if not host:
            host, port = addr, str(DEFAULT_REDIS_PORT)
        return redis.Redis(host=host, port=int(port), db=db, password=password or None, **options)

    @property
    def addrs(self) -> dict[str, str]:
        return dict(self._addrs)

    @property
    def shards(self) -> dict[str, redis.Redis]:
        return dict(self._shards)

    def shard_name(self, key: str) -> str:
        """Name of the shard that owns key."""
        return max(self._shards, key=lambda name: _md5(name + key))

    def shard_for(self, key: str) -> redis.Redis:
        """Client of the shard that owns key."""
        return self._shards[self.shard_name(key)]

    def get(self, key: str) -> Any:
        return self.shard_for(key).get(key)

    def set(self, key: str, value: Any, ex: int | None = None, nx: bool = False) -> Any:
        return self.shard_for(key).set(key, value, ex=ex, nx=nx)

    def delete(self, *keys: str) -> int:
        return sum(self.shard_for(key).delete(key) for key in keys)

    def exists(self, key: str) -> bool:
        return bool(self.shard_for(key).exists(key))

    def expire(self, key: str, seconds: int) -> bool:
        return bool(self.shard_for(key).expire(key, seconds))

    def incr(self, key: str, amount: int = 1) -> int:
        return self.shard_for(key).incr(key, amount)

    def ping(self) -> bool:
        """Ping every shard."""
        return all(client.ping() for client in self._shards.values())

    def close(self) -> None:
        for client in self._shards.values():
            client.close()

    def __repr__(self) -> str:
        return f"ShardedRedis({sorted(self._addrs.values())!r})"


_client: ShardedRedis | None = None
_lock = threading.Lock()


def _build() -> ShardedRedis:
    try:
        db = int(get_setting(REDIS_DB, "0") or 0)
        client = ShardedRedis(
            shard_addresses(get_setting(REDIS_SERVERS)),
            password=get_setting(REDIS_PASSWORD) or None,
            db=db,
        )
    except (ValueError, redis.RedisError) as e:
        logger.critical("Cannot build redis client: %s", e)
        raise SystemExit(1) from e

    logger.info("Redis client ready with %d shards", len(client.shards))
    return client


def get_redis() -> ShardedRedis:
    """
    Return the process-wide Redis client, building it on first use.

    The client is built at most once per process, from the REDIS_SERVERS,
    REDIS_DB and REDIS_PASSWORD settings, and shared by every caller.

    Raises:
        SystemExit: If the client cannot be built.
    """
    global _client

    client = _client
    if client is not None:
        return client

    with _lock:
        if _client is None:
            _client = _build()
        return _client


def reset_redis() -> None:
    """Close and forget the process-wide client."""
    global _client

    with _lock:
        if _client is not None:
            _client.close()
            _client = None
