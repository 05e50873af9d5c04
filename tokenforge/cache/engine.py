"""Lazy Redis client construction."""

from redis.asyncio import Redis

from tokenforge.core.settings import CacheSettings


class _ClientHolder:
    """Lazy singleton for the Redis client."""

    client: Redis | None = None


_holder = _ClientHolder()


def get_redis_client(settings: CacheSettings | None = None) -> Redis:
    """Lazily create the asyncio Redis client."""
    if _holder.client is None:
        cfg = settings or CacheSettings()
        _holder.client = Redis.from_url(
            cfg.url,
            decode_responses=False,
            socket_timeout=cfg.socket_timeout,
            socket_connect_timeout=cfg.socket_connect_timeout,
        )
    return _holder.client


def reset_redis_client() -> None:
    """Forget the cached client so the next call builds a new one."""
    _holder.client = None
