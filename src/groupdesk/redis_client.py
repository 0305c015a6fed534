"""Redis connection pool."""

import redis.asyncio as redis
from fastapi import Request


def open_redis(url: str) -> redis.Redis | None:
    """Create the Redis client, or ``None`` when no URL is configured."""
    if not url:
        return None
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis(client: redis.Redis | None) -> None:
    """Close the Redis connection pool."""
    if client is not None:
        await client.aclose()


def get_redis(request: Request) -> redis.Redis | None:
    """The application's Redis client, if any (FastAPI dependency)."""
    return getattr(request.app.state, "redis", None)
