from vibe_report.services.redis_client import fast_redis


async def ping() -> bool:
    return await fast_redis.ping()


async def get(key: str) -> str | None:
    return await fast_redis.get(key)


async def set_with_ttl(key: str, value: str, ttl_s: int | None = None) -> bool:
    return await fast_redis.set_with_ttl(key, value, ttl_s)


async def set_if_absent(key: str, value: str, ttl_s: int | None) -> bool:
    return await fast_redis.set_if_absent(key, value, ttl_s)


async def delete(key: str) -> bool:
    return await fast_redis.delete(key)


async def getdel(key: str) -> str | None:
    return await fast_redis.getdel(key)


async def consume_floored(key: str, seed: int) -> int:
    return await fast_redis.consume_floored(key, seed)
