import redis.asyncio as redis

class RedisClient:
    def __init__(self, url: str):
        self.redis = redis.from_url(url, encoding="utf-8", decode_responses=True)

    def lock(self, name: str, timeout: float, blocking_timeout: float):
        return self.redis.lock(name, timeout=timeout, blocking_timeout=blocking_timeout)

    async def ping(self) -> bool:
        return await self.redis.ping()

    async def close(self):
        await self.redis.aclose()
