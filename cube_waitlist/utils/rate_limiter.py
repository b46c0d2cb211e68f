from redis import Redis, ConnectionPool


class RateLimiter:
    """Redis-backed fixed-window request counter.

    Built once per app from ``Settings.REDIS_URL``; the Redis client does not
    connect until the first counted request.
    """

    def __init__(self, client: Redis):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RateLimiter":
        pool = ConnectionPool.from_url(redis_url, decode_responses=True)
        return cls(Redis(connection_pool=pool))

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        """Return True if action under key is allowed within window, else False.

        Uses INCR + EXPIRE (nx) so the window starts at the first hit.
        """
        with self.client.pipeline() as pipe:
            pipe.incr(key, 1)
            pipe.expire(key, window_seconds, nx=True)
            count, _ = pipe.execute()
        try:
            count_int = int(count)
        except (TypeError, ValueError):
            count_int = limit
        return count_int <= limit

    def allow_for_client(self, action: str, client_id: str, limit: int, window_seconds: int = 60) -> bool:
        key = f"waitlist:{action}:{client_id or 'unknown'}"
        return self.allow(key, limit, window_seconds)

    def close(self) -> None:
        self.client.close()
