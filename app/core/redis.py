from contextlib import asynccontextmanager
from datetime import date
import redis.asyncio as redis
from redis.exceptions import LockError, LockNotOwnedError
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

class RedisClient:
    def __init__(self, url: str = None):
        self.url = url or settings.REDIS_URL
        self.redis = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def connect(self):
        """Connect to Redis"""
        try:
            self.redis = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True
            )
            # Test connection
            await self.redis.ping()
            logger.info("Redis connected successfully")
        except Exception as e:
            logger.error(f"Redis connection failed: {str(e)}")
            raise

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis disconnected")

    async def lock(self, name: str, timeout: float, blocking_timeout: float = None):
        """Get a distributed lock object for `name`"""
        if not self.redis:
            await self.connect()
        return self.redis.lock(name, timeout=timeout, blocking_timeout=blocking_timeout)


class AttendanceDayLock:
    """Serializes attendance mutations for one (employee, day) key.

    Without a Redis URL the lock is a pass-through and the database
    uniqueness constraint is the only guard.
    """

    def __init__(self, client: RedisClient = None, timeout: float = None):
        self.client = client
        self.timeout = timeout or settings.ATTENDANCE_LOCK_TIMEOUT_SECONDS

    @staticmethod
    def key(employee_id: int, day: date) -> str:
        return f"attendance:lock:{employee_id}:{day.isoformat()}"

    @asynccontextmanager
    async def hold(self, employee_id: int, day: date):
        if self.client is None or not self.client.enabled:
            yield
            return

        lock = await self.client.lock(
            self.key(employee_id, day),
            timeout=self.timeout,
            blocking_timeout=self.timeout,
        )
        if not await lock.acquire():
            raise LockError("Unable to acquire lock within the time specified")
        logger.debug(f"Acquired attendance lock for employee {employee_id} on {day}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockNotOwnedError:
                # Expired while held
                logger.warning(f"Attendance lock for employee {employee_id} on {day} expired before release")


# Global Redis client instance
redis_client = RedisClient()
