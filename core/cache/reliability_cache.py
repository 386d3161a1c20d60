"""Reliability Cache - Redis caching for per-volunteer reliability stats."""
import json
import logging
from typing import Any, Dict, Hashable, Optional
from datetime import datetime, timezone
from urllib.parse import urlparse

from redis import Redis
from redis.exceptions import WatchError

from core.config_loader import CacheConfig

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 60 * 60


def _sanitize_url(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            sanitized = parsed._replace(
                netloc=f"{parsed.username or ''}:*@{parsed.hostname}:{parsed.port or 6379}"
            )
            return sanitized.geturl()
        return url
    except Exception:
        return url


class ReliabilityCache:
    """
    Redis cache of computed volunteer stats, shared by every process.

    Each volunteer has a generation counter beside the cached entry.
    invalidate() bumps the counter and deletes the entry in one MULTI;
    set() only stores a value computed under the generation that is still
    current, so stats read before a history write never land after it.

    Without a reachable Redis every get is a miss and nothing is stored.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        key_prefix: str = "reliability",
        client: Optional[Redis] = None
    ):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self._redis: Optional[Redis] = None
        self._available = False

        if client is None and redis_url:
            try:
                client = Redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5
                )
            except Exception as e:
                logger.warning(f"Reliability cache Redis unavailable: {e}")
                client = None

        if client is None:
            logger.debug("No Redis configured, reliability cache disabled")
            return

        try:
            client.ping()
            self._redis = client
            self._available = True
            logger.info(f"Reliability cache connected to Redis at {_sanitize_url(redis_url or 'injected client')}")
        except Exception as e:
            logger.warning(f"Reliability cache Redis unavailable: {e}")

    @classmethod
    def from_config(cls, config: CacheConfig, fallback_url: Optional[str] = None) -> 'ReliabilityCache':
        if not config.enabled:
            return cls()
        return cls(
            redis_url=config.redis_url or fallback_url,
            ttl_seconds=config.ttl_seconds,
            key_prefix=config.key_prefix,
        )

    @property
    def is_available(self) -> bool:
        return self._available and self._redis is not None

    @property
    def _epoch_key(self) -> str:
        return f"{self.key_prefix}:gen"

    def _stats_key(self, volunteer_id: Hashable) -> str:
        return f"{self.key_prefix}:stats:{volunteer_id}"

    def _generation_key(self, volunteer_id: Hashable) -> str:
        return f"{self.key_prefix}:gen:{volunteer_id}"

    @staticmethod
    def _format_generation(values) -> str:
        epoch, generation = values
        return f"{epoch or 0}:{generation or 0}"

    def generation(self, volunteer_id: Hashable) -> Optional[str]:
        """Token to read before computing; pass it back to set()."""
        if not self.is_available:
            return None
        try:
            return self._format_generation(
                self._redis.mget(self._epoch_key, self._generation_key(volunteer_id))
            )
        except Exception as e:
            logger.warning(f"Error reading reliability cache generation: {e}")
            return None

    def get(self, volunteer_id: Hashable) -> Optional[Dict[str, Any]]:
        if not self.is_available:
            return None
        try:
            data = self._redis.get(self._stats_key(volunteer_id))
            if not data:
                logger.debug(f"Cache miss for volunteer {volunteer_id}")
                return None
            logger.debug(f"Cache hit for volunteer {volunteer_id}")
            return json.loads(data).get("data")
        except Exception as e:
            logger.warning(f"Error reading from reliability cache: {e}")
            return None

    def set(self, volunteer_id: Hashable, stats: Dict[str, Any], generation: Optional[str]) -> bool:
        """Store stats computed under `generation`.

        Returns:
            False when the cache is down or the volunteer was invalidated
            since the generation was read
        """
        if not self.is_available or generation is None:
            return False

        generation_key = self._generation_key(volunteer_id)
        cache_entry = {
            "data": stats,
            "generation": generation,
            "cached_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            with self._redis.pipeline() as pipe:
                pipe.watch(self._epoch_key, generation_key)
                current = self._format_generation(pipe.mget(self._epoch_key, generation_key))
                if current != generation:
                    logger.debug(f"Stats for volunteer {volunteer_id} are stale ({generation} != {current}), not cached")
                    return False
                pipe.multi()
                pipe.setex(self._stats_key(volunteer_id), self.ttl_seconds, json.dumps(cache_entry))
                pipe.execute()
            return True
        except WatchError:
            logger.debug(f"Volunteer {volunteer_id} invalidated while caching, not cached")
            return False
        except Exception as e:
            logger.warning(f"Error writing to reliability cache: {e}")
            return False

    def invalidate(self, volunteer_id: Optional[Hashable] = None) -> None:
        """Drop one volunteer's entry, or every entry when volunteer_id is None."""
        if not self.is_available:
            return
        try:
            if volunteer_id is None:
                self._redis.incr(self._epoch_key)
                keys = list(self._redis.scan_iter(match=f"{self.key_prefix}:stats:*", count=500))
                if keys:
                    self._redis.delete(*keys)
                logger.info(f"Cleared {len(keys)} entries from reliability cache")
                return

            with self._redis.pipeline() as pipe:
                pipe.incr(self._generation_key(volunteer_id))
                pipe.delete(self._stats_key(volunteer_id))
                pipe.execute()
            logger.debug(f"Reliability cache invalidated for volunteer {volunteer_id}")
        except Exception as e:
            logger.warning(f"Error invalidating reliability cache: {e}")

    def __contains__(self, volunteer_id: Any) -> bool:
        if not self.is_available:
            return False
        try:
            return bool(self._redis.exists(self._stats_key(volunteer_id)))
        except Exception:
            return False
