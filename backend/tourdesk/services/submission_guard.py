"""
Redis gate against duplicate payout submissions.

DUPLICATE SUBMISSION STRATEGY
=============================

Problem:
  An operator double-clicks "Create payout". Two identical requests race
  to insert a payout for the same guide and the same tour set.

Gate:
  Before touching the database, claim the submission key with
  SET key 1 NX EX ttl. The first request wins the key; the second is
  turned away immediately with a conflict.

Authority:
  Redis is advisory only. The (guide_id, snapshot_key) unique constraint on
  guide_payouts is what actually guarantees a tour set is paid at most
  once. On Redis failure the gate "fails open" and admits the request, so a
  Redis outage degrades to database-only protection instead of blocking
  payouts.
"""

from typing import Optional

import redis.asyncio as redis

from tourdesk.core.config import get_settings
from tourdesk.core.logging import get_logger
from tourdesk.core.metrics import redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            redis_connection_errors.inc()
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _submission_key(scope: str, identity: str) -> str:
    return f"tourdesk:submission:{scope}:{identity}"


async def claim_submission(scope: str, identity: str) -> bool:
    """
    Claim a submission key. Returns False only when Redis positively reports
    that an identical submission is already in flight.
    """
    client = await get_redis()
    if not client:
        return True

    key = _submission_key(scope, identity)
    try:
        claimed = await client.set(key, "1", nx=True, ex=settings.PAYOUT_SUBMISSION_TTL)
        if not claimed:
            logger.warning("duplicate_submission_blocked", key=key)
        return bool(claimed)
    except Exception as e:
        logger.error("submission_guard_error", key=key, error=str(e))
        redis_connection_errors.inc()
        return True


async def release_submission(scope: str, identity: str) -> None:
    """Drop a claimed key after a failed submission so the operator can retry."""
    client = await get_redis()
    if not client:
        return

    key = _submission_key(scope, identity)
    try:
        await client.delete(key)
    except Exception as e:
        logger.error("submission_release_error", key=key, error=str(e))
        redis_connection_errors.inc()


async def get_guard_status() -> dict:
    """Redis connectivity for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        await client.ping()
        return {"status": "connected"}
    except Exception as e:
        return {"status": "error", "error": str(e)}
