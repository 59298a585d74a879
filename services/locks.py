import logging
from contextlib import contextmanager

import redis
from flask import current_app

from db import extensions
from services.exceptions import StoreFailure

logger = logging.getLogger(__name__)


def _lock_name(agent_id):
    return f'payout_lock:{agent_id}'


@contextmanager
def agent_payout_lock(agent_id):
    """
    Hold the redis-backed per-agent payout lock for the duration of the block.

    No-op when redis is not configured or PAYOUT_LOCK_ENABLED is off; the
    store-level row lock still serializes allocation in that case.
    """
    client = extensions.redis_client
    if client is None or not current_app.config.get('PAYOUT_LOCK_ENABLED', True):
        yield
        return

    lock = client.lock(
        _lock_name(agent_id),
        timeout=current_app.config.get('PAYOUT_LOCK_TIMEOUT', 30),
        blocking_timeout=current_app.config.get('PAYOUT_LOCK_BLOCKING_TIMEOUT', 10),
    )
    try:
        acquired = lock.acquire()
    except redis.exceptions.RedisError as e:
        logger.error(f"❌ Could not reach redis for payout lock {agent_id}: {str(e)}")
        raise StoreFailure() from e

    if not acquired:
        logger.warning(f"⚠️  Payout lock busy for agent {agent_id}")
        raise StoreFailure('Another payout operation is in progress for this agent. Please try again.')

    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError as e:
            # Lock expired before release; the transaction has already finished
            logger.warning(f"⚠️  Payout lock for agent {agent_id} expired before release: {str(e)}")
