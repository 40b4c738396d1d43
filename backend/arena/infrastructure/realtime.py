"""
Real-time broadcast over Pusher.

Broadcasts are fire-and-forget: they run after the database commit and a
Pusher outage never fails the request that triggered them. With no
PUSHER_APP_ID configured the broadcaster is a no-op.
"""

from functools import lru_cache
from typing import Optional

import pusher
from starlette.concurrency import run_in_threadpool

from arena.core.config import get_settings
from arena.core.logging import get_logger

logger = get_logger(__name__)


class Broadcaster:
    def __init__(self, client: Optional[pusher.Pusher], channel: str):
        self._client = client
        self.channel = channel

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def publish(self, event: str, data: dict) -> None:
        if self._client is None:
            return
        try:
            await run_in_threadpool(self._client.trigger, self.channel, event, data)
            logger.debug("broadcast_sent", channel=self.channel, broadcast_event=event)
        except Exception as e:
            logger.warning("broadcast_failed", channel=self.channel, broadcast_event=event, error=str(e))


@lru_cache()
def _default_broadcaster() -> Broadcaster:
    settings = get_settings()
    if not settings.PUSHER_APP_ID:
        logger.info("pusher_disabled")
        return Broadcaster(None, settings.PUSHER_CHANNEL)
    client = pusher.Pusher(
        app_id=settings.PUSHER_APP_ID,
        key=settings.PUSHER_KEY,
        secret=settings.PUSHER_SECRET,
        cluster=settings.PUSHER_CLUSTER,
        ssl=True,
    )
    return Broadcaster(client, settings.PUSHER_CHANNEL)


def get_broadcaster() -> Broadcaster:
    """FastAPI dependency; overridden in tests."""
    return _default_broadcaster()
