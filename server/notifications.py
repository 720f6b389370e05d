"""
Change Notification Hubs

Fan change notifications out to subscribed views. Writers call publish(table)
after committing; every callback subscribed to that table runs once.

- LocalChangeHub: in-process, callbacks run synchronously in the publishing thread
- RedisChangeHub: Redis pub/sub, so writes made by any process reach every
  server process; callbacks run on the Redis listener thread

Channel naming:
    <channel_prefix>:<table>    e.g. waste_metrics:changes:detections
"""

import itertools
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set

import redis

from waste_metrics.data_source import ChangeCallback, Subscription
from sharedUtils.config.models import ChangeFeedConfig
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)


class ChangeHub(ABC):
    """Abstract publish/subscribe hub for table change notifications."""

    @abstractmethod
    def subscribe(self, table: str, on_change: ChangeCallback) -> Subscription:
        pass

    @abstractmethod
    def publish(self, table: str) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class LocalChangeHub(ChangeHub):
    """In-process hub; a failing callback is logged and does not stop the others."""

    def __init__(self):
        self._callbacks: Dict[str, Dict[int, ChangeCallback]] = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()

    def subscribe(self, table: str, on_change: ChangeCallback) -> Subscription:
        with self._lock:
            callback_id = next(self._ids)
            self._callbacks.setdefault(table, {})[callback_id] = on_change

        logger.debug("Subscribed callback %d to '%s'", callback_id, table)
        return Subscription(table, lambda: self._remove(table, callback_id))

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._callbacks.get(table, {}))

    def publish(self, table: str) -> None:
        with self._lock:
            callbacks = list(self._callbacks.get(table, {}).values())

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error("Change callback for '%s' failed: %s", table, e, exc_info=True)

    def close(self) -> None:
        with self._lock:
            self._callbacks.clear()

    def _remove(self, table: str, callback_id: int) -> None:
        with self._lock:
            self._callbacks.get(table, {}).pop(callback_id, None)
        logger.debug("Unsubscribed callback %d from '%s'", callback_id, table)


class RedisChangeHub(ChangeHub):
    """
    Redis pub/sub hub shared by every server process.

    publish() sends the table name on the table's channel. One background
    listener thread per hub receives messages and fans them out to the local
    callbacks of that table.

    Attributes:
        redis_client: Redis connection client
        channel_prefix: Prefix of every channel name
    """

    def __init__(self, config: ChangeFeedConfig, client: Optional[redis.Redis] = None):
        self.channel_prefix = config.channel_prefix
        self.redis_client = client or redis.Redis(
            host=config.redis_host,
            port=config.redis_port,
            db=config.redis_db,
            password=config.redis_password,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
        )

        self._local = LocalChangeHub()
        self._lock = threading.Lock()
        self._pubsub = None
        self._listener = None
        self._channels: Set[str] = set()

        logger.debug("RedisChangeHub initialized with prefix: %s", self.channel_prefix)

    def channel_for(self, table: str) -> str:
        return f"{self.channel_prefix}:{table}"

    def table_for(self, channel: str) -> Optional[str]:
        prefix = f"{self.channel_prefix}:"
        if not channel.startswith(prefix):
            return None
        return channel[len(prefix):]

    def subscribe(self, table: str, on_change: ChangeCallback) -> Subscription:
        subscription = self._local.subscribe(table, on_change)
        channel = self.channel_for(table)

        with self._lock:
            if self._pubsub is None:
                self._pubsub = self.redis_client.pubsub(ignore_subscribe_messages=True)
            if channel not in self._channels:
                self._pubsub.subscribe(**{channel: self._on_message})
                self._channels.add(channel)
                logger.info("Listening for changes on %s", channel)
            if self._listener is None:
                self._listener = self._pubsub.run_in_thread(sleep_time=0.5, daemon=True)

        return subscription

    def publish(self, table: str) -> None:
        try:
            self.redis_client.publish(self.channel_for(table), table)
            logger.debug("Published change on %s", self.channel_for(table))
        except redis.RedisError as e:
            logger.error("Failed to publish change for '%s': %s", table, e)

    def close(self) -> None:
        logger.info("Stopping RedisChangeHub...")

        with self._lock:
            listener, self._listener = self._listener, None
            pubsub, self._pubsub = self._pubsub, None
            self._channels.clear()

        if listener is not None:
            listener.stop()
        if pubsub is not None:
            pubsub.close()
        self.redis_client.close()
        self._local.close()

        logger.info("RedisChangeHub stopped")

    def _on_message(self, message: dict) -> None:
        table = self.table_for(message.get("channel") or "")
        if table is None:
            logger.warning("Ignoring message on unexpected channel: %s", message.get("channel"))
            return
        self._local.publish(table)


def create_change_hub(config: ChangeFeedConfig) -> ChangeHub:
    """Build the hub selected by [change_feed].implementation."""
    if config.implementation == "redis":
        logger.info("Using RedisChangeHub at %s:%d", config.redis_host, config.redis_port)
        return RedisChangeHub(config)
    logger.info("Using LocalChangeHub")
    return LocalChangeHub()
