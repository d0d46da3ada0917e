"""
Fire-and-forget notifications about auth activity.

``publish`` never blocks the request that triggers it and never raises:
delivery is best effort (at most once) and failures only show up in the
logs.
"""

import asyncio
import json
from concurrent.futures import Future
from typing import Any, Dict, Optional, Protocol
from aiokafka import AIOKafkaProducer
from utils.logger import get_logger, sanitize_log_data

logger = get_logger(__name__)

USER_REGISTRATION_TOPIC = "user-registration-topic"
USER_LOGIN_TOPIC = "user-login-topic"


class EventPublisher(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    def publish(self, topic: str, payload: Dict[str, Any]) -> None: ...


class LoggingEventPublisher:
    """Publisher used when no broker is configured: events are logged only."""

    async def start(self) -> None:
        logger.info("Event publishing disabled, events will be logged only")

    async def stop(self) -> None:
        return None

    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        logger.info(
            "Event skipped (no broker)",
            extra={"topic": topic, "payload": sanitize_log_data(payload)}
        )


class KafkaEventPublisher:
    """
    Publishes JSON events to Kafka through one long-lived producer.

    The producer is started and stopped with the application; ``publish``
    may be called from the event loop or from worker threads and only
    schedules the send on the publisher's loop.
    """

    def __init__(self, bootstrap_servers: str, client_id: str = "auth-service",
                 producer: Optional[AIOKafkaProducer] = None):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self._producer = producer
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def start(self) -> None:
        if self._producer is None:
            self._producer = AIOKafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                client_id=self.client_id,
                value_serializer=lambda value: json.dumps(value).encode("utf-8"),
            )
        await self._producer.start()
        self._loop = asyncio.get_running_loop()
        logger.info(
            "Kafka producer started",
            extra={"bootstrap_servers": self.bootstrap_servers, "client_id": self.client_id}
        )

    async def stop(self) -> None:
        if self._producer is not None and self._loop is not None:
            self._loop = None
            await self._producer.stop()
            logger.info("Kafka producer stopped")

    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning("Event dropped, producer not running", extra={"topic": topic})
            return

        future = asyncio.run_coroutine_threadsafe(self._send(topic, payload), loop)
        future.add_done_callback(lambda f: self._log_outcome(f, topic))

    async def _send(self, topic: str, payload: Dict[str, Any]) -> None:
        await self._producer.send_and_wait(topic, payload)

    @staticmethod
    def _log_outcome(future: Future, topic: str) -> None:
        if future.cancelled():
            logger.warning("Event send cancelled", extra={"topic": topic})
            return

        exc = future.exception()
        if exc is not None:
            logger.error(
                f"Failed to publish event: {exc}",
                extra={"topic": topic, "error_type": type(exc).__name__}
            )
        else:
            logger.debug("Event published", extra={"topic": topic})


def build_event_publisher(bootstrap_servers: str, client_id: str) -> EventPublisher:
    if not bootstrap_servers:
        return LoggingEventPublisher()
    return KafkaEventPublisher(bootstrap_servers, client_id=client_id)
