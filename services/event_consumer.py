"""
Background listener for the service's inbound Kafka topic.

Messages are only logged for now; the consumer runs as a task on the
application's event loop between startup and shutdown.
"""

import asyncio
from typing import Optional
from aiokafka import AIOKafkaConsumer
from utils.logger import get_logger

logger = get_logger(__name__)

AUTH_TOPIC = "auth-topic"
AUTH_GROUP_ID = "auth-group"


class KafkaEventConsumer:
    def __init__(self, bootstrap_servers: str, topic: str = AUTH_TOPIC,
                 group_id: str = AUTH_GROUP_ID, client_id: str = "auth-service",
                 consumer: Optional[AIOKafkaConsumer] = None):
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.group_id = group_id
        self.client_id = client_id
        self._consumer = consumer
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._consumer is None:
            self._consumer = AIOKafkaConsumer(
                self.topic,
                bootstrap_servers=self.bootstrap_servers,
                group_id=self.group_id,
                client_id=self.client_id,
                auto_offset_reset="earliest",
            )
        await self._consumer.start()
        self._task = asyncio.create_task(self._consume())
        logger.info(
            "Kafka consumer started",
            extra={"topic": self.topic, "group_id": self.group_id}
        )

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._consumer is not None:
            await self._consumer.stop()
            logger.info("Kafka consumer stopped")

    async def _consume(self) -> None:
        try:
            async for message in self._consumer:
                self.handle(message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                f"Kafka consumer stopped unexpectedly: {exc}",
                extra={"topic": self.topic, "error_type": type(exc).__name__},
                exc_info=True
            )

    def handle(self, message) -> None:
        value = message.value
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        logger.info(
            "Received message",
            extra={
                "topic": message.topic,
                "partition": message.partition,
                "offset": message.offset,
                "value": value,
            }
        )


def build_event_consumer(bootstrap_servers: str, topic: str, group_id: str,
                         client_id: str) -> Optional[KafkaEventConsumer]:
    if not bootstrap_servers:
        return None
    return KafkaEventConsumer(bootstrap_servers, topic=topic, group_id=group_id,
                              client_id=client_id)
