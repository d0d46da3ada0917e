import asyncio
from unittest.mock import AsyncMock

from services.event_publisher import (KafkaEventPublisher, LoggingEventPublisher,
USER_LOGIN_TOPIC, build_event_publisher)


def test_builder_without_brokers_logs_only():
    assert isinstance(build_event_publisher("", "auth-service"), LoggingEventPublisher)


def test_builder_with_brokers_uses_kafka():
    publisher = build_event_publisher("kafka:9092", "auth-service")

    assert isinstance(publisher, KafkaEventPublisher)
    assert publisher.bootstrap_servers == "kafka:9092"


async def test_publish_schedules_send():
    producer = AsyncMock()
    publisher = KafkaEventPublisher("kafka:9092", producer=producer)
    await publisher.start()

    publisher.publish(USER_LOGIN_TOPIC, {"userId": 1, "username": "alice"})
    await asyncio.sleep(0.05)

    producer.send_and_wait.assert_awaited_once_with(USER_LOGIN_TOPIC, {"userId": 1, "username": "alice"})
    await publisher.stop()
    producer.stop.assert_awaited_once()


async def test_publish_returns_before_delivery():
    release = asyncio.Event()
    producer = AsyncMock()

    async def slow_send(topic, payload):
        await release.wait()

    producer.send_and_wait.side_effect = slow_send
    publisher = KafkaEventPublisher("kafka:9092", producer=producer)
    await publisher.start()

    # Returns while the send is still pending
    publisher.publish(USER_LOGIN_TOPIC, {"userId": 1})

    release.set()
    await asyncio.sleep(0.05)
    producer.send_and_wait.assert_awaited_once()
    await publisher.stop()


async def test_delivery_failure_is_swallowed(caplog):
    producer = AsyncMock()
    producer.send_and_wait.side_effect = ConnectionError("broker down")
    publisher = KafkaEventPublisher("kafka:9092", producer=producer)
    await publisher.start()

    publisher.publish(USER_LOGIN_TOPIC, {"userId": 1})
    await asyncio.sleep(0.05)

    assert "Failed to publish event" in caplog.text
    await publisher.stop()


def test_publish_before_start_is_dropped():
    producer = AsyncMock()
    publisher = KafkaEventPublisher("kafka:9092", producer=producer)

    publisher.publish(USER_LOGIN_TOPIC, {"userId": 1})

    producer.send_and_wait.assert_not_called()
