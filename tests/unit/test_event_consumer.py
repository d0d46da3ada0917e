import asyncio
import logging
from types import SimpleNamespace

from services.event_consumer import AUTH_GROUP_ID, AUTH_TOPIC, KafkaEventConsumer, build_event_consumer


class FakeConsumer:
    """Yields queued messages, then waits like an idle broker connection."""

    def __init__(self, messages):
        self.messages = list(messages)
        self.started = False
        self.stopped = False

    async def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.messages:
            return self.messages.pop(0)
        await asyncio.Event().wait()


def message(value, offset=0):
    return SimpleNamespace(topic=AUTH_TOPIC, partition=0, offset=offset, value=value)


def test_builder_without_brokers_returns_none():
    assert build_event_consumer("", AUTH_TOPIC, AUTH_GROUP_ID, "auth-service") is None


def test_builder_with_brokers():
    consumer = build_event_consumer("kafka:9092", AUTH_TOPIC, AUTH_GROUP_ID, "auth-service")

    assert consumer.topic == "auth-topic"
    assert consumer.group_id == "auth-group"


async def test_consumer_logs_each_message(caplog):
    fake = FakeConsumer([message(b'{"hello": "world"}'), message(b"second", offset=1)])
    consumer = KafkaEventConsumer("kafka:9092", consumer=fake)

    with caplog.at_level(logging.INFO, logger="services.event_consumer"):
        await consumer.start()
        await asyncio.sleep(0.05)
        await consumer.stop()

    received = [r for r in caplog.records if r.getMessage() == "Received message"]
    assert [r.value for r in received] == ['{"hello": "world"}', "second"]
    assert fake.started and fake.stopped


async def test_consumer_failure_is_logged_not_raised(caplog):
    class BrokenConsumer(FakeConsumer):
        async def __anext__(self):
            raise RuntimeError("broker gone")

    consumer = KafkaEventConsumer("kafka:9092", consumer=BrokenConsumer([]))

    await consumer.start()
    await asyncio.sleep(0.05)
    await consumer.stop()

    assert any("Kafka consumer stopped unexpectedly" in r.getMessage() for r in caplog.records)
