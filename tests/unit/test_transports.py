"""Transport tests."""

import pytest

from cypherflow.config import TransportConfig
from cypherflow.contracts import RoutingSlip, WorkflowMessage
from cypherflow.runtime.transports import Delivery, InMemoryTransport
from cypherflow.runtime.transports.redis import RedisTransport
from cypherflow.service import build_transport


def _message(instance_id: str = "wf-123") -> WorkflowMessage:
    return WorkflowMessage(
        instance_id=instance_id,
        workflow_name="wf",
        routing_slip=RoutingSlip.from_names(["validate_query", "generate_cypher"]),
    )


@pytest.mark.asyncio
async def test_inmemory_transport_basic():
    transport = InMemoryTransport()
    await transport.publish("workflows", _message())

    message_received = False
    async for delivery in transport.subscribe("workflows"):
        assert delivery.message.instance_id == "wf-123"
        assert delivery.step == "validate_query"
        await transport.ack(delivery)
        message_received = True
        break

    assert message_received
    assert transport.pending("workflows") == 0


@pytest.mark.asyncio
async def test_inmemory_subscribe_stops_after_lifespan():
    transport = InMemoryTransport(poll_interval=0.01)
    await transport.publish("workflows", _message("a"))
    await transport.publish("workflows", _message("b"))

    received = [
        d.message.instance_id async for d in transport.subscribe("workflows", lifespan=0.1)
    ]

    assert received == ["a", "b"]


@pytest.mark.asyncio
async def test_receive_without_waiting_on_empty_topic():
    transport = InMemoryTransport()
    assert await transport.receive("workflows", timeout=0) is None


@pytest.mark.asyncio
async def test_receive_returns_a_copy_of_the_published_message():
    transport = InMemoryTransport()
    published = _message()
    await transport.publish("workflows", published)

    delivery = await transport.receive("workflows", timeout=0)

    assert delivery.message == published
    assert delivery.message is not published
    assert delivery.receipt == published.to_json()


@pytest.mark.asyncio
async def test_topics_are_independent_and_purgeable():
    transport = InMemoryTransport()
    await transport.publish("workflows", _message("a"))
    await transport.publish("other", _message("b"))

    assert transport.purge("other") == 1
    assert transport.pending("other") == 0
    assert transport.pending("workflows") == 1


def test_delivery_step_of_finished_slip_is_none():
    message = _message()
    message = message.advanced().advanced()
    assert Delivery(receipt=None, message=message).step is None


def test_message_round_trip_and_advance():
    message = _message()
    restored = WorkflowMessage.from_json(message.to_json())
    assert restored == message

    advanced = message.advanced()
    assert advanced.routing_slip.next_step().name == "generate_cypher"
    assert advanced.routing_slip.previous_step().name == "validate_query"
    assert advanced.message_id != message.message_id
    assert message.routing_slip.next_step().name == "validate_query"


def test_build_transport_defaults_to_inmemory():
    assert isinstance(build_transport(TransportConfig()), InMemoryTransport)


def test_build_transport_rejects_unknown_backend():
    config = TransportConfig()
    config.backend = "carrier-pigeon"
    with pytest.raises(ValueError):
        build_transport(config)


def test_redis_transport_settings():
    transport = RedisTransport(host="redis.internal", port=6380)
    assert transport.host == "redis.internal"
    assert transport.port == 6380
    assert transport._queue_name("workflows") == "cypherflow:workflows"
