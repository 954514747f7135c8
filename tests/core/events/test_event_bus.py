"""
Tests for the DomainEventBus.
"""

import asyncio
from unittest.mock import Mock, patch

import pytest

from file_retrieval.core.events.configuration_events import (
    ConfigurationChanged,
    ConfigurationCreated,
    ConfigurationDeleted,
)
from file_retrieval.core.events.domain_event import DomainEvent
from file_retrieval.core.events.event_bus import DomainEventBus


@pytest.mark.asyncio
async def test_subscribe_and_publish():
    """Test that a handler is called when its subscribed event is published."""
    bus = DomainEventBus()
    handler_mock = Mock()

    async def async_handler(event: DomainEvent):
        handler_mock(event)

    await bus.subscribe(DomainEvent, async_handler)

    event_to_publish = DomainEvent()
    await bus.publish(event_to_publish)

    handler_mock.assert_called_once_with(event_to_publish)


@pytest.mark.asyncio
async def test_publish_to_correct_handlers_only():
    """Test that only handlers for the specific event type are called."""
    bus = DomainEventBus()
    created_mock = Mock()
    deleted_mock = Mock()

    async def on_created(event: ConfigurationCreated):
        created_mock(event)

    async def on_deleted(event: ConfigurationDeleted):
        deleted_mock(event)

    await bus.subscribe(ConfigurationCreated, on_created)
    await bus.subscribe(ConfigurationDeleted, on_deleted)

    event = ConfigurationCreated(client_id="client-a", configuration_id="cfg-1")
    await bus.publish(event)

    created_mock.assert_called_once_with(event)
    deleted_mock.assert_not_called()


@pytest.mark.asyncio
async def test_base_class_subscriber_receives_subclass_events():
    """A handler on ConfigurationChanged hører alle lifecycle events."""
    bus = DomainEventBus()
    received = []

    async def on_changed(event: ConfigurationChanged):
        received.append(event)

    await bus.subscribe(ConfigurationChanged, on_changed)

    created = ConfigurationCreated(client_id="client-a", configuration_id="cfg-1")
    deleted = ConfigurationDeleted(client_id="client-a", configuration_id="cfg-1")
    await bus.publish(created)
    await bus.publish(deleted)

    assert received == [created, deleted]


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    bus = DomainEventBus()
    handler_mock = Mock()

    async def async_handler(event: DomainEvent):
        handler_mock(event)

    await bus.subscribe(DomainEvent, async_handler)
    await bus.unsubscribe(DomainEvent, async_handler)
    await bus.publish(DomainEvent())

    handler_mock.assert_not_called()


@pytest.mark.asyncio
async def test_publish_with_no_subscribers():
    """Test that publishing an event with no subscribers does not raise an error."""
    bus = DomainEventBus()

    try:
        await bus.publish(DomainEvent())
    except Exception as e:
        pytest.fail(f"Publishing with no subscribers raised an exception: {e}")


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_others():
    """Test that if one handler fails, other handlers are still executed."""
    bus = DomainEventBus()

    handler_success_mock = Mock()
    handler_fail_mock = Mock()

    async def success_handler(event: DomainEvent):
        handler_success_mock(event)
        await asyncio.sleep(0.01)

    async def failing_handler(event: DomainEvent):
        handler_fail_mock(event)
        raise ValueError("Handler failed intentionally")

    await bus.subscribe(DomainEvent, failing_handler)
    await bus.subscribe(DomainEvent, success_handler)

    event_to_publish = DomainEvent()

    with patch("logging.error") as mock_log_error:
        await bus.publish(event_to_publish)

        handler_fail_mock.assert_called_once_with(event_to_publish)
        handler_success_mock.assert_called_once_with(event_to_publish)

        mock_log_error.assert_called_once()
        log_args, _ = mock_log_error.call_args
        assert "Unhandled exception in handler 'failing_handler'" in log_args[0]
        assert "Handler failed intentionally" in log_args[0]
