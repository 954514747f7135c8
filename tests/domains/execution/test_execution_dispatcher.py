import asyncio
import logging
from datetime import datetime, timezone

import pytest

from file_retrieval.core.exceptions import ConfigurationNotFoundError, ExecutionNotFoundError
from file_retrieval.domains.execution.commands import manual_trigger, scheduled_trigger
from file_retrieval.models import ExecutionStatus

logging.disable(logging.CRITICAL)

FIRE_TIME = datetime(2024, 3, 5, 8, 0, tzinfo=timezone.utc)


async def _wait_until(predicate, attempts: int = 500):
    for _ in range(attempts):
        if await predicate():
            return
        await asyncio.sleep(0.001)
    pytest.fail("Condition not reached")


@pytest.mark.asyncio
async def test_submit_creates_pending_execution_and_runs_it(harness, configuration_factory):
    configuration = await harness.add_configuration(configuration_factory())
    dispatcher = harness.dispatcher()
    dispatcher.start()

    execution = await dispatcher.submit(scheduled_trigger("client-a", configuration.id, FIRE_TIME))

    assert execution.status == ExecutionStatus.PENDING
    assert execution.is_manual is False
    assert execution.reference_instant == FIRE_TIME

    await dispatcher.wait_idle()
    stored = await harness.executions.get_by_id(execution.id)
    assert stored.status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_duplicate_key_returns_existing_execution(harness, configuration_factory):
    """Samme fire time to gange giver én execution."""
    configuration = await harness.add_configuration(configuration_factory())
    dispatcher = harness.dispatcher()

    first = await dispatcher.submit(scheduled_trigger("client-a", configuration.id, FIRE_TIME))
    await dispatcher.wait_idle()
    second = await dispatcher.submit(scheduled_trigger("client-a", configuration.id, FIRE_TIME))

    assert second.id == first.id
    assert second.status == ExecutionStatus.COMPLETED
    assert await harness.executions.count() == 1
    assert harness.adapter.list_calls == 1


@pytest.mark.asyncio
async def test_manual_triggers_are_never_deduplicated(harness, configuration_factory):
    configuration = await harness.add_configuration(configuration_factory())
    dispatcher = harness.dispatcher()

    first = await dispatcher.submit(manual_trigger("client-a", configuration.id))
    second = await dispatcher.submit(manual_trigger("client-a", configuration.id))
    await dispatcher.wait_idle()

    assert first.id != second.id
    assert first.is_manual and second.is_manual


@pytest.mark.asyncio
async def test_unknown_configuration_raises(harness):
    dispatcher = harness.dispatcher()

    with pytest.raises(ConfigurationNotFoundError):
        await dispatcher.submit(manual_trigger("client-a", "missing"))


@pytest.mark.asyncio
async def test_other_clients_configuration_is_not_found(harness, configuration_factory):
    configuration = await harness.add_configuration(configuration_factory())
    dispatcher = harness.dispatcher()

    with pytest.raises(ConfigurationNotFoundError):
        await dispatcher.submit(manual_trigger("client-b", configuration.id))


@pytest.mark.asyncio
async def test_inactive_configuration_is_ignored(harness, configuration_factory):
    configuration = await harness.add_configuration(configuration_factory(is_active=False))
    dispatcher = harness.dispatcher()

    assert await dispatcher.submit(manual_trigger("client-a", configuration.id)) is None
    assert await harness.executions.count() == 0


@pytest.mark.asyncio
async def test_same_configuration_runs_one_at_a_time(harness, configuration_factory):
    """Manuel og scheduled trigger må ikke begge være InProgress samtidig."""
    configuration = await harness.add_configuration(configuration_factory())
    harness.adapter.listing_gate = asyncio.Event()
    dispatcher = harness.dispatcher()

    first = await dispatcher.submit(scheduled_trigger("client-a", configuration.id, FIRE_TIME))
    second = await dispatcher.submit(manual_trigger("client-a", configuration.id))

    async def first_is_listing():
        return harness.adapter.list_calls == 1

    await _wait_until(first_is_listing)
    await asyncio.sleep(0.01)

    assert (await harness.executions.get_by_id(first.id)).status == ExecutionStatus.IN_PROGRESS
    assert (await harness.executions.get_by_id(second.id)).status == ExecutionStatus.PENDING
    assert harness.adapter.list_calls == 1

    harness.adapter.listing_gate.set()
    await dispatcher.wait_idle()

    first_done = await harness.executions.get_by_id(first.id)
    second_done = await harness.executions.get_by_id(second.id)
    assert first_done.status == ExecutionStatus.COMPLETED
    assert second_done.status == ExecutionStatus.COMPLETED
    assert second_done.started_at >= first_done.completed_at


@pytest.mark.asyncio
async def test_concurrency_is_bounded_across_configurations(settings, harness_factory, configuration_factory):
    harness = harness_factory(settings.model_copy(update={"max_concurrent_checks": 2}))
    harness.adapter.listing_gate = asyncio.Event()
    configurations = [
        await harness.add_configuration(configuration_factory(name=f"cfg {i}")) for i in range(4)
    ]
    dispatcher = harness.dispatcher()

    for configuration in configurations:
        await dispatcher.submit(manual_trigger("client-a", configuration.id))

    async def two_listing():
        return harness.adapter.list_calls == 2

    await _wait_until(two_listing)
    await asyncio.sleep(0.01)
    assert harness.adapter.list_calls == 2

    harness.adapter.listing_gate.set()
    await dispatcher.wait_idle()
    assert harness.adapter.list_calls == 4


@pytest.mark.asyncio
async def test_cancel_pending_execution(harness, configuration_factory):
    configuration = await harness.add_configuration(configuration_factory())
    harness.adapter.listing_gate = asyncio.Event()
    dispatcher = harness.dispatcher()

    await dispatcher.submit(scheduled_trigger("client-a", configuration.id, FIRE_TIME))
    queued = await dispatcher.submit(manual_trigger("client-a", configuration.id))

    cancelled = await dispatcher.cancel("client-a", queued.id)

    assert cancelled.status == ExecutionStatus.FAILED
    assert cancelled.error_category == "Cancelled"
    assert cancelled.started_at is None

    harness.adapter.listing_gate.set()
    await dispatcher.wait_idle()


@pytest.mark.asyncio
async def test_cancel_running_execution(harness, configuration_factory):
    configuration = await harness.add_configuration(configuration_factory())
    harness.adapter.listing_gate = asyncio.Event()
    dispatcher = harness.dispatcher()

    execution = await dispatcher.submit(manual_trigger("client-a", configuration.id))

    async def listing():
        return harness.adapter.list_calls == 1

    await _wait_until(listing)
    cancelled = await dispatcher.cancel("client-a", execution.id)

    assert cancelled.status == ExecutionStatus.FAILED
    assert cancelled.error_category == "Cancelled"
    assert cancelled.started_at is not None
    assert dispatcher.active_count == 0


@pytest.mark.asyncio
async def test_cancel_terminal_execution_is_noop(harness, configuration_factory):
    configuration = await harness.add_configuration(configuration_factory())
    dispatcher = harness.dispatcher()
    execution = await dispatcher.submit(manual_trigger("client-a", configuration.id))
    await dispatcher.wait_idle()

    result = await dispatcher.cancel("client-a", execution.id)

    assert result.status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_cancel_unknown_execution_raises(harness):
    with pytest.raises(ExecutionNotFoundError):
        await harness.dispatcher().cancel("client-a", "missing")


@pytest.mark.asyncio
async def test_stop_cancels_everything_in_flight(harness, configuration_factory):
    configuration = await harness.add_configuration(configuration_factory())
    harness.adapter.listing_gate = asyncio.Event()
    dispatcher = harness.dispatcher()
    dispatcher.start()

    running = await dispatcher.submit(scheduled_trigger("client-a", configuration.id, FIRE_TIME))
    queued = await dispatcher.submit(manual_trigger("client-a", configuration.id))
    await asyncio.sleep(0.01)

    await dispatcher.stop()

    assert not dispatcher.is_running
    for execution_id in (running.id, queued.id):
        stored = await harness.executions.get_by_id(execution_id)
        assert stored.status == ExecutionStatus.FAILED
        assert stored.error_category == "Cancelled"


@pytest.mark.asyncio
async def test_queued_trigger_does_not_block_other_configurations(settings, harness_factory, configuration_factory):
    """En ventende trigger for config A må ikke optage en plads som config B skal bruge."""
    harness = harness_factory(settings.model_copy(update={"max_concurrent_checks": 2}))
    harness.adapter.listing_gate = asyncio.Event()
    busy = await harness.add_configuration(configuration_factory(name="busy"))
    other = await harness.add_configuration(configuration_factory(name="other"))
    dispatcher = harness.dispatcher()

    # Arrange: A kører og A venter i kø
    running = await dispatcher.submit(scheduled_trigger("client-a", busy.id, FIRE_TIME))
    queued = await dispatcher.submit(manual_trigger("client-a", busy.id))

    async def busy_is_listing():
        return harness.adapter.list_calls == 1

    await _wait_until(busy_is_listing)

    # Act
    independent = await dispatcher.submit(manual_trigger("client-a", other.id))

    async def other_is_listing():
        return harness.adapter.list_calls == 2

    await _wait_until(other_is_listing)

    # Assert
    assert (await harness.executions.get_by_id(running.id)).status == ExecutionStatus.IN_PROGRESS
    assert (await harness.executions.get_by_id(queued.id)).status == ExecutionStatus.PENDING
    assert (await harness.executions.get_by_id(independent.id)).status == ExecutionStatus.IN_PROGRESS

    harness.adapter.listing_gate.set()
    await dispatcher.wait_idle()
    assert harness.adapter.list_calls == 3


@pytest.mark.asyncio
async def test_configuration_locks_are_released_when_idle(harness, configuration_factory):
    first = await harness.add_configuration(configuration_factory(name="first"))
    second = await harness.add_configuration(configuration_factory(name="second"))
    harness.adapter.listing_gate = asyncio.Event()
    dispatcher = harness.dispatcher()

    await dispatcher.submit(manual_trigger("client-a", first.id))
    await dispatcher.submit(manual_trigger("client-a", first.id))
    await dispatcher.submit(manual_trigger("client-a", second.id))
    await asyncio.sleep(0.01)
    assert dispatcher.tracked_configuration_count == 2

    harness.adapter.listing_gate.set()
    await dispatcher.wait_idle()

    assert dispatcher.tracked_configuration_count == 0


@pytest.mark.asyncio
async def test_cancelled_queued_execution_releases_lock(harness, configuration_factory):
    configuration = await harness.add_configuration(configuration_factory())
    harness.adapter.listing_gate = asyncio.Event()
    dispatcher = harness.dispatcher()

    await dispatcher.submit(manual_trigger("client-a", configuration.id))
    queued = await dispatcher.submit(manual_trigger("client-a", configuration.id))
    await asyncio.sleep(0.01)
    await dispatcher.cancel("client-a", queued.id)

    harness.adapter.listing_gate.set()
    await dispatcher.wait_idle()

    assert dispatcher.tracked_configuration_count == 0
