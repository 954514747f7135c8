import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from file_retrieval.core.configuration_repository import ConfigurationRepository
from file_retrieval.core.events.configuration_events import (
    ConfigurationCreated,
    ConfigurationDeactivated,
    ConfigurationDeleted,
    ConfigurationUpdated,
)
from file_retrieval.core.events.event_bus import DomainEventBus
from file_retrieval.core.exceptions import (
    ConcurrencyConflictError,
    ConfigurationNotFoundError,
    ConfigurationValidationError,
)
from file_retrieval.domains.configuration.schemas import ConfigurationInput
from file_retrieval.domains.configuration.service import ConfigurationService
from file_retrieval.models import BlobSettings, FtpSettings, HttpsSettings, ProtocolKind

logging.disable(logging.CRITICAL)

NOW = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


def make_input(**overrides) -> ConfigurationInput:
    values = dict(
        name="Daily ACH",
        protocol=ProtocolKind.FTP,
        protocol_settings=FtpSettings(server="ftp.example.com", username="intake", password_secret="ftp-password"),
        file_path_pattern="/inbound/{yyyy}/{mm}",
        filename_pattern="ach_{yyyy}{mm}{dd}.csv",
        cron_expression="0 8 * * *",
    )
    values.update(overrides)
    return ConfigurationInput(**values)


@pytest.fixture
def repository() -> ConfigurationRepository:
    return ConfigurationRepository()


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    return AsyncMock(spec=DomainEventBus)


@pytest.fixture
def service(repository, mock_event_bus) -> ConfigurationService:
    return ConfigurationService(repository, mock_event_bus, clock=lambda: NOW)


def _published(mock_event_bus: AsyncMock):
    return [c.args[0] for c in mock_event_bus.publish.call_args_list]


@pytest.mark.asyncio
async def test_create_stores_and_announces(service, repository, mock_event_bus):
    # Act
    configuration = await service.create("client-a", make_input(), created_by="alice")

    # Assert
    stored = await repository.get("client-a", configuration.id)
    assert stored is not None
    assert stored.version == 1
    assert stored.created_by == "alice"
    assert stored.created_at == NOW
    assert stored.is_active

    (event,) = _published(mock_event_bus)
    assert isinstance(event, ConfigurationCreated)
    assert event.configuration_id == configuration.id
    assert event.client_id == "client-a"


@pytest.mark.asyncio
async def test_get_is_scoped_by_client(service):
    configuration = await service.create("client-a", make_input(), created_by="alice")

    with pytest.raises(ConfigurationNotFoundError):
        await service.get("client-b", configuration.id)


@pytest.mark.asyncio
async def test_list_filters_inactive(service):
    active = await service.create("client-a", make_input(name="active"), created_by="alice")
    await service.create("client-a", make_input(name="inactive", is_active=False), created_by="alice")
    await service.create("client-b", make_input(name="other client"), created_by="bob")

    assert len(await service.list("client-a")) == 2
    assert [c.id for c in await service.list("client-a", include_inactive=False)] == [active.id]


@pytest.mark.asyncio
async def test_update_bumps_version_and_announces(service, mock_event_bus):
    configuration = await service.create("client-a", make_input(), created_by="alice")

    updated = await service.update(
        "client-a", configuration.id, make_input(cron_expression="30 9 * * 1-5"), expected_version=1, modified_by="bob"
    )

    assert updated.version == 2
    assert updated.cron_expression == "30 9 * * 1-5"
    assert updated.last_modified_by == "bob"
    assert updated.created_by == "alice"
    assert updated.id == configuration.id
    event = _published(mock_event_bus)[-1]
    assert isinstance(event, ConfigurationUpdated)
    assert event.version == 2


@pytest.mark.asyncio
async def test_update_with_stale_version_conflicts(service):
    configuration = await service.create("client-a", make_input(), created_by="alice")
    await service.update("client-a", configuration.id, make_input(name="v2"), expected_version=1, modified_by="bob")

    with pytest.raises(ConcurrencyConflictError) as e:
        await service.update("client-a", configuration.id, make_input(name="v3"), expected_version=1, modified_by="eve")

    assert e.value.expected == 1
    assert e.value.actual == 2
    assert (await service.get("client-a", configuration.id)).name == "v2"


@pytest.mark.asyncio
async def test_update_unknown_configuration(service):
    with pytest.raises(ConfigurationNotFoundError):
        await service.update("client-a", "missing", make_input(), expected_version=1, modified_by="bob")


@pytest.mark.asyncio
async def test_deactivate(service, mock_event_bus):
    configuration = await service.create("client-a", make_input(), created_by="alice")

    deactivated = await service.deactivate("client-a", configuration.id, modified_by="bob")

    assert deactivated.is_active is False
    assert deactivated.version == 2
    assert isinstance(_published(mock_event_bus)[-1], ConfigurationDeactivated)


@pytest.mark.asyncio
async def test_deactivate_twice_is_a_no_op(service, mock_event_bus):
    configuration = await service.create("client-a", make_input(), created_by="alice")
    await service.deactivate("client-a", configuration.id, modified_by="bob")

    again = await service.deactivate("client-a", configuration.id, modified_by="bob")

    assert again.version == 2
    assert mock_event_bus.publish.await_count == 2


@pytest.mark.asyncio
async def test_delete(service, mock_event_bus):
    configuration = await service.create("client-a", make_input(), created_by="alice")

    await service.delete("client-a", configuration.id)

    assert isinstance(_published(mock_event_bus)[-1], ConfigurationDeleted)
    with pytest.raises(ConfigurationNotFoundError):
        await service.get("client-a", configuration.id)
    with pytest.raises(ConfigurationNotFoundError):
        await service.delete("client-a", configuration.id)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"file_path_pattern": "/inbound/{yyyy}/{week}"}, "file_path_pattern"),
        ({"filename_pattern": "ach_{yyyy.csv"}, "filename_pattern"),
        ({"cron_expression": "0 8 * *"}, "cron_expression"),
        ({"cron_expression": "0 25 * * *"}, "cron_expression"),
        ({"timezone": "Mars/Olympus_Mons"}, "timezone"),
        ({"file_extension": "*"}, "file_extension"),
        ({"file_extension": "."}, "file_extension"),
        (
            {
                "protocol_settings": FtpSettings(
                    server="ftp-{yyyy}.example.com", username="intake", password_secret="ftp-password"
                )
            },
            "protocol_settings.server",
        ),
        (
            {
                "protocol": ProtocolKind.HTTPS,
                "protocol_settings": HttpsSettings(base_url="https://{yyyy}.files.example.com"),
            },
            "protocol_settings.base_url",
        ),
        (
            {
                "protocol": ProtocolKind.AZURE_BLOB,
                "protocol_settings": BlobSettings(storage_account_name="intake", container_name="drop-{yyyy}"),
            },
            "protocol_settings.container_name",
        ),
    ],
)
async def test_invalid_configurations_are_rejected(service, repository, mock_event_bus, overrides, field):
    with pytest.raises(ConfigurationValidationError) as e:
        await service.create("client-a", make_input(**overrides), created_by="alice")

    assert e.value.field == field
    assert await repository.count() == 0
    mock_event_bus.publish.assert_not_called()


@pytest.mark.asyncio
async def test_protocol_must_match_settings(service):
    with pytest.raises(ConfigurationValidationError):
        await service.create("client-a", make_input(protocol=ProtocolKind.HTTPS), created_by="alice")


@pytest.mark.asyncio
async def test_extension_with_leading_dot_is_accepted(service):
    configuration = await service.create("client-a", make_input(file_extension=".csv"), created_by="alice")

    assert configuration.file_extension == ".csv"


@pytest.mark.asyncio
async def test_invalid_update_leaves_stored_configuration_untouched(service, mock_event_bus):
    configuration = await service.create("client-a", make_input(), created_by="alice")

    with pytest.raises(ConfigurationValidationError):
        await service.update(
            "client-a", configuration.id, make_input(cron_expression="bogus"), expected_version=1, modified_by="bob"
        )

    stored = await service.get("client-a", configuration.id)
    assert stored.version == 1
    assert stored.cron_expression == "0 8 * * *"
    assert mock_event_bus.publish.await_count == 1
