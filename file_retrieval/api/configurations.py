import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from file_retrieval.core.cqrs.command_bus import CommandBus
from file_retrieval.core.cqrs.query_bus import QueryBus
from file_retrieval.dependencies import get_command_bus, get_query_bus
from file_retrieval.domains.configuration.commands import (
    CreateConfigurationCommand,
    DeactivateConfigurationCommand,
    DeleteConfigurationCommand,
    UpdateConfigurationCommand,
)
from file_retrieval.domains.configuration.queries import GetConfigurationQuery, ListConfigurationsQuery
from file_retrieval.domains.configuration.schemas import ConfigurationInput, ConfigurationUpdateInput
from file_retrieval.domains.execution.commands import manual_trigger
from file_retrieval.models import Configuration, Execution

from .errors import to_http_exception

router = APIRouter(prefix="/api/clients/{client_id}/configurations", tags=["configurations"])


class ManualTriggerRequest(BaseModel):
    reference_instant: Optional[datetime] = None


@router.post("", response_model=Configuration, status_code=status.HTTP_201_CREATED)
async def create_configuration(
    client_id: str,
    body: ConfigurationInput,
    command_bus: CommandBus = Depends(get_command_bus),
) -> Configuration:
    try:
        configuration = await command_bus.execute(CreateConfigurationCommand(client_id=client_id, data=body))
    except Exception as e:
        raise to_http_exception(e) from e

    logging.info(f"API: Configuration {configuration.id} oprettet for {client_id}")
    return configuration


@router.get("", response_model=List[Configuration])
async def list_configurations(
    client_id: str,
    include_inactive: bool = True,
    query_bus: QueryBus = Depends(get_query_bus),
) -> List[Configuration]:
    try:
        return await query_bus.execute(
            ListConfigurationsQuery(client_id=client_id, include_inactive=include_inactive)
        )
    except Exception as e:
        raise to_http_exception(e) from e


@router.get("/{configuration_id}", response_model=Configuration)
async def get_configuration(
    client_id: str,
    configuration_id: str,
    query_bus: QueryBus = Depends(get_query_bus),
) -> Configuration:
    try:
        return await query_bus.execute(GetConfigurationQuery(client_id=client_id, configuration_id=configuration_id))
    except Exception as e:
        raise to_http_exception(e) from e


@router.put("/{configuration_id}", response_model=Configuration)
async def update_configuration(
    client_id: str,
    configuration_id: str,
    body: ConfigurationUpdateInput,
    command_bus: CommandBus = Depends(get_command_bus),
) -> Configuration:
    """
    Replace a configuration.

    HTTP Status Codes:
        200: Updated
        400: Validation failed
        404: Unknown configuration
        409: body.version is not the current version
    """
    command = UpdateConfigurationCommand(
        client_id=client_id,
        configuration_id=configuration_id,
        data=body,
        expected_version=body.version,
    )
    try:
        return await command_bus.execute(command)
    except Exception as e:
        raise to_http_exception(e) from e


@router.post("/{configuration_id}/deactivate", response_model=Configuration)
async def deactivate_configuration(
    client_id: str,
    configuration_id: str,
    command_bus: CommandBus = Depends(get_command_bus),
) -> Configuration:
    try:
        return await command_bus.execute(
            DeactivateConfigurationCommand(client_id=client_id, configuration_id=configuration_id)
        )
    except Exception as e:
        raise to_http_exception(e) from e


@router.delete("/{configuration_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_configuration(
    client_id: str,
    configuration_id: str,
    command_bus: CommandBus = Depends(get_command_bus),
) -> Response:
    try:
        await command_bus.execute(DeleteConfigurationCommand(client_id=client_id, configuration_id=configuration_id))
    except Exception as e:
        raise to_http_exception(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{configuration_id}/trigger", response_model=Execution, status_code=status.HTTP_202_ACCEPTED)
async def trigger_configuration(
    client_id: str,
    configuration_id: str,
    body: Optional[ManualTriggerRequest] = None,
    command_bus: CommandBus = Depends(get_command_bus),
) -> Execution:
    """Start a manual check now. The execution runs in the background."""
    reference_instant = body.reference_instant if body else None
    command = manual_trigger(client_id, configuration_id, reference_instant)
    try:
        execution = await command_bus.execute(command)
    except Exception as e:
        raise to_http_exception(e) from e

    if execution is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Configuration {configuration_id} is inactive",
        )
    logging.info(f"API: Manuel trigger af {configuration_id} -> execution {execution.id}")
    return execution
