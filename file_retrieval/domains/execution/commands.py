"""
Execution Domain Commands
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from file_retrieval.core.cqrs.command import Command
from file_retrieval.models import new_id, utcnow


@dataclass
class TriggerExecutionCommand(Command):
    """
    Request to run a configuration's check.

    Scheduled triggers use the key "{client}:{config}:scheduled:{fire time}",
    manual triggers "{client}:{config}:manual:{uuid}".
    """
    client_id: str
    configuration_id: str
    reference_instant: datetime
    is_manual: bool
    idempotency_key: str
    correlation_id: str = field(default_factory=new_id)


@dataclass
class CancelExecutionCommand(Command):
    client_id: str
    execution_id: str


def scheduled_trigger(
    client_id: str, configuration_id: str, fire_time: datetime
) -> TriggerExecutionCommand:
    return TriggerExecutionCommand(
        client_id=client_id,
        configuration_id=configuration_id,
        reference_instant=fire_time,
        is_manual=False,
        idempotency_key=f"{client_id}:{configuration_id}:scheduled:{fire_time.isoformat()}",
    )


def manual_trigger(
    client_id: str, configuration_id: str, reference_instant: Optional[datetime] = None
) -> TriggerExecutionCommand:
    return TriggerExecutionCommand(
        client_id=client_id,
        configuration_id=configuration_id,
        reference_instant=reference_instant or utcnow(),
        is_manual=True,
        idempotency_key=f"{client_id}:{configuration_id}:manual:{new_id()}",
    )
