"""
Input models for creating and updating configurations.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from file_retrieval.models import CommandDefinition, ProtocolKind, ProtocolSettings


class ConfigurationInput(BaseModel):
    """Everything a client may set on a configuration. Audit fields and version are server-owned."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    protocol: ProtocolKind
    protocol_settings: ProtocolSettings
    file_path_pattern: str = Field(..., min_length=1, max_length=500)
    filename_pattern: str = Field(..., min_length=1, max_length=200)
    file_extension: Optional[str] = Field(default=None, max_length=10)
    cron_expression: str = Field(..., min_length=1, max_length=100)
    timezone: str = Field(default="UTC", min_length=1, max_length=100)
    is_active: bool = True
    event_data: Dict[str, Any] = Field(default_factory=dict)
    command_definitions: List[CommandDefinition] = Field(default_factory=list)


class ConfigurationUpdateInput(ConfigurationInput):
    version: int = Field(..., ge=1, description="Version the caller last read")
