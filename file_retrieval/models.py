from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class ProtocolKind(str, Enum):
    FTP = "FTP"
    HTTPS = "HTTPS"
    AZURE_BLOB = "AzureBlob"


class HttpsAuthType(str, Enum):
    NONE = "None"
    USERNAME_PASSWORD = "UsernamePassword"
    BEARER_TOKEN = "BearerToken"
    API_KEY = "ApiKey"


class BlobAuthType(str, Enum):
    CONNECTION_STRING = "ConnectionString"
    MANAGED_IDENTITY = "ManagedIdentity"
    SERVICE_PRINCIPAL = "ServicePrincipal"
    SAS_TOKEN = "SasToken"


class ExecutionStatus(str, Enum):
    """
    Status for en execution af et file check.

    Workflow: Pending -> InProgress -> Completed | Failed
    Cancellation: Pending -> Failed (category Cancelled)
    """

    PENDING = "Pending"  # Trigger accepteret, venter på tur
    IN_PROGRESS = "InProgress"  # Engine kører checket
    COMPLETED = "Completed"  # Listing lykkedes (også med 0 filer)
    FAILED = "Failed"  # Retry budget opbrugt, ikke-transient fejl eller cancelled

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class DiscoveryStatus(str, Enum):
    DISCOVERED = "Discovered"
    EVENT_PUBLISHED = "EventPublished"
    COMMAND_SENT = "CommandSent"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DiscoveryStatus.COMPLETED, DiscoveryStatus.FAILED)


# --- Protocol settings (tagged union on "protocol") ---


class FtpSettings(BaseModel):
    protocol: Literal[ProtocolKind.FTP] = ProtocolKind.FTP
    server: str = Field(..., min_length=1, max_length=255)
    port: int = Field(default=21, ge=1, le=65535)
    username: str = Field(..., min_length=1, max_length=100)
    password_secret: str = Field(
        ..., min_length=1, description="Credential reference for the FTP password"
    )
    use_tls: bool = True
    use_passive_mode: bool = True
    connection_timeout_seconds: float = Field(default=30.0, gt=0.0)

    @property
    def server_address(self) -> str:
        return self.server


class HttpsSettings(BaseModel):
    protocol: Literal[ProtocolKind.HTTPS] = ProtocolKind.HTTPS
    base_url: str = Field(..., min_length=1, max_length=500)
    auth_type: HttpsAuthType = HttpsAuthType.NONE
    username_or_api_key: Optional[str] = Field(default=None, max_length=200)
    password_or_token_secret: Optional[str] = Field(default=None, max_length=200)
    connection_timeout_seconds: float = Field(default=30.0, gt=0.0)
    follow_redirects: bool = True
    max_redirects: int = Field(default=3, ge=0, le=10)

    @field_validator("base_url")
    @classmethod
    def _https_only(cls, value: str) -> str:
        if not value.lower().startswith("https://"):
            raise ValueError("base_url must start with https://")
        return value

    @property
    def server_address(self) -> str:
        return self.base_url


class BlobSettings(BaseModel):
    protocol: Literal[ProtocolKind.AZURE_BLOB] = ProtocolKind.AZURE_BLOB
    storage_account_name: str = Field(..., min_length=1, max_length=24)
    container_name: str = Field(..., min_length=1, max_length=63)
    auth_type: BlobAuthType = BlobAuthType.MANAGED_IDENTITY
    connection_string_secret: Optional[str] = None
    sas_token_secret: Optional[str] = None
    blob_prefix: Optional[str] = Field(default=None, max_length=1024)

    @field_validator("container_name")
    @classmethod
    def _lowercase_container(cls, value: str) -> str:
        if value != value.lower():
            raise ValueError("container_name must be lowercase")
        return value

    @model_validator(mode="after")
    def _auth_secrets_present(self) -> "BlobSettings":
        if self.auth_type == BlobAuthType.CONNECTION_STRING and not self.connection_string_secret:
            raise ValueError("connection_string_secret is required for ConnectionString auth")
        if self.auth_type == BlobAuthType.SAS_TOKEN and not self.sas_token_secret:
            raise ValueError("sas_token_secret is required for SasToken auth")
        return self

    @property
    def account_url(self) -> str:
        return f"https://{self.storage_account_name}.blob.core.windows.net"

    @property
    def server_address(self) -> str:
        return f"{self.account_url}/{self.container_name}"


ProtocolSettings = Annotated[
    Union[FtpSettings, HttpsSettings, BlobSettings], Field(discriminator="protocol")
]


class CommandDefinition(BaseModel):
    """A downstream command sent once per newly discovered file."""

    command_type: str = Field(..., min_length=1, max_length=200)
    target_endpoint: str = Field(..., min_length=1, max_length=200)
    command_data: Dict[str, Any] = Field(default_factory=dict)


# --- Entities ---


class Configuration(BaseModel):
    """
    En klients regel for hvor, hvornår og hvordan der ledes efter filer.

    Root entity: Execution og DiscoveredFile refererer hertil via id.
    """

    id: str = Field(default_factory=new_id)
    client_id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)

    protocol: ProtocolKind
    protocol_settings: ProtocolSettings

    file_path_pattern: str = Field(..., min_length=1, max_length=500)
    filename_pattern: str = Field(..., min_length=1, max_length=200)
    file_extension: Optional[str] = Field(default=None, max_length=10)

    cron_expression: str = Field(..., min_length=1)
    timezone: str = Field(default="UTC", min_length=1)

    is_active: bool = True

    event_data: Dict[str, Any] = Field(default_factory=dict)
    command_definitions: List[CommandDefinition] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utcnow)
    created_by: str = Field(default="system")
    last_modified_at: Optional[datetime] = None
    last_modified_by: Optional[str] = None
    last_executed_at: Optional[datetime] = None

    version: int = Field(default=1, ge=1, description="Compare-and-swap token")

    @model_validator(mode="after")
    def _protocol_matches_settings(self) -> "Configuration":
        if self.protocol_settings.protocol != self.protocol:
            raise ValueError(
                f"protocol_settings type {self.protocol_settings.protocol.value} "
                f"does not match protocol {self.protocol.value}"
            )
        return self


class Execution(BaseModel):
    """
    Én kørsel af en configurations check.

    Oprettes som Pending af dispatcheren og muteres herefter kun af
    ExecutionStateMachine. Immutable når status er terminal.
    """

    id: str = Field(default_factory=new_id)
    configuration_id: str
    client_id: str

    status: ExecutionStatus = ExecutionStatus.PENDING

    reference_instant: datetime = Field(
        ..., description="Instant used to resolve patterns and the discovery day"
    )
    is_manual: bool = False
    idempotency_key: str
    correlation_id: str

    queued_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    files_found: int = Field(default=0, ge=0)
    files_processed: int = Field(default=0, ge=0)

    resolved_file_path_pattern: Optional[str] = None
    resolved_filename_pattern: Optional[str] = None

    duration_ms: int = Field(default=0, ge=0)
    retry_count: int = Field(default=0, ge=0)

    error_message: Optional[str] = Field(default=None, max_length=5000)
    error_category: Optional[str] = Field(default=None, max_length=100)

    version: int = Field(default=1, ge=1)

    @property
    def triggered_by(self) -> str:
        return "manual-api" if self.is_manual else "scheduler"

    def validate_invariants(self) -> None:
        """Raise ValueError if the record breaks one of the execution invariants."""
        if self.files_processed > self.files_found:
            raise ValueError("files_processed cannot exceed files_found")
        if self.status.is_terminal != (self.completed_at is not None):
            raise ValueError("completed_at must be set exactly when status is terminal")
        if (self.status == ExecutionStatus.FAILED) != bool(self.error_message):
            raise ValueError("error_message must be set exactly when status is Failed")
        if self.completed_at and self.started_at and self.completed_at < self.started_at:
            raise ValueError("completed_at cannot be before started_at")


class DiscoveredFile(BaseModel):
    """Én fil set for første gang på en given discovery-dag."""

    id: str = Field(default_factory=new_id)
    configuration_id: str
    execution_id: str
    client_id: str

    file_url: str
    filename: str
    file_size: Optional[int] = Field(default=None, ge=0)
    last_modified: Optional[datetime] = None

    discovered_at: datetime = Field(default_factory=utcnow)
    discovery_date: date
    status: DiscoveryStatus = DiscoveryStatus.DISCOVERED

    event_published_at: Optional[datetime] = None
    command_sent_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def ledger_key(self) -> Tuple[str, str, date]:
        return (self.configuration_id, self.filename, self.discovery_date)


class ProcessedFileRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    client_id: str
    configuration_id: str
    execution_id: str
    discovered_file_id: str
    file_url: str
    filename: str
    protocol: ProtocolKind
    downloaded_size_bytes: int = Field(..., ge=0)
    checksum_algorithm: str
    checksum_hex: str
    correlation_id: str
    idempotency_key: str
    processed_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)


class CandidateFile(BaseModel):
    """A file reported by a protocol adapter's listing."""

    file_url: str
    filename: str
    file_size: Optional[int] = Field(default=None, ge=0)
    last_modified: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class FetchedContent(BaseModel):
    candidate: CandidateFile
    data: bytes

    model_config = ConfigDict(frozen=True)

    @property
    def size(self) -> int:
        return len(self.data)
