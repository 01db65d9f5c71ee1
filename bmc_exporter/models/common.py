from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HostRequest(BaseModel):
    """Body of the ignored list operations."""
    host: str = Field(..., min_length=1, description="BMC hostname as shown by GET /ignored")


class IgnoredDeviceResponse(BaseModel):
    host: str
    endpoint: str
    model: str = ""
    credential_profile: str = ""
    added_at: datetime


class ConnectionTestResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    host: str
    connection_test: bool = Field(..., alias="connectionTest")
    error: Optional[str] = None


class RemoveResponse(BaseModel):
    host: str
    removed: bool = True


class VerbosityResponse(BaseModel):
    verbosity: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None


class InfoResponse(BaseModel):
    version: str
    python_version: str
    vault_configured: bool
    credential_profiles: List[str]
    ignored_hosts: int
    settings: Dict[str, object]
