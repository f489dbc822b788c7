from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class FunctionSummary(BaseModel):
    """
    Provider-neutral description of one deployed function.

    Immutable once received; a refresh replaces the whole list.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Function name (unique within provider + region)")
    runtime: str = Field(default="", description="Runtime identifier (python3.12, nodejs20...)")
    memory: int = Field(default=0, ge=0, description="Memory size in MB")
    timeout: int = Field(default=0, ge=0, description="Timeout in seconds")
    handler: str = Field(default="", description="Handler / entry point")
    last_modified: str = Field(default="", description="Provider-native last modified timestamp")
    resource_id: str = Field(default="", description="ARN or fully-qualified resource name")
    description: str = Field(default="", description="Function description")
    role: str = Field(default="", description="Execution role / service account")
    environment: Dict[str, str] = Field(default_factory=dict, description="Environment variables")
    region: str = Field(default="", description="Region or location")
