"""
Request bodies shared by the routers and the script service.

Field names on the wire are camelCase, matching the desktop editor's
script objects; Python attributes are snake_case.
"""
from pydantic import BaseModel, ConfigDict, Field


class ScriptPayload(BaseModel):
    """One script as sent by the client. id is optional on create."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(None, max_length=255)
    name: str = Field(..., min_length=1, max_length=1024)
    content: str
    date: str | None = Field(None, max_length=255)
    # epoch millis; bounded to what a signed 64-bit column holds
    time: int | None = Field(None, ge=0, le=2**63 - 1)
    is_version: bool | None = Field(False, alias="isVersion")
    parent_id: str | None = Field(None, alias="parentId", max_length=255)
    version_id: str | None = Field(None, alias="versionId", max_length=255)


class CredentialsBody(BaseModel):
    """Register and login body. Presence and length are checked by the service."""

    email: str | None = None
    password: str | None = None
