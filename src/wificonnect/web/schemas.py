"""Pydantic schemas for portal API request/response validation."""

from pydantic import BaseModel, Field


# =============================================================================
# Request Schemas
# =============================================================================


class ConnectRequest(BaseModel):
    """Network join request sent by the portal UI."""

    ssid: str = Field(..., min_length=1, max_length=32)
    passphrase: str = Field(default="")  # enterprise passwords may exceed 63
    identity: str = Field(default="")


# =============================================================================
# Response Schemas
# =============================================================================


class NetworkInfo(BaseModel):
    """A visible network as shown in the portal UI."""

    ssid: str
    security: str


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
