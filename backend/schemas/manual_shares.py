"""
Pydantic models for manual share endpoints.

Manual shares give one user or role access to one record. They are
created by the record owner (or an admin) and may expire.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from backend.schemas.sharing import (
    ManualShare,
    ManualShareWithType,
    RecordAccessLevel,
    RecordSharingInfo,
)


class ManualShareListResponse(BaseModel):
    """Every manual share of a record, expired ones included."""
    shares: List[ManualShare] = Field(..., description="Manual shares of the record")
    count: int = Field(..., description="Number of shares returned")


class ManualShareCreateRequest(BaseModel):
    """Request model for sharing a record."""
    share_with_type: ManualShareWithType = Field(..., description="Target kind: user or role")
    share_with_id: str = Field(..., min_length=1, description="Target user or role UUID")
    access_level: RecordAccessLevel = Field(..., description="Level to grant")
    reason: Optional[str] = Field(None, max_length=500, description="Shown as the grant's source name")
    expires_at: Optional[datetime] = Field(None, description="Grant stops applying after this time")


class ManualShareUpdateRequest(BaseModel):
    """Partial update; at least one field must be provided. Null clears reason or expires_at."""
    access_level: Optional[RecordAccessLevel] = None
    reason: Optional[str] = Field(None, max_length=500)
    expires_at: Optional[datetime] = None


class ManualShareMutationResponse(BaseModel):
    """Response for a successful create or update."""
    status: Literal["CREATED", "UPDATED"] = Field(..., description="Status indicator")
    share: ManualShare = Field(..., description="The share after the change")
    message: str = Field(..., description="Success message")


class ManualShareDeleteResponse(BaseModel):
    """Response for a revoked share."""
    status: Literal["DELETED"] = Field(..., description="Status indicator")
    share_id: str = Field(..., description="Deleted share UUID")
    message: str = Field(..., description="Success message")


class RecordSharingInfoResponse(BaseModel):
    """Users who currently have access to a record through ownership or manual shares."""
    object_api_name: str = Field(..., description="Object API name of the record")
    record_id: str = Field(..., description="Record UUID")
    entries: List[RecordSharingInfo] = Field(..., description="One entry per user and access source")
    count: int = Field(..., description="Number of entries returned")
