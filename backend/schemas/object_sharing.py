"""
Pydantic models for object sharing settings endpoints.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from backend.schemas.sharing import SharingModel, SharingRule


class ObjectSharingSettingsResponse(BaseModel):
    """An object's organization-wide default and its active rules."""
    object_api_name: str = Field(..., description="Object API name")
    object_label: Optional[str] = Field(None, description="Object display label")
    sharing_model: SharingModel = Field(..., description="Organization-wide default")
    sharing_model_display_name: str = Field(..., description="e.g. 'Public Read Only'")
    sharing_model_description: str = Field(..., description="What the default means for users")
    sharing_rules: List[SharingRule] = Field(..., description="Active sharing rules")


class SharingModelUpdateRequest(BaseModel):
    """Request model for changing an object's organization-wide default."""
    sharing_model: SharingModel = Field(..., description="New organization-wide default")


class ShareTargetUser(BaseModel):
    id: str
    full_name: Optional[str] = None
    email: str


class ShareTargetRole(BaseModel):
    id: str
    name: str


class ShareTargetsResponse(BaseModel):
    """Users and roles that can receive a share."""
    users: List[ShareTargetUser] = Field(..., description="Active users")
    roles: List[ShareTargetRole] = Field(..., description="Roles")
