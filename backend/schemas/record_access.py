"""
Pydantic models for record access endpoints.

- GET /records/{object_api_name}/{record_id}/access
- GET /records/{object_api_name}/{record_id}/security-context
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from backend.schemas.sharing import AccessSource, RecordAccessLevel


class AccessGrantResponse(BaseModel):
    """One grant that contributed to the decision, with display labels."""
    source: AccessSource = Field(..., description="Grant source")
    source_description: str = Field(..., description="Human-readable source, e.g. 'Granted by sharing rule'")
    level: RecordAccessLevel = Field(..., description="Level granted by this source")
    level_description: str = Field(..., description="Human-readable level, e.g. 'Read/Write'")
    source_id: Optional[str] = Field(None, description="Sharing rule or manual share UUID")
    source_name: Optional[str] = Field(None, description="Rule name, share reason, or fixed label")


class RecordAccessResponse(BaseModel):
    """
    Access decision for the authenticated user on one record.

    has_access reflects the requested access_type (read or write);
    access_level is the highest level granted regardless of access_type.
    """
    object_api_name: str = Field(..., description="Object API name (e.g. 'Contact')")
    record_id: str = Field(..., description="Record UUID")
    access_type: Literal["read", "write"] = Field(..., description="Access that was checked")
    has_access: bool = Field(..., description="Whether access_type is satisfied")
    access_level: Optional[RecordAccessLevel] = Field(None, description="Highest level granted")
    access_level_description: Optional[str] = Field(None, description="Label for access_level")
    access_source: Optional[AccessSource] = Field(
        None,
        description="Source of the highest grant (on ties, the first source in evaluation order)"
    )
    access_source_description: Optional[str] = Field(None, description="Label for access_source")
    grants: List[AccessGrantResponse] = Field(default_factory=list, description="Every contributing grant")


class RecordSecurityContext(BaseModel):
    """
    What the authenticated user may do with a record.

    is_loaded is False when the user or record could not be resolved; every
    capability is False in that case.
    """
    user_id: str = Field(..., description="Authenticated user UUID")
    is_owner: bool = Field(False, description="User owns the record")
    can_edit: bool = Field(False, description="Admin, owner, or write access via sharing")
    can_delete: bool = Field(False, description="Only the owner or an admin")
    can_manage_sharing: bool = Field(False, description="Only the owner or an admin")
    is_loaded: bool = Field(False, description="Whether the context was fully computed")
