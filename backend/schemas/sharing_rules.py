"""
Pydantic models for sharing rule endpoints.

Sharing rules are admin-authored: they grant a user or role access to
every record of an object that matches the rule's criteria.

Criteria are accepted as loose JSON and validated with
validate_sharing_criteria, so the client receives the same error message
the rule editor shows.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from backend.schemas.sharing import (
    RecordAccessLevel,
    SharingRule,
    SharingRuleType,
    ShareWithType,
)


class SharingRuleListResponse(BaseModel):
    """Response model for listing sharing rules."""
    rules: List[SharingRule] = Field(..., description="Sharing rules, newest first")
    count: int = Field(..., description="Number of rules returned")


class SharingRuleCreateRequest(BaseModel):
    """
    Request model for creating a sharing rule.

    organization_id and created_by are taken from the authenticated user.
    """
    object_definition_id: str = Field(..., description="Object definition UUID the rule applies to")
    name: str = Field(..., min_length=1, max_length=100, description="Rule name shown in the admin UI")
    description: Optional[str] = Field(None, max_length=500, description="Optional description")
    access_level: RecordAccessLevel = Field(..., description="Level granted to matching records")
    share_with_type: ShareWithType = Field(..., description="Target kind: user, role or public_group")
    share_with_id: Optional[str] = Field(None, description="Target user, role or group UUID")
    rule_type: SharingRuleType = Field("criteria", description="criteria or owner_based")
    criteria: Optional[Dict[str, Any]] = Field(
        None,
        description="{'match_type': 'all'|'any', 'conditions': [{field, operator, value}]}",
        examples=[{
            "match_type": "all",
            "conditions": [{"field": "status", "operator": "equals", "value": "active"}],
        }]
    )
    owner_role_id: Optional[str] = Field(None, description="Owner role for owner_based rules")
    is_active: bool = Field(True, description="Whether the rule is enforced")


class SharingRuleUpdateRequest(BaseModel):
    """
    Request model for updating a sharing rule.

    All fields optional (partial update). The target object cannot change.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    access_level: Optional[RecordAccessLevel] = None
    share_with_type: Optional[ShareWithType] = None
    share_with_id: Optional[str] = None
    rule_type: Optional[SharingRuleType] = None
    criteria: Optional[Dict[str, Any]] = None
    owner_role_id: Optional[str] = None
    is_active: Optional[bool] = None


class SharingRuleToggleRequest(BaseModel):
    """Request model for activating or deactivating a rule."""
    is_active: bool = Field(..., description="New active state")


class SharingRuleMutationResponse(BaseModel):
    """Response for a successful create, update or toggle."""
    status: Literal["CREATED", "UPDATED"] = Field(..., description="Status indicator")
    rule: SharingRule = Field(..., description="The rule after the change")
    message: str = Field(..., description="Success message")


class SharingRuleDeleteResponse(BaseModel):
    """Response for a successful rule deletion."""
    status: Literal["DELETED"] = Field(..., description="Status indicator")
    rule_id: str = Field(..., description="Deleted rule UUID")
    message: str = Field(..., description="Success message")


class CriteriaValidationRequest(BaseModel):
    """Untrusted criteria payload to validate before saving."""
    criteria: Any = Field(..., description="Candidate criteria object")
