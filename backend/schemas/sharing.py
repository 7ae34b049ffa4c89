"""
Pydantic models for record-level sharing.

These are the value types consumed and produced by the access evaluator in
backend/services/record_sharing.py. They mirror the rows of the
sharing_rules and manual_shares tables, plus the in-memory contexts the
data-access layer assembles before evaluating access.

Access levels are totally ordered:
    read < read_write < full_access
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SharingModel(str, Enum):
    """Organization-wide default (OWD) for an object."""
    PRIVATE = "private"
    READ = "read"
    READ_WRITE = "read_write"
    FULL_ACCESS = "full_access"


class RecordAccessLevel(str, Enum):
    """Privilege granted on a single record."""
    READ = "read"
    READ_WRITE = "read_write"
    FULL_ACCESS = "full_access"


class AccessSource(str, Enum):
    """Where a grant came from."""
    OWNER = "owner"
    ORG_WIDE_DEFAULT = "org_wide_default"
    ROLE_HIERARCHY = "role_hierarchy"
    SHARING_RULE = "sharing_rule"
    MANUAL_SHARE = "manual_share"


ShareWithType = Literal["user", "role", "public_group"]
ManualShareWithType = Literal["user", "role"]
SharingRuleType = Literal["criteria", "owner_based"]
MatchType = Literal["all", "any"]
RequiredAccess = Literal["read", "write"]

# Operators understood by evaluate_condition. Conditions store the operator
# as free text so rows written by newer builds still load.
SHARING_CRITERIA_OPERATORS = (
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "starts_with",
    "greater_than",
    "less_than",
    "is_null",
    "is_not_null",
    "in",
)


class RecordContext(BaseModel):
    """
    The record being checked.

    field_values is the raw row (or the subset of it the caller cares about).
    When it is None, criteria-based rules are not evaluated against it.
    """
    model_config = ConfigDict(frozen=True)

    record_id: str
    object_api_name: str
    owner_id: Optional[str] = None
    organization_id: str
    field_values: Optional[Dict[str, Any]] = None


class UserContext(BaseModel):
    """
    The user requesting access.

    hierarchy_level: lower means more senior (0 = top of the org chart).
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    role_id: Optional[str] = None
    organization_id: str
    hierarchy_level: Optional[int] = None


class SharingCriteriaCondition(BaseModel):
    """A single `field <operator> value` test."""
    field: str
    operator: str
    value: Any = None


class SharingCriteria(BaseModel):
    """Conditions combined with AND (`all`) or OR (`any`)."""
    conditions: List[SharingCriteriaCondition] = Field(default_factory=list)
    match_type: MatchType = "all"


class SharingRule(BaseModel):
    """Admin-authored sharing rule (row of `sharing_rules`)."""
    id: str
    name: str
    is_active: bool = True
    access_level: RecordAccessLevel
    share_with_type: ShareWithType
    share_with_id: Optional[str] = None
    rule_type: SharingRuleType = "criteria"
    # NULL for owner_based rules; treated as "no constraint"
    criteria: Optional[SharingCriteria] = None
    owner_role_id: Optional[str] = None

    organization_id: Optional[str] = None
    object_definition_id: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ManualShare(BaseModel):
    """Ad-hoc share of one record (row of `manual_shares`)."""
    id: str
    share_with_type: ManualShareWithType
    share_with_id: str
    access_level: RecordAccessLevel
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None

    organization_id: Optional[str] = None
    object_api_name: Optional[str] = None
    record_id: Optional[str] = None
    shared_by: Optional[str] = None
    created_at: Optional[str] = None


class RecordSharingInfo(BaseModel):
    """
    One user who can see a record, and why.

    Rows come from the get_record_sharing_info database function: the owner,
    users with an unexpired manual share, and members of roles with an
    unexpired manual share. A user may appear more than once.
    """
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    access_level: RecordAccessLevel
    access_source: AccessSource
    source_name: Optional[str] = None


class AccessGrant(BaseModel):
    """One contribution to the final access decision."""
    source: AccessSource
    level: RecordAccessLevel
    source_id: Optional[str] = None
    source_name: Optional[str] = None


class SharingEvaluationResult(BaseModel):
    """Outcome of evaluate_record_access. Never persisted."""
    has_access: bool
    access_level: Optional[RecordAccessLevel] = None
    access_source: Optional[AccessSource] = None
    all_access_grants: List[AccessGrant] = Field(default_factory=list)


class CriteriaValidationResult(BaseModel):
    """Result of validate_sharing_criteria."""
    valid: bool
    error: Optional[str] = None


class UserSharingContext(BaseModel):
    """
    Sharing-relevant facts about a user, as loaded from `users` + `roles`.

    organization_id may be NULL for users not yet attached to a practice.
    """
    user_id: str
    role_id: Optional[str] = None
    organization_id: Optional[str] = None
    hierarchy_level: Optional[int] = None
    is_admin: bool = False

    def to_user_context(self) -> Optional[UserContext]:
        """Evaluator input, or None when the user has no organization."""
        if not self.organization_id:
            return None
        return UserContext(
            user_id=self.user_id,
            role_id=self.role_id,
            organization_id=self.organization_id,
            hierarchy_level=self.hierarchy_level,
        )
