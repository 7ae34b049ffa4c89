"""
Record-level sharing evaluator.

Decides whether a user may access a CRM record, and at what level, by
combining the four Salesforce-style grant sources:

1. Record ownership - the owner always has full access
2. Organization-wide default (OWD) - baseline level for every org member
3. Role hierarchy - more senior roles see their subordinates' records
4. Sharing rules and manual shares - admin rules and ad-hoc grants

Access is additive: every applicable source contributes a grant and the
highest level wins. Records never leak across organizations.

CRITICAL RULES:
- Everything here is pure: no Supabase calls, no clock reads unless `now`
  is omitted, no shared state. The data-access layer fetches the inputs.
- Nothing here raises on malformed data. A condition that cannot be
  evaluated contributes `False`, an unknown operator contributes `False`,
  and missing optional context simply produces no grant.
- NEVER log field values; they may contain client health information.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from backend.schemas.sharing import (
    SHARING_CRITERIA_OPERATORS,
    AccessGrant,
    AccessSource,
    CriteriaValidationResult,
    ManualShare,
    RecordAccessLevel,
    RecordContext,
    RequiredAccess,
    SharingCriteria,
    SharingCriteriaCondition,
    SharingEvaluationResult,
    SharingModel,
    SharingRule,
    UserContext,
)

logger = logging.getLogger(__name__)

# Group membership is not resolved yet: public_group targets never match.
PUBLIC_GROUP_MEMBERSHIP_SUPPORTED = False

# The owner's role is not looked up yet: owner_based rules are accepted as
# soon as their target matches the user.
OWNER_ROLE_VERIFICATION_SUPPORTED = False

# Role hierarchy never grants more than read/write.
HIERARCHY_ACCESS_LEVEL = RecordAccessLevel.READ_WRITE

_ACCESS_LEVEL_RANK = {
    RecordAccessLevel.READ: 1,
    RecordAccessLevel.READ_WRITE: 2,
    RecordAccessLevel.FULL_ACCESS: 3,
}


# ---------------------------------------------------------------------------
# Access levels
# ---------------------------------------------------------------------------

def compare_access_levels(
    a: Optional[RecordAccessLevel],
    b: Optional[RecordAccessLevel],
) -> Optional[RecordAccessLevel]:
    """
    Return the higher of two access levels.

    full_access > read_write > read > None. On equal rank `a` is returned.
    """
    a_rank = _ACCESS_LEVEL_RANK[a] if a is not None else 0
    b_rank = _ACCESS_LEVEL_RANK[b] if b is not None else 0

    if a_rank >= b_rank:
        return a
    return b


def satisfies_access(
    granted: Optional[RecordAccessLevel],
    required: RequiredAccess,
) -> bool:
    """Check whether a granted level is enough for a read or write."""
    if granted is None:
        return False

    if required == "read":
        return True

    return granted in (RecordAccessLevel.READ_WRITE, RecordAccessLevel.FULL_ACCESS)


def sharing_model_to_access_level(model: SharingModel) -> Optional[RecordAccessLevel]:
    """Map an OWD to the level it grants. `private` grants nothing."""
    if model == SharingModel.PRIVATE:
        return None
    if model == SharingModel.READ:
        return RecordAccessLevel.READ
    if model == SharingModel.READ_WRITE:
        return RecordAccessLevel.READ_WRITE
    if model == SharingModel.FULL_ACCESS:
        return RecordAccessLevel.FULL_ACCESS
    return None


# ---------------------------------------------------------------------------
# Criteria evaluation
# ---------------------------------------------------------------------------

class _ValueKind(Enum):
    """JSON-shaped kinds a record field or condition operand can take."""
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    TEXT = "text"
    LIST = "list"
    OTHER = "other"


def _kind_of(value: Any) -> _ValueKind:
    # bool must be checked before int: True is an int in Python
    if value is None:
        return _ValueKind.NULL
    if isinstance(value, bool):
        return _ValueKind.BOOLEAN
    if isinstance(value, Decimal) and value.is_nan():
        # Decimal NaN raises InvalidOperation when ordered or compared
        return _ValueKind.OTHER
    if isinstance(value, (int, float, Decimal)):
        return _ValueKind.NUMBER
    if isinstance(value, str):
        return _ValueKind.TEXT
    if isinstance(value, (list, tuple)):
        return _ValueKind.LIST
    return _ValueKind.OTHER


def _strict_equals(a: Any, b: Any) -> bool:
    """Type-sensitive equality: no coercion between kinds (True != 1, "1" != 1)."""
    kind = _kind_of(a)
    if kind is not _kind_of(b):
        return False
    if kind is _ValueKind.LIST:
        return len(a) == len(b) and all(_strict_equals(x, y) for x, y in zip(a, b))
    if kind is _ValueKind.OTHER and (isinstance(a, Decimal) or isinstance(b, Decimal)):
        # NaN decimal: equals nothing
        return False
    return a == b


def _list_contains(items: Iterable[Any], value: Any) -> bool:
    return any(_strict_equals(item, value) for item in items)


def evaluate_condition(
    condition: SharingCriteriaCondition,
    field_values: Mapping[str, Any],
) -> bool:
    """
    Evaluate one criteria condition against a record's field values.

    A missing field is treated as None. Type mismatches resolve to False,
    except `not_contains`, which resolves to True (fail-open, kept as is).
    Unknown operators resolve to False.
    """
    field_value = field_values.get(condition.field)
    target_value = condition.value
    operator = condition.operator

    field_kind = _kind_of(field_value)
    target_kind = _kind_of(target_value)
    both_text = field_kind is _ValueKind.TEXT and target_kind is _ValueKind.TEXT

    if operator == "equals":
        return _strict_equals(field_value, target_value)

    if operator == "not_equals":
        return not _strict_equals(field_value, target_value)

    if operator == "contains":
        if both_text:
            return target_value.lower() in field_value.lower()
        if field_kind is _ValueKind.LIST:
            return _list_contains(field_value, target_value)
        return False

    if operator == "not_contains":
        if both_text:
            return target_value.lower() not in field_value.lower()
        if field_kind is _ValueKind.LIST:
            return not _list_contains(field_value, target_value)
        return True

    if operator == "starts_with":
        if both_text:
            return field_value.lower().startswith(target_value.lower())
        return False

    if operator in ("greater_than", "less_than"):
        comparable = both_text or (
            field_kind is _ValueKind.NUMBER and target_kind is _ValueKind.NUMBER
        )
        if not comparable:
            return False
        if operator == "greater_than":
            return field_value > target_value
        return field_value < target_value

    if operator == "is_null":
        return field_kind is _ValueKind.NULL

    if operator == "is_not_null":
        return field_kind is not _ValueKind.NULL

    if operator == "in":
        if target_kind is _ValueKind.LIST:
            return _list_contains(target_value, field_value)
        return False

    logger.debug(f"Unknown sharing criteria operator '{operator}' evaluated as no match")
    return False


def evaluate_criteria(
    criteria: SharingCriteria,
    field_values: Mapping[str, Any],
) -> bool:
    """
    Evaluate a rule's criteria against a record.

    No conditions means no constraint, so the record matches.
    """
    if not criteria.conditions:
        return True

    results = [evaluate_condition(condition, field_values) for condition in criteria.conditions]

    if criteria.match_type == "all":
        return all(results)
    return any(results)


# ---------------------------------------------------------------------------
# Sharing rules and manual shares
# ---------------------------------------------------------------------------

def _target_matches_user(
    share_with_type: str,
    share_with_id: Optional[str],
    user_context: UserContext,
) -> bool:
    if share_with_type == "user":
        return share_with_id == user_context.user_id

    if share_with_type == "role":
        # A user without a role never matches, even a role target with a null id
        return user_context.role_id is not None and share_with_id == user_context.role_id

    if share_with_type == "public_group":
        if not PUBLIC_GROUP_MEMBERSHIP_SUPPORTED:
            return False
        raise NotImplementedError("Public group membership resolution")

    return False


def sharing_rule_applies_to_user(rule: SharingRule, user_context: UserContext) -> bool:
    """Check whether an active rule targets this user, directly or via role."""
    if not rule.is_active:
        return False

    return _target_matches_user(rule.share_with_type, rule.share_with_id, user_context)


def evaluate_sharing_rule(
    rule: SharingRule,
    record_context: RecordContext,
    user_context: UserContext,
) -> Optional[RecordAccessLevel]:
    """
    Return the level a sharing rule grants on a record, or None.

    Criteria rules are only checked when the caller supplied field values.
    """
    if not rule.is_active:
        return None

    if not sharing_rule_applies_to_user(rule, user_context):
        return None

    if rule.rule_type == "criteria":
        if record_context.field_values is not None and rule.criteria is not None:
            if not evaluate_criteria(rule.criteria, record_context.field_values):
                return None

    elif rule.rule_type == "owner_based":
        if OWNER_ROLE_VERIFICATION_SUPPORTED:
            raise NotImplementedError("Owner role verification for owner_based rules")
        # Accepted without checking that the owner holds rule.owner_role_id

    return rule.access_level


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def evaluate_manual_share(
    share: ManualShare,
    user_context: UserContext,
    now: Optional[datetime] = None,
) -> Optional[RecordAccessLevel]:
    """
    Return the level a manual share grants to the user, or None.

    A share whose expires_at is strictly before `now` has expired.
    Naive timestamps are read as UTC.
    """
    if share.expires_at is not None:
        current = _utc(now) if now is not None else datetime.now(timezone.utc)
        if _utc(share.expires_at) < current:
            return None

    if not _target_matches_user(share.share_with_type, share.share_with_id, user_context):
        return None

    return share.access_level


def has_hierarchy_access(
    user_hierarchy_level: Optional[int],
    owner_hierarchy_level: Optional[int],
) -> bool:
    """True when the user sits strictly above the owner (lower level = more senior)."""
    if user_hierarchy_level is None or owner_hierarchy_level is None:
        return False

    return user_hierarchy_level < owner_hierarchy_level


# ---------------------------------------------------------------------------
# Main evaluation
# ---------------------------------------------------------------------------

def evaluate_record_access(
    record_context: RecordContext,
    user_context: UserContext,
    sharing_model: SharingModel,
    sharing_rules: Iterable[SharingRule] = (),
    manual_shares: Iterable[ManualShare] = (),
    owner_hierarchy_level: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SharingEvaluationResult:
    """
    Evaluate every access path for a record and pick the highest grant.

    Sources are evaluated in a fixed order: owner, org-wide default, role
    hierarchy, sharing rules, manual shares. The order has no effect on the
    resulting level; it only decides which source is reported when two
    sources tie at the highest level (the first one wins the tie).

    Args:
        record_context: The record being accessed
        user_context: The requesting user
        sharing_model: The object's organization-wide default
        sharing_rules: Rules for the record's object type
        manual_shares: Manual shares for this record
        owner_hierarchy_level: Hierarchy level of the record owner's role
        now: Reference time for manual share expiry (defaults to UTC now)

    Returns:
        SharingEvaluationResult with the winning level and every grant
    """
    if user_context.organization_id != record_context.organization_id:
        logger.debug(
            f"Access denied to {record_context.object_api_name}/{record_context.record_id} "
            f"for user {user_context.user_id}: organization mismatch"
        )
        return SharingEvaluationResult(
            has_access=False,
            access_level=None,
            access_source=None,
            all_access_grants=[],
        )

    grants: list[AccessGrant] = []

    if record_context.owner_id is not None and record_context.owner_id == user_context.user_id:
        grants.append(AccessGrant(
            source=AccessSource.OWNER,
            level=RecordAccessLevel.FULL_ACCESS,
            source_name="Record Owner",
        ))

    owd_level = sharing_model_to_access_level(sharing_model)
    if owd_level is not None:
        grants.append(AccessGrant(
            source=AccessSource.ORG_WIDE_DEFAULT,
            level=owd_level,
            source_name=f"Organization Default: {SharingModel(sharing_model).value}",
        ))

    if has_hierarchy_access(user_context.hierarchy_level, owner_hierarchy_level):
        grants.append(AccessGrant(
            source=AccessSource.ROLE_HIERARCHY,
            level=HIERARCHY_ACCESS_LEVEL,
            source_name="Role Hierarchy",
        ))

    for rule in sharing_rules:
        rule_level = evaluate_sharing_rule(rule, record_context, user_context)
        if rule_level is not None:
            grants.append(AccessGrant(
                source=AccessSource.SHARING_RULE,
                level=rule_level,
                source_id=rule.id,
                source_name=f"Sharing Rule: {rule.name}",
            ))

    for share in manual_shares:
        share_level = evaluate_manual_share(share, user_context, now=now)
        if share_level is not None:
            grants.append(AccessGrant(
                source=AccessSource.MANUAL_SHARE,
                level=share_level,
                source_id=share.id,
                source_name=share.reason or "Manual Share",
            ))

    highest: Optional[RecordAccessLevel] = None
    winning_source: Optional[AccessSource] = None

    for grant in grants:
        new_highest = compare_access_levels(highest, grant.level)
        if new_highest != highest:
            highest = new_highest
            winning_source = grant.source

    logger.debug(
        f"Evaluated access to {record_context.object_api_name}/{record_context.record_id} "
        f"for user {user_context.user_id}: level={highest.value if highest else None}, "
        f"source={winning_source.value if winning_source else None}, grants={len(grants)}"
    )

    return SharingEvaluationResult(
        has_access=highest is not None,
        access_level=highest,
        access_source=winning_source,
        all_access_grants=grants,
    )


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

_ACCESS_SOURCE_DESCRIPTIONS = {
    AccessSource.OWNER: "You are the record owner",
    AccessSource.ORG_WIDE_DEFAULT: "Organization-wide sharing setting",
    AccessSource.ROLE_HIERARCHY: "Access via role hierarchy",
    AccessSource.SHARING_RULE: "Granted by sharing rule",
    AccessSource.MANUAL_SHARE: "Manually shared with you",
}

_ACCESS_LEVEL_DESCRIPTIONS = {
    RecordAccessLevel.READ: "Read Only",
    RecordAccessLevel.READ_WRITE: "Read/Write",
    RecordAccessLevel.FULL_ACCESS: "Full Access",
}

_SHARING_MODEL_DISPLAY_NAMES = {
    SharingModel.PRIVATE: "Private",
    SharingModel.READ: "Public Read Only",
    SharingModel.READ_WRITE: "Public Read/Write",
    SharingModel.FULL_ACCESS: "Public Full Access",
}

_SHARING_MODEL_DESCRIPTIONS = {
    SharingModel.PRIVATE: "Only record owner and users granted access can view and edit",
    SharingModel.READ: "All users can view records, but only owner and granted users can edit",
    SharingModel.READ_WRITE: "All users can view and edit records",
    SharingModel.FULL_ACCESS: "All users have full access including transfer and delete",
}


def get_access_source_description(source: AccessSource) -> str:
    return _ACCESS_SOURCE_DESCRIPTIONS[AccessSource(source)]


def get_access_level_description(level: RecordAccessLevel) -> str:
    return _ACCESS_LEVEL_DESCRIPTIONS[RecordAccessLevel(level)]


def get_sharing_model_display_name(model: SharingModel) -> str:
    return _SHARING_MODEL_DISPLAY_NAMES[SharingModel(model)]


def get_sharing_model_description(model: SharingModel) -> str:
    return _SHARING_MODEL_DESCRIPTIONS[SharingModel(model)]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_sharing_criteria(criteria: Any) -> CriteriaValidationResult:
    """
    Structurally validate an untrusted criteria payload before it is saved.

    Used when rules are authored. Never raises; problems are reported in the
    returned result.
    """
    if not isinstance(criteria, Mapping):
        return CriteriaValidationResult(valid=False, error="Criteria must be an object")

    conditions = criteria.get("conditions")
    if not isinstance(conditions, list):
        return CriteriaValidationResult(valid=False, error="Criteria must have conditions array")

    if criteria.get("match_type") not in ("all", "any"):
        return CriteriaValidationResult(valid=False, error='match_type must be "all" or "any"')

    for i, condition in enumerate(conditions):
        if not isinstance(condition, Mapping):
            return CriteriaValidationResult(valid=False, error=f"Condition {i} must be an object")

        field = condition.get("field")
        if not isinstance(field, str) or not field:
            return CriteriaValidationResult(valid=False, error=f"Condition {i} must have a field")

        if condition.get("operator") not in SHARING_CRITERIA_OPERATORS:
            return CriteriaValidationResult(valid=False, error=f"Condition {i} has invalid operator")

    return CriteriaValidationResult(valid=True)
