"""
Sharing rule persistence service.

CRITICAL RULES:
1. Sharing rules are authored by organization admins (enforced in routes)
2. organization_id and created_by are ALWAYS stamped from the caller's
   sharing context, never taken from the request body
3. Criteria payloads are validated with validate_sharing_criteria before
   every insert or update
4. RLS is enforced automatically via the authenticated Supabase client

Rows that fail to parse into SharingRule are skipped (with a warning) when
rules are loaded for evaluation, so one malformed rule never blocks access
decided by the others.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, cast

from pydantic import ValidationError
from supabase import Client

from backend.schemas.sharing import SharingRule, UserContext, UserSharingContext
from backend.services.record_sharing import (
    sharing_rule_applies_to_user,
    validate_sharing_criteria,
)
from backend.utils.constants import OBJECT_DEFINITIONS_TABLE, SHARING_RULES_TABLE

logger = logging.getLogger(__name__)


def parse_sharing_rules(rows: Iterable[Dict[str, Any]]) -> List[SharingRule]:
    """Convert sharing_rules rows to SharingRule models, dropping malformed rows."""
    rules: List[SharingRule] = []
    for row in rows:
        try:
            rules.append(SharingRule.model_validate(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed sharing rule {row.get('id')}: {e.error_count()} errors")
    return rules


def _ensure_valid_criteria(criteria: Optional[Dict[str, Any]]) -> None:
    if criteria is None:
        return
    validation = validate_sharing_criteria(criteria)
    if not validation.valid:
        raise ValueError(f"Invalid sharing criteria: {validation.error}")


async def get_object_definition(
    supabase_client: Client,
    object_api_name: str,
) -> Optional[Dict[str, Any]]:
    """
    Fetch an object definition by API name.

    Returns:
        The object_definitions row, or None if it does not exist
    """
    result = (
        supabase_client.table(OBJECT_DEFINITIONS_TABLE)
        .select("*")
        .eq("api_name", object_api_name)
        .execute()
    )

    if not result.data:
        logger.warning(f"Object definition '{object_api_name}' not found")
        return None

    return cast(Dict[str, Any], result.data[0])


async def get_sharing_rules(
    supabase_client: Client,
    object_api_name: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Fetch the organization's sharing rules, newest first.

    Args:
        supabase_client: Authenticated Supabase client
        object_api_name: Restrict to one object (optional)

    Returns:
        List of sharing_rules rows. Empty if the object does not exist.
    """
    query = supabase_client.table(SHARING_RULES_TABLE).select("*")

    if object_api_name:
        object_def = await get_object_definition(supabase_client, object_api_name)
        if not object_def:
            return []
        query = query.eq("object_definition_id", object_def["id"])

    result = query.order("created_at", desc=True).execute()

    rules = cast(List[Dict[str, Any]], result.data)
    logger.info(f"Fetched {len(rules)} sharing rules (object={object_api_name})")

    return rules


async def get_sharing_rule(
    supabase_client: Client,
    rule_id: str,
) -> Optional[Dict[str, Any]]:
    """Fetch a single sharing rule, or None if not found."""
    result = (
        supabase_client.table(SHARING_RULES_TABLE)
        .select("*")
        .eq("id", rule_id)
        .execute()
    )

    if not result.data:
        logger.warning(f"Sharing rule {rule_id} not found or not accessible")
        return None

    return cast(Dict[str, Any], result.data[0])


async def get_active_sharing_rules(
    supabase_client: Client,
    object_api_name: str,
) -> List[SharingRule]:
    """
    Fetch the active sharing rules for an object, ready for evaluation.

    Returns:
        Parsed SharingRule models (malformed rows are skipped)
    """
    object_def = await get_object_definition(supabase_client, object_api_name)
    if not object_def:
        return []

    return await get_active_sharing_rules_for_definition(supabase_client, object_def["id"])


async def get_active_sharing_rules_for_definition(
    supabase_client: Client,
    object_definition_id: str,
) -> List[SharingRule]:
    """Same as get_active_sharing_rules, for an already-resolved object definition."""
    result = (
        supabase_client.table(SHARING_RULES_TABLE)
        .select("*")
        .eq("object_definition_id", object_definition_id)
        .eq("is_active", True)
        .execute()
    )

    rules = parse_sharing_rules(cast(List[Dict[str, Any]], result.data))
    logger.debug(f"Loaded {len(rules)} active sharing rules for object_definition {object_definition_id}")

    return rules


async def get_sharing_rules_for_user(
    supabase_client: Client,
    object_api_name: str,
    user_context: UserContext,
) -> List[SharingRule]:
    """Active rules for an object that target the user directly or via role."""
    rules = await get_active_sharing_rules(supabase_client, object_api_name)
    return [rule for rule in rules if sharing_rule_applies_to_user(rule, user_context)]


async def create_sharing_rule(
    supabase_client: Client,
    sharing_context: UserSharingContext,
    object_definition_id: str,
    name: str,
    access_level: str,
    share_with_type: str,
    share_with_id: Optional[str],
    rule_type: str = "criteria",
    criteria: Optional[Dict[str, Any]] = None,
    owner_role_id: Optional[str] = None,
    description: Optional[str] = None,
    is_active: bool = True,
) -> Dict[str, Any]:
    """
    Create a sharing rule in the caller's organization.

    Raises:
        ValueError: If the caller has no organization or criteria is invalid
        Exception: If the insert returns no data
    """
    if not sharing_context.organization_id:
        raise ValueError("User not associated with an organization")

    _ensure_valid_criteria(criteria)

    rule_data = {
        "organization_id": sharing_context.organization_id,
        "object_definition_id": object_definition_id,
        "name": name,
        "description": description,
        "access_level": access_level,
        "share_with_type": share_with_type,
        "share_with_id": share_with_id,
        "rule_type": rule_type,
        "criteria": criteria if criteria is not None else {"conditions": [], "match_type": "all"},
        "owner_role_id": owner_role_id,
        "is_active": is_active,
        "created_by": sharing_context.user_id,
    }

    logger.info(
        f"Creating sharing rule '{name}' for object_definition {object_definition_id} "
        f"(type={rule_type}, target={share_with_type}, level={access_level})"
    )

    result = supabase_client.table(SHARING_RULES_TABLE).insert(rule_data).execute()

    if not result.data:
        raise Exception("Failed to create sharing rule: no data returned")

    created = cast(Dict[str, Any], result.data[0])
    logger.info(f"Sharing rule created: id={created.get('id')}")

    return created


async def update_sharing_rule(
    supabase_client: Client,
    rule_id: str,
    updates: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """
    Partially update a sharing rule.

    Returns:
        The updated row, or None if the rule was not found

    Raises:
        ValueError: If the new criteria is invalid
    """
    if "criteria" in updates:
        _ensure_valid_criteria(updates["criteria"])

    if not updates:
        return await get_sharing_rule(supabase_client, rule_id)

    logger.info(f"Updating sharing rule {rule_id}: fields={sorted(updates)}")

    result = (
        supabase_client.table(SHARING_RULES_TABLE)
        .update(updates)
        .eq("id", rule_id)
        .execute()
    )

    if not result.data:
        logger.warning(f"Update of sharing rule {rule_id} returned no rows")
        return None

    return cast(Dict[str, Any], result.data[0])


async def toggle_sharing_rule_active(
    supabase_client: Client,
    rule_id: str,
    is_active: bool,
) -> Optional[Dict[str, Any]]:
    """Activate or deactivate a sharing rule."""
    logger.info(f"Setting sharing rule {rule_id} is_active={is_active}")
    return await update_sharing_rule(supabase_client, rule_id, {"is_active": is_active})


async def delete_sharing_rule(
    supabase_client: Client,
    rule_id: str,
) -> bool:
    """
    Delete a sharing rule.

    Returns:
        True if a row was deleted, False if the rule was not found
    """
    result = (
        supabase_client.table(SHARING_RULES_TABLE)
        .delete()
        .eq("id", rule_id)
        .execute()
    )

    deleted = bool(result.data)
    if deleted:
        logger.info(f"Sharing rule {rule_id} deleted")
    else:
        logger.warning(f"Sharing rule {rule_id} not found for deletion")

    return deleted
