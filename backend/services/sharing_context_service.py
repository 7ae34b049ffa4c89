"""
User sharing context lookups.

Loads the facts the access evaluator needs about a user: organization,
role and the role's hierarchy level. A user is an admin when their role is
named 'admin' or grants the wildcard permission {"*": ["*"]}.
"""

import logging
from typing import Any, Dict, Optional, cast

from supabase import Client

from backend.schemas.sharing import UserSharingContext
from backend.utils.constants import USERS_TABLE

logger = logging.getLogger(__name__)


def _first_role(role_details: Any) -> Optional[Dict[str, Any]]:
    """PostgREST returns the joined role as an object or a one-element list."""
    if isinstance(role_details, list):
        return cast(Dict[str, Any], role_details[0]) if role_details else None
    if isinstance(role_details, dict):
        return cast(Dict[str, Any], role_details)
    return None


def _is_admin_role(role: Optional[Dict[str, Any]]) -> bool:
    if role is None:
        return False
    if role.get("name") == "admin":
        return True
    permissions = role.get("permissions") or {}
    return "*" in (permissions.get("*") or [])


async def get_user_sharing_context(
    supabase_client: Client,
    user_id: str,
) -> Optional[UserSharingContext]:
    """
    Fetch a user's organization, role and hierarchy level.

    Args:
        supabase_client: Authenticated Supabase client
        user_id: The user to look up

    Returns:
        UserSharingContext, or None if the user row is not visible
    """
    logger.debug(f"Fetching sharing context for user {user_id}")

    result = (
        supabase_client.table(USERS_TABLE)
        .select("id, role_id, organization_id, role_details:roles(name, hierarchy_level, permissions)")
        .eq("id", user_id)
        .execute()
    )

    if not result.data:
        logger.warning(f"User {user_id} not found or not accessible")
        return None

    user = cast(Dict[str, Any], result.data[0])
    role = _first_role(user.get("role_details"))

    context = UserSharingContext(
        user_id=str(user["id"]),
        role_id=user.get("role_id"),
        organization_id=user.get("organization_id"),
        hierarchy_level=role.get("hierarchy_level") if role else None,
        is_admin=_is_admin_role(role),
    )

    logger.info(
        f"Loaded sharing context for user {user_id}: "
        f"organization={context.organization_id}, role={context.role_id}, admin={context.is_admin}"
    )

    return context


async def get_user_hierarchy_level(
    supabase_client: Client,
    user_id: Optional[str],
) -> Optional[int]:
    """
    Fetch the hierarchy level of a user's role (used for record owners).

    Returns None when there is no user, no role, or the role has no level.
    """
    if not user_id:
        return None

    context = await get_user_sharing_context(supabase_client, user_id)
    if context is None:
        return None

    return context.hierarchy_level
