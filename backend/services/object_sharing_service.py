"""
Object-level sharing settings.

Each CRM object definition carries an organization-wide default
(sharing_model). This module reads and updates it and lists the users and
roles that can be picked as sharing targets.
"""

import logging
from typing import Any, Dict, List, Optional, cast

from supabase import Client

from backend.config import settings
from backend.schemas.sharing import SharingModel
from backend.services.sharing_rule_service import (
    get_active_sharing_rules,
    get_object_definition,
)
from backend.utils.constants import OBJECT_DEFINITIONS_TABLE, ROLES_TABLE, USERS_TABLE

logger = logging.getLogger(__name__)


def resolve_sharing_model(object_def: Optional[Dict[str, Any]]) -> SharingModel:
    """
    Read an object's sharing model, falling back to DEFAULT_SHARING_MODEL.

    An unknown value in the database falls back too, so a bad row can only
    make an object more private, never less.
    """
    raw = (object_def or {}).get("sharing_model")
    if raw:
        try:
            return SharingModel(raw)
        except ValueError:
            logger.warning(f"Unknown sharing_model '{raw}' on object {object_def.get('api_name')}")
            return SharingModel.PRIVATE
    return SharingModel(settings.DEFAULT_SHARING_MODEL)


async def get_object_sharing_settings(
    supabase_client: Client,
    object_api_name: str,
) -> Optional[Dict[str, Any]]:
    """
    Fetch an object's sharing model and active sharing rules.

    Returns:
        {"object": row, "sharing_model": SharingModel, "sharing_rules": [SharingRule]},
        or None if the object does not exist
    """
    object_def = await get_object_definition(supabase_client, object_api_name)
    if not object_def:
        return None

    rules = await get_active_sharing_rules(supabase_client, object_api_name)

    return {
        "object": object_def,
        "sharing_model": resolve_sharing_model(object_def),
        "sharing_rules": rules,
    }


async def update_object_sharing_model(
    supabase_client: Client,
    object_api_name: str,
    sharing_model: SharingModel,
) -> Optional[Dict[str, Any]]:
    """
    Change an object's organization-wide default.

    Returns:
        The updated object definition, or None if not found
    """
    logger.info(f"Setting sharing model of {object_api_name} to {SharingModel(sharing_model).value}")

    result = (
        supabase_client.table(OBJECT_DEFINITIONS_TABLE)
        .update({"sharing_model": SharingModel(sharing_model).value})
        .eq("api_name", object_api_name)
        .execute()
    )

    if not result.data:
        logger.warning(f"Object definition '{object_api_name}' not found for update")
        return None

    return cast(Dict[str, Any], result.data[0])


async def get_share_targets(supabase_client: Client) -> Dict[str, List[Dict[str, Any]]]:
    """
    List active users and all roles of the organization.

    Returns:
        {"users": [{id, full_name, email}], "roles": [{id, name}]}
    """
    users_result = (
        supabase_client.table(USERS_TABLE)
        .select("id, full_name, email")
        .eq("is_active", True)
        .order("full_name")
        .execute()
    )
    roles_result = (
        supabase_client.table(ROLES_TABLE)
        .select("id, name")
        .order("name")
        .execute()
    )

    users = cast(List[Dict[str, Any]], users_result.data or [])
    roles = cast(List[Dict[str, Any]], roles_result.data or [])

    logger.info(f"Fetched share targets: {len(users)} users, {len(roles)} roles")

    return {"users": users, "roles": roles}
