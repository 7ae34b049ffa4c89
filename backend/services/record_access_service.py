"""
Record access service.

Glue between the database and the pure evaluator in record_sharing.py:
loads the requesting user's sharing context, the record, the object's
sharing model, the active sharing rules, the record's manual shares and the
owner's hierarchy level, then asks evaluate_record_access for a decision.

The evaluator never queries storage; everything it sees is fetched here.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, cast

from supabase import Client

from backend.schemas.record_access import RecordSecurityContext
from backend.schemas.sharing import (
    RecordContext,
    RequiredAccess,
    SharingEvaluationResult,
    UserSharingContext,
)
from backend.services.manual_share_service import get_manual_shares, parse_manual_shares
from backend.services.object_sharing_service import resolve_sharing_model
from backend.services.record_sharing import evaluate_record_access, satisfies_access
from backend.services.sharing_context_service import (
    get_user_hierarchy_level,
    get_user_sharing_context,
)
from backend.services.sharing_rule_service import (
    get_active_sharing_rules_for_definition,
    get_object_definition,
)
from backend.utils.constants import STANDARD_OBJECT_TABLES

logger = logging.getLogger(__name__)


@dataclass
class RecordAccessEvaluation:
    """Evaluator inputs worth keeping next to its result."""
    sharing_context: UserSharingContext
    record_context: RecordContext
    result: SharingEvaluationResult


def _table_for(object_api_name: str, object_def: Optional[Dict[str, Any]]) -> Optional[str]:
    if object_api_name in STANDARD_OBJECT_TABLES:
        return STANDARD_OBJECT_TABLES[object_api_name]
    if object_def:
        return object_def.get("table_name")
    return None


async def resolve_record_table(
    supabase_client: Client,
    object_api_name: str,
) -> Optional[str]:
    """
    Find the table holding an object's records.

    Standard objects use fixed crm_* tables; custom objects declare
    object_definitions.table_name.
    """
    if object_api_name in STANDARD_OBJECT_TABLES:
        return STANDARD_OBJECT_TABLES[object_api_name]

    object_def = await get_object_definition(supabase_client, object_api_name)
    return _table_for(object_api_name, object_def)


async def get_record(
    supabase_client: Client,
    object_api_name: str,
    record_id: str,
    table_name: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Fetch a CRM record by ID, or None if unknown object or record."""
    if table_name is None:
        table_name = await resolve_record_table(supabase_client, object_api_name)
    if not table_name:
        logger.warning(f"Unknown object: {object_api_name}")
        return None

    result = (
        supabase_client.table(table_name)
        .select("*")
        .eq("id", record_id)
        .execute()
    )

    if not result.data:
        logger.warning(f"Record {object_api_name}/{record_id} not found or not accessible")
        return None

    return cast(Dict[str, Any], result.data[0])


async def evaluate_access_for_user(
    supabase_client: Client,
    user_id: str,
    object_api_name: str,
    record_id: str,
    now: Optional[datetime] = None,
) -> Optional[RecordAccessEvaluation]:
    """
    Gather every input for a record and evaluate the user's access.

    Args:
        supabase_client: Authenticated Supabase client
        user_id: The requesting user
        object_api_name: Object API name of the record
        record_id: Record UUID
        now: Reference time for manual share expiry (defaults to UTC now)

    Returns:
        RecordAccessEvaluation, or None if the record cannot be found

    Raises:
        ValueError: If the user cannot be loaded or has no organization
    """
    sharing_context = await get_user_sharing_context(supabase_client, user_id)
    if sharing_context is None:
        raise ValueError("User not found")

    user_context = sharing_context.to_user_context()
    if user_context is None:
        raise ValueError("User not associated with an organization")

    object_def = await get_object_definition(supabase_client, object_api_name)
    table_name = _table_for(object_api_name, object_def)

    record = await get_record(supabase_client, object_api_name, record_id, table_name=table_name)
    if record is None:
        return None

    sharing_model = resolve_sharing_model(object_def)
    rules = (
        await get_active_sharing_rules_for_definition(supabase_client, object_def["id"])
        if object_def else []
    )
    shares = parse_manual_shares(await get_manual_shares(supabase_client, object_api_name, record_id))

    owner_id = record.get("owner_id")
    owner_hierarchy_level = await get_user_hierarchy_level(supabase_client, owner_id)

    record_context = RecordContext(
        record_id=record_id,
        object_api_name=object_api_name,
        owner_id=str(owner_id) if owner_id else None,
        # RLS only returns rows from the caller's organization
        organization_id=record.get("organization_id") or user_context.organization_id,
        field_values=record,
    )

    result = evaluate_record_access(
        record_context=record_context,
        user_context=user_context,
        sharing_model=sharing_model,
        sharing_rules=rules,
        manual_shares=shares,
        owner_hierarchy_level=owner_hierarchy_level,
        now=now,
    )

    logger.info(
        f"Access to {object_api_name}/{record_id} for user {user_id}: "
        f"level={result.access_level.value if result.access_level else None}, "
        f"source={result.access_source.value if result.access_source else None}"
    )

    return RecordAccessEvaluation(
        sharing_context=sharing_context,
        record_context=record_context,
        result=result,
    )


async def check_record_access(
    supabase_client: Client,
    user_id: str,
    object_api_name: str,
    record_id: str,
    access_type: RequiredAccess = "read",
) -> bool:
    """
    Check whether the user may read or write a record.

    Returns False when the record does not exist.
    """
    evaluation = await evaluate_access_for_user(supabase_client, user_id, object_api_name, record_id)
    if evaluation is None:
        return False

    return satisfies_access(evaluation.result.access_level, access_type)


async def get_record_security_context(
    supabase_client: Client,
    user_id: str,
    object_api_name: str,
    record_id: str,
) -> RecordSecurityContext:
    """
    Compute what the user may do with a record.

    Rules:
    - Admins and owners can edit, delete and manage sharing
    - Everyone else can edit only with write access through sharing
    - Only the owner or an admin can delete or manage sharing

    Returns an empty context (is_loaded=False) when the user or record
    cannot be resolved.
    """
    try:
        evaluation = await evaluate_access_for_user(supabase_client, user_id, object_api_name, record_id)
    except ValueError as e:
        logger.warning(f"Cannot compute security context for user {user_id}: {e}")
        return RecordSecurityContext(user_id=user_id)

    if evaluation is None:
        return RecordSecurityContext(user_id=user_id)

    owner_id = evaluation.record_context.owner_id
    is_owner = owner_id is not None and owner_id == user_id
    is_admin = evaluation.sharing_context.is_admin
    can_write = satisfies_access(evaluation.result.access_level, "write")

    return RecordSecurityContext(
        user_id=user_id,
        is_owner=is_owner,
        can_edit=is_admin or is_owner or can_write,
        can_delete=is_admin or is_owner,
        can_manage_sharing=is_admin or is_owner,
        is_loaded=True,
    )
