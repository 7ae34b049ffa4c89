"""
Manual share persistence service.

A manual share grants one user or role access to one record, optionally
until expires_at. Only one share may exist per (record, target); the
database enforces this with a unique constraint.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, cast

from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import Client

from backend.schemas.sharing import ManualShare, RecordSharingInfo, UserSharingContext
from backend.utils.constants import MANUAL_SHARES_TABLE, UNIQUE_VIOLATION_CODE

logger = logging.getLogger(__name__)


def parse_manual_shares(rows: Iterable[Dict[str, Any]]) -> List[ManualShare]:
    """Convert manual_shares rows to ManualShare models, dropping malformed rows."""
    shares: List[ManualShare] = []
    for row in rows:
        try:
            shares.append(ManualShare.model_validate(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed manual share {row.get('id')}: {e.error_count()} errors")
    return shares


async def get_manual_shares(
    supabase_client: Client,
    object_api_name: str,
    record_id: str,
) -> List[Dict[str, Any]]:
    """
    Fetch every manual share of a record, including expired ones.

    Returns:
        List of manual_shares rows
    """
    result = (
        supabase_client.table(MANUAL_SHARES_TABLE)
        .select("*")
        .eq("object_api_name", object_api_name)
        .eq("record_id", record_id)
        .execute()
    )

    shares = cast(List[Dict[str, Any]], result.data)
    logger.info(f"Fetched {len(shares)} manual shares for {object_api_name}/{record_id}")

    return shares


async def create_manual_share(
    supabase_client: Client,
    sharing_context: UserSharingContext,
    object_api_name: str,
    record_id: str,
    share_with_type: str,
    share_with_id: str,
    access_level: str,
    reason: Optional[str] = None,
    expires_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Share a record with a user or role.

    Raises:
        ValueError: If the caller has no organization or the record is
                    already shared with this target
        Exception: If the insert returns no data
    """
    if not sharing_context.organization_id:
        raise ValueError("User not associated with an organization")

    share_data = {
        "organization_id": sharing_context.organization_id,
        "object_api_name": object_api_name,
        "record_id": record_id,
        "share_with_type": share_with_type,
        "share_with_id": share_with_id,
        "access_level": access_level,
        "reason": reason,
        "expires_at": expires_at.isoformat() if expires_at else None,
        "shared_by": sharing_context.user_id,
    }

    logger.info(
        f"Sharing {object_api_name}/{record_id} with {share_with_type} {share_with_id} "
        f"(level={access_level})"
    )

    try:
        result = supabase_client.table(MANUAL_SHARES_TABLE).insert(share_data).execute()
    except APIError as e:
        if e.code == UNIQUE_VIOLATION_CODE:
            raise ValueError("This record is already shared with this user/role") from e
        raise

    if not result.data:
        raise Exception("Failed to create manual share: no data returned")

    created = cast(Dict[str, Any], result.data[0])
    logger.info(f"Manual share created: id={created.get('id')}")

    return created


async def update_manual_share(
    supabase_client: Client,
    share_id: str,
    updates: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """
    Partially update the level, reason or expiry of a manual share.

    A key present with a None value clears that column, so a share can be
    made permanent again or lose its reason. The access level is required
    and cannot be cleared.

    Returns:
        The updated row, or None if not found

    Raises:
        ValueError: If no field is given or access_level is cleared
    """
    if not updates:
        raise ValueError("At least one field must be provided for update")
    if "access_level" in updates and updates["access_level"] is None:
        raise ValueError("access_level cannot be cleared")

    update_data = {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in updates.items()
    }

    logger.info(f"Updating manual share {share_id}: fields={sorted(update_data)}")

    result = (
        supabase_client.table(MANUAL_SHARES_TABLE)
        .update(update_data)
        .eq("id", share_id)
        .execute()
    )

    if not result.data:
        logger.warning(f"Update of manual share {share_id} returned no rows")
        return None

    return cast(Dict[str, Any], result.data[0])


async def delete_manual_share(
    supabase_client: Client,
    share_id: str,
) -> bool:
    """
    Revoke a manual share.

    Returns:
        True if a row was deleted, False if not found
    """
    result = (
        supabase_client.table(MANUAL_SHARES_TABLE)
        .delete()
        .eq("id", share_id)
        .execute()
    )

    deleted = bool(result.data)
    if deleted:
        logger.info(f"Manual share {share_id} deleted")
    else:
        logger.warning(f"Manual share {share_id} not found for deletion")

    return deleted


async def get_record_sharing_info(
    supabase_client: Client,
    sharing_context: UserSharingContext,
    object_api_name: str,
    record_id: str,
    owner_id: Optional[str],
) -> List[RecordSharingInfo]:
    """
    List who has access to a record through ownership or manual shares.

    Calls the get_record_sharing_info database function, which returns the
    owner with full access, each user holding an unexpired user share, and
    each member of a role holding an unexpired role share (the owner is not
    repeated for role shares). Sharing rules, hierarchy and the sharing
    model are not expanded here.

    Args:
        supabase_client: Authenticated Supabase client
        sharing_context: The caller's context; its organization scopes the shares
        object_api_name: Object API name of the record
        record_id: Record UUID
        owner_id: The record's owner, or None if the record has none

    Returns:
        One RecordSharingInfo per (user, source) row; malformed rows are skipped

    Raises:
        ValueError: If the caller has no organization
    """
    if not sharing_context.organization_id:
        raise ValueError("User not associated with an organization")

    result = supabase_client.rpc(
        'get_record_sharing_info',
        {
            'p_object_api_name': object_api_name,
            'p_record_id': record_id,
            'p_record_owner_id': owner_id,
            'p_record_org_id': sharing_context.organization_id,
        }
    ).execute()

    entries: List[RecordSharingInfo] = []
    for row in cast(List[Dict[str, Any]], result.data or []):
        try:
            entries.append(RecordSharingInfo.model_validate(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed sharing info row for user {row.get('user_id')}: {e.error_count()} errors")

    logger.info(f"Fetched {len(entries)} sharing info entries for {object_api_name}/{record_id}")

    return entries
