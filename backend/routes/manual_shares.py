"""
Manual share API endpoints.

Endpoints:
- GET /records/{object_api_name}/{record_id}/shares - List a record's manual shares
- GET /records/{object_api_name}/{record_id}/sharing-info - Who has access and why
- POST /records/{object_api_name}/{record_id}/shares - Share a record with a user or role
- PATCH /manual-shares/{share_id} - Change level, reason or expiry
- DELETE /manual-shares/{share_id} - Revoke a share

Only the record owner or an organization admin may create shares. Updates
and deletions by share ID are restricted by the manual_shares RLS policies.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.auth.permissions import load_sharing_context
from backend.db.client import get_supabase_client
from backend.schemas.manual_shares import (
    ManualShareCreateRequest,
    ManualShareDeleteResponse,
    ManualShareListResponse,
    ManualShareMutationResponse,
    ManualShareUpdateRequest,
    RecordSharingInfoResponse,
)
from backend.schemas.sharing import ManualShare
from backend.services.manual_share_service import (
    create_manual_share,
    delete_manual_share,
    get_manual_shares,
    get_record_sharing_info,
    parse_manual_shares,
    update_manual_share,
)
from backend.services.record_access_service import get_record, get_record_security_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["manual-shares"])


def _share_not_found(share_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": "not_found",
            "details": f"Manual share {share_id} not found or not accessible"
        }
    )


@router.get(
    "/records/{object_api_name}/{record_id}/shares",
    response_model=ManualShareListResponse,
    status_code=status.HTTP_200_OK,
    summary="List manual shares of a record"
)
async def list_record_shares(
    object_api_name: str,
    record_id: str,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> ManualShareListResponse:
    """List every manual share of a record, including expired ones."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rows = await get_manual_shares(supabase_client, object_api_name, record_id)
        shares = parse_manual_shares(rows)

        return ManualShareListResponse(shares=shares, count=len(shares))

    except Exception as e:
        logger.error(f"Failed to fetch manual shares for {object_api_name}/{record_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to retrieve manual shares from database"
            }
        )


@router.get(
    "/records/{object_api_name}/{record_id}/sharing-info",
    response_model=RecordSharingInfoResponse,
    status_code=status.HTTP_200_OK,
    summary="List who has access to a record",
    description="""
    List the record owner and every user reached by an unexpired manual
    share, directly or through a role, with the level and source of each.

    Access from the sharing model, role hierarchy or sharing rules is not
    listed; use GET /records/{object_api_name}/{record_id}/access for one
    user's full decision.
    """
)
async def get_sharing_info(
    object_api_name: str,
    record_id: str,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> RecordSharingInfoResponse:
    """Return the record's sharing breakdown."""
    supabase_client = get_supabase_client(auth_user.access_token)
    sharing_context = await load_sharing_context(supabase_client, auth_user.user_id)

    try:
        record = await get_record(supabase_client, object_api_name, record_id)
        if record is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={
                    "error": "not_found",
                    "details": f"Record {object_api_name}/{record_id} not found or not accessible"
                }
            )

        owner_id = record.get("owner_id")
        entries = await get_record_sharing_info(
            supabase_client=supabase_client,
            sharing_context=sharing_context,
            object_api_name=object_api_name,
            record_id=record_id,
            owner_id=str(owner_id) if owner_id else None,
        )

        return RecordSharingInfoResponse(
            object_api_name=object_api_name,
            record_id=record_id,
            entries=entries,
            count=len(entries)
        )

    except HTTPException:
        raise
    except ValueError as e:
        logger.warning(f"Validation error reading sharing info for {object_api_name}/{record_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "validation_error",
                "details": str(e)
            }
        )
    except Exception as e:
        logger.error(f"Failed to fetch sharing info for {object_api_name}/{record_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to retrieve record sharing info"
            }
        )


@router.post(
    "/records/{object_api_name}/{record_id}/shares",
    response_model=ManualShareMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Share a record",
    description="""
    Give a user or role access to one record.

    Security:
    - Caller must own the record or be an organization admin
    - A record can be shared with the same target only once (400)
    """
)
async def share_record(
    object_api_name: str,
    record_id: str,
    request: ManualShareCreateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> ManualShareMutationResponse:
    """Create a manual share."""
    supabase_client = get_supabase_client(auth_user.access_token)
    sharing_context = await load_sharing_context(supabase_client, auth_user.user_id)

    security = await get_record_security_context(
        supabase_client, auth_user.user_id, object_api_name, record_id
    )
    if not security.is_loaded:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "not_found",
                "details": f"Record {object_api_name}/{record_id} not found or not accessible"
            }
        )
    if not security.can_manage_sharing:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "forbidden",
                "details": "Only the record owner or an admin can share this record"
            }
        )

    try:
        created = await create_manual_share(
            supabase_client=supabase_client,
            sharing_context=sharing_context,
            object_api_name=object_api_name,
            record_id=record_id,
            share_with_type=request.share_with_type,
            share_with_id=request.share_with_id,
            access_level=request.access_level.value,
            reason=request.reason,
            expires_at=request.expires_at,
        )

        return ManualShareMutationResponse(
            status="CREATED",
            share=ManualShare.model_validate(created),
            message="Record shared successfully"
        )

    except ValueError as e:
        logger.warning(f"Validation error sharing {object_api_name}/{record_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "validation_error",
                "details": str(e)
            }
        )
    except Exception as e:
        logger.error(f"Failed to share {object_api_name}/{record_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "create_error",
                "details": "Failed to share record"
            }
        )


@router.patch(
    "/manual-shares/{share_id}",
    response_model=ManualShareMutationResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a manual share"
)
async def update_share(
    share_id: str,
    request: ManualShareUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> ManualShareMutationResponse:
    """Change the level, reason or expiry of a manual share (partial update).

    Sending null for reason or expires_at clears it.
    """
    updates = request.model_dump(exclude_unset=True, mode="json")
    if not updates:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "invalid_request",
                "details": "At least one field must be provided for update"
            }
        )

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        updated = await update_manual_share(supabase_client, share_id, updates)
        if not updated:
            raise _share_not_found(share_id)

        return ManualShareMutationResponse(
            status="UPDATED",
            share=ManualShare.model_validate(updated),
            message="Manual share updated successfully"
        )

    except HTTPException:
        raise
    except ValueError as e:
        logger.warning(f"Validation error updating manual share {share_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "validation_error",
                "details": str(e)
            }
        )
    except Exception as e:
        logger.error(f"Failed to update manual share {share_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "update_error",
                "details": "Failed to update manual share"
            }
        )


@router.delete(
    "/manual-shares/{share_id}",
    response_model=ManualShareDeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Revoke a manual share"
)
async def revoke_share(
    share_id: str,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> ManualShareDeleteResponse:
    """Delete a manual share."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        deleted = await delete_manual_share(supabase_client, share_id)
        if not deleted:
            raise _share_not_found(share_id)

        return ManualShareDeleteResponse(
            status="DELETED",
            share_id=share_id,
            message="Manual share revoked"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete manual share {share_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "delete_error",
                "details": "Failed to revoke manual share"
            }
        )
