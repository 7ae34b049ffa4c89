"""
Record access API endpoints.

Endpoints:
- GET /records/{object_api_name}/{record_id}/access - Access decision with audit trail
- GET /records/{object_api_name}/{record_id}/security-context - What the caller may do

The decision is computed in-process by the record sharing evaluator from
data loaded under the caller's RLS scope.
"""

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.db.client import get_supabase_client
from backend.schemas.record_access import (
    AccessGrantResponse,
    RecordAccessResponse,
    RecordSecurityContext,
)
from backend.services.record_access_service import (
    evaluate_access_for_user,
    get_record_security_context,
)
from backend.services.record_sharing import (
    get_access_level_description,
    get_access_source_description,
    satisfies_access,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/records", tags=["record-access"])


@router.get(
    "/{object_api_name}/{record_id}/access",
    response_model=RecordAccessResponse,
    status_code=status.HTTP_200_OK,
    summary="Check access to a record",
    description="""
    Evaluate the caller's access to a record.

    Grants are combined from record ownership, the organization-wide
    default, the role hierarchy, sharing rules and manual shares; the
    highest level wins. Every contributing grant is returned.

    Query parameters:
    - access_type: 'read' (default) or 'write'
    """
)
async def check_access(
    object_api_name: str,
    record_id: str,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    access_type: Literal["read", "write"] = Query("read", description="Access to check")
) -> RecordAccessResponse:
    """Evaluate record access for the caller."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        evaluation = await evaluate_access_for_user(
            supabase_client, auth_user.user_id, object_api_name, record_id
        )
    except ValueError as e:
        logger.warning(f"Cannot evaluate access for user {auth_user.user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "forbidden",
                "details": str(e)
            }
        )
    except Exception as e:
        logger.error(f"Failed to evaluate access to {object_api_name}/{record_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "access_check_error",
                "details": "Failed to evaluate record access"
            }
        )

    if evaluation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "not_found",
                "details": f"Record {object_api_name}/{record_id} not found or not accessible"
            }
        )

    result = evaluation.result
    grants = [
        AccessGrantResponse(
            source=grant.source,
            source_description=get_access_source_description(grant.source),
            level=grant.level,
            level_description=get_access_level_description(grant.level),
            source_id=grant.source_id,
            source_name=grant.source_name,
        )
        for grant in result.all_access_grants
    ]

    return RecordAccessResponse(
        object_api_name=object_api_name,
        record_id=record_id,
        access_type=access_type,
        has_access=satisfies_access(result.access_level, access_type),
        access_level=result.access_level,
        access_level_description=(
            get_access_level_description(result.access_level) if result.access_level else None
        ),
        access_source=result.access_source,
        access_source_description=(
            get_access_source_description(result.access_source) if result.access_source else None
        ),
        grants=grants,
    )


@router.get(
    "/{object_api_name}/{record_id}/security-context",
    response_model=RecordSecurityContext,
    status_code=status.HTTP_200_OK,
    summary="Get record security context",
    description="""
    Return what the caller may do with a record (edit, delete, manage sharing).

    Returns is_loaded=false with every capability off when the record or the
    caller's organization cannot be resolved.
    """
)
async def security_context(
    object_api_name: str,
    record_id: str,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> RecordSecurityContext:
    """Compute the caller's capabilities on a record."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        return await get_record_security_context(
            supabase_client, auth_user.user_id, object_api_name, record_id
        )
    except Exception as e:
        logger.error(f"Failed to compute security context for {object_api_name}/{record_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "access_check_error",
                "details": "Failed to compute record security context"
            }
        )
