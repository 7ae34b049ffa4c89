"""
Sharing rule API endpoints.

Endpoints:
- GET /sharing-rules - List the organization's sharing rules
- POST /sharing-rules - Create a sharing rule (admin)
- POST /sharing-rules/validate-criteria - Validate a criteria payload
- GET /sharing-rules/{rule_id} - Get a single rule
- PATCH /sharing-rules/{rule_id} - Update a rule (admin)
- POST /sharing-rules/{rule_id}/toggle - Activate/deactivate a rule (admin)
- DELETE /sharing-rules/{rule_id} - Delete a rule (admin)
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.auth.permissions import load_sharing_context
from backend.db.client import get_supabase_client
from backend.schemas.sharing import CriteriaValidationResult, SharingRule
from backend.schemas.sharing_rules import (
    CriteriaValidationRequest,
    SharingRuleCreateRequest,
    SharingRuleDeleteResponse,
    SharingRuleListResponse,
    SharingRuleMutationResponse,
    SharingRuleToggleRequest,
    SharingRuleUpdateRequest,
)
from backend.services.record_sharing import validate_sharing_criteria
from backend.services.sharing_rule_service import (
    create_sharing_rule,
    delete_sharing_rule,
    get_sharing_rule,
    get_sharing_rules,
    parse_sharing_rules,
    toggle_sharing_rule_active,
    update_sharing_rule,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sharing-rules", tags=["sharing-rules"])


def _not_found(rule_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": "not_found",
            "details": f"Sharing rule {rule_id} not found or not accessible"
        }
    )


@router.get(
    "",
    response_model=SharingRuleListResponse,
    status_code=status.HTTP_200_OK,
    summary="List sharing rules",
    description="""
    List the organization's sharing rules, newest first.

    Query parameters:
    - object_api_name: restrict to one object (e.g. 'Contact')

    Security:
    - Requires valid authentication token
    - RLS restricts rows to the caller's organization
    """
)
async def list_sharing_rules(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    object_api_name: Optional[str] = Query(None, description="Restrict to one object")
) -> SharingRuleListResponse:
    """List sharing rules."""
    logger.info(f"Listing sharing rules for user {auth_user.user_id} (object={object_api_name})")

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rows = await get_sharing_rules(supabase_client, object_api_name=object_api_name)
        rules = parse_sharing_rules(rows)

        return SharingRuleListResponse(rules=rules, count=len(rules))

    except Exception as e:
        logger.error(f"Failed to fetch sharing rules: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to retrieve sharing rules from database"
            }
        )


@router.post(
    "",
    response_model=SharingRuleMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a sharing rule",
    description="""
    Create a sharing rule in the caller's organization.

    Security:
    - Requires valid authentication token
    - Caller must be an organization admin
    - organization_id and created_by come from the caller, never the body
    """
)
async def create_rule(
    request: SharingRuleCreateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SharingRuleMutationResponse:
    """Create a sharing rule."""
    supabase_client = get_supabase_client(auth_user.access_token)
    sharing_context = await load_sharing_context(supabase_client, auth_user.user_id, require_admin=True)

    try:
        created = await create_sharing_rule(
            supabase_client=supabase_client,
            sharing_context=sharing_context,
            object_definition_id=request.object_definition_id,
            name=request.name,
            description=request.description,
            access_level=request.access_level.value,
            share_with_type=request.share_with_type,
            share_with_id=request.share_with_id,
            rule_type=request.rule_type,
            criteria=request.criteria,
            owner_role_id=request.owner_role_id,
            is_active=request.is_active,
        )

        return SharingRuleMutationResponse(
            status="CREATED",
            rule=SharingRule.model_validate(created),
            message="Sharing rule created successfully"
        )

    except ValueError as e:
        logger.warning(f"Validation error creating sharing rule: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "validation_error",
                "details": str(e)
            }
        )
    except Exception as e:
        logger.error(f"Failed to create sharing rule: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "create_error",
                "details": "Failed to create sharing rule"
            }
        )


@router.post(
    "/validate-criteria",
    response_model=CriteriaValidationResult,
    status_code=status.HTTP_200_OK,
    summary="Validate sharing criteria",
    description="""
    Check a criteria payload before saving a rule.

    Always returns 200; invalid payloads are reported as
    {"valid": false, "error": "..."}.
    """
)
async def validate_criteria(
    request: CriteriaValidationRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> CriteriaValidationResult:
    """Validate a criteria payload."""
    result = validate_sharing_criteria(request.criteria)
    logger.debug(f"Criteria validation for user {auth_user.user_id}: valid={result.valid}")
    return result


@router.get(
    "/{rule_id}",
    response_model=SharingRule,
    status_code=status.HTTP_200_OK,
    summary="Get sharing rule details"
)
async def get_rule(
    rule_id: str,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SharingRule:
    """Get a single sharing rule."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        row = await get_sharing_rule(supabase_client, rule_id)
        if not row:
            raise _not_found(rule_id)

        return SharingRule.model_validate(row)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch sharing rule {rule_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to retrieve sharing rule from database"
            }
        )


@router.patch(
    "/{rule_id}",
    response_model=SharingRuleMutationResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a sharing rule",
    description="""
    Partially update a sharing rule. At least one field must be provided.

    Security:
    - Caller must be an organization admin
    """
)
async def update_rule(
    rule_id: str,
    request: SharingRuleUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SharingRuleMutationResponse:
    """Update a sharing rule (partial update)."""
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
    await load_sharing_context(supabase_client, auth_user.user_id, require_admin=True)

    try:
        updated = await update_sharing_rule(supabase_client, rule_id, updates)
        if not updated:
            raise _not_found(rule_id)

        return SharingRuleMutationResponse(
            status="UPDATED",
            rule=SharingRule.model_validate(updated),
            message="Sharing rule updated successfully"
        )

    except HTTPException:
        raise
    except ValueError as e:
        logger.warning(f"Validation error updating sharing rule {rule_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "validation_error",
                "details": str(e)
            }
        )
    except Exception as e:
        logger.error(f"Failed to update sharing rule {rule_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "update_error",
                "details": "Failed to update sharing rule"
            }
        )


@router.post(
    "/{rule_id}/toggle",
    response_model=SharingRuleMutationResponse,
    status_code=status.HTTP_200_OK,
    summary="Activate or deactivate a sharing rule"
)
async def toggle_rule(
    rule_id: str,
    request: SharingRuleToggleRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SharingRuleMutationResponse:
    """Toggle a sharing rule's active flag."""
    supabase_client = get_supabase_client(auth_user.access_token)
    await load_sharing_context(supabase_client, auth_user.user_id, require_admin=True)

    try:
        updated = await toggle_sharing_rule_active(supabase_client, rule_id, request.is_active)
        if not updated:
            raise _not_found(rule_id)

        state = "activated" if request.is_active else "deactivated"
        return SharingRuleMutationResponse(
            status="UPDATED",
            rule=SharingRule.model_validate(updated),
            message=f"Sharing rule {state}"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to toggle sharing rule {rule_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "update_error",
                "details": "Failed to update sharing rule"
            }
        )


@router.delete(
    "/{rule_id}",
    response_model=SharingRuleDeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete a sharing rule"
)
async def delete_rule(
    rule_id: str,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SharingRuleDeleteResponse:
    """Delete a sharing rule."""
    supabase_client = get_supabase_client(auth_user.access_token)
    await load_sharing_context(supabase_client, auth_user.user_id, require_admin=True)

    try:
        deleted = await delete_sharing_rule(supabase_client, rule_id)
        if not deleted:
            raise _not_found(rule_id)

        return SharingRuleDeleteResponse(
            status="DELETED",
            rule_id=rule_id,
            message="Sharing rule deleted successfully"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete sharing rule {rule_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "delete_error",
                "details": "Failed to delete sharing rule"
            }
        )
