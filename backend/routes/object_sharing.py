"""
Object sharing settings API endpoints.

Endpoints:
- GET /objects/{object_api_name}/sharing - Sharing model and active rules
- PUT /objects/{object_api_name}/sharing-model - Change the organization-wide default (admin)
- GET /sharing/targets - Users and roles available as share targets
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.auth.permissions import load_sharing_context
from backend.db.client import get_supabase_client
from backend.schemas.object_sharing import (
    ObjectSharingSettingsResponse,
    SharingModelUpdateRequest,
    ShareTargetsResponse,
)
from backend.services.object_sharing_service import (
    get_object_sharing_settings,
    get_share_targets,
    resolve_sharing_model,
    update_object_sharing_model,
)
from backend.services.record_sharing import (
    get_sharing_model_description,
    get_sharing_model_display_name,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["object-sharing"])


def _object_not_found(object_api_name: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": "not_found",
            "details": f"Object {object_api_name} not found"
        }
    )


@router.get(
    "/objects/{object_api_name}/sharing",
    response_model=ObjectSharingSettingsResponse,
    status_code=status.HTTP_200_OK,
    summary="Get object sharing settings"
)
async def get_sharing_settings(
    object_api_name: str,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> ObjectSharingSettingsResponse:
    """Return an object's organization-wide default and active rules."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        sharing_settings = await get_object_sharing_settings(supabase_client, object_api_name)
        if sharing_settings is None:
            raise _object_not_found(object_api_name)

        model = sharing_settings["sharing_model"]
        return ObjectSharingSettingsResponse(
            object_api_name=object_api_name,
            object_label=sharing_settings["object"].get("label"),
            sharing_model=model,
            sharing_model_display_name=get_sharing_model_display_name(model),
            sharing_model_description=get_sharing_model_description(model),
            sharing_rules=sharing_settings["sharing_rules"],
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch sharing settings for {object_api_name}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to retrieve object sharing settings"
            }
        )


@router.put(
    "/objects/{object_api_name}/sharing-model",
    response_model=ObjectSharingSettingsResponse,
    status_code=status.HTTP_200_OK,
    summary="Change an object's organization-wide default",
    description="""
    Set the baseline access every organization member has to the object's records.

    Security:
    - Caller must be an organization admin
    """
)
async def set_sharing_model(
    object_api_name: str,
    request: SharingModelUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> ObjectSharingSettingsResponse:
    """Update an object's sharing model."""
    supabase_client = get_supabase_client(auth_user.access_token)
    await load_sharing_context(supabase_client, auth_user.user_id, require_admin=True)

    try:
        updated = await update_object_sharing_model(supabase_client, object_api_name, request.sharing_model)
        if updated is None:
            raise _object_not_found(object_api_name)

        sharing_settings = await get_object_sharing_settings(supabase_client, object_api_name)
        rules = sharing_settings["sharing_rules"] if sharing_settings else []
        model = resolve_sharing_model(updated)

        return ObjectSharingSettingsResponse(
            object_api_name=object_api_name,
            object_label=updated.get("label"),
            sharing_model=model,
            sharing_model_display_name=get_sharing_model_display_name(model),
            sharing_model_description=get_sharing_model_description(model),
            sharing_rules=rules,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update sharing model for {object_api_name}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "update_error",
                "details": "Failed to update object sharing model"
            }
        )


@router.get(
    "/sharing/targets",
    response_model=ShareTargetsResponse,
    status_code=status.HTTP_200_OK,
    summary="List share targets"
)
async def list_share_targets(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> ShareTargetsResponse:
    """List active users and roles of the caller's organization."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        targets = await get_share_targets(supabase_client)
        return ShareTargetsResponse(users=targets["users"], roles=targets["roles"])

    except Exception as e:
        logger.error(f"Failed to fetch share targets: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to retrieve users and roles"
            }
        )
