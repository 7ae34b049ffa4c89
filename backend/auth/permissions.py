"""
Authorization helpers built on the user's sharing context.

Authentication (who the caller is) lives in dependencies.py. This module
answers what the caller may administer: organization membership and the
admin flag come from the users/roles tables, not from the JWT.
"""

import logging

from fastapi import HTTPException, status
from supabase import Client

from backend.schemas.sharing import UserSharingContext
from backend.services.sharing_context_service import get_user_sharing_context

logger = logging.getLogger(__name__)


async def load_sharing_context(
    supabase_client: Client,
    user_id: str,
    require_admin: bool = False,
) -> UserSharingContext:
    """
    Load the caller's sharing context or reject the request.

    Raises:
        HTTPException 403: If the user has no organization, or is not an
                           admin when require_admin is set
    """
    context = await get_user_sharing_context(supabase_client, user_id)

    if context is None or not context.organization_id:
        logger.warning(f"User {user_id} is not associated with an organization")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "forbidden",
                "details": "User not associated with an organization"
            }
        )

    if require_admin and not context.is_admin:
        logger.warning(f"User {user_id} attempted an admin-only sharing operation")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "forbidden",
                "details": "Only organization admins can manage sharing settings"
            }
        )

    return context
