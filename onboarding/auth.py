"""
Authentication module for Supabase access tokens.

The token comes from the Authorization header or, for browser requests,
from the session cookie. The caller's role is read from the users table.
"""
import logging
from typing import Iterable, Optional

from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from onboarding.access import AccessDenied, AccessGranted, decide_access
from onboarding.config import get_settings, Settings
from onboarding.exceptions import AuthenticationError, AuthorizationError
from onboarding.models import AuthenticatedUser
from onboarding.supabase_client import SupabaseClient, get_supabase_client
from onboarding.utils.logging import fingerprint, set_context

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


def get_token_from_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    settings: Settings,
) -> Optional[str]:
    """Bearer token first, then the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.session_cookie_name) or None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
    supabase: SupabaseClient = Depends(get_supabase_client),
) -> AuthenticatedUser:
    """
    Dependency that resolves the caller from a Supabase access token.

    Raises:
        AuthenticationError: If no token is present or it does not resolve to a user
    """
    token = get_token_from_request(request, credentials, settings)
    if not token:
        raise AuthenticationError("Unauthorized", "MISSING_AUTH")

    user = await run_in_threadpool(supabase.get_user_from_token, token)
    if not user:
        logger.warning(f"Rejected token {fingerprint(token, 'tok_')}")
        raise AuthenticationError("Invalid token or user not found", "INVALID_TOKEN")

    user.role = await run_in_threadpool(supabase.get_user_role, user.id)

    set_context(user_id=user.id)
    return user


def require_access(
    user: AuthenticatedUser,
    capabilities: Iterable[str],
    subject_id: Optional[str] = None,
    allow_self: bool = False,
) -> AccessGranted:
    """
    Raise 403 unless the caller may act on `subject_id`'s documents.

    Raises:
        AuthorizationError: If access is denied
    """
    decision = decide_access(
        user.role,
        capabilities,
        caller_id=user.id,
        subject_id=subject_id,
        allow_self=allow_self,
    )
    if isinstance(decision, AccessDenied):
        logger.warning(f"Access denied: {decision.reason}")
        raise AuthorizationError(
            "Insufficient permissions",
            details={"reason": decision.reason},
        )

    logger.info(f"Access granted via {decision.via} (role={decision.role or 'none'})")
    return decision
