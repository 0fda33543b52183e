"""
Caller context for authenticated routes.

Request authentication (Clerk session JWT verification) runs upstream of
these routes. That layer stores the resolved caller on
request.state.caller_context; the dependencies below only read it.

Usage in route handlers:
    @router.get("/status")
    def get_status(caller: CallerContext = Depends(get_caller_context)):
        ...

    @router.get("/admin/statistics")
    def get_statistics(caller: CallerContext = Depends(require_admin)):
        ...
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerContext:
    """The authenticated caller: internal user ID and admin flag."""
    user_id: str
    is_admin: bool = False


def get_caller_context(request: Request) -> CallerContext:
    """
    Dependency returning the authenticated caller.

    Raises:
        HTTPException 401: If no authenticated caller is attached to the request
    """
    caller = getattr(request.state, "caller_context", None)
    if not isinstance(caller, CallerContext) or not caller.user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return caller


def require_admin(
    request: Request,
    caller: CallerContext = Depends(get_caller_context),
) -> CallerContext:
    """
    Dependency requiring an admin caller.

    Raises:
        HTTPException 403: If the caller is not an admin
    """
    if not caller.is_admin:
        logger.warning(
            "Non-admin attempted HubSpot sync admin endpoint",
            extra={"user_id": caller.user_id, "path": request.url.path},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return caller
