"""
Caller identity consumed by the API routes.
"""

from wealthiq.auth.caller import CallerContext, get_caller_context, require_admin

__all__ = ["CallerContext", "get_caller_context", "require_admin"]
