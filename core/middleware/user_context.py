"""
Caller identity middleware.

The service sits behind an authorizer that authenticates the caller and
forwards their id in ``X-User-Id``. This middleware makes that id
available throughout the request lifecycle.
"""

import contextvars
import logging
from typing import Callable, Optional

from django.conf import settings
from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

# Context variable for the calling user's id
user_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "user_id", default=None
)


def get_current_user_id() -> Optional[str]:
    """
    Get the current caller's user id from context.

    Returns:
        User id or None if the request carried none
    """
    return user_context.get(None)


class UserContextMiddleware:
    """
    Middleware to set the caller context from the identity header.

    This middleware:
    1. Reads the user id header set by the upstream authorizer
    2. Sets the user context for the request
    3. Clears it once the response is built
    """

    def __init__(self, get_response: Callable):
        """Initialize middleware."""
        self.get_response = get_response
        self.header = settings.USER_ID_HEADER

    def __call__(self, request: HttpRequest) -> HttpResponse:
        """
        Process request and set user context.

        Args:
            request: HTTP request

        Returns:
            HTTP response
        """
        user_id = (request.headers.get(self.header) or "").strip() or None
        token = user_context.set(user_id)
        request.user_id = user_id  # type: ignore

        try:
            return self.get_response(request)
        finally:
            user_context.reset(token)
