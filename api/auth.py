"""
Authentication for the FastAPI API.

The default authenticator trusts a caller-supplied user id header. It is a
placeholder, not a security boundary: swap in another ``Authenticator``
through ``create_app(authenticator=...)`` to verify real credentials.
"""

from abc import ABC, abstractmethod

import structlog
from fastapi import HTTPException, Request, status

logger = structlog.get_logger(__name__)

AUTH_REQUIRED_ERROR = "Authentication required"
AUTH_REQUIRED_MESSAGE = "Please provide a user-id in the request headers"


class AuthenticationError(Exception):
    """Raised when a request carries no acceptable identity."""


class Authenticator(ABC):
    """Resolves the calling user from a request."""

    @abstractmethod
    def authenticate(self, request: Request) -> str:
        """
        Identify the caller.

        Args:
            request: Incoming request

        Returns:
            The caller's user id

        Raises:
            AuthenticationError: If the caller cannot be identified
        """


class HeaderAuthenticator(Authenticator):
    """Reads the user id, unverified, from a request header."""

    def __init__(self, header_name: str = "user-id"):
        self.header_name = header_name

    def authenticate(self, request: Request) -> str:
        user_id = (request.headers.get(self.header_name) or "").strip()
        if not user_id:
            raise AuthenticationError(f"Missing {self.header_name} header")
        return user_id


def unauthorized(request: Request, reason: str) -> HTTPException:
    """Build the 401 reported for an unauthenticated request."""
    logger.warning("Unauthenticated request", path=request.url.path, reason=reason)
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": AUTH_REQUIRED_ERROR, "message": AUTH_REQUIRED_MESSAGE},
    )


async def require_user_id(request: Request) -> str:
    """
    Dependency returning the authenticated user id.

    Raises:
        HTTPException: 401 if the request is not authenticated
    """
    authenticator: Authenticator = request.app.state.authenticator
    try:
        return authenticator.authenticate(request)
    except AuthenticationError as e:
        raise unauthorized(request, str(e))
