"""Session validation against the shared auth tables"""

import logging
from datetime import UTC, datetime

from tenure_shared.errors import AuthenticationError
from tenure_shared.models.session import SessionUser
from tenure_shared.repositories.session import SessionRepository

logger = logging.getLogger(__name__)


class SessionAuthService:
    """Resolve a session token to the user that owns it"""

    def __init__(self, repo: SessionRepository):
        self.repo = repo

    @staticmethod
    def extract_token(cookie_value: str | None, authorization: str | None) -> str | None:
        """Pick the session token from the cookie or a Bearer header.

        The auth server signs cookie values as ``token.signature``; only the
        token part is stored in the session table.
        """
        if cookie_value:
            return cookie_value.split(".", 1)[0] or None
        if authorization:
            scheme, _, credentials = authorization.partition(" ")
            if scheme.lower() == "bearer" and credentials.strip():
                return credentials.strip().split(".", 1)[0] or None
        return None

    async def authenticate(self, token: str | None) -> SessionUser:
        """Return the session's user or raise AuthenticationError"""
        if not token:
            raise AuthenticationError("No session token provided")

        try:
            session = await self.repo.get_session_by_token(token)
        except Exception as e:
            logger.exception(f"Session lookup failed: {e}")
            raise AuthenticationError("Authentication failed") from e

        if session is None:
            logger.info("Session not found in database")
            raise AuthenticationError("Invalid session token")

        if session.is_expired(datetime.now(UTC)):
            raise AuthenticationError("Session expired")

        try:
            user = await self.repo.get_user_by_id(session.user_id)
        except Exception as e:
            logger.exception(f"User lookup failed: {e}")
            raise AuthenticationError("Authentication failed") from e

        if user is None:
            raise AuthenticationError("User not found")

        logger.debug(f"Session validated for user: {user.id}")
        return user
